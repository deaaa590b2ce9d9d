"""Session id generation"""

import secrets

SESSION_ID_BYTES = 32


def generate_session_id() -> str:
    """Return a new URL-safe random session id"""
    return secrets.token_urlsafe(SESSION_ID_BYTES)
