"""Database models"""

from httpsession.db.models.session_record import SESSION_ID_MAX_LENGTH, SessionRecord

__all__ = [
    "SESSION_ID_MAX_LENGTH",
    "SessionRecord",
]
