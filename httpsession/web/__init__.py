"""Request context and request-scoped session management"""

from httpsession.web.identity import generate_session_id
from httpsession.web.request import HttpRequest
from httpsession.web.session import SessionManager, SessionState

__all__ = [
    "HttpRequest",
    "SessionManager",
    "SessionState",
    "generate_session_id",
]
