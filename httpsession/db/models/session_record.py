from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from httpsession.db.base import Base

SESSION_ID_MAX_LENGTH = 255


class SessionRecord(Base):
    """One persisted session: opaque payload keyed by the session id."""

    __tablename__ = "web_session"

    id: Mapped[str] = mapped_column(String(SESSION_ID_MAX_LENGTH), primary_key=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    # Unix seconds of the last write; indexed so gc is a range scan
    modified_at: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SessionRecord(modified_at={self.modified_at!r})>"
