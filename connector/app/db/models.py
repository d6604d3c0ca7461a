"""
ORM models for the connector's request log.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base; every model registers its table on this metadata."""

    pass


class LogRecord(Base):
    """
    One row per inbound connector request.

    Attributes:
        id: UUID v4 primary key, generated on insert
        log_level: Severity label, "Info" for request bodies
        message: Raw or re-serialized request body (may be empty)
        timestamp: Insert time (UTC)
    """

    __tablename__ = "Logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    log_level: Mapped[str] = mapped_column(String(32), default="Info", nullable=False)
    message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<LogRecord(id={self.id}, log_level={self.log_level!r})>"
