"""
Create-only access to the Logs table.
"""

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from connector.app.db.connection import get_async_db
from connector.app.db.models import LogRecord


logger = logging.getLogger(__name__)


class LogStore:
    """
    Writes request log rows.

    Nothing in the service reads, updates or deletes rows; the table is an
    append-only audit of what the identity platform sent.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, message: str, log_level: str = "Info") -> LogRecord:
        """
        Insert one log row and commit.

        Args:
            message: Request body text
            log_level: Severity label

        Returns:
            The persisted LogRecord

        Raises:
            SQLAlchemyError: If the insert or commit fails
        """
        record = LogRecord(log_level=log_level, message=message or "")
        self.session.add(record)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(record)

        logger.debug("Stored log record", extra={"log_id": str(record.id)})
        return record


def get_log_store(session: AsyncSession = Depends(get_async_db)) -> LogStore:
    return LogStore(session)
