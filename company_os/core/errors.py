"""Error taxonomy shared by the store, the API and the producer agent.

Every failure that reaches a caller is one of the classes below. The HTTP
layer maps them onto status codes; nothing here knows about HTTP.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(NotificationError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ValidationError(NotificationError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(NotificationError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Notification not found"


class StoreFailureError(NotificationError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# Driver-level connection failures can surface without a SQLAlchemy wrapper.
STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


@contextlib.asynccontextmanager
async def store_failures(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Translate database and connection errors raised inside the block into ``StoreFailureError``."""

    try:
        yield
    except STORE_ERRORS as exc:
        logger.exception("Store failure while trying to %s", operation)
        try:
            await session.rollback()
        except STORE_ERRORS:
            logger.warning("Rollback failed after store failure", exc_info=True)
        raise StoreFailureError(f"Failed to {operation}") from exc


__all__ = [
    "store_failures",
    "NotificationError",
    "UnauthorizedError",
    "ValidationError",
    "NotFoundError",
    "StoreFailureError",
]
