import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.config import settings
from article_engagement.errors import StoreFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_transaction(
    session: AsyncSession,
    operation: Callable[[AsyncSession], Awaitable[T]],
    failure_message: str,
    attempts: int | None = None,
) -> T:
    """Run ``operation`` inside a single transaction, retrying transient store errors.

    Each attempt is its own transaction: it either commits as a whole or is
    rolled back before the next attempt starts. Deadlocks, serialization
    failures and lock timeouts surface as OperationalError and are retried;
    any other store error becomes StoreFailure immediately.
    """
    attempts = attempts or settings.store_retry_attempts
    if session.in_transaction():
        # Close a transaction autobegun by an earlier read on this session.
        await session.commit()
    for attempt in range(attempts):
        try:
            async with session.begin():
                return await operation(session)
        except OperationalError as exc:
            if attempt == attempts - 1:
                logger.exception("%s after %d attempt(s)", failure_message, attempts)
                raise StoreFailure(failure_message) from exc
            logger.warning("Transient store error on attempt %d: %s", attempt + 1, exc.orig)
            await asyncio.sleep(settings.store_retry_backoff_seconds * (attempt + 1))
        except SQLAlchemyError as exc:
            logger.exception(failure_message)
            raise StoreFailure(failure_message) from exc
    raise StoreFailure(failure_message)
