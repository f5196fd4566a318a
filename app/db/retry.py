import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import config
from app.core.logging import get_logger
from app.services.auction.exceptions import StorageUnavailable

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, InterfaceError, asyncio.TimeoutError)
MAX_ATTEMPTS = 2


async def with_storage_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    action: str,
    session: Optional[AsyncSession] = None,
    timeout: Optional[float] = None,
) -> T:
    """
    Run a storage operation with a bounded timeout and a single retry.

    The operation is a zero-argument coroutine factory so it can be started
    again after a failure. When a session is given, it is rolled back before
    the retry so the second attempt starts from a clean transaction.

    :raises StorageUnavailable: when both attempts fail with a transient error.
    """
    timeout = timeout if timeout is not None else config.storage_timeout_seconds

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except TRANSIENT_ERRORS as error:
            if session is not None:
                await session.rollback()
            logger.warning(
                "storage_call_failed",
                action=action,
                attempt=attempt,
                error=str(error) or type(error).__name__,
            )

    raise StorageUnavailable(action)
