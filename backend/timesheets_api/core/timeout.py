"""
Bounded waits for calls to external collaborators.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from timesheets_api.core.config import settings
from timesheets_api.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def bounded(
    awaitable: Awaitable[T],
    timeout: Optional[float] = None,
    operation: str = "query",
) -> T:
    """
    Await ``awaitable`` for at most ``timeout`` seconds.

    Defaults to ``DB_QUERY_TIMEOUT_SECONDS``.

    Raises:
        asyncio.TimeoutError: If the bound is exceeded (logged first)
    """
    limit = timeout if timeout is not None else settings.DB_QUERY_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout=limit)
    except asyncio.TimeoutError:
        logger.warning(
            "Operation timed out",
            extra={"operation": operation, "timeout_seconds": limit},
        )
        raise


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: Optional[float] = None,
    operation: str = "query",
) -> Optional[T]:
    """
    Bounded lookup: a timeout is reported as ``None`` so callers treat it
    like a missing record instead of hanging the request.
    """
    try:
        return await bounded(awaitable, timeout=timeout, operation=operation)
    except asyncio.TimeoutError:
        return None
