from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from clinicsync.core.config import settings
from clinicsync.services.api_client import ApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    retry_on: Tuple[Type[BaseException], ...] = (ApiError,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds, doubling the delay between tries.

    Nothing in the package retries on its own; callers opt in explicitly.
    The last error is re-raised once ``attempts`` are exhausted.
    """
    max_attempts = max(1, attempts if attempts is not None else settings.retry_attempts)
    delay = settings.retry_base_delay_seconds if base_delay is None else base_delay

    for attempt in range(max_attempts):
        try:
            return await operation()
        except retry_on as exc:
            if attempt == max_attempts - 1:
                raise
            wait = delay * (2 ** attempt)
            logger.info("Attempt %s/%s failed (%s); retrying in %.2fs", attempt + 1, max_attempts, exc, wait)
            await sleep(wait)
    raise RuntimeError("unreachable")  # pragma: no cover
