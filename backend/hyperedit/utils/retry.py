"""Bounded retry with an overall deadline.

Used for calls to upstream HTTP services. The deadline covers the whole
attempt loop, so a single hung call is bounded as well as a slow series of
retries.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from hyperedit.exceptions import UpstreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    interval_s: float = 1.0
    timeout_s: float = 30.0

    async def run(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...] = (),
        what: str = "operation",
    ) -> T:
        """Call ``fn`` until it succeeds.

        Exceptions listed in ``retry_on`` trigger another attempt after
        ``interval_s``; anything else propagates immediately. The last
        retryable exception is re-raised once attempts run out.

        Raises:
            UpstreamTimeoutError: the overall ``timeout_s`` elapsed
        """
        try:
            return await asyncio.wait_for(
                self._attempts(fn, retry_on, what), timeout=self.timeout_s
            )
        except asyncio.TimeoutError:
            logger.error(f"[RETRY] {what} gave up after {self.timeout_s}s")
            raise UpstreamTimeoutError(f"{what} timed out after {self.timeout_s}s")

    async def _attempts(
        self,
        fn: Callable[[], Awaitable[T]],
        retry_on: tuple[type[BaseException], ...],
        what: str,
    ) -> T:
        attempt = 1
        while True:
            try:
                return await fn()
            except retry_on as e:
                if attempt >= self.max_attempts:
                    logger.error(f"[RETRY] {what} failed after {attempt} attempts: {e}")
                    raise
                logger.warning(f"[RETRY] {what} attempt {attempt} failed: {e}")
                attempt += 1
                await asyncio.sleep(self.interval_s)
