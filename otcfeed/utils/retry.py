#!filepath: otcfeed/utils/retry.py
import random
import asyncio
from typing import Callable, Optional, Tuple, Type

from otcfeed.utils.logger import logs


class AsyncRetry:
    """
    Async retry for real-price fetches.

    - exponential back-off with optional jitter
    - optional per-attempt timeout (a hung quote API counts as a failure)
    - on_retry(attempt, exc) hook, e.g. for failure counters
    """

    @staticmethod
    async def run(
        func: Callable,
        *args,
        exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        max_attempts: int = 3,
        delay: float = 1.0,
        backoff: float = 2.0,
        jitter: bool = True,
        attempt_timeout: Optional[float] = None,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
        **kwargs,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        name = getattr(func, "__name__", repr(func))
        for attempt in range(1, max_attempts + 1):
            try:
                if attempt_timeout is None:
                    return await func(*args, **kwargs)
                return await asyncio.wait_for(func(*args, **kwargs), attempt_timeout)

            except exceptions as e:
                if attempt == max_attempts:
                    logs.error(f"[AsyncRetry] {name} failed after {max_attempts} attempts: {e!r}")
                    raise

                wait = delay * (backoff ** (attempt - 1))
                if jitter:
                    wait = wait * random.uniform(0.8, 1.2)

                if on_retry is not None:
                    on_retry(attempt, e)
                logs.warning(
                    f"[AsyncRetry] {name} attempt {attempt}/{max_attempts} failed: {e!r}, "
                    f"retrying in {wait:.2f}s"
                )
                await asyncio.sleep(wait)
