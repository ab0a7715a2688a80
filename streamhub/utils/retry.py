import asyncio
from typing import Awaitable, Callable, Optional, TypeVar
from loguru import logger
from streamhub.core.errors import OperationCancelled

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class CancelToken:
    """
    Caller-owned cancellation signal for long remote jobs.
    Checked at every suspension point; sleeps wake up early when tripped.
    """
    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("operation cancelled")

    async def sleep(self, delay: float, sleep: SleepFn = asyncio.sleep) -> None:
        self.raise_if_cancelled()
        waiter = asyncio.ensure_future(self._event.wait())
        sleeper = asyncio.ensure_future(sleep(delay))
        try:
            await asyncio.wait({waiter, sleeper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (waiter, sleeper):
                if not task.done():
                    task.cancel()
        self.raise_if_cancelled()


class RetryExhausted(Exception):
    """poll_until ran max_attempts times without the predicate holding."""

    def __init__(self, attempts: int, last_value=None):
        self.attempts = attempts
        self.last_value = last_value
        super().__init__(f"condition not met after {attempts} attempts")


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    *,
    interval: float,
    max_attempts: int,
    backoff: float = 1.0,
    max_interval: Optional[float] = None,
    cancel_token: Optional[CancelToken] = None,
    sleep: SleepFn = asyncio.sleep,
    label: str = "job",
) -> T:
    """
    Call fetch() until predicate(value) holds, at most max_attempts times.

    Sleeps between attempts only (never after the last one), so a value
    accepted on attempt n costs n - 1 sleeps. The delay starts at interval
    and is multiplied by backoff after each sleep, capped at max_interval.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay = interval
    value = None
    for attempt in range(1, max_attempts + 1):
        if cancel_token:
            cancel_token.raise_if_cancelled()

        value = await fetch()

        if cancel_token:
            cancel_token.raise_if_cancelled()

        if predicate(value):
            return value

        # Log first and every 5th attempt to keep it readable
        if attempt == 1 or attempt % 5 == 0:
            logger.info(f"Waiting on {label} (Attempt {attempt}/{max_attempts})")

        if attempt < max_attempts:
            if cancel_token:
                await cancel_token.sleep(delay, sleep)
            else:
                await sleep(delay)
            delay = delay * backoff
            if max_interval is not None:
                delay = min(delay, max_interval)

    raise RetryExhausted(max_attempts, value)
