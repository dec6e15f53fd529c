"""Background task that periodically drops expired challenges."""
import asyncio
import contextlib
import logging
import time
from typing import Callable

from notely.services.challenge_store import ChallengeStore

logger = logging.getLogger(__name__)


class CaptchaSweeper:
    """
    Async context manager owning the sweep task.

        async with CaptchaSweeper(store, interval_s=300):
            ...  # sweeps every interval until the block exits
    """

    def __init__(
        self,
        store: ChallengeStore,
        interval_s: float,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._interval_s = interval_s
        self._clock = clock
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        removed = self._store.sweep(self._clock())
        if removed:
            logger.info("Swept %d expired captcha(s), %d live", removed, len(self._store))
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            self.run_once()

    async def __aenter__(self) -> "CaptchaSweeper":
        self._task = asyncio.create_task(self._loop())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
