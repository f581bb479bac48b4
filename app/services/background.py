from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class BackgroundWorker:
    """
    Runs one booking job every *interval* seconds on the app's event loop.

    With ``catch_up=True`` the job also runs once inside ``start()``, so work
    that piled up while the service was down is handled before requests are
    served.  A failed run is logged and counted and the schedule carries on.
    """

    def __init__(self, *, interval: float, name: str, catch_up: bool = False) -> None:
        self._interval = interval
        self._name = name
        self._catch_up = catch_up
        self._task: asyncio.Task[None] | None = None
        self.runs = 0
        self.failures = 0
        self.last_run: datetime | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        if self._catch_up:
            await self.run_once()
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s started (every %ds)", self._name, self._interval)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("%s stopped after %d runs (%d failed)", self._name, self.runs, self.failures)

    async def run_once(self) -> bool:
        """Run the job now, outside the schedule; False if it raised."""
        try:
            await self._tick()
        except Exception:
            self.failures += 1
            logger.exception("%s run failed — will retry next interval", self._name)
            return False
        self.runs += 1
        self.last_run = datetime.now(timezone.utc)
        return True

    async def _tick(self) -> None:
        raise NotImplementedError

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()
