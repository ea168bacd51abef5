"""Periodic background expiry sweeps.

One ``ExpirySweeper`` drives one store's cleanup coroutine on the
running event loop. A non-positive interval produces a sweeper that
never schedules anything.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


logger = logging.getLogger("oauthkit.state")


class ExpirySweeper:
    """Run ``sweep`` every ``interval`` seconds in a background task.

    Parameters
    ----------
    sweep : Callable[[], Awaitable[int]]
        Coroutine function removing expired entries and returning the count.
    interval : float
        Seconds between sweeps. Zero or less disables sweeping.
    name : str
        Label used in log messages and for the task name.
    on_swept : Callable[[int], None] or None
        Called with each sweep's count.
    """

    def __init__(
        self,
        sweep: Callable[[], Awaitable[int]],
        interval: float,
        name: str = "sweeper",
        on_swept: Callable[[int], None] | None = None,
    ) -> None:
        self._sweep = sweep
        self.interval = interval
        self.name = name
        self._on_swept = on_swept
        self._task: asyncio.Task[None] | None = None

    @property
    def enabled(self) -> bool:
        """Whether this sweeper schedules anything at all."""
        return self.interval > 0

    @property
    def running(self) -> bool:
        """Whether the background task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background task on the running loop.

        Does nothing when disabled or already running.
        """
        if not self.enabled:
            logger.debug("Expiry sweep %s disabled (interval=%s)", self.name, self.interval)
            return
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"oauthkit-{self.name}"
        )
        logger.debug("Started expiry sweep %s every %ss", self.name, self.interval)

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Stopped expiry sweep %s", self.name)

    async def run_once(self) -> int:
        """Run a single sweep immediately."""
        removed = await self._sweep()
        if self._on_swept is not None:
            self._on_swept(removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Error in expiry sweep %s", self.name)
