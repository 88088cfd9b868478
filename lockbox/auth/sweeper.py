"""Background task that purges expired server-side sessions."""

import asyncio
import contextlib

from starlette.concurrency import run_in_threadpool

from lockbox.auth.base import AuthStrategy
from lockbox.core.logger import get_logger

logger = get_logger(__name__)


class SessionSweeper:
    """Runs AuthStrategy.sweep() every *interval* seconds, outside request handling."""

    def __init__(self, authenticator: AuthStrategy, interval: float) -> None:
        self._authenticator = authenticator
        self._interval = interval
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Session sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Session sweeper started (every {self._interval}s)")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info("Session sweeper stopped")

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                # sweep() takes the table's write lock; keep it off the event loop
                await run_in_threadpool(self._authenticator.sweep)
            except Exception as e:
                logger.error(f"Error in session sweep: {e}", exc_info=True)
