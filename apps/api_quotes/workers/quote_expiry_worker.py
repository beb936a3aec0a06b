import asyncio
import contextlib
import logging
from typing import Optional

from ..core.usecases.cleanup_expired_quotes_use_case import CleanupExpiredQuotesUseCase


class QuoteExpiryWorker:
    """
    Background loop that periodically runs the expiry sweep.
    Read paths enforce expiry on their own; this only keeps storage tidy.
    """

    def __init__(self, cleanup_uc: CleanupExpiredQuotesUseCase, interval_sec: float = 60.0):
        self._cleanup_uc = cleanup_uc
        self._interval = float(interval_sec)
        self._task: Optional[asyncio.Task] = None
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self):
        return await self._cleanup_uc.execute()

    async def _loop(self):
        while True:
            try:
                await self.run_once()
            except Exception as exc:
                self._logger.exception("quote expiry sweep error: %s", exc)
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        self._logger.info("quote expiry worker started (every %ss)", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._task
            self._task = None
