"""
Background pull of products and orders from the remote API: one pull on
start, then one every interval (a non-positive interval means start only).
"""

import asyncio
import logging
from typing import Optional

from config import SYNC_INTERVAL_SECONDS
from store import Store

logger = logging.getLogger(__name__)


class BackgroundSync:
    def __init__(self, store: Store, interval: float = SYNC_INTERVAL_SECONDS):
        self.store = store
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        if self.interval > 0:
            logger.info("Background sync every %.0fs", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        # The first pull happens right away; later ones every interval.
        while True:
            try:
                ok = await self.store.pull_remote()
                logger.debug("Background pull finished (complete=%s)", ok)
            except Exception:
                logger.exception("Background pull failed")
            if self.interval <= 0:
                return
            await asyncio.sleep(self.interval)
