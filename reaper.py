import asyncio
from typing import List, Optional

from backend import RoomRegistry
from constants import REAPER_INTERVAL_SECONDS, ROOM_RETENTION_SECONDS
from logging_config import get_logger
from schemas.messages import timestamp_ms

logger = get_logger(__name__)


class Reaper:
    """
    Periodic sweep that evicts rooms left empty past the retention window.

    Rooms normally disappear as soon as their last participant leaves; this
    catches the ones whose leave path never ran.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        interval_seconds: float = REAPER_INTERVAL_SECONDS,
        retention_seconds: float = ROOM_RETENTION_SECONDS,
    ):
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.retention_seconds = retention_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def reap(self, now_ms: Optional[int] = None) -> List[str]:
        """Remove empty rooms older than the retention window; return their ids."""
        now_ms = timestamp_ms() if now_ms is None else now_ms
        max_age_ms = self.retention_seconds * 1000
        evicted = []
        for summary in self.registry.list_all():
            if summary.participant_count or now_ms - summary.created_at <= max_age_ms:
                continue
            # remove() re-checks emptiness, so a join since the scan wins
            if self.registry.remove(summary.room_id):
                evicted.append(summary.room_id)
                logger.info(f"Room {summary.room_id} reaped (inactive)")
        return evicted

    async def _run(self) -> None:
        logger.info(f"Reaper started: every {self.interval_seconds}s, retention {self.retention_seconds}s")
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    evicted = self.reap()
                    logger.debug(f"Reaper sweep evicted {len(evicted)} rooms, {len(self.registry)} remain")
                except Exception as e:
                    logger.error(f"Error during reaper sweep: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Reaper task cancelled")
            raise

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
