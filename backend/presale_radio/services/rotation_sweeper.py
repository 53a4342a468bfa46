"""
Rotation sweeper: background task that ticks every radio channel so the
schedule keeps moving (and play statistics keep counting) with no listeners polling.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.config import settings
from presale_radio.db.session import session_scope
from presale_radio.models.radio_schedule import RadioSchedule
from presale_radio.services.rotation_controller import RotationController, TickOutcome

logger = logging.getLogger(__name__)


class RotationSweeper:
    def __init__(self, check_interval: int | None = None):
        self.check_interval = settings.RADIO_SWEEP_INTERVAL_SECONDS if check_interval is None else check_interval
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the sweep loop."""
        if self.running:
            logger.warning("Rotation sweeper already running")
            return
        if self.check_interval <= 0:
            logger.info("Rotation sweeper disabled (RADIO_SWEEP_INTERVAL_SECONDS=0)")
            return

        self.running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Rotation sweeper started (every %ss)", self.check_interval)

    async def stop(self):
        """Stop the sweep loop."""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Rotation sweeper stopped")

    async def _run_loop(self):
        while self.running:
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error("Rotation sweep error: %s", e, exc_info=True)
            await asyncio.sleep(self.check_interval)

    async def sweep_once(self) -> dict[str, TickOutcome]:
        """Tick every known channel, each in its own transaction."""
        async with session_scope() as db:
            channels = await self._channels(db)

        outcomes: dict[str, TickOutcome] = {}
        for channel in channels:
            try:
                async with session_scope() as db:
                    result = await RotationController(db, channel).tick()
                outcomes[channel] = result.outcome
            except Exception as e:
                logger.error("Error ticking channel %s: %s", channel, e, exc_info=True)
        return outcomes

    @staticmethod
    async def _channels(db: AsyncSession) -> list[str]:
        result = await db.execute(select(RadioSchedule.channel))
        channels = list(result.scalars().all())
        if settings.RADIO_DEFAULT_CHANNEL not in channels:
            channels.append(settings.RADIO_DEFAULT_CHANNEL)
        return channels


_sweeper_instance: RotationSweeper | None = None


def get_sweeper() -> RotationSweeper:
    """Get or create the global sweeper instance."""
    global _sweeper_instance
    if _sweeper_instance is None:
        _sweeper_instance = RotationSweeper()
    return _sweeper_instance


async def start_sweeper():
    await get_sweeper().start()


async def stop_sweeper():
    await get_sweeper().stop()
