import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from services import LedgerService


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, ledger: LedgerService) -> None:
        settings = get_settings()
        self.ledger = ledger
        self.scheduler = AsyncIOScheduler(timezone=settings.timezone)

    async def _run_job(self, source: str = "manual") -> int:
        logger.info(f"scheduler_run: source={source}")
        try:
            created = await self.ledger.materialize_recurring()
        except Exception:
            logger.exception(f"scheduler_run: source={source} failed")
            return 0
        logger.info(f"scheduler_run: source={source} instances_created={len(created)}")
        return len(created)

    def start(self) -> None:
        settings = get_settings()

        # the month rolls over at midnight; materialize shortly after
        trigger = CronTrigger(hour=settings.scheduler_hour, minute=5)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily"],
            id="recurring_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        trigger = IntervalTrigger(hours=6)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["interval_safety_net"],
            id="recurring_safety",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started with daily {settings.scheduler_hour:02d}:05 run "
            "and 6-hourly safety net"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
