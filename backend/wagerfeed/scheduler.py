"""Job scheduler using APScheduler."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wagerfeed.config import Settings
from wagerfeed.services.change_detector import ChangeDetector

logger = logging.getLogger(__name__)


def create_scheduler(settings: Settings, detector: ChangeDetector) -> AsyncIOScheduler:
    """Build the in-process scheduler; the caller starts and shuts it down."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        detector.run_job,
        IntervalTrigger(seconds=settings.detector.interval_seconds),
        id="change-detector",
        name="Change Detector: Placement Scan",
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        f"Registered job: Change Detector (every {settings.detector.interval_seconds}s, "
        f"overlap {settings.detector.overlap_seconds}s)"
    )

    return scheduler
