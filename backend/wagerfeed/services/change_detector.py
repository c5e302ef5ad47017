"""Periodic scan for new wagers, published as per-bet stats cues.

Each tick reads placements created in ``[cutoff - overlap, now]`` and publishes
one ``stats`` notification per distinct bet. The overlap re-scans a few
seconds of the previous window so rows that commit after their timestamp are
not missed; duplicates are harmless because subscribers only re-fetch.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from wagerfeed.errors import UpstreamFailure
from wagerfeed.models import TopicKind
from wagerfeed.repositories import BetRepository
from wagerfeed.services.lifecycle_service import utc_now
from wagerfeed.services.notifications import NotificationHub

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    window_start: datetime
    window_end: datetime
    bet_ids: list[str]
    delivered: int


class ChangeDetector:
    """Stateful poller; only the last successful cutoff is remembered."""

    def __init__(
        self,
        repository: BetRepository,
        hub: NotificationHub,
        interval_seconds: int = 60,
        overlap_seconds: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._hub = hub
        self._interval = timedelta(seconds=interval_seconds)
        self._overlap = timedelta(seconds=overlap_seconds)
        self._clock = clock
        self._lock = asyncio.Lock()
        self.last_cutoff: datetime | None = None

    async def tick(self) -> TickResult | None:
        """Run one scan. Returns None when storage failed and the cutoff was kept."""
        async with self._lock:
            now = self._clock()
            base = self.last_cutoff if self.last_cutoff is not None else now - self._interval
            window_start = base - self._overlap

            try:
                rows = await self._repository.recent_placement_bet_ids(window_start, now)
            except UpstreamFailure as e:
                logger.warning(
                    f"Change scan {window_start.isoformat()} - {now.isoformat()} failed, "
                    f"window will be retried: {e.message}"
                )
                return None

            bet_ids = list(dict.fromkeys(rows))
            delivered = 0
            for bet_id in bet_ids:
                delivered += await self._hub.publish(bet_id, TopicKind.STATS)

            self.last_cutoff = now
            logger.info(
                f"Change scan {window_start.isoformat()} - {now.isoformat()}: "
                f"{len(rows)} placement(s) across {len(bet_ids)} bet(s), {delivered} delivered"
            )
            return TickResult(
                window_start=window_start,
                window_end=now,
                bet_ids=bet_ids,
                delivered=delivered,
            )

    async def run_job(self) -> None:
        """Scheduler job wrapper; a failed tick must not unschedule the job."""
        try:
            await self.tick()
        except Exception as exc:
            logger.error(f"Change detector tick failed: {exc}", exc_info=True)
