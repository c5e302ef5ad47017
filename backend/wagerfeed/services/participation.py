"""Batched participation counts and odds per bet."""

from collections.abc import Iterable

from wagerfeed.models import BetStats
from wagerfeed.repositories import BetRepository


class ParticipationAggregator:
    """Looks up wager counts for many bets in one storage call."""

    def __init__(self, repository: BetRepository):
        self._repository = repository

    async def stats(self, bet_ids: Iterable[str]) -> dict[str, BetStats]:
        ids = list(dict.fromkeys(bet_ids))
        if not ids:
            return {}
        rows = await self._repository.participation_stats(ids)
        return {row.bet_id: row for row in rows}

    async def counts(self, bet_ids: Iterable[str]) -> dict[str, int]:
        """Bets with no wagers are absent; callers treat them as zero."""
        stats = await self.stats(bet_ids)
        return {
            bet_id: row.participant_count
            for bet_id, row in stats.items()
            if row.participant_count > 0
        }
