"""Feed assembly: bet rows merged with participation counts and avatar URLs."""

import asyncio
import logging

from wagerfeed.errors import NotFound, UpstreamFailure
from wagerfeed.models import Bet, BetStats, BetStatus, FeedFilter
from wagerfeed.repositories import BetRepository
from wagerfeed.schemas import BetDetail, BetSummary, CreatorSummary
from wagerfeed.services.participation import ParticipationAggregator
from wagerfeed.services.signed_url_cache import SignedUrlCache

logger = logging.getLogger(__name__)

FEED_UNAVAILABLE = "The bet feed could not be loaded. Please try again."


def _creator_summary(bet: Bet, urls: dict[str, str]) -> CreatorSummary | None:
    if bet.creator is None:
        return None
    avatar_path = bet.creator.avatar_path
    return CreatorSummary(
        full_name=bet.creator.full_name,
        username=bet.creator.username,
        avatar_url=urls.get(avatar_path) if avatar_path else None,
    )


class FeedAssembler:
    """Builds feed pages and bet detail views.

    Each page costs three storage round trips: the page of bets, then the
    participation lookup and avatar signing side by side. Any failure aborts
    the whole page.
    """

    def __init__(
        self,
        repository: BetRepository,
        aggregator: ParticipationAggregator,
        url_cache: SignedUrlCache,
        page_size: int = 10,
        max_page_size: int = 50,
    ):
        self._repository = repository
        self._aggregator = aggregator
        self._url_cache = url_cache
        self._page_size = page_size
        self._max_page_size = max_page_size

    def _page_bounds(self, page: int, page_size: int | None) -> tuple[int, int]:
        page = max(page, 1)
        size = self._page_size if page_size is None else page_size
        size = min(max(size, 1), self._max_page_size)
        return (page - 1) * size, size

    async def _enrich(self, bets: list[Bet]) -> tuple[dict[str, BetStats], dict[str, str]]:
        avatar_paths = [b.creator.avatar_path for b in bets if b.creator]
        stats, urls = await asyncio.gather(
            self._aggregator.stats(b.id for b in bets),
            self._url_cache.resolve(avatar_paths),
        )
        return stats, urls

    async def list_page(
        self,
        page: int = 1,
        feed_filter: FeedFilter = FeedFilter.NEWEST,
        page_size: int | None = None,
    ) -> list[BetSummary]:
        """Return one page of public bet summaries in the filter's order."""
        offset, limit = self._page_bounds(page, page_size)
        try:
            bets = await self._repository.fetch_page(feed_filter, offset, limit)
            if not bets:
                return []
            stats, urls = await self._enrich(bets)
        except UpstreamFailure as e:
            raise UpstreamFailure(FEED_UNAVAILABLE) from e

        return [
            BetSummary(
                id=bet.id,
                title=bet.title,
                description=bet.description,
                created_at=bet.created_at,
                closed_at=bet.closed_at,
                status=bet.status,
                participant_count=stats[bet.id].participant_count if bet.id in stats else 0,
                creator=_creator_summary(bet, urls),
            )
            for bet in bets
        ]

    async def get_detail(self, bet_id: str) -> BetDetail:
        bet = await self._repository.fetch_bet(bet_id)
        if bet is None:
            raise NotFound()
        return await self.present(bet)

    async def present(self, bet: Bet) -> BetDetail:
        """Detail view of an already loaded bet."""
        stats, urls = await self._enrich([bet])
        return self._detail(bet, stats, urls)

    async def present_written(self, bet: Bet) -> BetDetail:
        """Detail view of a bet the caller just wrote.

        The write is already committed, so a failed enrichment falls back to
        the bare row instead of failing the request.
        """
        try:
            stats, urls = await self._enrich([bet])
        except UpstreamFailure as e:
            logger.warning(f"Returning bet {bet.id} without counts or avatar: {e.message}")
            stats, urls = {}, {}
        return self._detail(bet, stats, urls)

    @staticmethod
    def _detail(bet: Bet, stats: dict[str, BetStats], urls: dict[str, str]) -> BetDetail:
        bet_stats = stats.get(bet.id)
        settled = bet.status == BetStatus.SETTLED
        return BetDetail(
            id=bet.id,
            title=bet.title,
            description=bet.description,
            created_at=bet.created_at,
            closed_at=bet.closed_at,
            status=bet.status,
            participant_count=bet_stats.participant_count if bet_stats else 0,
            creator=_creator_summary(bet, urls),
            creator_id=bet.creator_id,
            options=bet.options,
            odds=bet_stats.odds if bet_stats else [],
            winning_option_idx=bet.winning_option_idx if settled else None,
            settled_at=bet.settled_at if settled else None,
        )
