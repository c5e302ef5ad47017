"""Storage port used by the services.

Implementations raise only domain errors: `StateConflict` for outcomes the
storage layer reports by name, `UpstreamFailure` for everything else.
"""

from datetime import datetime
from typing import Any, Protocol

from wagerfeed.models import (
    Bet,
    BetStats,
    FeedFilter,
    HistoryEntry,
    PayoutSummary,
    Placement,
    Profile,
)


class BetRepository(Protocol):
    async def fetch_page(self, feed_filter: FeedFilter, offset: int, limit: int) -> list[Bet]:
        """Bets for one feed page, creator profile embedded."""
        ...

    async def fetch_bet(self, bet_id: str) -> Bet | None: ...

    async def participation_stats(self, bet_ids: list[str]) -> list[BetStats]:
        """One batched lookup; bets without placements may be absent."""
        ...

    async def get_placement(self, bet_id: str, user_id: str) -> Placement | None: ...

    async def create_bet(
        self,
        creator_id: str,
        title: str,
        description: str | None,
        options: list[str],
        closed_at: datetime | None,
    ) -> Bet: ...

    async def update_open_bet(
        self, bet_id: str, creator_id: str, values: dict[str, Any]
    ) -> Bet | None:
        """Apply values only if the bet is open and owned by creator_id; None otherwise."""
        ...

    async def cancel_open_bet(self, bet_id: str, creator_id: str) -> Bet | None:
        """Transition open -> cancelled for the owner; None when the precondition fails."""
        ...

    async def place_wager(
        self, bet_id: str, user_id: str, option_idx: int, amount: int
    ) -> Placement:
        """Atomic debit-and-insert performed by storage."""
        ...

    async def settle_bet(self, bet_id: str, winning_idx: int) -> PayoutSummary:
        """Atomic open -> settled transition with payouts performed by storage."""
        ...

    async def recent_placement_bet_ids(self, since: datetime, until: datetime) -> list[str]:
        """Bet ids of placements created in [since, until]; may repeat."""
        ...

    async def get_profile(self, user_id: str) -> Profile | None: ...

    async def update_profile(self, user_id: str, values: dict[str, Any]) -> Profile | None: ...

    async def placement_history(self, user_id: str) -> list[HistoryEntry]: ...
