"""Bet lifecycle: create, update, cancel, settle, and wager placement.

State machine::

    open --cancel--> cancelled
    open --settle--> settled

Both targets are terminal. Transitions are applied by storage with a
compare-and-set on ``status = open`` so concurrent attempts cannot both win.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from wagerfeed.errors import (
    BetValidationError,
    ConflictReason,
    NotFound,
    StateConflict,
    Unauthorized,
)
from wagerfeed.models import Bet, BetStatus, PayoutSummary, Placement, TopicKind
from wagerfeed.repositories import BetRepository
from wagerfeed.schemas import BetCreate, BetUpdate
from wagerfeed.services.notifications import NotificationHub

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SettlementResult:
    bet: Bet
    payout: PayoutSummary


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise BetValidationError("A bet needs a title.")
    return cleaned


def _clean_options(options: list[str]) -> list[str]:
    cleaned = [label.strip() for label in options]
    if len(cleaned) < MIN_OPTIONS:
        raise BetValidationError("A bet needs at least two options.")
    if any(not label for label in cleaned):
        raise BetValidationError("Options cannot be empty.")
    if len({label.casefold() for label in cleaned}) != len(cleaned):
        raise BetValidationError("Options must all be different.")
    return cleaned


class LifecycleManager:
    """Validates and executes state transitions on a single bet."""

    def __init__(
        self,
        repository: BetRepository,
        hub: NotificationHub,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._hub = hub
        self._clock = clock

    async def _load(self, bet_id: str) -> Bet:
        bet = await self._repository.fetch_bet(bet_id)
        if bet is None:
            raise NotFound()
        return bet

    async def _explain_rejected_write(self, bet_id: str, user_id: str) -> None:
        """A conditional write matched no row; work out which condition failed."""
        bet = await self._load(bet_id)
        if bet.creator_id != user_id:
            raise Unauthorized()
        raise StateConflict(ConflictReason.BET_NOT_OPEN)

    def _check_close_time(self, closed_at: datetime | None) -> None:
        if closed_at is not None and closed_at <= self._clock():
            raise BetValidationError("The close time must be in the future.")

    async def create_bet(self, user_id: str, payload: BetCreate) -> Bet:
        title = _clean_title(payload.title)
        options = _clean_options(payload.options)
        self._check_close_time(payload.closed_at)
        description = (payload.description or "").strip() or None

        bet = await self._repository.create_bet(
            creator_id=user_id,
            title=title,
            description=description,
            options=options,
            closed_at=payload.closed_at,
        )
        logger.info(f"Bet {bet.id} created by {user_id} with {len(options)} options")
        return bet

    async def update_bet(self, user_id: str, bet_id: str, payload: BetUpdate) -> Bet:
        if payload.options is not None:
            raise BetValidationError("Options cannot be changed after a bet is created.")

        values: dict[str, Any] = {}
        fields = payload.model_fields_set
        if "title" in fields:
            values["title"] = _clean_title(payload.title)
        if "description" in fields:
            values["description"] = (payload.description or "").strip() or None
        if "closed_at" in fields:
            self._check_close_time(payload.closed_at)
            values["closed_at"] = payload.closed_at
        if not values:
            raise BetValidationError("Nothing to update.")

        bet = await self._repository.update_open_bet(bet_id, user_id, values)
        if bet is None:
            await self._explain_rejected_write(bet_id, user_id)
        logger.info(f"Bet {bet_id} updated by {user_id}: {sorted(values)}")
        await self._hub.publish(bet_id, TopicKind.METADATA)
        return bet

    async def cancel_bet(self, user_id: str, bet_id: str) -> Bet:
        bet = await self._repository.cancel_open_bet(bet_id, user_id)
        if bet is None:
            await self._explain_rejected_write(bet_id, user_id)
        logger.info(f"Bet {bet_id} cancelled by {user_id}")
        await self._hub.publish(bet_id, TopicKind.METADATA)
        return bet

    async def settle_bet(self, user_id: str, bet_id: str, winning_idx: int) -> SettlementResult:
        """Declare the winning option and trigger payouts.

        Owner-only, once the close time has passed. Of two concurrent calls,
        storage admits exactly one; the other raises StateConflict.
        """
        bet = await self._load(bet_id)
        if bet.creator_id != user_id:
            raise Unauthorized()
        if bet.status != BetStatus.OPEN:
            raise StateConflict(ConflictReason.BET_NOT_OPEN)
        if bet.closed_at is not None and self._clock() < bet.closed_at:
            raise StateConflict(ConflictReason.BET_STILL_OPEN)
        if not 0 <= winning_idx < len(bet.options):
            raise BetValidationError("The winning option does not exist on this bet.")

        payout = await self._repository.settle_bet(bet_id, winning_idx)
        settled = bet.model_copy(
            update={
                "status": BetStatus.SETTLED,
                "winning_option_idx": payout.winning_option_idx,
                "settled_at": self._clock(),
            }
        )
        logger.info(f"Bet {bet_id} settled by {user_id} on option {payout.winning_option_idx}")
        await self._hub.publish(bet_id, TopicKind.METADATA)
        await self._hub.publish(bet_id, TopicKind.STATS)
        return SettlementResult(bet=settled, payout=payout)

    async def place_wager(
        self, user_id: str, bet_id: str, option_idx: int, amount: int
    ) -> Placement:
        if amount <= 0:
            raise BetValidationError("The wager amount must be positive.")
        bet = await self._load(bet_id)
        if bet.status != BetStatus.OPEN or bet.is_closed(self._clock()):
            raise StateConflict(ConflictReason.BET_CLOSED)
        if not 0 <= option_idx < len(bet.options):
            raise BetValidationError("The selected option does not exist on this bet.")

        placement = await self._repository.place_wager(bet_id, user_id, option_idx, amount)
        logger.info(f"User {user_id} wagered {amount} on option {option_idx} of bet {bet_id}")
        return placement

    async def get_placement(self, user_id: str, bet_id: str) -> Placement | None:
        return await self._repository.get_placement(bet_id, user_id)
