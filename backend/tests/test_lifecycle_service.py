"""Tests for bet lifecycle transitions and wager placement."""

import asyncio
from datetime import timedelta

import pytest

from wagerfeed.errors import (
    BetValidationError,
    ConflictReason,
    NotFound,
    StateConflict,
    Unauthorized,
)
from wagerfeed.models import LOST_PAYOUT, BetStatus, TopicKind
from wagerfeed.schemas import BetCreate, BetUpdate


# =============================================================================
# Create
# =============================================================================


@pytest.mark.asyncio
async def test_create_trims_and_starts_open(lifecycle, clock):
    bet = await lifecycle.create_bet(
        "alice",
        BetCreate(
            title="  Rain tomorrow?  ",
            description="   ",
            options=[" Yes ", "No"],
            closed_at=clock.now + timedelta(hours=1),
        ),
    )

    assert bet.title == "Rain tomorrow?"
    assert bet.description is None
    assert bet.options == ["Yes", "No"]
    assert bet.status == BetStatus.OPEN
    assert bet.creator_id == "alice"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"title": "", "options": ["A", "B"]}, "title"),
        ({"title": "Q", "options": ["A"]}, "at least two"),
        ({"title": "Q", "options": ["A", "  "]}, "empty"),
        ({"title": "Q", "options": ["Yes", "yes "]}, "different"),
    ],
)
async def test_create_rejects_malformed_payload_before_storage(lifecycle, repo, payload, message):
    repo.fail_on.add("create_bet")

    with pytest.raises(BetValidationError, match=message):
        await lifecycle.create_bet("alice", BetCreate(**payload))

    assert repo.bets == {}


@pytest.mark.asyncio
async def test_create_rejects_close_time_in_the_past(lifecycle, clock):
    payload = BetCreate(title="Q", options=["A", "B"], closed_at=clock.now - timedelta(minutes=1))

    with pytest.raises(BetValidationError, match="future"):
        await lifecycle.create_bet("alice", payload)


# =============================================================================
# Update / cancel
# =============================================================================


@pytest.mark.asyncio
async def test_update_by_owner_changes_only_sent_fields(lifecycle, repo, hub):
    bet = repo.add_bet(description="keep me")
    subscription = hub.subscribe(bet.id, TopicKind.METADATA)

    updated = await lifecycle.update_bet("alice", bet.id, BetUpdate(title="New title"))

    assert updated.title == "New title"
    assert updated.description == "keep me"
    assert subscription._queue.qsize() == 1


@pytest.mark.asyncio
async def test_update_rejects_option_changes(lifecycle, repo):
    bet = repo.add_bet()

    with pytest.raises(BetValidationError, match="Options"):
        await lifecycle.update_bet("alice", bet.id, BetUpdate(options=["X", "Y"]))


@pytest.mark.asyncio
async def test_update_with_nothing_to_change_is_rejected(lifecycle, repo):
    bet = repo.add_bet()

    with pytest.raises(BetValidationError):
        await lifecycle.update_bet("alice", bet.id, BetUpdate())


@pytest.mark.asyncio
async def test_update_by_non_owner_is_unauthorized(lifecycle, repo):
    bet = repo.add_bet()

    with pytest.raises(Unauthorized):
        await lifecycle.update_bet("bob", bet.id, BetUpdate(title="Mine now"))

    assert repo.bets[bet.id].title == bet.title


@pytest.mark.asyncio
async def test_update_unknown_bet_is_not_found(lifecycle):
    with pytest.raises(NotFound):
        await lifecycle.update_bet("alice", "missing", BetUpdate(title="x"))


@pytest.mark.asyncio
async def test_cancel_is_terminal(lifecycle, repo):
    bet = repo.add_bet()

    cancelled = await lifecycle.cancel_bet("alice", bet.id)
    assert cancelled.status == BetStatus.CANCELLED

    with pytest.raises(StateConflict) as exc_info:
        await lifecycle.cancel_bet("alice", bet.id)
    assert exc_info.value.reason == ConflictReason.BET_NOT_OPEN

    with pytest.raises(StateConflict):
        await lifecycle.update_bet("alice", bet.id, BetUpdate(title="too late"))


@pytest.mark.asyncio
async def test_cancel_by_non_owner_is_unauthorized(lifecycle, repo):
    bet = repo.add_bet()

    with pytest.raises(Unauthorized):
        await lifecycle.cancel_bet("bob", bet.id)

    assert repo.bets[bet.id].status == BetStatus.OPEN


# =============================================================================
# Wagers
# =============================================================================


@pytest.mark.asyncio
async def test_second_wager_by_same_user_conflicts(lifecycle, repo):
    bet = repo.add_bet()
    await lifecycle.place_wager("bob", bet.id, 0, 10)

    with pytest.raises(StateConflict) as exc_info:
        await lifecycle.place_wager("bob", bet.id, 1, 5)

    assert exc_info.value.reason == ConflictReason.ALREADY_PLACED
    assert len(repo.placements) == 1


@pytest.mark.asyncio
async def test_concurrent_double_wager_admits_one(lifecycle, repo):
    bet = repo.add_bet()

    results = await asyncio.gather(
        lifecycle.place_wager("bob", bet.id, 0, 10),
        lifecycle.place_wager("bob", bet.id, 1, 10),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, StateConflict)]
    assert len(conflicts) == 1
    assert conflicts[0].reason == ConflictReason.ALREADY_PLACED
    assert repo.profiles["bob"].coin_balance == 90


@pytest.mark.asyncio
async def test_wager_after_close_time_conflicts(lifecycle, repo, clock):
    bet = repo.add_bet()
    clock.advance(hours=1)

    with pytest.raises(StateConflict) as exc_info:
        await lifecycle.place_wager("bob", bet.id, 0, 10)

    assert exc_info.value.reason == ConflictReason.BET_CLOSED


@pytest.mark.asyncio
async def test_wager_beyond_balance_conflicts(lifecycle, repo):
    bet = repo.add_bet()

    with pytest.raises(StateConflict) as exc_info:
        await lifecycle.place_wager("bob", bet.id, 0, 500)

    assert exc_info.value.reason == ConflictReason.INSUFFICIENT_BALANCE


@pytest.mark.asyncio
async def test_wager_on_missing_option_is_invalid(lifecycle, repo):
    bet = repo.add_bet()

    with pytest.raises(BetValidationError):
        await lifecycle.place_wager("bob", bet.id, 2, 10)


@pytest.mark.asyncio
async def test_get_placement_returns_own_wager_or_none(lifecycle, repo):
    bet = repo.add_bet()
    await lifecycle.place_wager("bob", bet.id, 1, 15)

    mine = await lifecycle.get_placement("bob", bet.id)
    assert mine.option_idx == 1
    assert mine.amount == 15
    assert await lifecycle.get_placement("carol", bet.id) is None


# =============================================================================
# Settle
# =============================================================================


@pytest.mark.asyncio
async def test_settle_after_close_records_winner_and_publishes(lifecycle, repo, hub, clock):
    bet = repo.add_bet()
    await lifecycle.place_wager("bob", bet.id, 0, 10)
    await lifecycle.place_wager("carol", bet.id, 1, 20)
    metadata = hub.subscribe(bet.id, TopicKind.METADATA)
    stats = hub.subscribe(bet.id, TopicKind.STATS)
    clock.advance(hours=1)

    result = await lifecycle.settle_bet("alice", bet.id, 0)

    assert result.bet.status == BetStatus.SETTLED
    assert result.bet.winning_option_idx == 0
    assert result.payout.total_pool == 30
    assert repo.bets[bet.id].winning_option_idx == 0
    assert repo.placements[(bet.id, "carol")].payout == LOST_PAYOUT
    assert metadata._queue.qsize() == 1
    assert stats._queue.qsize() == 1


@pytest.mark.asyncio
async def test_settle_before_close_is_still_open(lifecycle, repo):
    bet = repo.add_bet()

    with pytest.raises(StateConflict) as exc_info:
        await lifecycle.settle_bet("alice", bet.id, 0)

    assert exc_info.value.reason == ConflictReason.BET_STILL_OPEN
    assert repo.settle_calls == 0


@pytest.mark.asyncio
async def test_settle_by_non_owner_is_unauthorized_not_conflict(lifecycle, repo, clock):
    bet = repo.add_bet()
    clock.advance(hours=2)

    with pytest.raises(Unauthorized):
        await lifecycle.settle_bet("bob", bet.id, 0)


@pytest.mark.asyncio
@pytest.mark.parametrize("winning_idx", [-1, 2])
async def test_settle_rejects_out_of_range_index(lifecycle, repo, clock, winning_idx):
    bet = repo.add_bet()
    clock.advance(hours=2)

    with pytest.raises(BetValidationError):
        await lifecycle.settle_bet("alice", bet.id, winning_idx)

    assert repo.bets[bet.id].status == BetStatus.OPEN


@pytest.mark.asyncio
async def test_settle_without_close_time_is_allowed(lifecycle, repo):
    bet = repo.add_bet(closed_at=None)

    result = await lifecycle.settle_bet("alice", bet.id, 1)

    assert result.bet.winning_option_idx == 1


@pytest.mark.asyncio
async def test_settle_twice_conflicts(lifecycle, repo, clock):
    bet = repo.add_bet()
    clock.advance(hours=2)
    await lifecycle.settle_bet("alice", bet.id, 0)

    with pytest.raises(StateConflict) as exc_info:
        await lifecycle.settle_bet("alice", bet.id, 1)

    assert exc_info.value.reason == ConflictReason.BET_NOT_OPEN
    assert repo.bets[bet.id].winning_option_idx == 0


@pytest.mark.asyncio
async def test_concurrent_settles_admit_exactly_one(lifecycle, repo, clock):
    bet = repo.add_bet()
    clock.advance(hours=2)

    results = await asyncio.gather(
        lifecycle.settle_bet("alice", bet.id, 0),
        lifecycle.settle_bet("alice", bet.id, 1),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, StateConflict)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert repo.settle_calls == 2
    assert repo.bets[bet.id].winning_option_idx == successes[0].bet.winning_option_idx


@pytest.mark.asyncio
async def test_cancelled_bet_cannot_be_settled(lifecycle, repo, clock):
    bet = repo.add_bet()
    await lifecycle.cancel_bet("alice", bet.id)
    clock.advance(hours=2)

    with pytest.raises(StateConflict) as exc_info:
        await lifecycle.settle_bet("alice", bet.id, 0)

    assert exc_info.value.reason == ConflictReason.BET_NOT_OPEN
