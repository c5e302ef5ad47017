"""
Pytest fixtures for tests.

Services run against an in-memory repository that honours the same
compare-and-set and procedure semantics as the Supabase-backed one, so the
lifecycle and feed logic can be exercised without a database.
"""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from wagerfeed.api import create_app
from wagerfeed.config import Settings
from wagerfeed.container import build_container
from wagerfeed.errors import ConflictReason, StateConflict, UpstreamFailure
from wagerfeed.models import (
    LOST_PAYOUT,
    Bet,
    BetStats,
    BetStatus,
    FeedFilter,
    HistoryEntry,
    PayoutSummary,
    Placement,
    Profile,
)
from wagerfeed.services.feed_service import FeedAssembler
from wagerfeed.services.lifecycle_service import LifecycleManager
from wagerfeed.services.notifications import NotificationHub
from wagerfeed.services.participation import ParticipationAggregator
from wagerfeed.services.signed_url_cache import SignedUrlCache
from wagerfeed.services.supabase import (
    AuthUser,
    SignedUrl,
    SupabaseAPIError,
    SupabaseAuthError,
)

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
STARTING_BALANCE = 100

TOKENS = {
    "token-alice": "alice",
    "token-bob": "bob",
    "token-carol": "carol",
}


def auth(user: str) -> dict[str, str]:
    """Authorization header for one of the known test users."""
    return {"Authorization": f"Bearer token-{user}"}


class FakeClock:
    """Controllable wall clock shared by services and the fake storage."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def epoch(self) -> float:
        return self.now.timestamp()


class CountingSigner:
    """Records every batched signing call."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self.unsignable: set[str] = set()
        self.fail = False

    async def create_signed_urls(
        self, bucket: str, paths: list[str], expires_in: int
    ) -> list[SignedUrl]:
        self.calls.append(list(paths))
        if self.fail:
            raise SupabaseAPIError("storage unavailable", status_code=503)
        results = []
        for path in paths:
            if path in self.unsignable:
                results.append(SignedUrl(path=path, error="Object not found"))
            else:
                url = f"https://storage.test/{bucket}/{path}?token={len(self.calls)}"
                results.append(SignedUrl(path=path, url=url))
        return results


class StaticVerifier:
    async def verify_user(self, access_token: str) -> AuthUser:
        user_id = TOKENS.get(access_token)
        if user_id is None:
            raise SupabaseAuthError("invalid JWT", status_code=401)
        return AuthUser(id=user_id)


class InMemoryBetRepository:
    """BetRepository double with storage-side atomicity.

    `fail_on` names operations that raise UpstreamFailure on their next call.
    """

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self.bets: dict[str, Bet] = {}
        self.placements: dict[tuple[str, str], Placement] = {}
        self.profiles: dict[str, Profile] = {
            user: Profile(
                id=user,
                full_name=user.capitalize(),
                username=user,
                avatar_path=f"{user}/avatar.png",
                coin_balance=STARTING_BALANCE,
            )
            for user in TOKENS.values()
        }
        self.fail_on: set[str] = set()
        self.settle_calls = 0

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            self.fail_on.discard(operation)
            raise UpstreamFailure()

    def add_bet(self, creator_id: str = "alice", **overrides: Any) -> Bet:
        """Insert a bet directly, bypassing validation."""
        bet_id = f"bet-{next(self._ids)}"
        values = {
            "id": bet_id,
            "title": f"Bet {bet_id}",
            "options": ["Yes", "No"],
            "created_at": self._clock.now,
            "closed_at": self._clock.now + timedelta(hours=1),
            "creator_id": creator_id,
            "creator": self.profiles.get(creator_id),
        }
        values.update(overrides)
        bet = Bet(**values)
        self.bets[bet_id] = bet
        return bet

    async def fetch_page(self, feed_filter: FeedFilter, offset: int, limit: int) -> list[Bet]:
        self._maybe_fail("fetch_page")
        bets = list(self.bets.values())
        if feed_filter == FeedFilter.NEWEST:
            bets.sort(key=lambda b: (b.created_at, b.id), reverse=True)
        elif feed_filter == FeedFilter.ENDING_SOON:
            bets.sort(key=lambda b: (b.closed_at is None, b.closed_at or START, b.id))
        else:
            bets = [b for b in bets if b.status == BetStatus.SETTLED]
            bets.sort(key=lambda b: (b.settled_at, b.id), reverse=True)
        return bets[offset : offset + limit]

    async def fetch_bet(self, bet_id: str) -> Optional[Bet]:
        self._maybe_fail("fetch_bet")
        return self.bets.get(bet_id)

    async def participation_stats(self, bet_ids: list[str]) -> list[BetStats]:
        self._maybe_fail("participation_stats")
        stats = []
        for bet_id in bet_ids:
            wagers = [p for (b, _), p in self.placements.items() if b == bet_id]
            if not wagers:
                continue
            bet = self.bets[bet_id]
            pool = sum(p.amount for p in wagers)
            odds = [
                round(sum(p.amount for p in wagers if p.option_idx == idx) / pool, 4)
                for idx in range(len(bet.options))
            ]
            stats.append(BetStats(bet_id=bet_id, participant_count=len(wagers), odds=odds))
        return stats

    async def get_placement(self, bet_id: str, user_id: str) -> Optional[Placement]:
        self._maybe_fail("get_placement")
        return self.placements.get((bet_id, user_id))

    async def create_bet(self, creator_id, title, description, options, closed_at) -> Bet:
        self._maybe_fail("create_bet")
        return self.add_bet(
            creator_id=creator_id,
            title=title,
            description=description,
            options=options,
            closed_at=closed_at,
        )

    async def _update_if_open(self, bet_id, creator_id, values) -> Optional[Bet]:
        async with self._lock:
            bet = self.bets.get(bet_id)
            if bet is None or bet.creator_id != creator_id or bet.status != BetStatus.OPEN:
                return None
            updated = bet.model_copy(update=values)
            self.bets[bet_id] = updated
            return updated

    async def update_open_bet(self, bet_id, creator_id, values) -> Optional[Bet]:
        self._maybe_fail("update_open_bet")
        return await self._update_if_open(bet_id, creator_id, values)

    async def cancel_open_bet(self, bet_id, creator_id) -> Optional[Bet]:
        self._maybe_fail("cancel_open_bet")
        return await self._update_if_open(bet_id, creator_id, {"status": BetStatus.CANCELLED})

    async def place_wager(self, bet_id, user_id, option_idx, amount) -> Placement:
        self._maybe_fail("place_wager")
        async with self._lock:
            bet = self.bets[bet_id]
            if bet.status != BetStatus.OPEN or bet.is_closed(self._clock.now):
                raise StateConflict(ConflictReason.BET_CLOSED)
            if (bet_id, user_id) in self.placements:
                raise StateConflict(ConflictReason.ALREADY_PLACED)
            profile = self.profiles[user_id]
            if profile.coin_balance < amount:
                raise StateConflict(ConflictReason.INSUFFICIENT_BALANCE)
            self.profiles[user_id] = profile.model_copy(
                update={"coin_balance": profile.coin_balance - amount}
            )
            placement = Placement(
                bet_id=bet_id,
                user_id=user_id,
                option_idx=option_idx,
                amount=amount,
                created_at=self._clock.now,
            )
            self.placements[(bet_id, user_id)] = placement
            return placement

    async def settle_bet(self, bet_id, winning_idx) -> PayoutSummary:
        self._maybe_fail("settle_bet")
        self.settle_calls += 1
        # Let a concurrent caller reach this point before either takes the lock.
        await asyncio.sleep(0)
        async with self._lock:
            bet = self.bets[bet_id]
            if bet.status != BetStatus.OPEN:
                raise StateConflict(ConflictReason.BET_NOT_OPEN)
            self.bets[bet_id] = bet.model_copy(
                update={
                    "status": BetStatus.SETTLED,
                    "winning_option_idx": winning_idx,
                    "settled_at": self._clock.now,
                }
            )
            wagers = [p for (b, _), p in self.placements.items() if b == bet_id]
            pool = sum(p.amount for p in wagers)
            winners = [p for p in wagers if p.option_idx == winning_idx]
            winning_pool = sum(p.amount for p in winners)
            for placement in wagers:
                payout = LOST_PAYOUT
                if placement.option_idx == winning_idx and winning_pool:
                    payout = pool * placement.amount // winning_pool
                self.placements[(bet_id, placement.user_id)] = placement.model_copy(
                    update={"payout": payout}
                )
            return PayoutSummary(
                bet_id=bet_id,
                winning_option_idx=winning_idx,
                winner_count=len(winners),
                total_pool=pool,
            )

    async def recent_placement_bet_ids(self, since: datetime, until: datetime) -> list[str]:
        self._maybe_fail("recent_placement_bet_ids")
        return [
            p.bet_id
            for p in self.placements.values()
            if p.created_at is not None and since <= p.created_at <= until
        ]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.profiles.get(user_id)

    async def update_profile(self, user_id: str, values: dict[str, Any]) -> Optional[Profile]:
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        self.profiles[user_id] = profile.model_copy(update=values)
        return self.profiles[user_id]

    async def placement_history(self, user_id: str) -> list[HistoryEntry]:
        entries = []
        for (bet_id, uid), placement in self.placements.items():
            if uid != user_id:
                continue
            bet = self.bets[bet_id]
            entries.append(
                HistoryEntry(
                    bet_id=bet_id,
                    title=bet.title,
                    status=bet.status,
                    option=bet.options[placement.option_idx],
                    option_idx=placement.option_idx,
                    amount=placement.amount,
                    payout=placement.payout,
                    created_at=placement.created_at,
                )
            )
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo(clock):
    return InMemoryBetRepository(clock)


@pytest.fixture
def signer():
    return CountingSigner()


@pytest.fixture
def hub():
    return NotificationHub()


@pytest.fixture
def url_cache(signer, clock):
    return SignedUrlCache(signer, bucket="avatars", validity_seconds=3600, clock=clock.epoch)


@pytest.fixture
def feed(repo, url_cache):
    return FeedAssembler(repo, ParticipationAggregator(repo), url_cache, page_size=10)


@pytest.fixture
def lifecycle(repo, hub, clock):
    return LifecycleManager(repo, hub, clock=clock)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        supabase_url="https://project.supabase.test",
        supabase_service_role_key="service-key",
    )


@pytest.fixture
def container(settings, repo, signer, clock):
    return build_container(settings, repository=repo, verifier=StaticVerifier(), signer=signer, clock=clock)


@pytest.fixture
def client(settings, container):
    app = create_app(settings, container=container)
    with TestClient(app) as test_client:
        yield test_client
