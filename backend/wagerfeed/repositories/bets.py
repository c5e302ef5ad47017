"""Supabase-backed implementation of the bet repository."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from wagerfeed.errors import ConflictReason, StateConflict, UpstreamFailure
from wagerfeed.models import (
    Bet,
    BetStats,
    BetStatus,
    FeedFilter,
    HistoryEntry,
    PayoutSummary,
    Placement,
    Profile,
    options_to_api,
)
from wagerfeed.services.supabase import (
    SupabaseAPIError,
    SupabaseClient,
    SupabaseProcedureError,
)

logger = logging.getLogger(__name__)

BET_COLUMNS = (
    "id,created_at,title,description,options,closed_at,status,"
    "settled_option,settled_at,creator_id,"
    "profiles(full_name,username,avatar_path)"
)
PLACEMENT_COLUMNS = "bet_id,user_id,option_idx,amount,payout,created_at"
PROFILE_COLUMNS = "id,full_name,username,avatar_path,coin_balance,wins,losses"
HISTORY_COLUMNS = f"{PLACEMENT_COLUMNS},bets(title,options,status)"

# PostgREST max-rows on Supabase projects.
PLACEMENT_SCAN_PAGE_SIZE = 1000

_FEED_ORDERING: dict[FeedFilter, list[tuple[str, str]]] = {
    FeedFilter.NEWEST: [("order", "created_at.desc,id.desc")],
    FeedFilter.ENDING_SOON: [("order", "closed_at.asc.nullslast,id.asc")],
    FeedFilter.SETTLED: [
        ("status", f"eq.{BetStatus.SETTLED.value}"),
        ("order", "settled_at.desc,id.desc"),
    ],
}

# Reason tokens raised by the place_bet / settle_bet procedures.
_REASON_TOKENS: dict[str, ConflictReason] = {
    "insufficient_balance": ConflictReason.INSUFFICIENT_BALANCE,
    "bet_closed": ConflictReason.BET_CLOSED,
    "already_placed": ConflictReason.ALREADY_PLACED,
    "bet_not_open": ConflictReason.BET_NOT_OPEN,
    "already_settled": ConflictReason.BET_NOT_OPEN,
    "invalid_option": ConflictReason.INVALID_OPTION,
}


def conflict_reason_for(error: SupabaseProcedureError) -> ConflictReason | None:
    """Map a storage-reported reason to the fixed user-facing set."""
    if error.code == "23505":
        return ConflictReason.ALREADY_PLACED
    reason = error.reason.lower()
    for token, conflict in _REASON_TOKENS.items():
        if token in reason:
            return conflict
    return None


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SupabaseProcedureError as e:
        conflict = conflict_reason_for(e)
        if conflict is None:
            logger.error(f"{operation} rejected by storage with unknown reason: {e.reason}")
            raise UpstreamFailure() from e
        raise StateConflict(conflict) from e
    except SupabaseAPIError as e:
        logger.error(f"{operation} failed: {e}", exc_info=True)
        raise UpstreamFailure() from e
    except ValidationError as e:
        logger.error(f"{operation} returned a malformed row: {e}")
        raise UpstreamFailure() from e


class SupabaseBetRepository:
    """Bet, placement and profile storage over PostgREST."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def fetch_page(self, feed_filter: FeedFilter, offset: int, limit: int) -> list[Bet]:
        params = [("select", BET_COLUMNS), *_FEED_ORDERING[feed_filter]]
        params += [("offset", str(offset)), ("limit", str(limit))]
        with _storage_errors("fetch_page"):
            rows = await self._client.select("bets", params)
            return [Bet.from_api(row) for row in rows]

    async def fetch_bet(self, bet_id: str) -> Bet | None:
        params = [("select", BET_COLUMNS), ("id", f"eq.{bet_id}"), ("limit", "1")]
        with _storage_errors("fetch_bet"):
            rows = await self._client.select("bets", params)
            return Bet.from_api(rows[0]) if rows else None

    async def participation_stats(self, bet_ids: list[str]) -> list[BetStats]:
        if not bet_ids:
            return []
        with _storage_errors("participation_stats"):
            rows = await self._client.rpc("get_bet_stats", {"bet_ids": bet_ids})
            return [BetStats.from_api(row) for row in rows or []]

    async def get_placement(self, bet_id: str, user_id: str) -> Placement | None:
        params = [
            ("select", PLACEMENT_COLUMNS),
            ("bet_id", f"eq.{bet_id}"),
            ("user_id", f"eq.{user_id}"),
            ("limit", "1"),
        ]
        with _storage_errors("get_placement"):
            rows = await self._client.select("bet_placements", params)
            return Placement.from_api(rows[0]) if rows else None

    async def create_bet(
        self,
        creator_id: str,
        title: str,
        description: str | None,
        options: list[str],
        closed_at: datetime | None,
    ) -> Bet:
        row = {
            "creator_id": creator_id,
            "title": title,
            "description": description,
            "options": options_to_api(options),
            "closed_at": closed_at.isoformat() if closed_at else None,
            "status": BetStatus.OPEN.value,
        }
        with _storage_errors("create_bet"):
            created = await self._client.insert("bets", row)
            return Bet.from_api(created)

    async def _update_if_open(
        self, bet_id: str, creator_id: str, values: dict[str, Any]
    ) -> Bet | None:
        filters = [
            ("id", f"eq.{bet_id}"),
            ("creator_id", f"eq.{creator_id}"),
            ("status", f"eq.{BetStatus.OPEN.value}"),
            ("select", BET_COLUMNS),
        ]
        with _storage_errors("update_bet"):
            rows = await self._client.update("bets", filters, values)
            return Bet.from_api(rows[0]) if rows else None

    async def update_open_bet(
        self, bet_id: str, creator_id: str, values: dict[str, Any]
    ) -> Bet | None:
        payload = dict(values)
        if isinstance(payload.get("closed_at"), datetime):
            payload["closed_at"] = payload["closed_at"].isoformat()
        return await self._update_if_open(bet_id, creator_id, payload)

    async def cancel_open_bet(self, bet_id: str, creator_id: str) -> Bet | None:
        return await self._update_if_open(
            bet_id, creator_id, {"status": BetStatus.CANCELLED.value}
        )

    async def place_wager(
        self, bet_id: str, user_id: str, option_idx: int, amount: int
    ) -> Placement:
        args = {
            "p_bet_id": bet_id,
            "p_user_id": user_id,
            "p_option_idx": option_idx,
            "p_amount": amount,
        }
        with _storage_errors("place_wager"):
            data = await self._client.rpc("place_bet", args)
            row = data[0] if isinstance(data, list) else data
            return Placement.from_api(row)

    async def settle_bet(self, bet_id: str, winning_idx: int) -> PayoutSummary:
        args = {"p_bet_id": bet_id, "p_winning_idx": winning_idx}
        with _storage_errors("settle_bet"):
            data = await self._client.rpc("settle_bet", args)
            row = dict(data[0] if isinstance(data, list) and data else (data or {}))
            row.setdefault("bet_id", bet_id)
            if "winning_option_idx" not in row and "settled_option" not in row:
                row["winning_option_idx"] = winning_idx
            return PayoutSummary.from_api(row)

    async def recent_placement_bet_ids(self, since: datetime, until: datetime) -> list[str]:
        """Distinct bet ids with a placement in [since, until], read page by page."""
        bet_ids: dict[str, None] = {}
        offset = 0
        while True:
            params = [
                ("select", "bet_id"),
                ("created_at", f"gte.{since.isoformat()}"),
                ("created_at", f"lte.{until.isoformat()}"),
                ("order", "created_at.asc,bet_id.asc,user_id.asc"),
                ("offset", str(offset)),
                ("limit", str(PLACEMENT_SCAN_PAGE_SIZE)),
            ]
            with _storage_errors("recent_placements"):
                rows = await self._client.select("bet_placements", params)
            for row in rows:
                bet_ids[str(row["bet_id"])] = None
            if len(rows) < PLACEMENT_SCAN_PAGE_SIZE:
                return list(bet_ids)
            offset += len(rows)

    async def get_profile(self, user_id: str) -> Profile | None:
        params = [("select", PROFILE_COLUMNS), ("id", f"eq.{user_id}"), ("limit", "1")]
        with _storage_errors("get_profile"):
            rows = await self._client.select("profiles", params)
            return Profile.from_api(rows[0]) if rows else None

    async def update_profile(self, user_id: str, values: dict[str, Any]) -> Profile | None:
        filters = [("id", f"eq.{user_id}"), ("select", PROFILE_COLUMNS)]
        with _storage_errors("update_profile"):
            rows = await self._client.update("profiles", filters, values)
            return Profile.from_api(rows[0]) if rows else None

    async def placement_history(self, user_id: str) -> list[HistoryEntry]:
        params = [
            ("select", HISTORY_COLUMNS),
            ("user_id", f"eq.{user_id}"),
            ("order", "created_at.desc"),
        ]
        with _storage_errors("placement_history"):
            rows = await self._client.select("bet_placements", params)
            return [HistoryEntry.from_api(row) for row in rows]
