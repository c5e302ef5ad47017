"""Domain records shared by the repository, services and API layers.

Rows arrive from PostgREST as plain dicts; each model's `from_api` knows the
column names and embedded-resource shapes used by the database.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

# Payout written at settlement for a losing placement.
LOST_PAYOUT = 0


class BetStatus(str, Enum):
    OPEN = "open"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class FeedFilter(str, Enum):
    NEWEST = "newest"
    ENDING_SOON = "ending_soon"
    SETTLED = "settled"


class TopicKind(str, Enum):
    STATS = "stats"
    METADATA = "metadata"


def parse_option_labels(raw: Any) -> list[str]:
    """Options are stored as [{"text": ...}]; older rows hold bare strings."""
    if not raw:
        return []
    labels = []
    for item in raw:
        if isinstance(item, dict):
            labels.append(str(item.get("text", "")))
        else:
            labels.append(str(item))
    return labels


def options_to_api(options: list[str]) -> list[dict[str, str]]:
    return [{"text": label} for label in options]


class Profile(BaseModel):
    id: str | None = None
    full_name: str | None = None
    username: str | None = None
    avatar_path: str | None = None
    coin_balance: int = 0
    wins: int = 0
    losses: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Profile:
        return cls(
            id=data.get("id"),
            full_name=data.get("full_name"),
            username=data.get("username"),
            avatar_path=data.get("avatar_path"),
            coin_balance=data.get("coin_balance") or 0,
            wins=data.get("wins") or 0,
            losses=data.get("losses") or 0,
        )

    @property
    def win_rate(self) -> float | None:
        total = self.wins + self.losses
        if total == 0:
            return None
        return round(self.wins / total, 4)


class Bet(BaseModel):
    id: str
    title: str
    description: str | None = None
    options: list[str] = Field(default_factory=list)
    created_at: datetime
    closed_at: datetime | None = None
    status: BetStatus = BetStatus.OPEN
    winning_option_idx: int | None = None
    settled_at: datetime | None = None
    creator_id: str
    creator: Profile | None = None

    @field_validator("options", mode="before")
    @classmethod
    def parse_options(cls, v: Any) -> list[str]:
        return parse_option_labels(v)

    @model_validator(mode="after")
    def check_winning_index(self) -> Bet:
        if self.winning_option_idx is not None:
            if self.status != BetStatus.SETTLED:
                raise ValueError("winning_option_idx is only valid on settled bets")
            if not 0 <= self.winning_option_idx < len(self.options):
                raise ValueError("winning_option_idx is out of range")
        return self

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Bet:
        creator = data.get("profiles")
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description"),
            options=data.get("options") or [],
            created_at=data["created_at"],
            closed_at=data.get("closed_at"),
            status=data.get("status", BetStatus.OPEN),
            winning_option_idx=data.get("settled_option"),
            settled_at=data.get("settled_at"),
            creator_id=str(data["creator_id"]),
            creator=Profile.from_api(creator) if creator else None,
        )

    def is_closed(self, now: datetime) -> bool:
        return self.closed_at is not None and now >= self.closed_at


class Placement(BaseModel):
    bet_id: str
    user_id: str
    option_idx: int
    amount: int
    payout: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Placement:
        return cls(
            bet_id=str(data["bet_id"]),
            user_id=str(data["user_id"]),
            option_idx=data["option_idx"],
            amount=data["amount"],
            payout=data.get("payout"),
            created_at=data.get("created_at"),
        )


class BetStats(BaseModel):
    """Participation and odds as computed by storage."""

    bet_id: str
    participant_count: int = 0
    odds: list[float] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> BetStats:
        return cls(
            bet_id=str(data["bet_id"]),
            participant_count=data.get("participant_count") or 0,
            odds=data.get("odds") or [],
        )


class PayoutSummary(BaseModel):
    """Result of the atomic settle procedure; fields beyond these are relayed as-is."""

    model_config = {"extra": "allow"}

    bet_id: str
    winning_option_idx: int
    winner_count: int = 0
    total_pool: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PayoutSummary:
        payload = dict(data)
        payload["bet_id"] = str(payload["bet_id"])
        if "winning_option_idx" not in payload and "settled_option" in payload:
            payload["winning_option_idx"] = payload.pop("settled_option")
        return cls(**payload)


class HistoryEntry(BaseModel):
    """One placement joined with the bet it was made on."""

    bet_id: str
    title: str
    status: BetStatus
    option: str
    option_idx: int
    amount: int
    payout: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> HistoryEntry:
        bet = data.get("bets") or {}
        options = parse_option_labels(bet.get("options"))
        idx = data["option_idx"]
        return cls(
            bet_id=str(data["bet_id"]),
            title=bet.get("title", ""),
            status=bet.get("status", BetStatus.OPEN),
            option=options[idx] if 0 <= idx < len(options) else "",
            option_idx=idx,
            amount=data["amount"],
            payout=data.get("payout"),
            created_at=data.get("created_at"),
        )

    @property
    def outcome(self) -> str:
        if self.status == BetStatus.OPEN:
            return "active"
        if self.status == BetStatus.CANCELLED:
            return "refunded"
        if self.payout is not None and self.payout > LOST_PAYOUT:
            return "won"
        return "lost"
