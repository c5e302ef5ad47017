"""Bet Pydantic schemas."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import Field, field_validator

from wagerfeed.models import BetStatus, parse_option_labels
from wagerfeed.schemas.common import BaseSchema


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BetCreate(BaseSchema):
    """Bet creation schema.

    Options may be sent as plain labels or as ``{"text": label}`` objects.
    """

    title: str = ""
    description: Optional[str] = None
    options: list[str] = Field(default_factory=list)
    closed_at: Optional[datetime] = None

    @field_validator("options", mode="before")
    @classmethod
    def parse_options(cls, v: Any) -> list[str]:
        if v is not None and not isinstance(v, (list, tuple)):
            raise ValueError("options must be a list of labels")
        return parse_option_labels(v)

    @field_validator("closed_at", mode="after")
    @classmethod
    def closed_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class BetUpdate(BaseSchema):
    """Bet update schema. Options are accepted only to be rejected explicitly."""

    title: Optional[str] = None
    description: Optional[str] = None
    closed_at: Optional[datetime] = None
    options: Optional[list[Any]] = None

    @field_validator("closed_at", mode="after")
    @classmethod
    def closed_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class PlacementCreate(BaseSchema):
    """Wager placement request."""

    option_idx: int
    amount: int = Field(gt=0)


class SettleRequest(BaseSchema):
    """Settlement request carrying the winning option index."""

    option_idx: int


class CreatorSummary(BaseSchema):
    """Public creator fields shown next to a bet."""

    full_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class BetSummary(BaseSchema):
    """Feed list item. Omits options, creator id and the winning index."""

    id: str
    title: str
    description: Optional[str] = None
    created_at: datetime
    closed_at: Optional[datetime] = None
    status: BetStatus
    participant_count: int = 0
    creator: Optional[CreatorSummary] = None


class BetDetail(BetSummary):
    """Single bet view."""

    creator_id: str
    options: list[str]
    odds: list[float] = Field(default_factory=list)
    winning_option_idx: Optional[int] = None
    settled_at: Optional[datetime] = None


class PlacementResponse(BaseSchema):
    """A caller's wager on a bet."""

    bet_id: str
    option_idx: int
    amount: int
    payout: Optional[int] = None
    created_at: Optional[datetime] = None


class SettlementResponse(BaseSchema):
    """Outcome of a successful settlement."""

    id: str
    status: BetStatus
    winning_option_idx: int
    settled_at: Optional[datetime] = None
    payout: dict[str, Any] = Field(default_factory=dict)
