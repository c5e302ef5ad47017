"""Profile and history Pydantic schemas."""

from datetime import datetime
from typing import Optional

from wagerfeed.models import BetStatus
from wagerfeed.schemas.common import BaseSchema


class ProfileResponse(BaseSchema):
    """Caller's own profile."""

    full_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    coin_balance: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: Optional[float] = None


class ProfileUpdate(BaseSchema):
    full_name: Optional[str] = None
    username: Optional[str] = None


class HistoryItem(BaseSchema):
    """One of the caller's placements, newest first."""

    id: str
    title: str
    status: BetStatus
    option: str
    option_idx: int
    amount: int
    payout: Optional[int] = None
    outcome: str
    created_at: Optional[datetime] = None
