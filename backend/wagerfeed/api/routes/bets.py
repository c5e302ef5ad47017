"""Bets API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from wagerfeed.api.dependencies import get_current_user, get_feed, get_lifecycle
from wagerfeed.models import FeedFilter, Placement
from wagerfeed.schemas import (
    BetCreate,
    BetDetail,
    BetSummary,
    BetUpdate,
    PlacementCreate,
    PlacementResponse,
    SettlementResponse,
    SettleRequest,
)
from wagerfeed.services.feed_service import FeedAssembler
from wagerfeed.services.lifecycle_service import LifecycleManager

router = APIRouter(prefix="/bets", tags=["Bets"])


def _placement_response(placement: Placement) -> PlacementResponse:
    return PlacementResponse(
        bet_id=placement.bet_id,
        option_idx=placement.option_idx,
        amount=placement.amount,
        payout=placement.payout,
        created_at=placement.created_at,
    )


@router.post("", response_model=BetDetail, status_code=status.HTTP_201_CREATED)
async def create_bet(
    payload: BetCreate,
    user_id: str = Depends(get_current_user),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
    feed: FeedAssembler = Depends(get_feed),
):
    """Create an open bet owned by the caller."""
    bet = await lifecycle.create_bet(user_id, payload)
    return await feed.present_written(bet)


@router.get("", response_model=list[BetSummary])
async def list_bets(
    page: int = Query(1),
    feed_filter: FeedFilter = Query(FeedFilter.NEWEST, alias="filter"),
    page_size: Optional[int] = Query(None),
    feed: FeedAssembler = Depends(get_feed),
):
    """One page of the public feed. Pages below 1 are treated as 1."""
    return await feed.list_page(page=page, feed_filter=feed_filter, page_size=page_size)


@router.get("/{bet_id}", response_model=BetDetail)
async def get_bet(bet_id: str, feed: FeedAssembler = Depends(get_feed)):
    return await feed.get_detail(bet_id)


@router.patch("/{bet_id}", response_model=BetDetail)
async def update_bet(
    bet_id: str,
    payload: BetUpdate,
    user_id: str = Depends(get_current_user),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
    feed: FeedAssembler = Depends(get_feed),
):
    """Edit title, description or close time of an open bet (creator only)."""
    bet = await lifecycle.update_bet(user_id, bet_id, payload)
    return await feed.present_written(bet)


@router.post("/{bet_id}/cancel", response_model=BetDetail)
async def cancel_bet(
    bet_id: str,
    user_id: str = Depends(get_current_user),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
    feed: FeedAssembler = Depends(get_feed),
):
    bet = await lifecycle.cancel_bet(user_id, bet_id)
    return await feed.present_written(bet)


@router.get("/{bet_id}/placement", response_model=Optional[PlacementResponse])
async def get_placement(
    bet_id: str,
    user_id: str = Depends(get_current_user),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    """Caller's own wager on the bet, or null."""
    placement = await lifecycle.get_placement(user_id, bet_id)
    return _placement_response(placement) if placement else None


@router.post(
    "/{bet_id}/placement",
    response_model=PlacementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_wager(
    bet_id: str,
    payload: PlacementCreate,
    user_id: str = Depends(get_current_user),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    placement = await lifecycle.place_wager(user_id, bet_id, payload.option_idx, payload.amount)
    return _placement_response(placement)


@router.post("/{bet_id}/settle", response_model=SettlementResponse)
async def settle_bet(
    bet_id: str,
    payload: SettleRequest,
    user_id: str = Depends(get_current_user),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    """Declare the winning option once the bet has closed (creator only)."""
    result = await lifecycle.settle_bet(user_id, bet_id, payload.option_idx)
    return SettlementResponse(
        id=result.bet.id,
        status=result.bet.status,
        winning_option_idx=result.payout.winning_option_idx,
        settled_at=result.bet.settled_at,
        payout=result.payout.model_dump(mode="json"),
    )
