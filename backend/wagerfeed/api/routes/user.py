"""Caller profile API routes."""

from fastapi import APIRouter, Depends

from wagerfeed.api.dependencies import get_current_user, get_profiles
from wagerfeed.schemas import HistoryItem, ProfileResponse, ProfileUpdate
from wagerfeed.services.profile_service import ProfileService

router = APIRouter(prefix="/user", tags=["User"])


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    user_id: str = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profiles),
):
    return await profiles.get_me(user_id)


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    payload: ProfileUpdate,
    user_id: str = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profiles),
):
    """Change display name and/or username."""
    return await profiles.update_me(user_id, payload)


@router.get("/me/history", response_model=list[HistoryItem])
async def get_history(
    user_id: str = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profiles),
):
    """Caller's wagers, newest first."""
    return await profiles.history(user_id)
