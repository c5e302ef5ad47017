"""Caller profile and wager history."""

import logging

from wagerfeed.errors import BetValidationError, NotFound
from wagerfeed.models import Profile
from wagerfeed.repositories import BetRepository
from wagerfeed.schemas import HistoryItem, ProfileResponse, ProfileUpdate
from wagerfeed.services.signed_url_cache import SignedUrlCache

logger = logging.getLogger(__name__)

PROFILE_NOT_FOUND = "Profile not found."


class ProfileService:
    def __init__(self, repository: BetRepository, url_cache: SignedUrlCache):
        self._repository = repository
        self._url_cache = url_cache

    async def _render(self, profile: Profile) -> ProfileResponse:
        urls = await self._url_cache.resolve([profile.avatar_path])
        return ProfileResponse(
            full_name=profile.full_name,
            username=profile.username,
            avatar_url=urls.get(profile.avatar_path) if profile.avatar_path else None,
            coin_balance=profile.coin_balance,
            wins=profile.wins,
            losses=profile.losses,
            win_rate=profile.win_rate,
        )

    async def get_me(self, user_id: str) -> ProfileResponse:
        profile = await self._repository.get_profile(user_id)
        if profile is None:
            raise NotFound(PROFILE_NOT_FOUND)
        return await self._render(profile)

    async def update_me(self, user_id: str, payload: ProfileUpdate) -> ProfileResponse:
        values: dict[str, str] = {}
        for field in ("full_name", "username"):
            if field not in payload.model_fields_set:
                continue
            cleaned = (getattr(payload, field) or "").strip()
            if not cleaned:
                raise BetValidationError(f"{field.replace('_', ' ').capitalize()} cannot be empty.")
            values[field] = cleaned
        if not values:
            raise BetValidationError("Nothing to update.")

        profile = await self._repository.update_profile(user_id, values)
        if profile is None:
            raise NotFound(PROFILE_NOT_FOUND)
        logger.info(f"Profile {user_id} updated: {sorted(values)}")
        return await self._render(profile)

    async def history(self, user_id: str) -> list[HistoryItem]:
        entries = await self._repository.placement_history(user_id)
        return [
            HistoryItem(
                id=entry.bet_id,
                title=entry.title,
                status=entry.status,
                option=entry.option,
                option_idx=entry.option_idx,
                amount=entry.amount,
                payout=entry.payout,
                outcome=entry.outcome,
                created_at=entry.created_at,
            )
            for entry in entries
        ]
