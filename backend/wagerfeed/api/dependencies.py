"""FastAPI dependencies resolving services from ``app.state``."""

from typing import Optional

from fastapi import Header, Request

from wagerfeed.container import ServiceContainer
from wagerfeed.services.feed_service import FeedAssembler
from wagerfeed.services.lifecycle_service import LifecycleManager
from wagerfeed.services.profile_service import ProfileService


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_feed(request: Request) -> FeedAssembler:
    return get_container(request).feed


def get_lifecycle(request: Request) -> LifecycleManager:
    return get_container(request).lifecycle


def get_profiles(request: Request) -> ProfileService:
    return get_container(request).profiles


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> str:
    """Caller's user id; raises Unauthenticated before any domain logic runs."""
    return await get_container(request).identity.verify_caller(authorization)
