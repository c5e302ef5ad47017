"""Service wiring.

Everything with process lifetime (the signed URL cache, the notification hub,
the change detector's cutoff) is built once here and injected into request
handlers through ``app.state``. None of it needs explicit teardown beyond
closing the hub and the storage client.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from wagerfeed.config import Settings
from wagerfeed.repositories import BetRepository
from wagerfeed.services.change_detector import ChangeDetector
from wagerfeed.services.feed_service import FeedAssembler
from wagerfeed.services.identity import IdentityService, TokenVerifier
from wagerfeed.services.lifecycle_service import LifecycleManager, utc_now
from wagerfeed.services.notifications import NotificationHub
from wagerfeed.services.participation import ParticipationAggregator
from wagerfeed.services.profile_service import ProfileService
from wagerfeed.services.signed_url_cache import SignedUrlCache, UrlSigner
from wagerfeed.services.websocket_service import ConnectionManager


@dataclass
class ServiceContainer:
    repository: BetRepository
    identity: IdentityService
    url_cache: SignedUrlCache
    hub: NotificationHub
    feed: FeedAssembler
    lifecycle: LifecycleManager
    profiles: ProfileService
    detector: ChangeDetector
    connections: ConnectionManager

    def close(self) -> None:
        self.hub.close_all()


def build_container(
    settings: Settings,
    repository: BetRepository,
    verifier: TokenVerifier,
    signer: UrlSigner,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceContainer:
    url_cache = SignedUrlCache(
        signer,
        bucket=settings.signed_urls.bucket,
        validity_seconds=settings.signed_urls.validity_seconds,
    )
    hub = NotificationHub()
    return ServiceContainer(
        repository=repository,
        identity=IdentityService(verifier),
        url_cache=url_cache,
        hub=hub,
        feed=FeedAssembler(
            repository,
            ParticipationAggregator(repository),
            url_cache,
            page_size=settings.feed.page_size,
            max_page_size=settings.feed.max_page_size,
        ),
        lifecycle=LifecycleManager(repository, hub, clock=clock),
        profiles=ProfileService(repository, url_cache),
        detector=ChangeDetector(
            repository,
            hub,
            interval_seconds=settings.detector.interval_seconds,
            overlap_seconds=settings.detector.overlap_seconds,
            clock=clock,
        ),
        connections=ConnectionManager(hub),
    )
