"""Expiring cache of signed object URLs.

Signed URLs are memoized per object path until they expire. Misses are
signed in one batched call per `resolve`, so a feed page with twenty
avatars costs at most one round trip to object storage.
"""

import logging
import time
from collections.abc import Callable, Iterable
from typing import NamedTuple, Protocol

from wagerfeed.errors import UpstreamFailure
from wagerfeed.services.supabase import SignedUrl, SupabaseAPIError

logger = logging.getLogger(__name__)


class UrlSigner(Protocol):
    async def create_signed_urls(
        self, bucket: str, paths: list[str], expires_in: int
    ) -> list[SignedUrl]: ...


class CacheEntry(NamedTuple):
    url: str
    expires_at: float


class SignedUrlCache:
    """Process-wide, read-mostly map of object path -> signed URL.

    Entries are immutable tuples replaced whole, so concurrent resolvers never
    observe a partial entry. Two resolvers missing the same path may both sign
    it; the later write wins and either URL is valid.
    """

    def __init__(
        self,
        signer: UrlSigner,
        bucket: str,
        validity_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        self._signer = signer
        self._bucket = bucket
        self._validity_seconds = validity_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, path: str) -> str | None:
        """Return a live cached URL without signing."""
        entry = self._entries.get(path)
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry.url

    async def resolve(self, paths: Iterable[str | None]) -> dict[str, str]:
        """Map each path to a usable signed URL.

        Empty paths are skipped. Paths storage cannot sign are omitted from
        the result. Raises UpstreamFailure if the batched signing call fails,
        in which case nothing from this call is applied.
        """
        now = self._clock()
        resolved: dict[str, str] = {}
        misses: list[str] = []

        for path in dict.fromkeys(p for p in paths if p):
            entry = self._entries.get(path)
            if entry is not None and now < entry.expires_at:
                resolved[path] = entry.url
            else:
                misses.append(path)

        if not misses:
            return resolved

        try:
            signed = await self._signer.create_signed_urls(
                self._bucket, misses, self._validity_seconds
            )
        except SupabaseAPIError as e:
            logger.error(f"Signing {len(misses)} object paths failed: {e}")
            raise UpstreamFailure() from e

        expires_at = now + self._validity_seconds
        for item in signed:
            if not item.url:
                if item.error:
                    logger.debug(f"No signed URL for {item.path}: {item.error}")
                continue
            self._entries[item.path] = CacheEntry(item.url, expires_at)
            resolved[item.path] = item.url

        self.purge_expired(now)
        return resolved

    def purge_expired(self, now: float | None = None) -> int:
        """Drop entries past their expiry; returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [path for path, entry in self._entries.items() if now >= entry.expires_at]
        for path in expired:
            self._entries.pop(path, None)
        return len(expired)

    def invalidate(self, path: str) -> None:
        self._entries.pop(path, None)

    def clear(self) -> None:
        self._entries.clear()
