"""Caller identity from a bearer credential."""

import logging
from typing import Protocol

from wagerfeed.errors import Unauthenticated, UpstreamFailure
from wagerfeed.services.supabase import AuthUser, SupabaseAPIError, SupabaseAuthError

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    async def verify_user(self, access_token: str) -> AuthUser: ...


def bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated()
    return token.strip()


class IdentityService:
    def __init__(self, verifier: TokenVerifier):
        self._verifier = verifier

    async def verify_caller(self, authorization: str | None) -> str:
        """Return the caller's user id or raise Unauthenticated."""
        token = bearer_token(authorization)
        try:
            user = await self._verifier.verify_user(token)
        except SupabaseAuthError as e:
            logger.debug(f"Credential rejected: {e}")
            raise Unauthenticated("Your session is invalid or has expired.") from e
        except SupabaseAPIError as e:
            logger.error(f"Credential verification failed: {e}")
            raise UpstreamFailure() from e
        return user.id
