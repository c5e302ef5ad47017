from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import SupabaseConfig
from .exceptions import (
    SupabaseAPIError,
    SupabaseAuthError,
    SupabaseNotFoundError,
    SupabaseProcedureError,
    SupabaseRateLimitError,
)
from .models import AuthUser, SignedUrl

logger = logging.getLogger(__name__)

QueryParams = list[tuple[str, str]] | dict[str, Any]

# PostgREST error codes that carry a domain reason rather than a fault.
_PROCEDURE_CODES = {"P0001", "23505", "23514"}


class SupabaseClient:
    """Async client for the Supabase REST, Storage and Auth HTTP APIs.

    Uses the service role key for table, procedure and storage calls; caller
    tokens are only forwarded to the Auth API for verification.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        config: SupabaseConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.config = config or SupabaseConfig()
        self._service_role_key = service_role_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        logger.info(f"Initialized SupabaseClient (url={self.url})")

    async def __aenter__(self) -> SupabaseClient:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is not None:
            return
        limits = httpx.Limits(
            max_connections=self.config.max_connections,
            max_keepalive_connections=self.config.max_keepalive_connections,
        )
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=self.config.timeout_seconds,
            limits=limits,
            transport=self._transport,
            headers={"apikey": self._service_role_key},
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed SupabaseClient")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "SupabaseClient must be opened or used as async context manager"
            )
        return self._client

    def _service_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._service_role_key}"}

    @staticmethod
    def _raise_for_client_error(response: httpx.Response, path: str) -> None:
        status = response.status_code
        if status in (401, 403):
            raise SupabaseAuthError("Authentication failed", status_code=status)
        if status == 404:
            raise SupabaseNotFoundError(f"Resource not found: {path}", status_code=404)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("code") in _PROCEDURE_CODES:
            raise SupabaseProcedureError(
                reason=body.get("message") or body.get("hint") or "",
                code=body.get("code"),
                status_code=status,
            )
        message = body.get("message") if isinstance(body, dict) else None
        raise SupabaseAPIError(
            f"Request to {path} failed ({status}): {message or response.text}",
            status_code=status,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: QueryParams | None = None,
        json_data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send one request. Failures are raised and never replayed."""
        request_headers = self._service_headers()
        if headers:
            request_headers.update(headers)

        try:
            response = await self.client.request(
                method=method,
                url=path,
                params=params,
                json=json_data,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout calling {path}")
            raise SupabaseAPIError(f"Request to {path} timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Network error calling {path}: {e}")
            raise SupabaseAPIError(f"Request to {path} failed: {e}") from e

        if response.status_code == 429:
            logger.warning(f"Supabase rate limited {path}")
            raise SupabaseRateLimitError("Rate limit exceeded", status_code=429)
        if response.status_code >= 500:
            logger.warning(f"Supabase returned {response.status_code} for {path}")
            raise SupabaseAPIError(
                f"Server error {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            self._raise_for_client_error(response, path)

        if not response.content:
            return None
        return response.json()

    # ---- Auth ----

    async def verify_user(self, access_token: str) -> AuthUser:
        """Resolve a caller's access token to its user via Supabase Auth."""
        data = await self._request(
            "GET",
            f"{self.config.auth_path}/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not data or "id" not in data:
            raise SupabaseAuthError("Token did not resolve to a user", status_code=401)
        return AuthUser.from_api(data)

    # ---- REST (PostgREST) ----

    async def select(self, table: str, params: QueryParams) -> list[dict[str, Any]]:
        data = await self._request("GET", f"{self.config.rest_path}/{table}", params=params)
        return data or []

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        data = await self._request(
            "POST",
            f"{self.config.rest_path}/{table}",
            json_data=row,
            headers={"Prefer": "return=representation"},
        )
        if not data:
            raise SupabaseAPIError(f"Insert into {table} returned no row")
        return data[0] if isinstance(data, list) else data

    async def update(
        self,
        table: str,
        filters: QueryParams,
        values: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """PATCH rows matching filters; returns only the rows actually changed."""
        data = await self._request(
            "PATCH",
            f"{self.config.rest_path}/{table}",
            params=filters,
            json_data=values,
            headers={"Prefer": "return=representation"},
        )
        return data or []

    async def rpc(self, function: str, args: dict[str, Any]) -> Any:
        return await self._request(
            "POST", f"{self.config.rest_path}/rpc/{function}", json_data=args
        )

    # ---- Storage ----

    async def create_signed_urls(
        self,
        bucket: str,
        paths: list[str],
        expires_in: int,
    ) -> list[SignedUrl]:
        """Sign many object paths in a single call."""
        if not paths:
            return []
        data = await self._request(
            "POST",
            f"{self.config.storage_path}/object/sign/{bucket}",
            json_data={"expiresIn": expires_in, "paths": paths},
        )
        base_url = f"{self.url}{self.config.storage_path}"
        return [SignedUrl.from_api(item, base_url) for item in data or []]

