from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class AuthUser(BaseModel):
    id: str
    email: str | None = None
    role: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AuthUser:
        return cls(
            id=data["id"],
            email=data.get("email"),
            role=data.get("role"),
        )


class SignedUrl(BaseModel):
    path: str
    url: str | None = None
    error: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any], base_url: str) -> SignedUrl:
        signed = data.get("signedURL") or data.get("signedUrl")
        return cls(
            path=data.get("path", ""),
            url=f"{base_url}{signed}" if signed else None,
            error=data.get("error"),
        )
