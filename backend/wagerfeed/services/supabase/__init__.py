from .client import SupabaseClient
from .config import SupabaseConfig
from .exceptions import (
    SupabaseAPIError,
    SupabaseAuthError,
    SupabaseNotFoundError,
    SupabaseProcedureError,
    SupabaseRateLimitError,
)
from .models import AuthUser, SignedUrl

__all__ = [
    "SupabaseClient",
    "SupabaseConfig",
    "SupabaseAPIError",
    "SupabaseAuthError",
    "SupabaseNotFoundError",
    "SupabaseProcedureError",
    "SupabaseRateLimitError",
    "AuthUser",
    "SignedUrl",
]
