from pydantic import BaseModel


class SupabaseConfig(BaseModel):
    """Configuration for the Supabase HTTP client."""

    rest_path: str = "/rest/v1"
    storage_path: str = "/storage/v1"
    auth_path: str = "/auth/v1"
    timeout_seconds: float = 10.0
    max_connections: int = 100
    max_keepalive_connections: int = 20
