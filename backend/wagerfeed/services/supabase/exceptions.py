class SupabaseAPIError(Exception):
    """Base exception for Supabase API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SupabaseAuthError(SupabaseAPIError):
    """Credential rejected by Supabase Auth or the service key is invalid."""

    pass


class SupabaseRateLimitError(SupabaseAPIError):
    """Rate limit exceeded."""

    pass


class SupabaseNotFoundError(SupabaseAPIError):
    """Resource not found."""

    pass


class SupabaseProcedureError(SupabaseAPIError):
    """A storage procedure or constraint rejected the request with a named reason."""

    def __init__(
        self,
        reason: str,
        code: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(f"Procedure rejected request: {reason}", status_code)
        self.reason = reason
        self.code = code
