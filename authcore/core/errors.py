"""Error taxonomy shared by the services and mapped to HTTP status codes by the API layer."""


class AuthCoreError(Exception):
    """Base class for errors raised by the auth core."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailed(AuthCoreError):
    """Malformed input; carries field -> message detail for the caller."""

    def __init__(self, errors: dict[str, str], message: str = "Validation failed.") -> None:
        self.errors = dict(errors)
        super().__init__(message)


class AuthenticationFailed(AuthCoreError):
    """
    Bad credentials or an unusable token.

    The message is deliberately generic so callers cannot tell an unknown
    user from a wrong password, or a revoked token from an unknown one.
    """

    def __init__(self, message: str = "Invalid credentials.") -> None:
        super().__init__(message)


class NotFoundError(AuthCoreError):
    """A referenced Tenant/User/Role/Application/Resource does not exist."""

    def __init__(self, entity: str, key: object = None) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found")


class ConflictError(AuthCoreError):
    """Duplicate unique value, or a delete blocked by dependent rows."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class TransientError(AuthCoreError):
    """Persistence timed out or is unavailable; the caller may retry."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable.",
        cause: Exception | None = None,
    ) -> None:
        self.cause = cause
        super().__init__(message)


class TokenReuseDetected(AuthCoreError):
    """A refresh token was presented after it had already been revoked or rotated."""

    def __init__(self, token_id: object = None) -> None:
        self.token_id = token_id
        super().__init__("Refresh token already revoked.")
