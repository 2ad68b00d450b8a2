"""Typed error hierarchy for transport, configuration and protocol failures."""


class ChatStreamError(Exception):
    """Base exception for all chatstream errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        request_id: str | None = None,
        method: str | None = None,
        path: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.request_id = request_id
        self.method = method
        self.path = path


class AuthenticationError(ChatStreamError):
    """401 — invalid or missing bearer token."""


class PermissionDeniedError(ChatStreamError):
    """403 — insufficient permissions."""


class NotFoundError(ChatStreamError):
    """404 — chat endpoint does not exist."""


class ConflictError(ChatStreamError):
    """409 — thread or run conflicts with server state."""


class ValidationError(ChatStreamError):
    """400/422 — the server rejected the request body."""


class RateLimitError(ChatStreamError):
    """429 — too many requests."""


class APIError(ChatStreamError):
    """500+ or a network failure before a usable response arrived."""


class ConfigurationError(ChatStreamError):
    """Client could not be configured (no endpoint, bad profile)."""


class ProtocolError(ChatStreamError):
    """An event sequence breaks the run lifecycle rules."""


class RunError(ChatStreamError):
    """The agent reported a RUN_ERROR event.

    Never raised by the session; handed to ``on_error`` callbacks so they
    can tell agent failures apart from transport failures.
    """

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


# Map HTTP status codes to exception classes.
STATUS_MAP: dict[int, type[ChatStreamError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    429: RateLimitError,
}
