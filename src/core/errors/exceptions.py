"""
Exception hierarchy for the ingest service.

Every error carries an ErrorCategory so log lines can be filtered by kind
of failure and startup code can tell fatal configuration problems apart
from conditions the reconnect and requeue loops absorb.
"""

from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for all ingest errors.

    Attributes:
        message: Human-readable error description
        cause: Wrapped lower-level exception, if any
        context: Extra key/values for log output
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = dict(context) if context else {}

    @property
    def is_retryable(self) -> bool:
        return self.category is not ErrorCategory.PERMANENT

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} | Caused by: {self.cause}"


class TransientError(PipelineError):
    """May succeed if tried again later."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Will fail the same way every time."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid or missing configuration. Fatal at startup."""


# Upstream (hub)


class UpstreamConnectionError(TransientError):
    """Hub channel could not be opened or did not become ready in time."""


class SubscriptionError(TransientError):
    """Hub rejected the subscription request."""


# Downstream (sink)


class DeliveryError(PipelineError):
    """
    Batch delivery to the sink failed.

    status_code is None for transport failures (connection refused,
    timeouts, DNS). The category follows the HTTP status so logs can be
    filtered, but every delivery failure is handled the same way.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause=cause, context=context)
        self.status_code = status_code

    @property
    def category(self) -> ErrorCategory:  # type: ignore[override]
        if self.status_code is None:
            return ErrorCategory.TRANSIENT
        return classify_http_status(self.status_code)


_AUTH_STATUSES = frozenset({401, 403})
_THROTTLE_STATUSES = frozenset({408, 429})


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Map an HTTP status to an error category.

    2xx is not an error and maps to UNKNOWN. Auth failures, throttling,
    other client errors and server errors get their own categories.
    """
    if status_code in _AUTH_STATUSES:
        return ErrorCategory.AUTH
    if status_code in _THROTTLE_STATUSES or status_code >= 500:
        return ErrorCategory.TRANSIENT
    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT
    return ErrorCategory.UNKNOWN
