"""
Tests for exception hierarchy and error classification.
"""

from core.errors.exceptions import (
    ConfigurationError,
    DeliveryError,
    ErrorCategory,
    PermanentError,
    PipelineError,
    SubscriptionError,
    TransientError,
    UpstreamConnectionError,
    classify_http_status,
)


class TestPipelineError:
    """Test base PipelineError class."""

    def test_basic_error(self):
        err = PipelineError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.cause is None
        assert err.context == {}
        assert err.category == ErrorCategory.UNKNOWN

    def test_error_with_cause(self):
        cause = ValueError("Invalid value")
        err = PipelineError("Wrapper message", cause=cause)
        assert err.cause is cause
        assert str(err) == "Wrapper message | Caused by: Invalid value"

    def test_error_with_context(self):
        err = PipelineError("Error", context={"hub_endpoint": "hub:443"})
        assert err.context["hub_endpoint"] == "hub:443"

    def test_is_retryable_default(self):
        assert PipelineError("Error").is_retryable is True


class TestHierarchy:
    def test_configuration_error_is_permanent(self):
        err = ConfigurationError("missing key")
        assert isinstance(err, PermanentError)
        assert err.category == ErrorCategory.PERMANENT
        assert err.is_retryable is False

    def test_upstream_errors_are_transient(self):
        for cls in (UpstreamConnectionError, SubscriptionError):
            err = cls("hub down")
            assert isinstance(err, TransientError)
            assert err.is_retryable is True


class TestDeliveryError:
    def test_transport_failure_is_transient(self):
        err = DeliveryError("connection refused", cause=OSError("refused"))
        assert err.status_code is None
        assert err.category == ErrorCategory.TRANSIENT

    def test_category_follows_status(self):
        assert DeliveryError("x", status_code=503).category == ErrorCategory.TRANSIENT
        assert DeliveryError("x", status_code=400).category == ErrorCategory.PERMANENT
        assert DeliveryError("x", status_code=401).category == ErrorCategory.AUTH


class TestClassifyHttpStatus:
    def test_success_is_not_an_error(self):
        assert classify_http_status(200) == ErrorCategory.UNKNOWN
        assert classify_http_status(204) == ErrorCategory.UNKNOWN

    def test_auth(self):
        assert classify_http_status(401) == ErrorCategory.AUTH
        assert classify_http_status(403) == ErrorCategory.AUTH

    def test_rate_limit_is_transient(self):
        assert classify_http_status(429) == ErrorCategory.TRANSIENT

    def test_client_errors_are_permanent(self):
        assert classify_http_status(404) == ErrorCategory.PERMANENT
        assert classify_http_status(422) == ErrorCategory.PERMANENT

    def test_server_errors_are_transient(self):
        assert classify_http_status(500) == ErrorCategory.TRANSIENT
        assert classify_http_status(502) == ErrorCategory.TRANSIENT
