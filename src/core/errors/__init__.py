"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- HTTP status classification
"""

from core.errors.exceptions import (
    ConfigurationError,
    DeliveryError,
    # Enums
    ErrorCategory,
    PermanentError,
    # Base classes
    PipelineError,
    SubscriptionError,
    TransientError,
    UpstreamConnectionError,
    classify_http_status,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    # Concrete errors
    "ConfigurationError",
    "UpstreamConnectionError",
    "SubscriptionError",
    "DeliveryError",
    # Classification utilities
    "classify_http_status",
]
