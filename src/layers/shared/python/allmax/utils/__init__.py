"""Utility functions and helpers."""

from allmax.utils.responses import accepted, error, success
from allmax.utils.exceptions import (
    AllmaxError,
    ExternalServiceError,
    RateLimitError,
    ValidationError,
)
from allmax.utils.rate_limiter import (
    DomainQuotaLimiter,
    InMemorySubmissionLedger,
    RateLimitResult,
    SubmissionRateLimiter,
)

__all__ = [
    # Response helpers
    "accepted",
    "error",
    "success",
    # Exceptions
    "AllmaxError",
    "ExternalServiceError",
    "RateLimitError",
    "ValidationError",
    # Rate limiting
    "DomainQuotaLimiter",
    "InMemorySubmissionLedger",
    "RateLimitResult",
    "SubmissionRateLimiter",
]
