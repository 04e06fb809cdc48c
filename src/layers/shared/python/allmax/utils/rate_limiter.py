"""Rate limiting utilities for public intake endpoints.

Problem submissions are gated by a sliding gate: at most one admitted
submission per visitor per window, with no burst credit. The ledger holding
the last admitted timestamp per visitor and the clock are both injected, so
the limiter can run in-memory inside a Lambda container or against a shared
DynamoDB table without changing the call contract.
"""

import math
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, NamedTuple, Protocol

import boto3
import structlog
from botocore.exceptions import ClientError

logger = structlog.get_logger()

DEFAULT_WINDOW_MS = 10_000

# Outbound email quota per recipient domain
DEFAULT_DOMAIN_MAX_REQUESTS = 100
DEFAULT_DOMAIN_WINDOW_MS = 60 * 60 * 1000

_LOCK_STRIPES = 64

Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class RateLimitResult(NamedTuple):
    """Result of a rate limit check."""

    allowed: bool
    retry_after: int | None = None  # Whole seconds, only set when denied

    def to_dict(self) -> dict:
        result: dict = {"allowed": self.allowed}
        if self.retry_after is not None:
            result["retryAfter"] = self.retry_after
        return result


def _retry_after_seconds(remaining_ms: int, window_ms: int) -> int:
    """Round a remaining wait up to whole seconds, within [1s, window]."""
    remaining_ms = min(max(remaining_ms, 1), window_ms)
    return math.ceil(remaining_ms / 1000)


class SubmissionLedger(Protocol):
    """Storage for the last admitted submission timestamp per visitor."""

    def record_if_elapsed(self, key: str, now: int, window_ms: int) -> int | None:
        """Atomically record ``now`` unless ``key`` was admitted within the window.

        Returns:
            None when ``now`` was recorded, otherwise the blocking timestamp.
        """
        ...

    def evict_older_than(self, cutoff: int) -> int:
        """Drop entries admitted at or before ``cutoff``. Returns the count."""
        ...


class InMemorySubmissionLedger:
    """Process-local ledger.

    The read-modify-write for a visitor runs under a lock picked from a fixed
    set of stripes by key hash, so distinct visitors rarely contend and the
    lock set stays bounded no matter how many visitors are tracked.
    """

    def __init__(self, stripes: int = _LOCK_STRIPES):
        self._entries: dict[str, int] = {}
        self._locks = [threading.Lock() for _ in range(stripes)]

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    def get(self, key: str) -> int | None:
        return self._entries.get(key)

    def record_if_elapsed(self, key: str, now: int, window_ms: int) -> int | None:
        with self._lock_for(key):
            last = self._entries.get(key)
            if last is not None and now - last < window_ms:
                return last
            self._entries[key] = now
            return None

    def evict_older_than(self, cutoff: int) -> int:
        evicted = 0
        for key, last in list(self._entries.items()):
            if last > cutoff:
                continue
            with self._lock_for(key):
                current = self._entries.get(key)
                if current is not None and current <= cutoff:
                    del self._entries[key]
                    evicted += 1
        return evicted

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class DynamoDBSubmissionLedger:
    """Ledger shared across Lambda containers, stored in DynamoDB.

    Admission is a single conditional UpdateItem, which acts as the
    compare-and-swap for concurrent submissions from the same visitor.

    DynamoDB keys:
        PK: RATELIMIT#{action}
        SK: {visitor_id}
    """

    def __init__(self, table_name: str | None = None, action: str = "problem_submit"):
        self.table_name = table_name or os.environ.get("TABLE_NAME", "allmax-dev")
        self.action = action
        self._table = None

    @property
    def table(self):
        if self._table is None:
            self._table = boto3.resource("dynamodb").Table(self.table_name)
        return self._table

    def _key(self, key: str) -> dict[str, str]:
        return {"PK": f"RATELIMIT#{self.action}", "SK": key}

    def record_if_elapsed(self, key: str, now: int, window_ms: int) -> int | None:
        # Expire a minute after the window closes; an expired entry admits
        # exactly like a missing one.
        ttl = (now + window_ms) // 1000 + 60

        try:
            self.table.update_item(
                Key=self._key(key),
                UpdateExpression="SET #last = :now, #ttl = :ttl",
                ConditionExpression="attribute_not_exists(#last) OR #last <= :cutoff",
                ExpressionAttributeNames={"#last": "last_submission_at", "#ttl": "ttl"},
                ExpressionAttributeValues={
                    ":now": now,
                    ":cutoff": now - window_ms,
                    ":ttl": ttl,
                },
            )
            return None
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ConditionalCheckFailedException":
                return self._fail_open(e, key)

        try:
            item = self.table.get_item(Key=self._key(key), ConsistentRead=True).get("Item")
        except ClientError as e:
            return self._fail_open(e, key)

        if item is None:
            # Removed by TTL between the update and the read
            return self.record_if_elapsed(key, now, window_ms)
        return int(item["last_submission_at"])

    def _fail_open(self, e: ClientError, key: str) -> None:
        # If DynamoDB fails, allow the request but log the error
        logger.error(
            "Submission ledger DynamoDB error",
            error=str(e),
            identifier=key[:20],
            action=self.action,
        )
        return None

    def evict_older_than(self, cutoff: int) -> int:
        # Handled by the table's TTL attribute
        return 0


class SubmissionRateLimiter:
    """Sliding gate admitting one submission per window per visitor."""

    def __init__(
        self,
        ledger: SubmissionLedger | None = None,
        clock: Clock | None = None,
        window_ms: int = DEFAULT_WINDOW_MS,
    ):
        """Initialize the limiter.

        Args:
            ledger: Where admitted timestamps are kept (in-memory by default).
            clock: Callable returning epoch milliseconds.
            window_ms: Minimum spacing between admitted submissions.
        """
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        self.ledger = ledger if ledger is not None else InMemorySubmissionLedger()
        self.clock = clock or system_clock
        self.window_ms = window_ms

    def check_rate_limit(self, visitor_id: str) -> RateLimitResult:
        """Check whether a visitor may submit now.

        The first submission from an unseen visitor is always allowed. A
        denied attempt leaves the ledger untouched, so it neither resets nor
        extends the visitor's wait.

        Args:
            visitor_id: Opaque visitor identity (cookie id or client IP).

        Returns:
            RateLimitResult; ``retry_after`` is set only when denied.
        """
        now = self.clock()
        last = self.ledger.record_if_elapsed(visitor_id, now, self.window_ms)

        if last is None:
            return RateLimitResult(allowed=True)

        retry_after = _retry_after_seconds(self.window_ms - (now - last), self.window_ms)
        logger.warning(
            "Submission rate limit exceeded",
            identifier=visitor_id[:20],  # Truncate for privacy
            retry_after=retry_after,
        )
        return RateLimitResult(allowed=False, retry_after=retry_after)

    def prune(self) -> int:
        """Drop ledger entries whose window has already closed.

        Opt-in only; nothing calls this implicitly. Outcomes of later checks
        are unchanged because a closed entry admits like a missing one.
        """
        return self.ledger.evict_older_than(self.clock() - self.window_ms)


@dataclass
class _QuotaWindow:
    count: int
    reset_at: int


class DomainQuotaLimiter:
    """Fixed-window counter per email domain.

    Caps how many lead emails can be queued for one recipient domain per
    window. A new window opens on the first request after ``reset_at``.
    """

    def __init__(
        self,
        max_requests: int | None = None,
        window_ms: int = DEFAULT_DOMAIN_WINDOW_MS,
        clock: Clock | None = None,
    ):
        if max_requests is None:
            max_requests = int(
                os.environ.get("EMAIL_DOMAIN_MAX_PER_HOUR", DEFAULT_DOMAIN_MAX_REQUESTS)
            )
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.clock = clock or system_clock
        self._windows: dict[str, _QuotaWindow] = {}
        self._lock = threading.Lock()

    def check(self, domain: str) -> RateLimitResult:
        domain = domain.strip().lower()
        now = self.clock()

        with self._lock:
            window = self._windows.get(domain)

            if window is None or now > window.reset_at:
                self._windows[domain] = _QuotaWindow(count=1, reset_at=now + self.window_ms)
                return RateLimitResult(allowed=True)

            if window.count >= self.max_requests:
                retry_after = _retry_after_seconds(window.reset_at - now, self.window_ms)
                logger.warning(
                    "Email domain quota exceeded",
                    domain=domain,
                    count=window.count,
                    limit=self.max_requests,
                )
                return RateLimitResult(allowed=False, retry_after=retry_after)

            window.count += 1
            return RateLimitResult(allowed=True)


def get_client_ip(event: dict) -> str:
    """Extract client IP from API Gateway event.

    Handles X-Forwarded-For header for requests behind CloudFront/ALB.

    Args:
        event: API Gateway event dict.

    Returns:
        Client IP address string.
    """
    headers = event.get("headers", {}) or {}
    request_context = event.get("requestContext", {}) or {}
    identity = request_context.get("identity", {}) or {}

    # Take the first IP (original client)
    forwarded_for = headers.get("X-Forwarded-For") or headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return identity.get("sourceIp", "unknown")


def get_visitor_id(event: dict) -> str:
    """Extract the visitor identity used as the rate-limit key.

    Prefers the browser's visitor id header and falls back to the client IP.
    """
    headers = event.get("headers", {}) or {}
    visitor_id = headers.get("x-visitor-id") or headers.get("X-Visitor-Id")
    if visitor_id and visitor_id.strip():
        return visitor_id.strip()
    return get_client_ip(event)


def rate_limit_response(retry_after: int) -> dict:
    """Generate a 429 Too Many Requests response.

    Args:
        retry_after: Seconds until the client can retry.

    Returns:
        API Gateway response dict.
    """
    from allmax.utils.responses import CORS_HEADERS, _serialize

    return {
        "statusCode": 429,
        "headers": {
            **CORS_HEADERS,
            "Retry-After": str(retry_after),
        },
        "body": _serialize({
            "error": True,
            "message": "Too many requests. Please try again later.",
            "error_code": "RATE_LIMITED",
            "retryAfter": retry_after,
        }),
    }
