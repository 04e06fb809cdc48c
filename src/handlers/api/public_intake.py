"""Public intake API handler (no authentication required)."""

import json
import os
from typing import Any

import structlog

from allmax.services.orchestration import OrchestrationQueue
from allmax.utils.exceptions import AllmaxError, RateLimitError, ValidationError
from allmax.utils.rate_limiter import (
    DEFAULT_WINDOW_MS,
    DomainQuotaLimiter,
    DynamoDBSubmissionLedger,
    InMemorySubmissionLedger,
    SubmissionRateLimiter,
    get_visitor_id,
    rate_limit_response,
)
from allmax.utils.responses import accepted, error, no_content, success
from allmax.validation.blueprint import validate_blueprint
from allmax.validation.problem import (
    INPUT_MAX_LENGTH,
    INPUT_TOO_LONG,
    validate_problem_input,
    validate_problem_text,
)

logger = structlog.get_logger()

# One of each per Lambda container
_submission_limiter: SubmissionRateLimiter | None = None
_domain_quota: DomainQuotaLimiter | None = None


def get_submission_limiter() -> SubmissionRateLimiter:
    """Get the container's problem submission limiter (lazy init)."""
    global _submission_limiter
    if _submission_limiter is None:
        backend = os.environ.get("SUBMISSION_LEDGER", "memory").lower()
        ledger = DynamoDBSubmissionLedger() if backend == "dynamodb" else InMemorySubmissionLedger()
        _submission_limiter = SubmissionRateLimiter(
            ledger=ledger,
            window_ms=int(os.environ.get("SUBMISSION_WINDOW_MS", DEFAULT_WINDOW_MS)),
        )
    return _submission_limiter


def set_submission_limiter(limiter: SubmissionRateLimiter | None) -> None:
    """Replace the container's submission limiter (None resets it)."""
    global _submission_limiter
    _submission_limiter = limiter


def get_domain_quota() -> DomainQuotaLimiter:
    """Get the container's email domain quota (lazy init)."""
    global _domain_quota
    if _domain_quota is None:
        _domain_quota = DomainQuotaLimiter()
    return _domain_quota


def set_domain_quota(quota: DomainQuotaLimiter | None) -> None:
    """Replace the container's email domain quota (None resets it)."""
    global _domain_quota
    _domain_quota = quota


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle public intake API requests (no auth required).

    Routes:
        POST /public/problems/validate  - Check problem text without submitting
        POST /public/problems           - Validate, rate limit and queue a problem
        POST /public/blueprints         - Validate and queue a blueprint for delivery
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")

        if http_method == "OPTIONS":
            return no_content()

        if path.endswith("/public/problems/validate") and http_method == "POST":
            return validate_problem(event)
        elif path.endswith("/public/problems") and http_method == "POST":
            return submit_problem(event)
        elif path.endswith("/public/blueprints") and http_method == "POST":
            return submit_blueprint(event)
        else:
            return error("Not found", 404)

    except RateLimitError as e:
        return rate_limit_response(e.retry_after or 1)
    except AllmaxError as e:
        return error(e.message, e.status_code, e.error_code, e.details)
    except ValueError as e:
        return error(str(e), 400)
    except Exception as e:
        logger.exception("Public intake handler error", error=str(e))
        return error("Internal server error", 500)


def _parse_body(event: dict) -> dict:
    """Parse a JSON object body, raising ValueError when malformed."""
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def _problem_fields(body: dict) -> tuple[str, str | None, str]:
    problem_text = body.get("problem_text", "")
    if not isinstance(problem_text, str):
        raise ValueError("problem_text must be a string")
    language = body.get("language")
    if not isinstance(language, str) or not language:
        language = "en"
    return problem_text, body.get("domain"), language


def _check_problem(problem_text: str, domain: Any, language: str) -> list[dict]:
    """Run the text check, plus the domain-aware check when a domain is given.

    The length cap applies to every submission, with or without a domain.
    """
    errors = [
        {"field": "problem_text", "message": msg}
        for msg in validate_problem_text(problem_text, language=language).errors
    ]
    if domain is not None:
        errors.extend(
            {"field": "problem_input", "message": msg}
            for msg in validate_problem_input(problem_text, domain).errors
        )
    elif len(problem_text.strip()) > INPUT_MAX_LENGTH:
        errors.append({"field": "problem_input", "message": INPUT_TOO_LONG})
    return errors


def validate_problem(event: dict) -> dict:
    """Report text quality problems so the form can show them before submitting."""
    problem_text, domain, language = _problem_fields(_parse_body(event))
    errors = _check_problem(problem_text, domain, language)

    return success({
        "valid": not errors,
        "errors": [e["message"] for e in errors],
    })


def submit_problem(event: dict) -> dict:
    """Submit a problem description for blueprint generation.

    Validation runs first so rejected text never consumes the visitor's
    submission window; only a passing, admitted submission is queued.
    """
    problem_text, domain, language = _problem_fields(_parse_body(event))

    errors = _check_problem(problem_text, domain, language)
    if errors:
        logger.info("Problem submission rejected", error_count=len(errors))
        raise ValidationError(errors=errors)

    visitor_id = get_visitor_id(event)
    rate_check = get_submission_limiter().check_rate_limit(visitor_id)
    if not rate_check.allowed:
        raise RateLimitError(retry_after=rate_check.retry_after)

    problem_id, message_id = OrchestrationQueue().enqueue_problem(
        visitor_id=visitor_id,
        problem_text=problem_text,
        domain=domain,
        language=language,
    )

    logger.info("Problem submitted", problem_id=problem_id, domain=domain)

    return accepted({
        "accepted": True,
        "problem_id": problem_id,
        "message_id": message_id,
    })


def submit_blueprint(event: dict) -> dict:
    """Queue a generated blueprint for saving and delivery to the lead's inbox."""
    request, errors = validate_blueprint(_parse_body(event))
    if errors:
        raise ValidationError(errors=errors)

    quota = get_domain_quota().check(request.email_domain)
    if not quota.allowed:
        raise RateLimitError(retry_after=quota.retry_after)

    message_id = OrchestrationQueue().enqueue_blueprint(request)

    logger.info("Blueprint queued", session_id=str(request.session_id))

    return accepted({
        "accepted": True,
        "session_id": str(request.session_id),
        "message_id": message_id,
    })
