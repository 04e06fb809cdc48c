"""API response helper functions."""

import json
import os
from typing import Any

# Defaults to the production site
_ALLOWED_ORIGIN = os.environ.get("CORS_ALLOWED_ORIGIN", "https://allmaxmind.com")


def get_cors_headers() -> dict:
    """Get CORS headers for the public intake site."""
    return {
        "Access-Control-Allow-Origin": _ALLOWED_ORIGIN,
        "Access-Control-Allow-Headers": (
            "authorization,x-client-info,apikey,content-type,x-visitor-id,x-session-id"
        ),
        "Access-Control-Allow-Methods": "POST,OPTIONS",
        "Content-Type": "application/json",
    }


CORS_HEADERS = get_cors_headers()


def _serialize(data: Any) -> str:
    """Serialize data to JSON string."""
    return json.dumps(data)


def success(data: Any, status_code: int = 200) -> dict:
    """Create a successful API response.

    Args:
        data: Response data (dict or list).
        status_code: HTTP status code (default 200).

    Returns:
        API Gateway response dict.
    """
    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(data),
    }


def accepted(data: Any) -> dict:
    """Create a 202 Accepted response for work handed off to a queue."""
    return success(data, status_code=202)


def no_content() -> dict:
    """Create a 204 No Content response."""
    return {
        "statusCode": 204,
        "headers": CORS_HEADERS,
        "body": "",
    }


def error(
    message: str,
    status_code: int = 500,
    error_code: str | None = None,
    details: dict | None = None,
) -> dict:
    """Create an error API response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        error_code: Machine-readable error code.
        details: Additional error details.

    Returns:
        API Gateway response dict.
    """
    body: dict[str, Any] = {
        "error": True,
        "message": message,
    }

    if error_code:
        body["error_code"] = error_code
    if details:
        body["details"] = details

    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(body),
    }

