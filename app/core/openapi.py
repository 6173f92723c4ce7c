"""OpenAPI metadata and customization utilities.

Enriches the generated schema with:
- Tags metadata
- The 429 answer and quota headers on the admission-controlled operation,
  which the middleware produces outside FastAPI's routing and would otherwise
  be undocumented

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.config import settings
from app.core.rate_limit import (
    HEADER_LIMIT,
    HEADER_REMAINING,
    HEADER_RESET,
    HEADER_RETRY_AFTER,
    HEADER_WINDOW,
)

_TAGS = [
    {"name": "Scan", "description": "Admission-controlled scan endpoint and target catalogue."},
    {"name": "Rate limit", "description": "Read-only quota status; never consumes quota."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]

_QUOTA_HEADERS: Dict[str, Any] = {
    HEADER_LIMIT: {"description": "Scans allowed per window.", "schema": {"type": "integer"}},
    HEADER_REMAINING: {"description": "Scans left in the window.", "schema": {"type": "integer"}},
    HEADER_RESET: {
        "description": "Epoch seconds when the oldest in-window scan expires.",
        "schema": {"type": "integer"},
    },
    HEADER_WINDOW: {"description": "Window length, e.g. '60m'.", "schema": {"type": "string"}},
}


def _too_many_requests_response() -> Dict[str, Any]:
    headers = dict(_QUOTA_HEADERS)
    headers[HEADER_RETRY_AFTER] = {
        "description": "Seconds until a slot frees up.",
        "schema": {"type": "integer"},
    }
    return {
        "description": "Scan quota exhausted for this client.",
        "headers": headers,
        "content": {
            "application/json": {
                "example": {
                    "error": "Rate limit exceeded",
                    "message": "Too many scan requests. Limit: 3 requests per 60 minutes.",
                    "details": {
                        "limit": 3,
                        "windowMinutes": 60,
                        "resetTime": "2024-05-01T13:00:00.000Z",
                        "clientKey": "203.0.113.7",
                    },
                }
            }
        },
    }


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and the quota contract."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        gated_path = settings.rate_limit.gated_path.rstrip("/")
        gated_method = settings.rate_limit.gated_method.lower()
        for path, methods in schema.get("paths", {}).items():
            if path.rstrip("/") != gated_path and not path.startswith(gated_path + "/"):
                continue
            operation = methods.get(gated_method)
            if not isinstance(operation, dict):
                continue
            responses = operation.setdefault("responses", {})
            responses.setdefault("429", _too_many_requests_response())
            success = responses.get("200")
            if isinstance(success, dict):
                success.setdefault("headers", dict(_QUOTA_HEADERS))

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
