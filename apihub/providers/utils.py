"""Helper utilities for the site adapter's diagnostics."""

from __future__ import annotations

from typing import Any

import httpx

_MAX_BODY_CHARS = 500


def extract_error_body(response: httpx.Response) -> Any:
    """Return the decoded error body if it is JSON, else trimmed text."""

    try:
        return response.json()
    except ValueError:
        text = getattr(response, "text", None)
        if text:
            stripped = text.strip()
            if stripped:
                return stripped[:_MAX_BODY_CHARS]
        return None


def status_text(response: httpx.Response) -> str:
    """Reason phrase for a response, falling back to the numeric status."""

    reason = getattr(response, "reason_phrase", "") or ""
    return reason or f"HTTP {response.status_code}"


def build_error_log(
    *,
    site: str,
    operation: str,
    error_type: str,
    message: str,
    status_code: int | None = None,
    response_body: Any | None = None,
) -> dict[str, Any]:
    """Assemble the structured ``extra`` payload for a failed site call."""

    payload: dict[str, Any] = {
        "event": "site_request_failed",
        "site": site,
        "operation": operation,
        "error_type": error_type,
        "error_message": message,
    }
    if status_code is not None:
        payload["status_code"] = status_code
    if response_body is not None:
        payload["response"] = response_body
    return payload


__all__ = ["build_error_log", "extract_error_body", "status_text"]
