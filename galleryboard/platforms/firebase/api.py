"""Shared helpers for the Firebase REST endpoints."""

from __future__ import annotations

import json
from typing import Any, Callable

import requests

from galleryboard.platforms.base import (
    BackendError,
    ConnectivityError,
    PermissionDeniedError,
)

_PERMISSION_STATUSES = {"PERMISSION_DENIED", "UNAUTHENTICATED"}


class FirebaseApiError(BackendError):
    """Raised for Firebase responses that are neither success nor permission denial."""


def _error_payload(response: requests.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except (json.JSONDecodeError, ValueError):
        return {"body": response.text[:200]}
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"]
    return data if isinstance(data, dict) else {"body": str(data)[:200]}


def error_from_response(
    response: requests.Response,
    message: str,
    *,
    error_cls: type[BackendError] = FirebaseApiError,
    code_prefix: str = "",
) -> BackendError:
    """Classify a failed response; permission rejections always win."""
    payload = _error_payload(response)
    status = str(payload.get("status") or "")
    details = {
        "http_status": response.status_code,
        "status": status or None,
        "message": payload.get("message"),
    }
    if response.status_code in (401, 403) or status in _PERMISSION_STATUSES:
        return PermissionDeniedError(message, details=details)
    code = (status or str(response.status_code)).lower().replace("_", "-")
    return error_cls(message, code=f"{code_prefix}{code}", details=details)


def send(
    call: Callable[[], requests.Response],
    message: str,
    *,
    error_cls: type[BackendError] = FirebaseApiError,
    code_prefix: str = "",
) -> requests.Response:
    """Run ``call`` and turn transport and HTTP failures into backend errors."""
    try:
        response = call()
    except requests.RequestException as exc:
        raise ConnectivityError(message, details={"reason": str(exc)}) from exc
    if not response.ok:
        raise error_from_response(
            response, message, error_cls=error_cls, code_prefix=code_prefix
        )
    return response


def json_body(response: requests.Response, message: str) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise FirebaseApiError(
            message, code="invalid-response", details={"response": response.text[:200]}
        ) from exc
