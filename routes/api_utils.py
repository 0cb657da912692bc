"""Shared helpers for API routes (error handling and logging)."""

from __future__ import annotations

import json
from functools import wraps
from typing import Any, Callable, ParamSpec, TypeVar

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from errors import (
    APIError,
    DatabaseError,
    DuplicateError,
    ImageDecodeError,
    NotFoundError,
    PayloadTooLargeError,
    ReferentialConstraintError,
    RemoteStoreError,
    UnauthorizedError,
    ValidationError,
)

P = ParamSpec("P")
R = TypeVar("R")

_MASKED_FIELDS = frozenset({"password"})


def _mask(values: dict[str, Any]) -> dict[str, Any]:
    return {
        key: ("***" if key in _MASKED_FIELDS else value)
        for key, value in values.items()
    }


def _collect_request_context() -> dict[str, Any]:
    context: dict[str, Any] = {
        "route": request.path,
        "endpoint": request.endpoint,
        "method": request.method,
        "view_args": dict(request.view_args or {}),
        "args": request.args.to_dict(flat=False),
    }

    # request.form raises once the body exceeded MAX_CONTENT_LENGTH.
    try:
        form = request.form
    except RequestEntityTooLarge:
        form = None
    if form:
        context["form"] = _mask(form.to_dict(flat=True))

    try:
        json_payload = request.get_json(silent=True)
    except RequestEntityTooLarge:
        json_payload = None
    if isinstance(json_payload, dict):
        context["json"] = _mask(json_payload)
    elif json_payload is not None:
        context["json"] = json_payload

    return context


def _serialize_context(context: dict[str, Any]) -> str:
    try:
        return json.dumps(context, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(context)


def _log_api_error(exc: Exception, *, status_code: int, handled: bool) -> None:
    context = _collect_request_context()
    context["status_code"] = status_code
    context_str = _serialize_context(context)
    if handled and status_code < 500:
        current_app.logger.warning(
            "Handled API error (%s): %s | context=%s", status_code, exc, context_str
        )
        return
    if handled:
        current_app.logger.error(
            "Handled API error (%s): %s | context=%s", status_code, exc, context_str,
            exc_info=exc,
        )
        return
    current_app.logger.exception(
        "Unhandled API error (%s): %s | context=%s", status_code, exc, context_str
    )


def handle_api_errors(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator that centralizes API error handling and logging."""

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs):  # type: ignore[misc]
        try:
            return func(*args, **kwargs)
        except APIError as exc:
            status_code = exc.status_code
            _log_api_error(exc, status_code=status_code, handled=True)
            return jsonify(exc.to_dict()), status_code
        except RequestEntityTooLarge as exc:
            api_error = PayloadTooLargeError()
            _log_api_error(exc, status_code=api_error.status_code, handled=True)
            return jsonify(api_error.to_dict()), api_error.status_code
        except HTTPException as exc:
            status_code = exc.code or 500
            message = exc.description or str(exc)
            api_error = APIError(message=message, status_code=status_code)
            _log_api_error(exc, status_code=status_code, handled=True)
            return jsonify(api_error.to_dict()), status_code
        except Exception as exc:  # pragma: no cover - last-resort guard
            _log_api_error(exc, status_code=500, handled=False)
            return jsonify({"error": "Internal server error"}), 500

    return wrapper


__all__ = [
    "APIError",
    "DatabaseError",
    "DuplicateError",
    "ImageDecodeError",
    "NotFoundError",
    "PayloadTooLargeError",
    "ReferentialConstraintError",
    "RemoteStoreError",
    "UnauthorizedError",
    "ValidationError",
    "handle_api_errors",
]
