"""Shared plumbing for API Gateway handlers."""

from __future__ import annotations

import functools
import json
import uuid
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from helpdesk.config.settings import Settings
from helpdesk.utils.error_handling import AppError, InvalidRequest, to_response
from helpdesk.utils.logging_config import get_logger

logger = get_logger(__name__)

ACTOR_HEADER = "x-actor-id"

# Lazy-loaded engine to avoid import-time DB connections
_service: Optional["HelpdeskService"] = None


def get_service():
    """Lazy-load HelpdeskService."""
    global _service
    if _service is None:
        from helpdesk.services.helpdesk_service import HelpdeskService
        _service = HelpdeskService.from_settings(Settings.from_environment())
    return _service


def set_service(service) -> None:
    """Install a prebuilt engine (used by tests and warm-start wiring)."""
    global _service
    _service = service


def json_response(status: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return json.loads(event.get("body") or "{}")
    except json.JSONDecodeError as exc:
        raise InvalidRequest(f"Malformed JSON body: {exc.msg}") from exc


def actor_id(event: Dict[str, Any]) -> str:
    """Acting user id, set by the upstream authorizer."""
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    value = headers.get(ACTOR_HEADER)
    if not value:
        raise InvalidRequest(f"Missing {ACTOR_HEADER} header")
    return value


def path_param(event: Dict[str, Any], name: str) -> str:
    return (event.get("pathParameters") or {})[name]


def api_handler(func: Callable) -> Callable:
    """Translate engine errors into JSON responses with a correlation id."""

    @functools.wraps(func)
    def wrapper(event, context):
        correlation_id = str(uuid.uuid4())
        try:
            status, body = func(event, context)
            body["correlation_id"] = correlation_id
            return json_response(status, body)
        except AppError as exc:
            response = to_response(exc)
            payload = json.loads(response["body"])
            payload["correlation_id"] = correlation_id
            response["body"] = json.dumps(payload)
            return response
        except PydanticValidationError as exc:
            return json_response(
                422,
                {
                    "status": "error",
                    "kind": "InvalidRequest",
                    "message": "Invalid request",
                    "errors": json.loads(exc.json()),
                    "correlation_id": correlation_id,
                },
            )
        except Exception as exc:
            logger.exception(
                "Unhandled handler failure",
                extra={"handler": func.__name__, "correlation_id": correlation_id},
            )
            return json_response(
                500,
                {
                    "status": "error",
                    "kind": "InternalError",
                    "message": "Internal server error",
                    "error": str(exc),
                    "correlation_id": correlation_id,
                },
            )

    return wrapper
