"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

Path parameters are extracted here so every handler reads them from
``event["pathParameters"]`` the same way regardless of how the API is
deployed.
"""

from typing import Callable, Dict, Tuple
from urllib.parse import unquote
import json
import re

from . import health_check, tickets, workload


def _response(status: int, body: Dict) -> Dict:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


_TICKET = r"/tickets/(?P<id>[^/]+)"

# Route patterns are matched in order against "<METHOD> <path>".
ROUTES: Tuple[Tuple[str, str, str], ...] = (
    ("GET", r"/health", "health_check.lambda_handler"),
    ("POST", r"/tickets", "tickets.create_handler"),
    ("GET", r"/tickets", "tickets.list_handler"),
    ("GET", r"/tickets/stats", "tickets.stats_handler"),
    ("GET", _TICKET, "tickets.get_handler"),
    ("POST", _TICKET + r"/status", "tickets.status_handler"),
    ("POST", _TICKET + r"/resolve", "tickets.resolve_handler"),
    ("POST", _TICKET + r"/confirm", "tickets.confirm_handler"),
    ("POST", _TICKET + r"/reopen", "tickets.reopen_handler"),
    ("POST", _TICKET + r"/escalate", "tickets.escalate_handler"),
    ("POST", _TICKET + r"/assign", "tickets.assign_handler"),
    ("POST", _TICKET + r"/messages", "tickets.add_message_handler"),
    ("GET", _TICKET + r"/messages", "tickets.list_messages_handler"),
    ("POST", _TICKET + r"/feedback", "tickets.feedback_handler"),
    ("GET", _TICKET + r"/escalations", "tickets.escalations_handler"),
    ("GET", r"/workload", "workload.workload_handler"),
    ("GET", r"/categories/(?P<category>.+)/personnel", "workload.personnel_handler"),
)

_COMPILED = tuple((method, re.compile(f"^{pattern}/?$"), target) for method, pattern, target in ROUTES)

_MODULES = {"health_check": health_check, "tickets": tickets, "workload": workload}


def _resolve(target: str) -> Callable:
    # Looked up at call time so tests can monkeypatch module attributes.
    module_name, attr = target.split(".")
    return getattr(_MODULES[module_name], attr)


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API.

    The event contains the HTTP method and path; we route it to the correct
    handler while keeping shared setup (logging, error handling) centralized.
    """
    method = event.get("requestContext", {}).get("http", {}).get("method", "").upper()
    path = event.get("requestContext", {}).get("http", {}).get("path", "")

    for route_method, pattern, target in _COMPILED:
        if route_method != method:
            continue
        match = pattern.match(path)
        if match:
            params = {key: unquote(value) for key, value in match.groupdict().items()}
            if params:
                event = {**event, "pathParameters": {**(event.get("pathParameters") or {}), **params}}
            return _resolve(target)(event, context)

    return _response(404, {"message": "Route not found", "route": f"{method} {path}"})
