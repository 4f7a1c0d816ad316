"""Custom exceptions and helpers for consistent error responses."""

import json
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for application errors."""

    kind = "AppError"

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        ticket_id: Optional[str] = None,
        current_status: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.ticket_id = ticket_id
        self.current_status = current_status

    def to_dict(self) -> Dict[str, Any]:
        """Structured payload for API responses and log records."""
        return {
            "kind": self.kind,
            "message": self.message,
            "ticket_id": self.ticket_id,
            "current_status": self.current_status,
        }


class ValidationError(AppError):
    """Raised when the caller supplied an impossible request."""

    kind = "ValidationError"

    def __init__(self, message: str = "Invalid input", status_code: int = 422, **context):
        super().__init__(message, status_code=status_code, **context)


class UnknownCategory(ValidationError):
    kind = "UnknownCategory"

    def __init__(self, category: str):
        super().__init__(f"Unknown ticket category: {category!r}")
        self.category = category


class WrongActorRole(ValidationError):
    kind = "WrongActorRole"

    def __init__(self, message: str = "Actor is not allowed to perform this action", **context):
        super().__init__(message, status_code=403, **context)


class InvalidRequest(ValidationError):
    kind = "InvalidRequest"


class InvalidAssignee(ValidationError):
    kind = "InvalidAssignee"


class StateError(AppError):
    """Business rule violation, surfaced verbatim to the end user."""

    kind = "StateError"

    def __init__(self, message: str, **context):
        super().__init__(message, status_code=409, **context)


class InvalidTransition(StateError):
    kind = "InvalidTransition"


class NotResolved(StateError):
    kind = "NotResolved"

    def __init__(self, message: str = "Ticket must be resolved by HR first", **context):
        super().__init__(message, **context)


class DeadlinePassed(StateError):
    kind = "DeadlinePassed"

    def __init__(self, message: str = "Reopen deadline has passed", **context):
        super().__init__(message, **context)


class ReopenLimitExceeded(StateError):
    kind = "ReopenLimitExceeded"

    def __init__(self, message: str = "Maximum reopen limit reached", **context):
        super().__init__(message, **context)


class PermanentlyClosed(StateError):
    kind = "PermanentlyClosed"

    def __init__(self, message: str = "HR has permanently closed this ticket", **context):
        super().__init__(message, **context)


class AlreadyTerminal(StateError):
    kind = "AlreadyTerminal"

    def __init__(self, message: str = "Ticket is already resolved or closed", **context):
        super().__init__(message, **context)


class ConcurrentModification(AppError):
    """Lost an optimistic-lock race; safe to retry after re-reading."""

    kind = "ConcurrentModification"

    def __init__(self, message: str = "Ticket was modified concurrently", **context):
        super().__init__(message, status_code=409, **context)


class ResourceError(AppError):
    """Operational condition that needs administrator attention."""

    kind = "ResourceError"


class NoEligibleActor(ResourceError):
    kind = "NoEligibleActor"

    def __init__(self, category: str, roles=()):
        role_list = ", ".join(sorted(str(r) for r in roles))
        super().__init__(
            f"No active HR personnel for category {category!r} (roles: {role_list})",
            status_code=503,
        )
        self.category = category


class TicketNotFound(ResourceError):
    kind = "TicketNotFound"

    def __init__(self, ticket_id: str):
        super().__init__("Ticket not found", status_code=404, ticket_id=ticket_id)


class WorkloadInconsistency(ResourceError):
    kind = "WorkloadInconsistency"

    def __init__(self, actor_id: str):
        super().__init__(
            f"Workload counter for actor {actor_id} would drop below zero",
            status_code=500,
        )
        self.actor_id = actor_id


def to_response(error: AppError) -> Dict[str, Any]:
    """Convert an AppError into a Lambda proxy integration response."""
    body = {"status": "error", **error.to_dict()}
    return {
        "statusCode": error.status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
