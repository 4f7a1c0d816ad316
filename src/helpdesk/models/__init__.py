"""Pydantic models for the helpdesk engine and its API payloads."""

from helpdesk.models.actor import (  # noqa: F401
    HR_ROLES,
    Actor,
    Role,
    WorkloadSnapshot,
)
from helpdesk.models.message import (  # noqa: F401
    EscalationRecord,
    MessageType,
    SystemAction,
    TicketMessage,
)
from helpdesk.models.routing import Category, RoutingEntry  # noqa: F401
from helpdesk.models.ticket import (  # noqa: F401
    ACTIVE_WORK_STATUSES,
    Feedback,
    PresentAssignee,
    Priority,
    ResolutionStatus,
    Ticket,
    TicketPage,
    TicketStats,
    TicketStatus,
    TombstoneAssignee,
)
