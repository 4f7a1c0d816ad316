"""Ticket models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from helpdesk.models.routing import Category


class TicketStatus(str, Enum):
    """Primary lifecycle state."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    PENDING = "Pending"
    RESOLVED = "Resolved"
    CLOSED = "Closed"
    ESCALATED = "Escalated"
    REOPENED = "Reopened"


class Priority(str, Enum):
    """Informational only; never changes lifecycle rules."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# States in which the current assignee is actively carrying the ticket.
ACTIVE_WORK_STATUSES = frozenset(
    {
        TicketStatus.OPEN,
        TicketStatus.IN_PROGRESS,
        TicketStatus.PENDING,
        TicketStatus.ESCALATED,
        TicketStatus.REOPENED,
    }
)

RESOLVED_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})


class PresentAssignee(BaseModel):
    """Assignee that refers to a live actor."""

    kind: Literal["present"] = "present"
    actor_id: str


class TombstoneAssignee(BaseModel):
    """Assignee whose actor record was deleted."""

    kind: Literal["tombstone"] = "tombstone"
    former_actor_id: Optional[str] = None


AssigneeRef = Annotated[
    Union[PresentAssignee, TombstoneAssignee], Field(discriminator="kind")
]


class ResolutionStatus(BaseModel):
    """Confirmation and reopen bookkeeping."""

    resolved_by_hr: bool = False
    resolved_by: Optional[str] = None
    resolution_comment: Optional[str] = None
    employee_confirmed: bool = False
    employee_confirmed_at: Optional[datetime] = None
    permanently_closed_by_hr: bool = False
    permanently_closed_at: Optional[datetime] = None
    permanently_closed_by: Optional[str] = None
    reopen_deadline: Optional[datetime] = None
    reopen_count: int = Field(default=0, ge=0)
    max_reopen_allowed: int = Field(default=3, ge=0)
    last_reopened_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_reopen_count(self) -> "ResolutionStatus":
        if self.reopen_count > self.max_reopen_allowed:
            raise ValueError("reopen_count cannot exceed max_reopen_allowed")
        return self


class Feedback(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    submitted_at: datetime


class Ticket(BaseModel):
    """A helpdesk ticket and its lifecycle state."""

    id: str
    ticket_number: str
    category: Category
    subcategory: Optional[str] = None
    subject: Optional[str] = None
    description: str
    priority: Priority = Priority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    resolution_status: ResolutionStatus = Field(default_factory=ResolutionStatus)
    escalation_level: int = Field(default=0, ge=0)
    created_by: str
    assigned_to: Optional[AssigneeRef] = None
    original_assignee_id: Optional[str] = None
    is_manually_assigned: bool = False
    is_confidential: bool = False
    feedback: Optional[Feedback] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    version: int = 1

    @model_validator(mode="after")
    def validate_lifecycle(self) -> "Ticket":
        if self.status in RESOLVED_STATUSES and self.resolved_at is None:
            raise ValueError(f"{self.status.value} tickets must carry resolved_at")
        deadline = self.resolution_status.reopen_deadline
        if deadline is not None and self.resolved_at is not None and deadline < self.resolved_at:
            raise ValueError("reopen_deadline cannot precede resolved_at")
        return self

    @property
    def assignee_id(self) -> Optional[str]:
        """Live assignee id, or None when unassigned or tombstoned."""
        if isinstance(self.assigned_to, PresentAssignee):
            return self.assigned_to.actor_id
        return None

    @property
    def is_permanently_closed(self) -> bool:
        return self.resolution_status.permanently_closed_by_hr

    @property
    def workload_holder(self) -> Optional[str]:
        """Actor whose workload this ticket counts towards, if any."""
        if self.status in ACTIVE_WORK_STATUSES:
            return self.assignee_id
        return None


class TicketPage(BaseModel):
    """One page of a ticket listing."""

    tickets: List[Ticket]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit)


class TicketStats(BaseModel):
    """Ticket counts visible to one reader."""

    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    avg_response_hours: Optional[float] = None
    avg_resolution_hours: Optional[float] = None
