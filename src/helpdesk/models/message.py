"""Conversation log models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class MessageType(str, Enum):
    USER_MESSAGE = "user_message"
    HR_RESPONSE = "hr_response"
    SYSTEM_MESSAGE = "system_message"
    INTERNAL_NOTE = "internal_note"


class SystemAction(str, Enum):
    """Lifecycle events recorded as system messages."""

    TICKET_CREATED = "ticket_created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    REASSIGNED = "reassigned"
    ASSIGNEE_REMOVED = "assignee_removed"
    ESCALATED = "escalated"
    HR_RESOLVED = "hr_resolved"
    EMPLOYEE_CONFIRMED = "employee_confirmed"
    EMPLOYEE_REOPENED = "employee_reopened"
    FEEDBACK_SUBMITTED = "feedback_submitted"


class TicketMessage(BaseModel):
    """One entry of a ticket's append-only thread."""

    id: Optional[int] = None
    ticket_id: str
    author_id: Optional[str] = None
    message_type: MessageType
    body: str
    is_internal: bool = False
    action: Optional[SystemAction] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    detail: Optional[str] = None
    created_at: datetime


class EscalationRecord(BaseModel):
    """Escalation history entry derived from the conversation log."""

    level: int
    reason: str
    escalated_by: Optional[str] = None
    escalated_at: datetime
