"""
Ticket conversation thread.

System messages are rendered here from lifecycle events; user and HR
messages are stored as written. The thread is append-only and also serves
as the escalation and audit history.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from helpdesk.models.message import EscalationRecord, MessageType, SystemAction, TicketMessage
from helpdesk.repositories.message_repo import MessageRepository


def _suffix(text: Optional[str]) -> str:
    return f": {text}" if text else ""


def render_system_text(action: SystemAction, **data) -> str:
    """Human-readable text for a system message."""
    if action is SystemAction.TICKET_CREATED:
        return f"Ticket created and assigned to {data.get('assignee') or 'HR team'}"
    if action is SystemAction.STATUS_CHANGED:
        return f'Status changed from "{data["previous"]}" to "{data["new"]}"'
    if action is SystemAction.ASSIGNED:
        return f"Ticket assigned to {data['assignee']}"
    if action is SystemAction.REASSIGNED:
        return f"Ticket reassigned from {data['previous']} to {data['new']}"
    if action is SystemAction.ASSIGNEE_REMOVED:
        return f"Assigned HR personnel {data['previous']} is no longer available"
    if action is SystemAction.ESCALATED:
        return f"Ticket escalated to level {data['level']} ({data['reason']})"
    if action is SystemAction.HR_RESOLVED:
        return (
            f"HR has resolved this ticket{_suffix(data.get('comment'))}. "
            "Please confirm if the issue is fixed or reopen if needed."
        )
    if action is SystemAction.EMPLOYEE_CONFIRMED:
        return "Employee has confirmed the resolution. This ticket is now closed."
    if action is SystemAction.EMPLOYEE_REOPENED:
        return f"Employee has reopened this ticket{_suffix(data.get('reason'))}. Ticket reassigned to HR."
    if action is SystemAction.FEEDBACK_SUBMITTED:
        return f"Employee feedback submitted (Rating: {data['rating']}/5)"
    return f"System action: {action.value}"


def system_message(
    ticket_id: str,
    action: SystemAction,
    at: datetime,
    triggered_by: Optional[str] = None,
    previous_value: Optional[str] = None,
    new_value: Optional[str] = None,
    detail: Optional[str] = None,
    **data,
) -> TicketMessage:
    """Build (but do not store) a system message."""
    return TicketMessage(
        ticket_id=ticket_id,
        author_id=triggered_by,
        message_type=MessageType.SYSTEM_MESSAGE,
        body=render_system_text(action, **data),
        action=action,
        previous_value=previous_value,
        new_value=new_value,
        detail=detail,
        created_at=at,
    )


def internal_note(ticket_id: str, author_id: str, body: str, at: datetime) -> TicketMessage:
    return TicketMessage(
        ticket_id=ticket_id,
        author_id=author_id,
        message_type=MessageType.INTERNAL_NOTE,
        body=body,
        is_internal=True,
        created_at=at,
    )


def escalation_history(messages: Iterable[TicketMessage]) -> List[EscalationRecord]:
    """Escalation records in the order they happened."""
    return [
        EscalationRecord(
            level=int(message.new_value),
            reason=message.detail or "",
            escalated_by=message.author_id,
            escalated_at=message.created_at,
        )
        for message in messages
        if message.action is SystemAction.ESCALATED
    ]


class ConversationLog:
    """Append-only view over a ticket's messages."""

    def __init__(self, repository: MessageRepository):
        self.repository = repository

    def append(self, message: TicketMessage) -> TicketMessage:
        return self.repository.append(message)

    def extend(self, messages: Iterable[TicketMessage]) -> List[TicketMessage]:
        return [self.repository.append(message) for message in messages]

    def thread(self, ticket_id: str, include_internal: bool = True) -> List[TicketMessage]:
        return self.repository.list_for_ticket(ticket_id, include_internal=include_internal)
