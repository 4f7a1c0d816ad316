"""
Ticket lifecycle handlers.

Each handler validates its payload, resolves the acting user from the
request headers and delegates to the engine; the engine owns every rule.
"""

from __future__ import annotations

from helpdesk.handlers.common import actor_id, api_handler, get_service, parse_body, path_param
from helpdesk.models.requests import (
    AssignRequest,
    CreateTicketRequest,
    EscalateRequest,
    FeedbackRequest,
    MessageRequest,
    ReopenRequest,
    ResolveRequest,
    StatusUpdateRequest,
    TicketListQuery,
)


def _ticket_body(message: str, ticket) -> dict:
    return {"message": message, "ticket": ticket.model_dump(mode="json")}


@api_handler
def create_handler(event, context):
    """Handle POST /tickets."""
    request = CreateTicketRequest.model_validate(parse_body(event))
    ticket = get_service().create_ticket(
        category=request.category,
        description=request.description,
        creator_id=actor_id(event),
        priority=request.priority,
        subcategory=request.subcategory,
        subject=request.subject,
        manual_assignee_id=request.manual_assignee_id,
    )
    return 201, _ticket_body("Ticket created successfully", ticket)


@api_handler
def get_handler(event, context):
    """Handle GET /tickets/{id}."""
    ticket = get_service().get_ticket(path_param(event, "id"), actor_id(event))
    return 200, {"ticket": ticket.model_dump(mode="json")}


@api_handler
def status_handler(event, context):
    """Handle POST /tickets/{id}/status."""
    request = StatusUpdateRequest.model_validate(parse_body(event))
    ticket = get_service().set_status(
        path_param(event, "id"), request.status, actor_id(event), reason=request.reason
    )
    return 200, _ticket_body("Ticket status updated successfully", ticket)


@api_handler
def resolve_handler(event, context):
    """Handle POST /tickets/{id}/resolve."""
    request = ResolveRequest.model_validate(parse_body(event))
    ticket = get_service().resolve_by_hr(path_param(event, "id"), actor_id(event), request.comment)
    return 200, _ticket_body("Ticket resolved by HR. Employee can now confirm or reopen.", ticket)


@api_handler
def confirm_handler(event, context):
    """Handle POST /tickets/{id}/confirm."""
    ticket = get_service().confirm_by_employee(path_param(event, "id"), actor_id(event))
    return 200, _ticket_body("Ticket confirmed and closed successfully", ticket)


@api_handler
def reopen_handler(event, context):
    """Handle POST /tickets/{id}/reopen."""
    request = ReopenRequest.model_validate(parse_body(event))
    ticket = get_service().reopen_by_employee(path_param(event, "id"), actor_id(event), request.reason)
    return 200, _ticket_body("Ticket reopened successfully", ticket)


@api_handler
def escalate_handler(event, context):
    """Handle POST /tickets/{id}/escalate."""
    request = EscalateRequest.model_validate(parse_body(event))
    ticket = get_service().escalate(path_param(event, "id"), actor_id(event), request.reason)
    return 200, _ticket_body("Ticket escalated successfully", ticket)


@api_handler
def assign_handler(event, context):
    """Handle POST /tickets/{id}/assign."""
    request = AssignRequest.model_validate(parse_body(event))
    ticket = get_service().reassign(
        path_param(event, "id"), actor_id(event), request.assignee_id, reason=request.reason
    )
    return 200, _ticket_body("Ticket assigned successfully", ticket)


@api_handler
def add_message_handler(event, context):
    """Handle POST /tickets/{id}/messages."""
    request = MessageRequest.model_validate(parse_body(event))
    ticket = get_service().add_message(
        path_param(event, "id"), actor_id(event), request.body, internal=request.internal
    )
    return 201, _ticket_body("Message added successfully", ticket)


@api_handler
def list_messages_handler(event, context):
    """Handle GET /tickets/{id}/messages."""
    messages = get_service().get_conversation(path_param(event, "id"), actor_id(event))
    return 200, {"messages": [m.model_dump(mode="json") for m in messages]}


@api_handler
def feedback_handler(event, context):
    """Handle POST /tickets/{id}/feedback."""
    request = FeedbackRequest.model_validate(parse_body(event))
    ticket = get_service().submit_feedback(
        path_param(event, "id"), actor_id(event), request.rating, comment=request.comment
    )
    return 200, {
        "message": "Feedback submitted successfully",
        "feedback": ticket.feedback.model_dump(mode="json"),
    }


@api_handler
def list_handler(event, context):
    """Handle GET /tickets?status=&category=&priority=&assignee_id=&search=&page=&limit=."""
    query = TicketListQuery.model_validate(event.get("queryStringParameters") or {})
    page = get_service().list_tickets(actor_id(event), query)
    return 200, {
        "tickets": [ticket.model_dump(mode="json") for ticket in page.tickets],
        "pagination": {
            "current": page.page,
            "pages": page.pages,
            "total": page.total,
            "limit": page.limit,
        },
    }


@api_handler
def stats_handler(event, context):
    """Handle GET /tickets/stats."""
    stats = get_service().ticket_stats(actor_id(event))
    return 200, {"stats": stats.model_dump(mode="json")}


@api_handler
def escalations_handler(event, context):
    """Handle GET /tickets/{id}/escalations."""
    history = get_service().get_escalation_history(path_param(event, "id"), actor_id(event))
    return 200, {"escalations": [record.model_dump(mode="json") for record in history]}
