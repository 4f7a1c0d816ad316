"""Escalation rules."""

from helpdesk.models.ticket import RESOLVED_STATUSES, Ticket


class EscalationPolicy:
    """Escalation is allowed while the ticket is neither resolved nor closed."""

    def can_escalate(self, ticket: Ticket) -> bool:
        return ticket.status not in RESOLVED_STATUSES

    def next_level(self, ticket: Ticket) -> int:
        return ticket.escalation_level + 1
