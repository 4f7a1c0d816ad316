"""
Ticket lifecycle rules.

Every operation takes the current ticket, the acting user and the time of
the request, checks its guards and returns a ``Transition``: the next
ticket value plus the conversation entries it produces. Nothing is written
here; the engine commits a transition atomically with the workload change
it implies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from helpdesk.models.actor import Actor
from helpdesk.models.message import MessageType, SystemAction, TicketMessage
from helpdesk.models.ticket import (
    RESOLVED_STATUSES,
    Feedback,
    PresentAssignee,
    Ticket,
    TicketStatus,
    TombstoneAssignee,
)
from helpdesk.services.conversation_log import internal_note, system_message
from helpdesk.services.escalation_policy import EscalationPolicy
from helpdesk.utils.error_handling import (
    AlreadyTerminal,
    DeadlinePassed,
    InvalidAssignee,
    InvalidRequest,
    InvalidTransition,
    NotResolved,
    PermanentlyClosed,
    ReopenLimitExceeded,
    WrongActorRole,
)
from helpdesk.utils.validators import clean_text, ensure_present

DEFAULT_REOPEN_WINDOW = timedelta(days=3)
DEFAULT_ESCALATION_REASON = "Manual escalation"

# Free-form status changes are accepted from these states.
SET_STATUS_SOURCES = frozenset(
    {
        TicketStatus.OPEN,
        TicketStatus.IN_PROGRESS,
        TicketStatus.PENDING,
        TicketStatus.ESCALATED,
        TicketStatus.REOPENED,
    }
)

SET_STATUS_TARGETS = frozenset(
    {
        TicketStatus.OPEN,
        TicketStatus.IN_PROGRESS,
        TicketStatus.PENDING,
        TicketStatus.RESOLVED,
        TicketStatus.CLOSED,
        TicketStatus.REOPENED,
    }
)


@dataclass
class Transition:
    """Next ticket value and the messages it appends."""

    ticket: Ticket
    messages: List[TicketMessage] = field(default_factory=list)


def effective_reopen_deadline(
    ticket: Ticket, window: timedelta = DEFAULT_REOPEN_WINDOW
) -> Optional[datetime]:
    """
    Stored reopen deadline, or ``resolved_at + window`` for records that
    predate the stored field. Never written back.
    """
    stored = ticket.resolution_status.reopen_deadline
    if stored is not None:
        return stored
    if ticket.resolved_at is None:
        return None
    return ticket.resolved_at + window


def _evolve(ticket: Ticket, now: datetime, resolution: Optional[dict] = None, **changes) -> Ticket:
    """Validated copy of ``ticket`` with ``changes`` applied."""
    data = ticket.model_dump()
    if resolution:
        data["resolution_status"] = {**data["resolution_status"], **resolution}
    data.update(changes)
    data["updated_at"] = now
    return Ticket.model_validate(data)


def _context(ticket: Ticket) -> dict:
    return {"ticket_id": ticket.id, "current_status": ticket.status.value}


class TicketStateMachine:
    """Guards and effects of every ticket lifecycle operation."""

    def __init__(
        self,
        escalation_policy: Optional[EscalationPolicy] = None,
        reopen_window: timedelta = DEFAULT_REOPEN_WINDOW,
    ):
        self.escalation_policy = escalation_policy or EscalationPolicy()
        self.reopen_window = reopen_window

    # -- guards --------------------------------------------------------------

    def _ensure_mutable(self, ticket: Ticket) -> None:
        if ticket.is_permanently_closed:
            raise PermanentlyClosed(**_context(ticket))

    def _ensure_hr_or_creator(self, ticket: Ticket, actor: Actor) -> None:
        if not (actor.is_hr or actor.id == ticket.created_by):
            raise WrongActorRole(
                "Only HR personnel or the ticket creator can update this ticket",
                **_context(ticket),
            )

    def _ensure_hr(self, ticket: Ticket, actor: Actor, message: str) -> None:
        if not actor.is_hr:
            raise WrongActorRole(message, **_context(ticket))

    def _ensure_employee_creator(self, ticket: Ticket, actor: Actor, message: str) -> None:
        if actor.id != ticket.created_by or actor.is_hr:
            raise WrongActorRole(message, **_context(ticket))

    # -- transitions ---------------------------------------------------------

    def set_status(
        self,
        ticket: Ticket,
        actor: Actor,
        new_status: TicketStatus,
        now: datetime,
        reason: Optional[str] = None,
    ) -> Transition:
        """Free-form status change by HR or the creator."""
        self._ensure_mutable(ticket)
        self._ensure_hr_or_creator(ticket, actor)
        if ticket.status not in SET_STATUS_SOURCES:
            raise InvalidTransition(
                f"Status cannot be changed directly from {ticket.status.value}",
                **_context(ticket),
            )
        if new_status not in SET_STATUS_TARGETS:
            raise InvalidTransition(
                f"Status cannot be set to {new_status.value} directly",
                **_context(ticket),
            )
        if new_status == ticket.status:
            raise InvalidTransition(
                f"Ticket is already {new_status.value}", **_context(ticket)
            )

        changes = {"status": new_status}
        resolution = {}
        if new_status in RESOLVED_STATUSES and ticket.resolved_at is None:
            changes["resolved_at"] = now
        if new_status == TicketStatus.CLOSED:
            changes["closed_at"] = ticket.closed_at or now
            if actor.is_hr:
                resolution = {
                    "permanently_closed_by_hr": True,
                    "permanently_closed_at": now,
                    "permanently_closed_by": actor.id,
                }

        updated = _evolve(ticket, now, resolution=resolution, **changes)
        reason = clean_text(reason)
        messages = [
            system_message(
                ticket.id,
                SystemAction.STATUS_CHANGED,
                now,
                triggered_by=actor.id,
                previous_value=ticket.status.value,
                new_value=new_status.value,
                detail=reason,
                previous=ticket.status.value,
                new=new_status.value,
            )
        ]
        if reason:
            messages.append(
                internal_note(ticket.id, actor.id, f"Status update reason: {reason}", now)
            )
        return Transition(updated, messages)

    def escalate(
        self, ticket: Ticket, actor: Actor, now: datetime, reason: Optional[str] = None
    ) -> Transition:
        """Raise the escalation level; the assignee is left unchanged."""
        self._ensure_mutable(ticket)
        self._ensure_hr_or_creator(ticket, actor)
        if not self.escalation_policy.can_escalate(ticket):
            raise AlreadyTerminal(**_context(ticket))

        level = self.escalation_policy.next_level(ticket)
        reason = clean_text(reason) or DEFAULT_ESCALATION_REASON
        updated = _evolve(ticket, now, status=TicketStatus.ESCALATED, escalation_level=level)
        message = system_message(
            ticket.id,
            SystemAction.ESCALATED,
            now,
            triggered_by=actor.id,
            previous_value=str(ticket.escalation_level),
            new_value=str(level),
            detail=reason,
            level=level,
            reason=reason,
        )
        return Transition(updated, [message])

    def resolve_by_hr(
        self, ticket: Ticket, actor: Actor, now: datetime, comment: Optional[str] = None
    ) -> Transition:
        """Mark resolved and open the employee's reopen window."""
        self._ensure_mutable(ticket)
        self._ensure_hr(ticket, actor, "Only HR personnel can resolve tickets")
        if ticket.status in RESOLVED_STATUSES:
            raise InvalidTransition(
                f"Ticket is already {ticket.status.value}", **_context(ticket)
            )

        comment = clean_text(comment)
        deadline = ticket.resolution_status.reopen_deadline
        if deadline is None or deadline < now:
            deadline = now + self.reopen_window

        updated = _evolve(
            ticket,
            now,
            resolution={
                "resolved_by_hr": True,
                "resolved_by": actor.id,
                "resolution_comment": comment,
                "employee_confirmed": False,
                "employee_confirmed_at": None,
                "reopen_deadline": deadline,
            },
            status=TicketStatus.RESOLVED,
            resolved_at=now,
            responded_at=ticket.responded_at or now,
            closed_at=None,
        )
        message = system_message(
            ticket.id,
            SystemAction.HR_RESOLVED,
            now,
            triggered_by=actor.id,
            previous_value=ticket.status.value,
            new_value=TicketStatus.RESOLVED.value,
            detail=comment,
            comment=comment,
        )
        return Transition(updated, [message])

    def confirm_by_employee(self, ticket: Ticket, actor: Actor, now: datetime) -> Transition:
        """Creator accepts the resolution; the ticket closes."""
        self._ensure_mutable(ticket)
        self._ensure_employee_creator(
            ticket, actor, "Only the ticket creator can confirm resolution"
        )
        if ticket.status != TicketStatus.RESOLVED:
            raise NotResolved(**_context(ticket))

        updated = _evolve(
            ticket,
            now,
            resolution={"employee_confirmed": True, "employee_confirmed_at": now},
            status=TicketStatus.CLOSED,
            closed_at=now,
        )
        message = system_message(
            ticket.id,
            SystemAction.EMPLOYEE_CONFIRMED,
            now,
            triggered_by=actor.id,
            previous_value=ticket.status.value,
            new_value=TicketStatus.CLOSED.value,
        )
        return Transition(updated, [message])

    def reopen_by_employee(
        self,
        ticket: Ticket,
        actor: Actor,
        now: datetime,
        reason: Optional[str],
        pick_assignee: Callable[[Ticket], str],
    ) -> Transition:
        """
        Creator contests the resolution within the reopen window.

        ``pick_assignee`` is only called once every guard has passed and
        returns the actor id that takes the ticket back.
        """
        self._ensure_mutable(ticket)
        self._ensure_employee_creator(ticket, actor, "Only the ticket creator can reopen the ticket")
        ensure_present(reason, "reason", ticket_id=ticket.id)
        if ticket.status not in RESOLVED_STATUSES:
            raise NotResolved(**_context(ticket))

        resolution = ticket.resolution_status
        if resolution.reopen_count >= resolution.max_reopen_allowed:
            raise ReopenLimitExceeded(**_context(ticket))
        deadline = effective_reopen_deadline(ticket, self.reopen_window)
        if deadline is None or now > deadline:
            raise DeadlinePassed(**_context(ticket))

        reason = clean_text(reason)
        previous_assignee = ticket.assignee_id
        assignee_id = pick_assignee(ticket)
        updated = _evolve(
            ticket,
            now,
            resolution={
                "reopen_count": resolution.reopen_count + 1,
                "last_reopened_at": now,
                "employee_confirmed": False,
                "employee_confirmed_at": None,
                "reopen_deadline": None,
            },
            status=TicketStatus.REOPENED,
            closed_at=None,
            assigned_to=PresentAssignee(actor_id=assignee_id),
        )
        messages = [
            system_message(
                ticket.id,
                SystemAction.EMPLOYEE_REOPENED,
                now,
                triggered_by=actor.id,
                previous_value=ticket.status.value,
                new_value=TicketStatus.REOPENED.value,
                detail=reason,
                reason=reason,
            )
        ]
        if previous_assignee != assignee_id:
            messages.append(self._assignment_message(ticket, previous_assignee, assignee_id, actor.id, now))
        return Transition(updated, messages)

    def reassign(
        self,
        ticket: Ticket,
        actor: Actor,
        assignee: Actor,
        now: datetime,
        reason: Optional[str] = None,
    ) -> Transition:
        """HR hands the ticket to another HR actor."""
        self._ensure_mutable(ticket)
        self._ensure_hr(ticket, actor, "Only HR personnel can assign tickets")
        if not (assignee.is_hr and assignee.is_active):
            raise InvalidAssignee("Invalid assignee", **_context(ticket))
        if ticket.assignee_id == assignee.id:
            raise InvalidRequest(
                f"Ticket is already assigned to {assignee.id}", **_context(ticket)
            )

        updated = _evolve(ticket, now, assigned_to=PresentAssignee(actor_id=assignee.id))
        messages = [self._assignment_message(ticket, ticket.assignee_id, assignee.id, actor.id, now)]
        reason = clean_text(reason)
        if reason:
            messages.append(internal_note(ticket.id, actor.id, f"Assignment reason: {reason}", now))
        return Transition(updated, messages)

    # -- non-lifecycle updates -----------------------------------------------

    def tombstone_assignee(self, ticket: Ticket, now: datetime) -> Transition:
        """Replace a deleted assignee with an explicit tombstone."""
        former = ticket.assignee_id
        if former is None:
            raise InvalidRequest("Ticket has no live assignee", **_context(ticket))
        updated = _evolve(ticket, now, assigned_to=TombstoneAssignee(former_actor_id=former))
        message = system_message(
            ticket.id,
            SystemAction.ASSIGNEE_REMOVED,
            now,
            previous_value=former,
            previous=former,
        )
        return Transition(updated, [message])

    def add_message(
        self,
        ticket: Ticket,
        actor: Actor,
        body: str,
        now: datetime,
        internal: bool = False,
    ) -> Transition:
        """
        Append a conversation message. The first HR reply stamps
        ``responded_at`` and moves an Open ticket to In Progress.
        """
        self._ensure_hr_or_creator(ticket, actor)
        ensure_present(body, "message", ticket_id=ticket.id)
        if internal and not actor.is_hr:
            raise WrongActorRole("Only HR personnel can add internal notes", **_context(ticket))

        body = body.strip()
        if internal:
            return Transition(ticket, [internal_note(ticket.id, actor.id, body, now)])

        message_type = MessageType.HR_RESPONSE if actor.is_hr else MessageType.USER_MESSAGE
        messages = [
            TicketMessage(
                ticket_id=ticket.id,
                author_id=actor.id,
                message_type=message_type,
                body=body,
                created_at=now,
            )
        ]
        if message_type is not MessageType.HR_RESPONSE:
            return Transition(_evolve(ticket, now), messages)

        changes = {"responded_at": ticket.responded_at or now}
        if ticket.status == TicketStatus.OPEN:
            changes["status"] = TicketStatus.IN_PROGRESS
            messages.append(
                system_message(
                    ticket.id,
                    SystemAction.STATUS_CHANGED,
                    now,
                    triggered_by=actor.id,
                    previous_value=TicketStatus.OPEN.value,
                    new_value=TicketStatus.IN_PROGRESS.value,
                    previous=TicketStatus.OPEN.value,
                    new=TicketStatus.IN_PROGRESS.value,
                )
            )
        return Transition(_evolve(ticket, now, **changes), messages)

    def submit_feedback(
        self,
        ticket: Ticket,
        actor: Actor,
        rating: int,
        now: datetime,
        comment: Optional[str] = None,
    ) -> Transition:
        if actor.id != ticket.created_by:
            raise WrongActorRole("Only ticket creator can submit feedback", **_context(ticket))
        if ticket.status not in RESOLVED_STATUSES:
            raise NotResolved("Can only provide feedback for resolved tickets", **_context(ticket))
        if not 1 <= rating <= 5:
            raise InvalidRequest("Rating must be between 1 and 5", **_context(ticket))

        feedback = Feedback(rating=rating, comment=clean_text(comment), submitted_at=now)
        updated = _evolve(ticket, now, feedback=feedback)
        message = system_message(
            ticket.id,
            SystemAction.FEEDBACK_SUBMITTED,
            now,
            triggered_by=actor.id,
            new_value=str(rating),
            detail=feedback.comment,
            rating=rating,
        )
        return Transition(updated, [message])

    @staticmethod
    def _assignment_message(
        ticket: Ticket,
        previous: Optional[str],
        new: str,
        triggered_by: str,
        now: datetime,
    ) -> TicketMessage:
        if previous is None:
            return system_message(
                ticket.id,
                SystemAction.ASSIGNED,
                now,
                triggered_by=triggered_by,
                new_value=new,
                assignee=new,
            )
        return system_message(
            ticket.id,
            SystemAction.REASSIGNED,
            now,
            triggered_by=triggered_by,
            previous_value=previous,
            new_value=new,
            previous=previous,
            new=new,
        )
