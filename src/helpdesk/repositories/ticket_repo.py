"""Ticket persistence with optimistic concurrency."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import and_, func, insert, or_, select, true, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from helpdesk.models.ticket import (
    Feedback,
    PresentAssignee,
    ResolutionStatus,
    Ticket,
    TicketStats,
    TicketStatus,
    TombstoneAssignee,
)
from helpdesk.models.requests import TicketListQuery
from helpdesk.repositories.tables import tickets
from helpdesk.utils.error_handling import ConcurrentModification, TicketNotFound

_RESOLUTION_FIELDS = (
    "resolved_by_hr",
    "resolved_by",
    "resolution_comment",
    "employee_confirmed",
    "employee_confirmed_at",
    "permanently_closed_by_hr",
    "permanently_closed_at",
    "permanently_closed_by",
    "reopen_deadline",
    "reopen_count",
    "max_reopen_allowed",
    "last_reopened_at",
)


def ticket_to_row(ticket: Ticket) -> Dict[str, Any]:
    """Flatten a Ticket into a tickets row."""
    row = ticket.model_dump(
        exclude={"resolution_status", "assigned_to", "feedback", "category", "priority", "status"}
    )
    row.update(
        category=ticket.category.value,
        priority=ticket.priority.value,
        status=ticket.status.value,
    )
    row.update(ticket.resolution_status.model_dump(include=set(_RESOLUTION_FIELDS)))

    assignee = ticket.assigned_to
    if isinstance(assignee, PresentAssignee):
        row.update(assignee_state="present", assignee_id=assignee.actor_id)
    elif isinstance(assignee, TombstoneAssignee):
        row.update(assignee_state="tombstone", assignee_id=assignee.former_actor_id)
    else:
        row.update(assignee_state=None, assignee_id=None)

    feedback = ticket.feedback
    row.update(
        feedback_rating=feedback.rating if feedback else None,
        feedback_comment=feedback.comment if feedback else None,
        feedback_submitted_at=feedback.submitted_at if feedback else None,
    )
    return row


def row_to_ticket(row) -> Ticket:
    """Rebuild a Ticket from a tickets row mapping."""
    data = dict(row)
    resolution = ResolutionStatus(**{name: data.pop(name) for name in _RESOLUTION_FIELDS})

    state = data.pop("assignee_state")
    assignee_id = data.pop("assignee_id")
    if state == "present":
        assigned_to = PresentAssignee(actor_id=assignee_id)
    elif state == "tombstone":
        assigned_to = TombstoneAssignee(former_actor_id=assignee_id)
    else:
        assigned_to = None

    rating = data.pop("feedback_rating")
    comment = data.pop("feedback_comment")
    submitted_at = data.pop("feedback_submitted_at")
    feedback = None
    if rating is not None:
        feedback = Feedback(rating=rating, comment=comment, submitted_at=submitted_at)

    return Ticket(
        **data,
        resolution_status=resolution,
        assigned_to=assigned_to,
        feedback=feedback,
    )


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


@dataclass(frozen=True)
class TicketScope:
    """
    Tickets one reader may list: their own and the ones assigned to them,
    plus non-confidential tickets in ``categories``, plus every confidential
    ticket when ``confidential`` is set. ``everything`` lifts all limits.
    """

    actor_id: str
    everything: bool = False
    categories: FrozenSet[str] = frozenset()
    confidential: bool = False

    def clause(self):
        if self.everything:
            return true()
        clauses = [
            tickets.c.created_by == self.actor_id,
            and_(tickets.c.assignee_state == "present", tickets.c.assignee_id == self.actor_id),
        ]
        if self.categories:
            clauses.append(
                and_(
                    tickets.c.category.in_(sorted(self.categories)),
                    tickets.c.is_confidential.is_(False),
                )
            )
        if self.confidential:
            clauses.append(tickets.c.is_confidential.is_(True))
        return or_(*clauses)


class TicketRepository:
    """Ticket reads and version-checked writes on one connection."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def get(self, ticket_id: str) -> Ticket:
        """Load a ticket or raise TicketNotFound."""
        row = self.conn.execute(
            select(tickets).where(tickets.c.id == ticket_id)
        ).mappings().first()
        if row is None:
            raise TicketNotFound(ticket_id)
        return row_to_ticket(row)

    def insert(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket; a taken ticket number is a lost race."""
        try:
            self.conn.execute(insert(tickets).values(**ticket_to_row(ticket)))
        except IntegrityError as exc:
            raise ConcurrentModification(
                f"Ticket number {ticket.ticket_number} is already taken",
                ticket_id=ticket.id,
                current_status=ticket.status.value,
            ) from exc
        return ticket

    def update(self, ticket: Ticket, expected_version: int) -> Ticket:
        """
        Write ``ticket`` only if the stored version still equals
        ``expected_version``; the stored version is bumped by one.
        """
        stored = ticket.model_copy(update={"version": expected_version + 1})
        values = ticket_to_row(stored)
        values.pop("id")
        result = self.conn.execute(
            update(tickets)
            .where(tickets.c.id == ticket.id)
            .where(tickets.c.version == expected_version)
            .values(**values)
        )
        if result.rowcount != 1:
            raise ConcurrentModification(
                ticket_id=ticket.id, current_status=ticket.status.value
            )
        return stored

    def list_assigned_to(self, actor_id: str) -> List[Ticket]:
        """Tickets whose live assignee is ``actor_id``."""
        rows = self.conn.execute(
            select(tickets)
            .where(tickets.c.assignee_state == "present")
            .where(tickets.c.assignee_id == actor_id)
            .order_by(tickets.c.created_at)
        ).mappings()
        return [row_to_ticket(row) for row in rows]

    def list_visible(
        self, scope: TicketScope, query: TicketListQuery
    ) -> Tuple[List[Ticket], int]:
        """Newest-first page of tickets within ``scope``, plus the match count."""
        conditions = [scope.clause()]
        if query.status is not None:
            conditions.append(tickets.c.status == query.status.value)
        if query.category:
            conditions.append(tickets.c.category == query.category)
        if query.priority is not None:
            conditions.append(tickets.c.priority == query.priority.value)
        if query.assignee_id:
            conditions.append(tickets.c.assignee_state == "present")
            conditions.append(tickets.c.assignee_id == query.assignee_id)
        if query.search:
            pattern = f"%{query.search}%"
            conditions.append(
                or_(
                    tickets.c.subject.ilike(pattern),
                    tickets.c.description.ilike(pattern),
                    tickets.c.ticket_number.ilike(pattern),
                )
            )
        where = and_(*conditions)

        total = self.conn.execute(select(func.count()).select_from(tickets).where(where)).scalar()
        rows = self.conn.execute(
            select(tickets)
            .where(where)
            .order_by(tickets.c.created_at.desc(), tickets.c.ticket_number.desc())
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
        ).mappings()
        return [row_to_ticket(row) for row in rows], total

    def stats(self, scope: TicketScope) -> TicketStats:
        """Counts by status, category and priority, and average turnaround."""
        where = scope.clause()

        def grouped(column) -> Dict[str, int]:
            rows = self.conn.execute(
                select(column, func.count().label("total"))
                .where(where)
                .group_by(column)
                .order_by(func.count().desc(), column)
            )
            return {row[0]: row.total for row in rows}

        by_status = {status.value: 0 for status in TicketStatus}
        by_status.update(grouped(tickets.c.status))

        response_hours, resolution_hours = [], []
        rows = self.conn.execute(
            select(tickets.c.created_at, tickets.c.responded_at, tickets.c.resolved_at).where(where)
        )
        for row in rows:
            if row.responded_at is not None:
                response_hours.append((row.responded_at - row.created_at).total_seconds() / 3600)
            if row.resolved_at is not None:
                resolution_hours.append((row.resolved_at - row.created_at).total_seconds() / 3600)

        return TicketStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_category=grouped(tickets.c.category),
            by_priority=grouped(tickets.c.priority),
            avg_response_hours=_mean(response_hours),
            avg_resolution_hours=_mean(resolution_hours),
        )

    def active_counts_by_assignee(self, statuses) -> Dict[str, int]:
        """Count tickets per live assignee restricted to ``statuses``."""
        rows = self.conn.execute(
            select(tickets.c.assignee_id, func.count().label("total"))
            .where(tickets.c.assignee_state == "present")
            .where(tickets.c.status.in_([s.value for s in statuses]))
            .group_by(tickets.c.assignee_id)
        )
        return {row.assignee_id: row.total for row in rows}

    def next_ticket_number(self, now: datetime) -> str:
        """
        Allocate TKT<YYYYMMDD><NNNN> after the day's highest sequence.

        The sequence widens past 9999, so numbers are compared by length
        before value.
        """
        prefix = f"TKT{now:%Y%m%d}"
        last = self.conn.execute(
            select(tickets.c.ticket_number)
            .where(tickets.c.ticket_number.like(f"{prefix}%"))
            .order_by(func.length(tickets.c.ticket_number).desc(), tickets.c.ticket_number.desc())
            .limit(1)
        ).scalar()
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"
