"""
Helpdesk engine.

Boundary operations for ticket creation and lifecycle transitions. Each
call runs in one store transaction: the ticket is read, the state machine
evaluates its guards, and the ticket write, workload counters and
conversation entries commit together. A lost optimistic-lock race is
retried after re-reading the ticket so the guard sees the winner's state.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from helpdesk.config.settings import Settings
from helpdesk.models.actor import Actor, OVERSIGHT_ROLES, Role, WorkloadSnapshot
from helpdesk.models.message import EscalationRecord, SystemAction, TicketMessage
from helpdesk.models.requests import TicketListQuery
from helpdesk.models.routing import Category
from helpdesk.models.ticket import (
    ACTIVE_WORK_STATUSES,
    Priority,
    PresentAssignee,
    ResolutionStatus,
    Ticket,
    TicketPage,
    TicketStats,
    TicketStatus,
)
from helpdesk.repositories.store import StoreSession, TicketStore
from helpdesk.repositories.ticket_repo import TicketScope
from helpdesk.services.assignment_resolver import AssignedActor, AssignmentResolver
from helpdesk.services.conversation_log import ConversationLog, escalation_history, system_message
from helpdesk.services.escalation_policy import EscalationPolicy
from helpdesk.services.routing_table import RoutingTable, parse_category
from helpdesk.services.state_machine import TicketStateMachine, Transition
from helpdesk.utils.clock import Clock, utc_now
from helpdesk.utils.error_handling import (
    AppError,
    ConcurrentModification,
    InvalidAssignee,
    InvalidRequest,
    ResourceError,
    WrongActorRole,
)
from helpdesk.utils.logging_config import get_logger
from helpdesk.utils.validators import clean_text, ensure_present

logger = get_logger(__name__)

ApplyFn = Callable[[StoreSession, Ticket, Actor], Transition]

CONFIDENTIAL_VIEWERS = frozenset({Role.HR_BP}) | OVERSIGHT_ROLES


class HelpdeskService:
    """Ticket lifecycle and assignment engine."""

    def __init__(
        self,
        store: TicketStore,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        routing_table: Optional[RoutingTable] = None,
    ):
        self.store = store
        self.settings = settings or Settings()
        self.clock = clock
        self.routing_table = routing_table or RoutingTable()
        self.resolver = AssignmentResolver(self.routing_table)
        self.escalation_policy = EscalationPolicy()
        self.state_machine = TicketStateMachine(
            escalation_policy=self.escalation_policy,
            reopen_window=timedelta(days=self.settings.reopen_window_days),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "HelpdeskService":
        store = TicketStore.from_settings(settings)
        store.create_schema()
        return cls(store, settings=settings)

    # -- creation ------------------------------------------------------------

    def create_ticket(
        self,
        category: str,
        description: str,
        creator_id: str,
        priority: Priority = Priority.MEDIUM,
        subcategory: Optional[str] = None,
        subject: Optional[str] = None,
        manual_assignee_id: Optional[str] = None,
    ) -> Ticket:
        """Route and persist a new Open ticket."""
        attempts = self.settings.conflict_retries + 1
        try:
            parsed = parse_category(category)
            ensure_present(description, "description")
            for attempt in range(1, attempts + 1):
                try:
                    ticket, assigned = self._insert_ticket(
                        parsed,
                        description.strip(),
                        creator_id,
                        priority,
                        clean_text(subcategory),
                        clean_text(subject),
                        manual_assignee_id,
                    )
                    break
                except ConcurrentModification:
                    if attempt == attempts:
                        raise
                    logger.warning(
                        "Ticket number taken, retrying",
                        extra={"operation": "create_ticket", "attempt": attempt},
                    )
        except AppError as exc:
            self._log_rejection("create_ticket", exc, actor_id=creator_id)
            raise

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "ticket_number": ticket.ticket_number,
                "category": parsed.value,
                "assignee_id": assigned.actor.id,
                "manual": assigned.is_manually_assigned,
            },
        )
        return ticket

    def _insert_ticket(
        self,
        category: Category,
        description: str,
        creator_id: str,
        priority: Priority,
        subcategory: Optional[str],
        subject: Optional[str],
        manual_assignee_id: Optional[str],
    ) -> Tuple[Ticket, AssignedActor]:
        entry = self.routing_table.roles_for(category)
        with self.store.transaction() as session:
            creator = self._require_actor(session, creator_id)
            assigned = self.resolver.resolve(category, session, manual_assignee_id)
            now = self.clock()
            ticket = Ticket(
                id=uuid.uuid4().hex,
                ticket_number=session.tickets.next_ticket_number(now),
                category=category,
                subcategory=subcategory,
                subject=subject,
                description=description,
                priority=priority,
                status=TicketStatus.OPEN,
                resolution_status=ResolutionStatus(
                    max_reopen_allowed=self.settings.max_reopen_allowed
                ),
                created_by=creator.id,
                assigned_to=PresentAssignee(actor_id=assigned.actor.id),
                original_assignee_id=assigned.actor.id,
                is_manually_assigned=assigned.is_manually_assigned,
                is_confidential=entry.confidential,
                created_at=now,
                updated_at=now,
            )
            session.tickets.insert(ticket)
            session.workload.transfer(None, ticket.workload_holder)
            ConversationLog(session.messages).append(
                system_message(
                    ticket.id,
                    SystemAction.TICKET_CREATED,
                    now,
                    triggered_by=creator.id,
                    new_value=assigned.actor.id,
                    detail=assigned.reason,
                    assignee=assigned.actor.name,
                )
            )
        return ticket, assigned

    # -- lifecycle -----------------------------------------------------------

    def set_status(
        self, ticket_id: str, new_status: TicketStatus, actor_id: str, reason: Optional[str] = None
    ) -> Ticket:
        return self._transition(
            "set_status",
            ticket_id,
            actor_id,
            lambda session, ticket, actor: self.state_machine.set_status(
                ticket, actor, TicketStatus(new_status), self.clock(), reason=reason
            ),
        )

    def resolve_by_hr(self, ticket_id: str, actor_id: str, comment: Optional[str] = None) -> Ticket:
        return self._transition(
            "resolve_by_hr",
            ticket_id,
            actor_id,
            lambda session, ticket, actor: self.state_machine.resolve_by_hr(
                ticket, actor, self.clock(), comment=comment
            ),
        )

    def confirm_by_employee(self, ticket_id: str, actor_id: str) -> Ticket:
        return self._transition(
            "confirm_by_employee",
            ticket_id,
            actor_id,
            lambda session, ticket, actor: self.state_machine.confirm_by_employee(
                ticket, actor, self.clock()
            ),
        )

    def reopen_by_employee(self, ticket_id: str, actor_id: str, reason: str) -> Ticket:
        def apply(session: StoreSession, ticket: Ticket, actor: Actor) -> Transition:
            return self.state_machine.reopen_by_employee(
                ticket,
                actor,
                self.clock(),
                reason,
                pick_assignee=lambda current: self._reopen_assignee(session, current),
            )

        return self._transition("reopen_by_employee", ticket_id, actor_id, apply)

    def escalate(self, ticket_id: str, actor_id: str, reason: Optional[str] = None) -> Ticket:
        return self._transition(
            "escalate",
            ticket_id,
            actor_id,
            lambda session, ticket, actor: self.state_machine.escalate(
                ticket, actor, self.clock(), reason=reason
            ),
        )

    def reassign(
        self, ticket_id: str, actor_id: str, assignee_id: str, reason: Optional[str] = None
    ) -> Ticket:
        def apply(session: StoreSession, ticket: Ticket, actor: Actor) -> Transition:
            assignee = session.actors.get(assignee_id)
            if assignee is None:
                raise InvalidAssignee("Invalid assignee", ticket_id=ticket.id)
            return self.state_machine.reassign(ticket, actor, assignee, self.clock(), reason=reason)

        return self._transition("reassign", ticket_id, actor_id, apply)

    def add_message(self, ticket_id: str, actor_id: str, body: str, internal: bool = False) -> Ticket:
        return self._transition(
            "add_message",
            ticket_id,
            actor_id,
            lambda session, ticket, actor: self.state_machine.add_message(
                ticket, actor, body, self.clock(), internal=internal
            ),
        )

    def submit_feedback(
        self, ticket_id: str, actor_id: str, rating: int, comment: Optional[str] = None
    ) -> Ticket:
        return self._transition(
            "submit_feedback",
            ticket_id,
            actor_id,
            lambda session, ticket, actor: self.state_machine.submit_feedback(
                ticket, actor, rating, self.clock(), comment=comment
            ),
        )

    # -- reads ---------------------------------------------------------------

    def get_ticket(self, ticket_id: str, actor_id: str) -> Ticket:
        with self.store.transaction() as session:
            ticket = session.tickets.get(ticket_id)
            actor = self._require_actor(session, actor_id)
            self._ensure_visible(ticket, actor)
        return ticket

    def get_conversation(self, ticket_id: str, actor_id: str) -> List[TicketMessage]:
        with self.store.transaction() as session:
            ticket = session.tickets.get(ticket_id)
            actor = self._require_actor(session, actor_id)
            self._ensure_visible(ticket, actor)
            return ConversationLog(session.messages).thread(ticket_id, include_internal=actor.is_hr)

    def get_escalation_history(self, ticket_id: str, actor_id: str) -> List[EscalationRecord]:
        with self.store.transaction() as session:
            ticket = session.tickets.get(ticket_id)
            actor = self._require_actor(session, actor_id)
            self._ensure_visible(ticket, actor)
            return escalation_history(ConversationLog(session.messages).thread(ticket_id))

    def list_tickets(self, actor_id: str, query: Optional[TicketListQuery] = None) -> TicketPage:
        """Newest-first page of the tickets ``actor_id`` may see."""
        query = query or TicketListQuery()
        if query.category:
            query = query.model_copy(update={"category": parse_category(query.category).value})
        with self.store.transaction() as session:
            scope = self._scope_for(self._require_actor(session, actor_id))
            found, total = session.tickets.list_visible(scope, query)
        return TicketPage(tickets=found, page=query.page, limit=query.limit, total=total)

    def ticket_stats(self, actor_id: str) -> TicketStats:
        with self.store.transaction() as session:
            scope = self._scope_for(self._require_actor(session, actor_id))
            return session.tickets.stats(scope)

    def get_workload(self, roles: Iterable[Role]) -> List[WorkloadSnapshot]:
        """Open-ticket counts for active actors in ``roles``, least loaded first."""
        with self.store.transaction() as session:
            return session.workload.snapshots(frozenset(roles))

    def eligible_personnel(self, category: str) -> List[WorkloadSnapshot]:
        entry = self.routing_table.roles_for(category)
        return self.get_workload(entry.eligible_roles)

    def can_view(self, ticket: Ticket, actor: Actor) -> bool:
        """Creator, assignee, oversight roles, or HR routed for the category."""
        if actor.id in (ticket.created_by, ticket.assignee_id):
            return True
        if not actor.is_hr:
            return False
        if ticket.is_confidential:
            return actor.role in CONFIDENTIAL_VIEWERS
        if actor.role in OVERSIGHT_ROLES:
            return True
        return actor.role in self.routing_table.roles_for(ticket.category).eligible_roles

    def _ensure_visible(self, ticket: Ticket, actor: Actor) -> None:
        if not self.can_view(ticket, actor):
            raise WrongActorRole("Access denied", ticket_id=ticket.id, current_status=ticket.status.value)

    def _scope_for(self, actor: Actor) -> TicketScope:
        """Listing counterpart of ``can_view``."""
        if actor.role in OVERSIGHT_ROLES:
            return TicketScope(actor.id, everything=True)
        if not actor.is_hr:
            return TicketScope(actor.id)
        categories = self.routing_table.categories_for_role(actor.role)
        return TicketScope(
            actor.id,
            categories=frozenset(category.value for category in categories),
            confidential=actor.role in CONFIDENTIAL_VIEWERS,
        )

    # -- actor directory maintenance -----------------------------------------

    def register_actor(self, actor: Actor) -> Actor:
        with self.store.transaction() as session:
            return session.actors.add(actor)

    def tombstone_actor(self, actor_id: str) -> List[Ticket]:
        """
        Deactivate a deleted actor and tombstone every ticket it held.
        Returns the updated tickets.
        """
        with self.store.transaction() as session:
            if not session.actors.deactivate(actor_id):
                raise InvalidRequest(f"Unknown actor {actor_id}")
            now = self.clock()
            updated = []
            for ticket in session.tickets.list_assigned_to(actor_id):
                transition = self.state_machine.tombstone_assignee(ticket, now)
                updated.append(self._commit(session, ticket, transition))
            session.workload.remove(actor_id)
        logger.warning(
            "Actor tombstoned",
            extra={"actor_id": actor_id, "tickets": [t.id for t in updated]},
        )
        return updated

    def rebuild_workload(self) -> dict:
        """Recompute every workload counter from the ticket store."""
        with self.store.transaction() as session:
            counts = session.tickets.active_counts_by_assignee(ACTIVE_WORK_STATUSES)
            session.workload.rebuild(counts)
        logger.info("Workload rebuilt", extra={"actors": len(counts)})
        return counts

    # -- internals -----------------------------------------------------------

    def _transition(self, operation: str, ticket_id: str, actor_id: str, apply: ApplyFn) -> Ticket:
        attempts = self.settings.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                with self.store.transaction() as session:
                    ticket = session.tickets.get(ticket_id)
                    actor = self._require_actor(session, actor_id, ticket)
                    self._ensure_visible(ticket, actor)
                    stored = self._commit(session, ticket, apply(session, ticket, actor))
            except ConcurrentModification as exc:
                if attempt == attempts:
                    self._log_rejection(operation, exc, actor_id=actor_id)
                    raise
                logger.warning(
                    "Concurrent ticket update, retrying",
                    extra={"operation": operation, "ticket_id": ticket_id, "attempt": attempt},
                )
                continue
            except AppError as exc:
                self._log_rejection(operation, exc, actor_id=actor_id)
                raise

            logger.info(
                "Ticket transition applied",
                extra={
                    "operation": operation,
                    "ticket_id": ticket_id,
                    "actor_id": actor_id,
                    "from_status": ticket.status.value,
                    "to_status": stored.status.value,
                    "version": stored.version,
                },
            )
            return stored

    @staticmethod
    def _commit(session: StoreSession, before: Ticket, transition: Transition) -> Ticket:
        stored = session.tickets.update(transition.ticket, expected_version=before.version)
        session.workload.transfer(before.workload_holder, stored.workload_holder)
        ConversationLog(session.messages).extend(transition.messages)
        return stored

    def _reopen_assignee(self, session: StoreSession, ticket: Ticket) -> str:
        """Original assignee while still active, otherwise a fresh routing."""
        original = ticket.original_assignee_id
        if original:
            actor = session.actors.get(original)
            if actor is not None and actor.is_active:
                return actor.id
        return self.resolver.resolve(ticket.category, session).actor.id

    @staticmethod
    def _require_actor(session: StoreSession, actor_id: str, ticket: Optional[Ticket] = None) -> Actor:
        actor = session.actors.get(actor_id) if actor_id else None
        if actor is None or not actor.is_active:
            context = {}
            if ticket is not None:
                context = {"ticket_id": ticket.id, "current_status": ticket.status.value}
            raise InvalidRequest(f"Unknown or inactive actor {actor_id!r}", **context)
        return actor

    @staticmethod
    def _log_rejection(operation: str, exc: AppError, actor_id: Optional[str] = None) -> None:
        extra = {
            "operation": operation,
            "actor_id": actor_id,
            "kind": exc.kind,
            "error": exc.message,
            "ticket_id": exc.ticket_id,
            "current_status": exc.current_status,
        }
        if isinstance(exc, ResourceError):
            logger.error("Ticket operation failed", extra=extra)
        else:
            logger.warning("Ticket operation rejected", extra=extra)
