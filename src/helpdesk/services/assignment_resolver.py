"""Pick a concrete assignee for a new or reopened ticket."""

from dataclasses import dataclass
from typing import Optional, Union

from helpdesk.models.actor import Actor
from helpdesk.models.routing import Category
from helpdesk.repositories.store import StoreSession
from helpdesk.services.routing_table import RoutingTable
from helpdesk.utils.error_handling import InvalidAssignee, NoEligibleActor
from helpdesk.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class AssignedActor:
    """Resolver outcome."""

    actor: Actor
    is_manually_assigned: bool
    reason: str
    open_ticket_count: Optional[int] = None


class AssignmentResolver:
    """Routing policy plus least-loaded selection."""

    def __init__(self, routing_table: RoutingTable):
        self.routing_table = routing_table

    def resolve(
        self,
        category: Union[str, Category],
        session: StoreSession,
        manual_assignee_id: Optional[str] = None,
    ) -> AssignedActor:
        """
        Return the manual assignee when one is given, otherwise the active
        eligible actor with the fewest open tickets (ties go to the lowest
        actor id).

        Workload is read from ``session`` so the choice reflects every
        assignment committed before this transaction started.
        """
        entry = self.routing_table.roles_for(category)

        if manual_assignee_id:
            return self._manual(manual_assignee_id, session)

        snapshots = session.workload.snapshots(entry.eligible_roles)
        if not snapshots:
            logger.error(
                "No eligible actor for category",
                extra={
                    "category": str(category),
                    "roles": sorted(r.value for r in entry.eligible_roles),
                },
            )
            raise NoEligibleActor(str(category), entry.eligible_roles)

        chosen = min(snapshots, key=lambda snap: (snap.open_ticket_count, snap.actor_id))
        actor = session.actors.get(chosen.actor_id)
        return AssignedActor(
            actor=actor,
            is_manually_assigned=False,
            reason=f"Auto-assigned based on category: {getattr(category, 'value', category)}",
            open_ticket_count=chosen.open_ticket_count,
        )

    def _manual(self, actor_id: str, session: StoreSession) -> AssignedActor:
        # Any routable role is accepted, not only the ones for this category.
        actor = session.actors.get(actor_id)
        if actor is None or not actor.is_active:
            raise InvalidAssignee("Selected HR personnel not found")
        if actor.role not in self.routing_table.routable_roles():
            raise InvalidAssignee("Selected user is not HR personnel")
        return AssignedActor(
            actor=actor,
            is_manually_assigned=True,
            reason="Manually assigned by ticket creator",
        )
