"""Assignment resolver: routing policy plus least-loaded selection."""

import pytest

from helpdesk.models.actor import Actor, Role
from helpdesk.services.assignment_resolver import AssignmentResolver
from helpdesk.services.routing_table import RoutingTable
from helpdesk.utils.error_handling import InvalidAssignee, NoEligibleActor, UnknownCategory


def _load(service, assignee_id, count, category="Payroll / Salary Issue"):
    for _ in range(count):
        service.create_ticket(
            category=category,
            description="load",
            creator_id="emp-2",
            manual_assignee_id=assignee_id,
        )


class TestAutoAssignment:
    """Least-loaded eligible actor wins."""

    def test_picks_least_loaded_manager(self, service):
        """Two HR Managers with 3 and 1 open tickets: the one with 1 is chosen."""
        _load(service, "mgr-a", 3)
        _load(service, "mgr-b", 1)

        ticket = service.create_ticket(
            category="Payroll / Salary Issue", description="salary", creator_id="emp-1"
        )

        assert ticket.assignee_id == "mgr-b"
        assert ticket.is_manually_assigned is False

    def test_ties_go_to_lowest_actor_id(self, service):
        ticket = service.create_ticket(
            category="Payroll / Salary Issue", description="salary", creator_id="emp-1"
        )
        assert ticket.assignee_id == "mgr-a"

    def test_deterministic_for_same_snapshot(self, service, store):
        _load(service, "exec-2", 2)
        resolver = AssignmentResolver(RoutingTable())
        with store.transaction() as session:
            first = resolver.resolve("Leave Issue", session)
            second = resolver.resolve("Leave Issue", session)
        assert first.actor.id == second.actor.id == "exec-1"
        assert first.open_ticket_count == 0

    def test_multi_role_category_considers_all_roles(self, service):
        _load(service, "exec-1", 2, category="Leave Issue")
        _load(service, "exec-2", 2, category="Leave Issue")
        _load(service, "mgr-a", 1)

        ticket = service.create_ticket(
            category="Leave Policy Clarification", description="policy", creator_id="emp-1"
        )
        assert ticket.assignee_id == "mgr-b"

    def test_balancing_spreads_consecutive_tickets(self, service):
        assignees = [
            service.create_ticket(
                category="Leave Issue", description=f"leave {i}", creator_id="emp-1"
            ).assignee_id
            for i in range(4)
        ]
        assert assignees == ["exec-1", "exec-2", "exec-1", "exec-2"]

    def test_inactive_actors_are_skipped(self, service):
        service.tombstone_actor("mgr-a")
        ticket = service.create_ticket(
            category="Payroll / Salary Issue", description="salary", creator_id="emp-1"
        )
        assert ticket.assignee_id == "mgr-b"

    def test_no_eligible_actor_fails_creation(self, service):
        service.tombstone_actor("bp-1")
        with pytest.raises(NoEligibleActor):
            service.create_ticket(
                category="Harassment / Grievance", description="x", creator_id="emp-1"
            )
        assert service.list_tickets("emp-1").total == 0

    def test_unknown_category(self, service):
        with pytest.raises(UnknownCategory):
            service.create_ticket(category="Parking", description="x", creator_id="emp-1")


class TestManualAssignment:
    """Creator overrides automatic routing."""

    def test_manual_override_for_other_category_role(self, service):
        """Any routable role is accepted even if not eligible for this category."""
        ticket = service.create_ticket(
            category="Leave Issue",
            description="leave",
            creator_id="emp-1",
            manual_assignee_id="bp-1",
        )
        assert ticket.assignee_id == "bp-1"
        assert ticket.is_manually_assigned is True

    @pytest.mark.parametrize("assignee_id", ["emp-2", "vp-1", "nobody"])
    def test_manual_assignee_must_hold_routable_role(self, service, assignee_id):
        with pytest.raises(InvalidAssignee):
            service.create_ticket(
                category="Leave Issue",
                description="leave",
                creator_id="emp-1",
                manual_assignee_id=assignee_id,
            )

    def test_manual_assignment_skips_workload(self, service, store):
        _load(service, "mgr-a", 5)
        with store.transaction() as session:
            session.actors.add(Actor(id="mgr-c", name="Extra", role=Role.HR_MANAGER))
        resolver = AssignmentResolver(RoutingTable())
        with store.transaction() as session:
            result = resolver.resolve("Payroll / Salary Issue", session, manual_assignee_id="mgr-a")
        assert result.actor.id == "mgr-a"
        assert result.is_manually_assigned is True
