"""Routing table lookups."""

import pytest

from helpdesk.models.actor import Role
from helpdesk.models.routing import Category
from helpdesk.services.routing_table import RoutingTable, parse_category
from helpdesk.utils.error_handling import UnknownCategory


class TestRoutingTable:
    """Test the fixed category to role mapping."""

    def setup_method(self):
        self.table = RoutingTable()

    def test_every_category_has_an_entry(self):
        assert len(Category) == 29
        for category in Category:
            assert self.table.roles_for(category).eligible_roles

    def test_payroll_goes_to_hr_manager(self):
        entry = self.table.roles_for("Payroll / Salary Issue")
        assert entry.eligible_roles == {Role.HR_MANAGER}
        assert entry.confidential is False

    def test_multi_role_categories(self):
        assert self.table.roles_for("Leave Policy Clarification").eligible_roles == {
            Role.HR_EXECUTIVE,
            Role.HR_MANAGER,
        }
        assert self.table.roles_for("Feedback / Suggestion to HR").eligible_roles == {
            Role.HR_MANAGER,
            Role.HR_BP,
        }

    def test_only_grievance_is_confidential(self):
        confidential = [c for c in Category if self.table.roles_for(c).confidential]
        assert confidential == [Category.HARASSMENT_GRIEVANCE]
        assert self.table.roles_for(Category.HARASSMENT_GRIEVANCE).eligible_roles == {Role.HR_BP}

    def test_formerly_defaulted_categories_are_explicit(self):
        for label in ("HRMS Login Issue", "System Bug / App Crash", "Others"):
            assert self.table.roles_for(label).eligible_roles == {Role.HR_EXECUTIVE}

    def test_unknown_category_is_a_hard_error(self):
        with pytest.raises(UnknownCategory) as exc_info:
            self.table.roles_for("Parking Complaint")
        assert exc_info.value.status_code == 422
        assert exc_info.value.kind == "UnknownCategory"

    def test_routable_roles(self):
        assert self.table.routable_roles() == {Role.HR_EXECUTIVE, Role.HR_MANAGER, Role.HR_BP}

    def test_categories_for_role(self):
        bp_categories = self.table.categories_for_role(Role.HR_BP)
        assert Category.HARASSMENT_GRIEVANCE in bp_categories
        assert Category.LEAVE_ISSUE not in bp_categories
        assert self.table.categories_for_role(Role.ADMIN) == frozenset()

    def test_parse_category_trims(self):
        assert parse_category("  Leave Issue ") is Category.LEAVE_ISSUE
        with pytest.raises(UnknownCategory):
            parse_category("")
