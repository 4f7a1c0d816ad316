"""
Category to HR role routing policy.

The table is fixed at import time. Every catalog category has an explicit
entry; a category outside the catalog is rejected instead of falling back
to a generic role.
"""

from types import MappingProxyType
from typing import FrozenSet, Mapping, Union

from helpdesk.models.actor import Role
from helpdesk.models.routing import Category, RoutingEntry
from helpdesk.utils.error_handling import UnknownCategory

_EXEC = frozenset({Role.HR_EXECUTIVE})
_MANAGER = frozenset({Role.HR_MANAGER})
_BP = frozenset({Role.HR_BP})

CONFIDENTIAL_CATEGORIES = frozenset({Category.HARASSMENT_GRIEVANCE})

_ROLES_BY_CATEGORY = {
    Category.LEAVE_ISSUE: _EXEC,
    Category.ATTENDANCE_ISSUE: _EXEC,
    Category.REGULARIZATION_PROBLEM: _EXEC,
    Category.HOLIDAY_CALENDAR_QUERY: _EXEC,
    Category.WFH_REMOTE_WORK: _EXEC,
    Category.LEAVE_POLICY_CLARIFICATION: frozenset({Role.HR_EXECUTIVE, Role.HR_MANAGER}),
    Category.PAYROLL_SALARY: _MANAGER,
    Category.PAYSLIP_NOT_AVAILABLE: _MANAGER,
    Category.REIMBURSEMENT: _MANAGER,
    Category.TAX_TDS_FORM16: _MANAGER,
    Category.PERFORMANCE_REVIEW: _BP,
    Category.KPI_GOALS_SETUP: _MANAGER,
    Category.PROBATION_CONFIRMATION: _EXEC,
    Category.TRAINING_LMS_ACCESS: _EXEC,
    Category.CERTIFICATION: _MANAGER,
    Category.OFFER_LETTER_JOINING: _BP,
    Category.REFERRAL_INTERVIEW_FEEDBACK: _EXEC,
    Category.RESIGNATION_PROCESS: _MANAGER,
    Category.FINAL_SETTLEMENT_DELAY: _BP,
    Category.EXPERIENCE_LETTER: _EXEC,
    Category.HRMS_LOGIN: _EXEC,
    Category.SYSTEM_BUG: _EXEC,
    Category.DOCUMENT_UPLOAD_FAILED: _EXEC,
    Category.OFFICE_ACCESS_ID_CARD: _EXEC,
    Category.GENERAL_HR_QUERY: _EXEC,
    Category.HARASSMENT_GRIEVANCE: _BP,
    Category.ASSET_REQUEST: _EXEC,
    Category.FEEDBACK_SUGGESTION: frozenset({Role.HR_MANAGER, Role.HR_BP}),
    Category.OTHERS: _EXEC,
}

DEFAULT_ROUTING: Mapping[Category, RoutingEntry] = MappingProxyType(
    {
        category: RoutingEntry(
            eligible_roles=roles, confidential=category in CONFIDENTIAL_CATEGORIES
        )
        for category, roles in _ROLES_BY_CATEGORY.items()
    }
)


def parse_category(category: Union[str, Category]) -> Category:
    """Map a raw category label onto the catalog or raise UnknownCategory."""
    if isinstance(category, Category):
        return category
    try:
        return Category((category or "").strip())
    except ValueError:
        raise UnknownCategory(category) from None


class RoutingTable:
    """Pure lookup over an immutable category to RoutingEntry mapping."""

    def __init__(self, entries: Mapping[Category, RoutingEntry] = DEFAULT_ROUTING):
        self._entries = MappingProxyType(dict(entries))
        self._routable = frozenset(
            role for entry in self._entries.values() for role in entry.eligible_roles
        )

    def roles_for(self, category: Union[str, Category]) -> RoutingEntry:
        parsed = parse_category(category)
        entry = self._entries.get(parsed)
        if entry is None:
            raise UnknownCategory(parsed.value)
        return entry

    def routable_roles(self) -> FrozenSet[Role]:
        """Roles eligible for at least one category."""
        return self._routable

    def categories_for_role(self, role: Role) -> FrozenSet[Category]:
        return frozenset(
            category for category, entry in self._entries.items() if role in entry.eligible_roles
        )
