"""Actor models: HR staff and employees as seen by the helpdesk."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Organisation roles known to the helpdesk."""

    EMPLOYEE = "Employee"
    TEAM_LEADER = "Team Leader"
    HR_EXECUTIVE = "HR Executive"
    HR_MANAGER = "HR Manager"
    HR_BP = "HR BP"
    VICE_PRESIDENT = "Vice President"
    ADMIN = "Admin"


HR_ROLES = frozenset(
    {Role.HR_EXECUTIVE, Role.HR_MANAGER, Role.HR_BP, Role.VICE_PRESIDENT, Role.ADMIN}
)

# Roles that see every ticket regardless of category routing.
OVERSIGHT_ROLES = frozenset({Role.VICE_PRESIDENT, Role.ADMIN})


class Actor(BaseModel):
    """A user record projected from the external directory."""

    id: str
    name: str
    role: Role
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_hr(self) -> bool:
        return self.role in HR_ROLES


class WorkloadSnapshot(BaseModel):
    """Open-ticket count for one HR actor at read time."""

    actor_id: str
    name: Optional[str] = None
    role: Role
    open_ticket_count: int = Field(ge=0)
