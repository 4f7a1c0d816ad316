"""Read-only staffing handlers."""

from helpdesk.handlers.common import api_handler, get_service, path_param
from helpdesk.models.actor import Role
from helpdesk.utils.error_handling import InvalidRequest


def _parse_roles(raw: str):
    roles = set()
    for label in filter(None, (part.strip() for part in raw.split(","))):
        try:
            roles.add(Role(label))
        except ValueError:
            raise InvalidRequest(f"Unknown role {label!r}") from None
    return roles


@api_handler
def workload_handler(event, context):
    """Handle GET /workload?roles=HR Manager,HR BP."""
    raw = (event.get("queryStringParameters") or {}).get("roles", "")
    roles = _parse_roles(raw)
    if not roles:
        raise InvalidRequest("roles query parameter is required")
    snapshots = get_service().get_workload(roles)
    return 200, {"workload": [s.model_dump(mode="json") for s in snapshots]}


@api_handler
def personnel_handler(event, context):
    """Handle GET /categories/{category}/personnel."""
    service = get_service()
    category = path_param(event, "category")
    entry = service.routing_table.roles_for(category)
    snapshots = service.eligible_personnel(category)
    return 200, {
        "category": category,
        "eligible_roles": sorted(role.value for role in entry.eligible_roles),
        "confidential": entry.confidential,
        "hr_personnel": [s.model_dump(mode="json") for s in snapshots],
    }
