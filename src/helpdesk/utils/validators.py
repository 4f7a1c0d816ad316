"""Lightweight validation helpers."""

from typing import Any, Optional

from helpdesk.utils.error_handling import InvalidRequest


def ensure_present(value: Any, field: str, ticket_id: Optional[str] = None) -> None:
    """Raise InvalidRequest if value is falsy or only whitespace."""
    if value in (None, "", []) or (isinstance(value, str) and not value.strip()):
        raise InvalidRequest(f"{field} is required", ticket_id=ticket_id)


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace, mapping blank strings to None."""
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None
