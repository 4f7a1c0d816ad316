"""Request payloads accepted by the HTTP handlers."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk.models.ticket import Priority, TicketStatus


class CreateTicketRequest(BaseModel):
    """Inbound ticket payload."""

    # Kept as plain text so an unknown category surfaces as UnknownCategory.
    category: str
    subcategory: Optional[str] = None
    subject: Optional[str] = None
    description: str
    priority: Priority = Priority.MEDIUM
    manual_assignee_id: Optional[str] = None

    @field_validator("category", "description")
    @classmethod
    def validate_required(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("category and description must be provided")
        return cleaned


class StatusUpdateRequest(BaseModel):
    status: TicketStatus
    reason: Optional[str] = None


class ResolveRequest(BaseModel):
    comment: Optional[str] = None


class ReopenRequest(BaseModel):
    reason: str = ""


class EscalateRequest(BaseModel):
    reason: Optional[str] = None


class AssignRequest(BaseModel):
    assignee_id: str
    reason: Optional[str] = None


class MessageRequest(BaseModel):
    body: str = Field(max_length=2000)
    internal: bool = False


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


class TicketListQuery(BaseModel):
    """Filters and paging for ticket listings."""

    status: Optional[TicketStatus] = None
    category: Optional[str] = None
    priority: Optional[Priority] = None
    assignee_id: Optional[str] = None
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @field_validator("category", "assignee_id", "search")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None
