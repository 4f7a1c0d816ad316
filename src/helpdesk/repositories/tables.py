"""SQLAlchemy Core schema for the ticket store."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.types import TypeDecorator

metadata = MetaData()


class UTCDateTime(TypeDecorator):
    """Store naive UTC, hand back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return value.replace(tzinfo=timezone.utc)


actors = Table(
    "actors",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("role", String(40), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", UTCDateTime, nullable=True),
)

tickets = Table(
    "tickets",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("ticket_number", String(32), nullable=False, unique=True),
    Column("category", String(64), nullable=False),
    Column("subcategory", String(200)),
    Column("subject", String(200)),
    Column("description", Text, nullable=False),
    Column("priority", String(16), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_by", String(64), nullable=False),
    # present | tombstone | NULL (unassigned)
    Column("assignee_state", String(16)),
    Column("assignee_id", String(64)),
    Column("original_assignee_id", String(64)),
    Column("is_manually_assigned", Boolean, nullable=False, default=False),
    Column("is_confidential", Boolean, nullable=False, default=False),
    Column("escalation_level", Integer, nullable=False, default=0),
    Column("resolved_by_hr", Boolean, nullable=False, default=False),
    Column("resolved_by", String(64)),
    Column("resolution_comment", Text),
    Column("employee_confirmed", Boolean, nullable=False, default=False),
    Column("employee_confirmed_at", UTCDateTime),
    Column("permanently_closed_by_hr", Boolean, nullable=False, default=False),
    Column("permanently_closed_at", UTCDateTime),
    Column("permanently_closed_by", String(64)),
    Column("reopen_deadline", UTCDateTime),
    Column("reopen_count", Integer, nullable=False, default=0),
    Column("max_reopen_allowed", Integer, nullable=False, default=3),
    Column("last_reopened_at", UTCDateTime),
    Column("feedback_rating", Integer),
    Column("feedback_comment", Text),
    Column("feedback_submitted_at", UTCDateTime),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
    Column("resolved_at", UTCDateTime),
    Column("responded_at", UTCDateTime),
    Column("closed_at", UTCDateTime),
    Column("version", Integer, nullable=False, default=1),
)

Index("ix_tickets_assignee_status", tickets.c.assignee_id, tickets.c.status)
Index("ix_tickets_created_by", tickets.c.created_by)

ticket_messages = Table(
    "ticket_messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ticket_id", String(64), ForeignKey("tickets.id"), nullable=False),
    Column("author_id", String(64)),
    Column("message_type", String(32), nullable=False),
    Column("body", Text, nullable=False),
    Column("is_internal", Boolean, nullable=False, default=False),
    Column("action", String(32)),
    Column("previous_value", String(200)),
    Column("new_value", String(200)),
    Column("detail", Text),
    Column("created_at", UTCDateTime, nullable=False),
)

Index("ix_ticket_messages_ticket", ticket_messages.c.ticket_id, ticket_messages.c.id)

hr_workload = Table(
    "hr_workload",
    metadata,
    Column("actor_id", String(64), primary_key=True),
    Column("open_ticket_count", Integer, nullable=False, default=0),
)
