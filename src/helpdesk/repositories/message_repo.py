"""Append-only ticket conversation storage."""

from typing import List

from sqlalchemy import insert, select
from sqlalchemy.engine import Connection

from helpdesk.models.message import TicketMessage
from helpdesk.repositories.tables import ticket_messages


class MessageRepository:
    """Insert and read ticket messages; rows are never updated."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def append(self, message: TicketMessage) -> TicketMessage:
        values = message.model_dump(exclude={"id"}, mode="python")
        values["message_type"] = message.message_type.value
        values["action"] = message.action.value if message.action else None
        result = self.conn.execute(insert(ticket_messages).values(**values))
        return message.model_copy(update={"id": result.inserted_primary_key[0]})

    def list_for_ticket(self, ticket_id: str, include_internal: bool = True) -> List[TicketMessage]:
        stmt = select(ticket_messages).where(ticket_messages.c.ticket_id == ticket_id)
        if not include_internal:
            stmt = stmt.where(ticket_messages.c.is_internal.is_(False))
        rows = self.conn.execute(stmt.order_by(ticket_messages.c.id)).mappings()
        return [TicketMessage(**row) for row in rows]
