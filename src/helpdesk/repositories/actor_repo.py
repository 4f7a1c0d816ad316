"""Local projection of the user directory."""

from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from helpdesk.models.actor import Actor
from helpdesk.repositories.tables import actors


class ActorRepository:
    """Actor lookups and directory sync."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def get(self, actor_id: str) -> Optional[Actor]:
        row = self.conn.execute(
            select(actors).where(actors.c.id == actor_id)
        ).mappings().first()
        return Actor(**row) if row else None

    def add(self, actor: Actor) -> Actor:
        values = actor.model_dump()
        values["role"] = actor.role.value
        self.conn.execute(insert(actors).values(**values))
        return actor

    def deactivate(self, actor_id: str) -> bool:
        result = self.conn.execute(
            update(actors).where(actors.c.id == actor_id).values(is_active=False)
        )
        return result.rowcount == 1
