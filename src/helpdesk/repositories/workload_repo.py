"""
Per-actor open-ticket counters.

Counters live next to the tickets and are only touched inside the same
transaction as the ticket write that changes them, so readers never see a
ticket counted twice or not at all.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection

from helpdesk.models.actor import Role, WorkloadSnapshot
from helpdesk.repositories.tables import actors, hr_workload
from helpdesk.utils.error_handling import WorkloadInconsistency

# Both dialects support INSERT .. ON CONFLICT DO UPDATE.
_UPSERTS = {"postgresql": postgresql_insert, "sqlite": sqlite_insert}


class WorkloadIndex:
    """Workload counters bound to one store transaction."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def count(self, actor_id: str) -> int:
        value = self.conn.execute(
            select(hr_workload.c.open_ticket_count).where(hr_workload.c.actor_id == actor_id)
        ).scalar()
        return value or 0

    def increment(self, actor_id: str) -> None:
        """Add one to the counter, creating it in the same statement."""
        upsert = _UPSERTS[self.conn.dialect.name]
        stmt = upsert(hr_workload).values(actor_id=actor_id, open_ticket_count=1)
        self.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[hr_workload.c.actor_id],
                set_={"open_ticket_count": hr_workload.c.open_ticket_count + 1},
            )
        )

    def decrement(self, actor_id: str) -> None:
        result = self.conn.execute(
            update(hr_workload)
            .where(hr_workload.c.actor_id == actor_id)
            .where(hr_workload.c.open_ticket_count > 0)
            .values(open_ticket_count=hr_workload.c.open_ticket_count - 1)
        )
        if result.rowcount == 0:
            raise WorkloadInconsistency(actor_id)

    def transfer(self, old_holder: Optional[str], new_holder: Optional[str]) -> None:
        """Move one ticket's contribution from ``old_holder`` to ``new_holder``."""
        if old_holder == new_holder:
            return
        if old_holder is not None:
            self.decrement(old_holder)
        if new_holder is not None:
            self.increment(new_holder)

    def remove(self, actor_id: str) -> None:
        self.conn.execute(delete(hr_workload).where(hr_workload.c.actor_id == actor_id))

    def snapshots(self, roles: Iterable[Role]) -> List[WorkloadSnapshot]:
        """
        Active actors in ``roles`` with their counts, least loaded first and
        ties broken by actor id.
        """
        role_values = sorted(r.value for r in roles)
        if not role_values:
            return []
        stmt = (
            select(
                actors.c.id,
                actors.c.name,
                actors.c.role,
                hr_workload.c.open_ticket_count,
            )
            .select_from(actors.outerjoin(hr_workload, hr_workload.c.actor_id == actors.c.id))
            .where(actors.c.role.in_(role_values))
            .where(actors.c.is_active.is_(True))
        )
        snapshots = [
            WorkloadSnapshot(
                actor_id=row.id,
                name=row.name,
                role=Role(row.role),
                open_ticket_count=row.open_ticket_count or 0,
            )
            for row in self.conn.execute(stmt)
        ]
        snapshots.sort(key=lambda snap: (snap.open_ticket_count, snap.actor_id))
        return snapshots

    def all_counts(self) -> Dict[str, int]:
        rows = self.conn.execute(select(hr_workload))
        return {row.actor_id: row.open_ticket_count for row in rows if row.open_ticket_count}

    def rebuild(self, counts: Dict[str, int]) -> None:
        """Replace every counter with ``counts``."""
        self.conn.execute(delete(hr_workload))
        if counts:
            self.conn.execute(
                insert(hr_workload),
                [{"actor_id": actor_id, "open_ticket_count": total} for actor_id, total in counts.items()],
            )
