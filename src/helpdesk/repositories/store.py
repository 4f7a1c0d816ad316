"""Transactional access to the ticket store."""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import QueuePool, StaticPool

from helpdesk.config.settings import Settings
from helpdesk.repositories.actor_repo import ActorRepository
from helpdesk.repositories.message_repo import MessageRepository
from helpdesk.repositories.tables import metadata
from helpdesk.repositories.ticket_repo import TicketRepository
from helpdesk.repositories.workload_repo import WorkloadIndex


def build_engine(settings: Settings) -> Engine:
    """Create an engine with pooling suited to the configured database."""
    url = settings.database_url
    if url.startswith("sqlite") and ":memory:" in url:
        # A single shared connection keeps the in-memory database alive.
        return create_engine(
            url, poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
    if url.startswith("sqlite"):
        return create_engine(url)
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,
    )


@dataclass
class StoreSession:
    """Repositories sharing one open transaction."""

    conn: Connection
    tickets: TicketRepository
    messages: MessageRepository
    actors: ActorRepository
    workload: WorkloadIndex


class TicketStore:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "TicketStore":
        return cls(build_engine(settings))

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        """Commit on clean exit, roll back if the block raises."""
        with self.engine.begin() as conn:
            yield StoreSession(
                conn=conn,
                tickets=TicketRepository(conn),
                messages=MessageRepository(conn),
                actors=ActorRepository(conn),
                workload=WorkloadIndex(conn),
            )
