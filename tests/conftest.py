"""
Pytest configuration and shared fixtures.

``src/`` is put on ``sys.path`` so the tests run against a checkout without
an editable install. Every test gets its own file-backed SQLite store so
that separate connections can interleave the way concurrent requests do.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add src/ to sys.path if missing."""
    src_root = Path(__file__).resolve().parents[1] / "src"
    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")

from helpdesk.config.settings import Settings  # noqa: E402
from helpdesk.models.actor import Actor, Role  # noqa: E402
from helpdesk.repositories.store import TicketStore  # noqa: E402
from helpdesk.services.helpdesk_service import HelpdeskService  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

ACTORS = (
    Actor(id="emp-1", name="Asha Employee", role=Role.EMPLOYEE),
    Actor(id="emp-2", name="Ravi Employee", role=Role.EMPLOYEE),
    Actor(id="exec-1", name="Meera Exec", role=Role.HR_EXECUTIVE),
    Actor(id="exec-2", name="Karan Exec", role=Role.HR_EXECUTIVE),
    Actor(id="mgr-a", name="Nisha Manager", role=Role.HR_MANAGER),
    Actor(id="mgr-b", name="Vikram Manager", role=Role.HR_MANAGER),
    Actor(id="bp-1", name="Leela Partner", role=Role.HR_BP),
    Actor(id="vp-1", name="Sanjay VP", role=Role.VICE_PRESIDENT),
    Actor(id="admin-1", name="Root Admin", role=Role.ADMIN),
)


class FakeClock:
    """Controllable time source."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=f"sqlite+pysqlite:///{tmp_path / 'helpdesk.db'}")


@pytest.fixture
def store(settings):
    ticket_store = TicketStore.from_settings(settings)
    ticket_store.create_schema()
    yield ticket_store
    ticket_store.engine.dispose()


@pytest.fixture
def service(store, settings, clock):
    engine = HelpdeskService(store, settings=settings, clock=clock)
    for actor in ACTORS:
        engine.register_actor(actor)
    return engine


@pytest.fixture
def open_ticket(service):
    """A payroll ticket raised by emp-1, auto-routed to an HR Manager."""
    return service.create_ticket(
        category="Payroll / Salary Issue",
        description="March salary credited short",
        creator_id="emp-1",
        subject="Salary shortfall",
    )


@pytest.fixture
def workload_consistent(store):
    """Callable checking counters against counts derived from ticket rows."""
    from helpdesk.models.ticket import ACTIVE_WORK_STATUSES

    def check() -> bool:
        with store.transaction() as session:
            derived = session.tickets.active_counts_by_assignee(ACTIVE_WORK_STATUSES)
            counters = session.workload.all_counts()
        return derived == counters

    return check
