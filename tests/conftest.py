"""Shared fixtures: in-memory SQLite database, fixed clock, actors and services."""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from src.config import UserRole
from src.grievance.application import (
    DepartmentCreateRequest,
    DepartmentService,
    EventLedgerService,
    GrievanceCreateRequest,
    GrievanceQueryService,
    GrievanceStateMachine,
    ILedgerEventPublisher,
    TransparencyService,
    drain_publishes,
)
from src.grievance.domain import Actor, GrievanceEvent
from src.grievance.infrastructure import SQLAlchemyUnitOfWork, StaticRoutingConfigProvider
from src.infrastructure.database import close_database, create_tables, get_session_maker, init_database
from src.sla.application import SLAStatusService, SLASweepService

T0 = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; services call it for `now`."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


class RecordingPublisher(ILedgerEventPublisher):
    def __init__(self):
        self.events: List[GrievanceEvent] = []

    async def publish(self, event: GrievanceEvent) -> bool:
        self.events.append(event)
        return True


# -----------------------------------------------------------------------
# Infrastructure
# -----------------------------------------------------------------------


@pytest.fixture
async def database():
    init_database("sqlite+aiosqlite:///:memory:")
    await create_tables()
    yield
    await drain_publishes()
    await close_database()


@pytest.fixture
def uow_factory(database):
    session_maker = get_session_maker()
    return lambda: SQLAlchemyUnitOfWork(session_maker)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def routing_provider():
    return StaticRoutingConfigProvider()


# -----------------------------------------------------------------------
# Actors
# -----------------------------------------------------------------------


@pytest.fixture
def citizen():
    return Actor("citizen-1", UserRole.CITIZEN)


@pytest.fixture
def other_citizen():
    return Actor("citizen-2", UserRole.CITIZEN)


@pytest.fixture
def officer():
    return Actor("officer-1", UserRole.OFFICER)


@pytest.fixture
def dept_admin():
    return Actor("dept-admin-1", UserRole.DEPT_ADMIN)


@pytest.fixture
def admin():
    return Actor("admin-1", UserRole.SYSTEM_ADMIN)


# -----------------------------------------------------------------------
# Services
# -----------------------------------------------------------------------


@pytest.fixture
def state_machine(uow_factory, routing_provider, publisher, clock):
    return GrievanceStateMachine(uow_factory, routing_provider, publisher=publisher, clock=clock)


@pytest.fixture
def ledger(uow_factory, publisher, clock):
    return EventLedgerService(uow_factory, publisher=publisher, clock=clock)


@pytest.fixture
def queries(uow_factory):
    return GrievanceQueryService(uow_factory)


@pytest.fixture
def departments(uow_factory, clock):
    return DepartmentService(uow_factory, clock=clock)


@pytest.fixture
def transparency(uow_factory):
    return TransparencyService(uow_factory)


@pytest.fixture
def sla_status(uow_factory, clock):
    return SLAStatusService(uow_factory, clock=clock)


@pytest.fixture
def sweep(uow_factory, publisher, clock):
    return SLASweepService(uow_factory, publisher=publisher, clock=clock, batch_size=100)


def grievance_request(**overrides) -> GrievanceCreateRequest:
    data = {
        "category": "Water Supply",
        "title": "No water since Monday",
        "description": "The supply to our lane has been off for three days.",
        "location": {"address_text": "12 MG Road", "ward": "Ward 7"},
        "privacy_level": "public",
    }
    data.update(overrides)
    return GrievanceCreateRequest(**data)


@pytest.fixture
def file_grievance(state_machine, citizen):
    """Files a grievance as `citizen` unless another actor is given."""

    async def _file(actor=None, **overrides):
        grievance, _ = await state_machine.submit_grievance(actor or citizen, grievance_request(**overrides))
        return grievance

    return _file


@pytest.fixture
def seed_department(departments, admin):
    async def _seed(slug: str, sla_hours: int, name: str = None):
        return await departments.create_department(
            admin,
            DepartmentCreateRequest(slug=slug, name=name or slug.title(), sla_hours_default=sla_hours)
        )

    return _seed
