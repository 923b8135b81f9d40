"""Tests for filing grievances and staff status transitions."""

import asyncio
from datetime import date, timedelta

import pytest

from src.config import EventType, GrievanceCategory, GrievanceStatus, SLAState, UserRole
from src.core import (
    ConflictException,
    ForbiddenException,
    RepositoryException,
    ResourceNotFoundException,
    UnauthorizedException,
    ValidationException,
)
from src.grievance.application import GrievanceStateMachine, ILedgerEventPublisher, drain_publishes
from src.grievance.domain import Actor
from src.grievance.infrastructure import SQLAlchemyUnitOfWork, StaticRoutingConfigProvider
from src.infrastructure.database import get_session_maker
from tests.conftest import T0, grievance_request


# -----------------------------------------------------------------------
# Submission
# -----------------------------------------------------------------------


class TestSubmit:
    async def test_citizen_files_grievance(self, state_machine, citizen, publisher) -> None:
        grievance, event = await state_machine.submit_grievance(citizen, grievance_request())

        assert grievance.id == "JM-2025-000001"
        assert grievance.citizen_id == citizen.actor_id
        assert grievance.category == GrievanceCategory.WATER_SUPPLY
        assert grievance.department_id == "water-supply"
        assert grievance.status == GrievanceStatus.SUBMITTED
        assert grievance.sla_status == SLAState.ON_TRACK
        assert grievance.created_at == grievance.updated_at == T0
        # No department row, so the configured default applies
        assert grievance.sla_deadline_at == T0 + timedelta(hours=168)

        assert event.event_type == EventType.GRIEVANCE_SUBMITTED.value
        assert event.sequence == 1
        assert event.actor_id == citizen.actor_id
        assert event.actor_role == "citizen"
        assert event.payload == {
            "status": "submitted",
            "category": "water_supply",
            "department_id": "water-supply",
        }
        await drain_publishes()
        assert publisher.events == [event]

    async def test_ids_are_sequential_per_year(self, file_grievance, clock) -> None:
        first = await file_grievance()
        second = await file_grievance()
        clock.advance(days=365)
        next_year = await file_grievance()

        assert first.id == "JM-2025-000001"
        assert second.id == "JM-2025-000002"
        assert next_year.id == "JM-2026-000001"

    async def test_department_sla_window(self, seed_department, file_grievance) -> None:
        await seed_department("water-supply", 120)
        grievance = await file_grievance()
        assert grievance.sla_deadline_at == T0 + timedelta(hours=120)

    async def test_unknown_category_goes_to_fallback(self, file_grievance) -> None:
        grievance = await file_grievance(category="Stray cattle")
        assert grievance.category == GrievanceCategory.OTHER
        assert grievance.department_id == "general"

    async def test_citizen_cannot_file_for_someone_else(self, file_grievance, citizen) -> None:
        grievance = await file_grievance(citizen_id="citizen-99")
        assert grievance.citizen_id == citizen.actor_id

    async def test_staff_file_on_behalf(self, file_grievance, officer) -> None:
        grievance = await file_grievance(actor=officer, citizen_id="citizen-99")
        assert grievance.citizen_id == "citizen-99"

    async def test_requires_actor(self, state_machine) -> None:
        with pytest.raises(UnauthorizedException):
            await state_machine.submit_grievance(None, grievance_request())

    async def test_text_is_trimmed(self, file_grievance) -> None:
        grievance = await file_grievance(title="  Broken pipe  ")
        assert grievance.title == "Broken pipe"

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ValueError):
            grievance_request(title="   ")


# -----------------------------------------------------------------------
# Status changes
# -----------------------------------------------------------------------


class TestApplyStatusChange:
    async def test_acknowledge(self, state_machine, file_grievance, officer, clock) -> None:
        grievance = await file_grievance()
        clock.advance(hours=2)

        updated, event = await state_machine.apply_status_change(
            grievance.id, officer, "acknowledged", {"note": "Crew scheduled"}
        )

        assert updated.status == GrievanceStatus.ACKNOWLEDGED
        assert updated.updated_at == T0 + timedelta(hours=2)
        assert event.event_type == EventType.OFFICER_ACKNOWLEDGED.value
        assert event.sequence == 2
        assert event.actor_role == "officer"
        assert event.payload == {"status": "acknowledged", "note": "Crew scheduled", "estimated_resolution_date": None}

    async def test_assignment_metadata(self, state_machine, file_grievance, dept_admin, queries) -> None:
        grievance = await file_grievance()
        updated, event = await state_machine.apply_status_change(
            grievance.id, dept_admin, GrievanceStatus.ASSIGNED,
            {"officer_id": "officer-7", "department_id": "sanitation", "estimated_resolution_date": date(2025, 1, 20)}
        )

        assert updated.officer_id == "officer-7"
        assert updated.department_id == "sanitation"
        assert event.event_type == EventType.OFFICER_ASSIGNED.value
        assert event.payload == {"status": "assigned", "note": "", "estimated_resolution_date": "2025-01-20"}

        stored = await queries.get_grievance(grievance.id, dept_admin)
        assert stored.officer_id == "officer-7"

    async def test_citizen_forbidden(self, state_machine, file_grievance, citizen) -> None:
        grievance = await file_grievance()
        with pytest.raises(ForbiddenException):
            await state_machine.apply_status_change(grievance.id, citizen, "closed")

    async def test_missing_grievance_checked_before_role(self, state_machine, citizen, database) -> None:
        with pytest.raises(ResourceNotFoundException):
            await state_machine.apply_status_change("JM-2025-000404", citizen, "closed")

    async def test_requires_actor(self, state_machine, file_grievance) -> None:
        grievance = await file_grievance()
        with pytest.raises(UnauthorizedException):
            await state_machine.apply_status_change(grievance.id, None, "closed")

    @pytest.mark.parametrize("status", [None, "", "resolved"])
    async def test_bad_status(self, state_machine, file_grievance, officer, status) -> None:
        grievance = await file_grievance()
        with pytest.raises(ValidationException):
            await state_machine.apply_status_change(grievance.id, officer, status)

    async def test_disallowed_transition_writes_nothing(self, state_machine, file_grievance, officer, ledger, queries) -> None:
        grievance = await file_grievance()
        with pytest.raises(ValidationException):
            await state_machine.apply_status_change(grievance.id, officer, "in_progress")

        assert (await queries.get_grievance(grievance.id, officer)).status == GrievanceStatus.SUBMITTED
        assert len(await ledger.list_events(grievance.id, officer)) == 1

    async def test_bad_metadata_rejected(self, state_machine, file_grievance, officer) -> None:
        grievance = await file_grievance()
        with pytest.raises(ValidationException):
            await state_machine.apply_status_change(grievance.id, officer, "acknowledged", {"rating": 5})


class TestClosing:
    async def test_close_before_deadline(self, state_machine, file_grievance, officer, clock) -> None:
        grievance = await file_grievance()
        clock.advance(days=2)

        closed, event = await state_machine.apply_status_change(grievance.id, officer, "closed")

        assert closed.status == GrievanceStatus.CLOSED
        assert closed.closed_at == clock.now
        assert closed.sla_status == SLAState.ON_TRACK
        assert event.event_type == EventType.COMPLAINT_CLOSED.value

    async def test_close_after_deadline(self, state_machine, file_grievance, officer, clock) -> None:
        grievance = await file_grievance()
        clock.advance(days=8)

        closed, _ = await state_machine.apply_status_change(grievance.id, officer, "closed")
        assert closed.sla_status == SLAState.BREACHED

    async def test_close_exactly_at_deadline_is_breached(self, state_machine, file_grievance, officer, clock) -> None:
        grievance = await file_grievance()
        clock.set(grievance.sla_deadline_at)

        closed, _ = await state_machine.apply_status_change(grievance.id, officer, "closed")
        assert closed.sla_status == SLAState.BREACHED

    async def test_final_close(self, state_machine, file_grievance, officer, clock) -> None:
        grievance = await file_grievance()
        await state_machine.apply_status_change(grievance.id, officer, "closed")
        clock.advance(days=1)

        final, event = await state_machine.apply_status_change(grievance.id, officer, "final_closed")
        assert final.status == GrievanceStatus.FINAL_CLOSED
        assert final.closed_at == clock.now
        assert event.event_type == EventType.FINAL_CLOSED.value

        with pytest.raises(ValidationException):
            await state_machine.apply_status_change(grievance.id, officer, "in_progress")

    async def test_staff_cannot_reopen(self, state_machine, file_grievance, officer) -> None:
        grievance = await file_grievance()
        await state_machine.apply_status_change(grievance.id, officer, "closed")
        with pytest.raises(ValidationException):
            await state_machine.apply_status_change(grievance.id, officer, "reopened")


class TestEscalation:
    async def test_escalation_extends_deadline(self, state_machine, file_grievance, dept_admin, clock) -> None:
        grievance = await file_grievance()
        clock.advance(days=6, hours=12)

        escalated, event = await state_machine.apply_status_change(grievance.id, dept_admin, "escalated")

        assert escalated.status == GrievanceStatus.ESCALATED
        assert escalated.sla_deadline_at == clock.now + timedelta(days=3)
        assert escalated.sla_status == SLAState.ON_TRACK
        assert event.event_type == EventType.ESCALATED.value

    async def test_escalation_keeps_a_later_deadline(self, state_machine, file_grievance, officer) -> None:
        grievance = await file_grievance()
        escalated, _ = await state_machine.apply_status_change(grievance.id, officer, "escalated")
        assert escalated.sla_deadline_at == grievance.sla_deadline_at

    async def test_escalation_clears_breach(self, state_machine, file_grievance, officer, sweep, clock) -> None:
        grievance = await file_grievance()
        clock.advance(days=8)
        assert await sweep.run_sweep() == 1

        escalated, _ = await state_machine.apply_status_change(grievance.id, officer, "escalated")
        assert escalated.sla_status == SLAState.ON_TRACK
        assert escalated.sla_deadline_at == clock.now + timedelta(days=3)


# -----------------------------------------------------------------------
# Atomicity and concurrency
# -----------------------------------------------------------------------


class _ExplodingEvents:
    def __init__(self, inner):
        self._inner = inner

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def append(self, event):
        raise RepositoryException("disk full")


class _ExplodingUnitOfWork(SQLAlchemyUnitOfWork):
    async def __aenter__(self):
        await super().__aenter__()
        self.events = _ExplodingEvents(self.events)
        return self


class TestAtomicity:
    async def test_failed_ledger_write_rolls_back_status(self, file_grievance, officer, clock, queries, ledger) -> None:
        grievance = await file_grievance()
        session_maker = get_session_maker()
        broken = GrievanceStateMachine(
            lambda: _ExplodingUnitOfWork(session_maker),
            StaticRoutingConfigProvider(),
            clock=clock
        )

        with pytest.raises(RepositoryException):
            await broken.apply_status_change(grievance.id, officer, "acknowledged")

        stored = await queries.get_grievance(grievance.id, officer)
        assert stored.status == GrievanceStatus.SUBMITTED
        assert stored.version == grievance.version
        assert [e.event_type for e in await ledger.list_events(grievance.id, officer)] == ["GRIEVANCE_SUBMITTED"]

    async def test_failed_ledger_write_rolls_back_submission(self, uow_factory, citizen, clock, queries) -> None:
        session_maker = get_session_maker()
        broken = GrievanceStateMachine(
            lambda: _ExplodingUnitOfWork(session_maker),
            StaticRoutingConfigProvider(),
            clock=clock
        )

        with pytest.raises(RepositoryException):
            await broken.submit_grievance(citizen, grievance_request())

        assert await queries.list_grievances(Actor("admin", UserRole.SYSTEM_ADMIN)) == []

    async def test_stale_version_conflicts(self, uow_factory, file_grievance) -> None:
        grievance = await file_grievance()
        async with uow_factory() as uow:
            loaded = await uow.grievances.get(grievance.id, for_update=True)
            loaded.version += 1
            with pytest.raises(ConflictException):
                await uow.grievances.save(loaded)

    async def test_version_bumps_on_every_write(self, state_machine, file_grievance, officer) -> None:
        grievance = await file_grievance()
        updated, _ = await state_machine.apply_status_change(grievance.id, officer, "acknowledged")
        assert updated.version == grievance.version + 1


class TestQueries:
    async def test_citizens_see_only_their_own(self, file_grievance, citizen, other_citizen, officer, queries) -> None:
        mine = await file_grievance()
        await file_grievance(actor=other_citizen)

        assert [g.id for g in await queries.list_grievances(citizen)] == [mine.id]
        assert len(await queries.list_grievances(officer)) == 2

    async def test_staff_filters(self, state_machine, file_grievance, officer, queries, clock) -> None:
        first = await file_grievance()
        clock.advance(minutes=1)
        second = await file_grievance(category="electricity")
        await state_machine.apply_status_change(first.id, officer, "acknowledged")

        acknowledged = await queries.list_grievances(officer, {"status": "acknowledged"})
        assert [g.id for g in acknowledged] == [first.id]

        electricity = await queries.list_grievances(officer, {"department_id": "electricity"})
        assert [g.id for g in electricity] == [second.id]

        # Newest first
        assert [g.id for g in await queries.list_grievances(officer)] == [second.id, first.id]

    async def test_private_grievance_hidden_from_other_citizens(
        self, file_grievance, other_citizen, officer, queries
    ) -> None:
        grievance = await file_grievance(privacy_level="private")
        with pytest.raises(ForbiddenException):
            await queries.get_grievance(grievance.id, other_citizen)
        assert (await queries.get_grievance(grievance.id, officer)).id == grievance.id

    async def test_missing_grievance(self, queries, officer, database) -> None:
        with pytest.raises(ResourceNotFoundException):
            await queries.get_grievance("JM-2025-000404", officer)


# -----------------------------------------------------------------------
# Ledger publishing
# -----------------------------------------------------------------------


class _GatedPublisher(ILedgerEventPublisher):
    """Holds every publish until the test opens the gate."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.published = []

    async def publish(self, event) -> bool:
        await self.gate.wait()
        self.published.append(event)
        return True


class TestPublishing:
    async def test_status_change_does_not_wait_for_publisher(
        self, uow_factory, routing_provider, file_grievance, officer, clock
    ) -> None:
        grievance = await file_grievance()
        publisher = _GatedPublisher()
        machine = GrievanceStateMachine(uow_factory, routing_provider, publisher=publisher, clock=clock)

        _, event = await asyncio.wait_for(
            machine.apply_status_change(grievance.id, officer, "acknowledged"), timeout=1
        )
        assert publisher.published == []

        publisher.gate.set()
        assert await drain_publishes(timeout=1) == 0
        assert publisher.published == [event]

    async def test_drain_reports_stuck_publishes(
        self, uow_factory, routing_provider, citizen, clock
    ) -> None:
        publisher = _GatedPublisher()
        machine = GrievanceStateMachine(uow_factory, routing_provider, publisher=publisher, clock=clock)
        await machine.submit_grievance(citizen, grievance_request())

        assert await drain_publishes(timeout=0.01) == 1
        publisher.gate.set()
        assert await drain_publishes(timeout=1) == 0
