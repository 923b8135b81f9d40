"""Tests for the department directory and public transparency statistics."""

import pytest

from src.config import GovernanceHealth
from src.core import ConflictException, ForbiddenException, ResourceNotFoundException, UnauthorizedException
from src.grievance.application import DepartmentCreateRequest, DepartmentUpdateRequest


class TestDepartments:
    async def test_create_and_read(self, departments, admin) -> None:
        created = await departments.create_department(
            admin,
            DepartmentCreateRequest(slug="water-supply", name="Water Supply", sla_hours_default=120)
        )
        assert created.id == created.slug == "water-supply"
        assert created.governance_health == GovernanceHealth.STABLE

        assert (await departments.get_department("water-supply")).name == "Water Supply"
        assert [d.id for d in await departments.list_departments()] == ["water-supply"]

    async def test_list_sorted_by_name(self, seed_department, departments) -> None:
        await seed_department("water-supply", 120, name="Water Supply")
        await seed_department("electricity", 72, name="Electricity")
        assert [d.name for d in await departments.list_departments()] == ["Electricity", "Water Supply"]

    async def test_duplicate_slug(self, seed_department) -> None:
        await seed_department("sanitation", 96)
        with pytest.raises(ConflictException):
            await seed_department("sanitation", 48)

    async def test_update(self, seed_department, departments, admin, clock) -> None:
        await seed_department("sanitation", 96)
        clock.advance(hours=1)

        updated = await departments.update_department(
            admin, "sanitation", DepartmentUpdateRequest(sla_hours_default=48, governance_health="under_strain")
        )
        assert updated.sla_hours_default == 48
        assert updated.governance_health == GovernanceHealth.UNDER_STRAIN
        assert updated.updated_at == clock.now
        assert (await departments.get_department("sanitation")).sla_hours_default == 48

    async def test_delete(self, seed_department, departments, admin) -> None:
        await seed_department("sanitation", 96)
        await departments.delete_department(admin, "sanitation")

        with pytest.raises(ResourceNotFoundException):
            await departments.get_department("sanitation")
        with pytest.raises(ResourceNotFoundException):
            await departments.delete_department(admin, "sanitation")

    async def test_mutations_need_system_admin(self, departments, officer, dept_admin, database) -> None:
        request = DepartmentCreateRequest(slug="roads", name="Roads")
        for actor in (officer, dept_admin):
            with pytest.raises(ForbiddenException):
                await departments.create_department(actor, request)
        with pytest.raises(UnauthorizedException):
            await departments.create_department(None, request)

    async def test_missing(self, departments, admin, database) -> None:
        with pytest.raises(ResourceNotFoundException):
            await departments.update_department(admin, "nope", DepartmentUpdateRequest(name="X"))

    def test_slug_format(self) -> None:
        with pytest.raises(ValueError):
            DepartmentCreateRequest(slug="Water Supply", name="Water Supply")


class TestPublicStats:
    async def test_empty(self, transparency, database) -> None:
        stats = await transparency.get_public_stats()
        assert stats.total_complaints == 0
        assert stats.sla_honesty_rate == 0
        assert stats.department_stats == []
        assert stats.ward_heatmap == []

    async def test_aggregates(self, transparency, state_machine, sweep, seed_department, file_grievance, officer, clock) -> None:
        await seed_department("water-supply", 168, name="Water Supply")

        on_time = await file_grievance(location={"ward": "Ward 7"})
        late = await file_grievance(location={"ward": "Ward 7"})
        await file_grievance(category="electricity", location={"ward": "Ward 9"})
        await file_grievance(category="electricity", privacy_level="private", location={"ward": "Ward 1"})

        await state_machine.apply_status_change(on_time.id, officer, "closed")
        clock.advance(days=8)
        await state_machine.apply_status_change(late.id, officer, "closed")
        await sweep.run_sweep()

        stats = await transparency.get_public_stats()

        assert stats.total_complaints == 4
        assert stats.resolved_on_time == 1
        assert stats.sla_honesty_rate == 25

        by_department = {s.department_id: s for s in stats.department_stats}
        assert by_department["water-supply"].name == "Water Supply"
        assert (by_department["water-supply"].total, by_department["water-supply"].breached) == (2, 1)
        # No department row, the slug stands in for the name
        assert by_department["electricity"].name == "electricity"
        assert (by_department["electricity"].total, by_department["electricity"].breached) == (2, 2)

        heatmap = {entry.ward: entry.count for entry in stats.ward_heatmap}
        assert heatmap == {"Ward 7": 2, "Ward 9": 1}
