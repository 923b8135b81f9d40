"""
Grievance Infrastructure Repositories
======================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. Every write is flushed immediately so storage
errors surface as core exceptions at the call that caused them.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import (
    CLOSED_STATUSES, GovernanceHealth, GrievanceCategory, GrievanceStatus,
    PrivacyLevel, SLAState,
)
from src.core import ConflictException
from src.grievance.application import (
    IDepartmentRepository,
    IEventRepository,
    IGrievanceRepository,
    ISupportRepository,
    IUnitOfWork,
)
from src.grievance.domain import (
    Department,
    Grievance,
    GrievanceEvent,
    GrievanceLocation,
    SupportSignal,
    grievance_id_sequence,
)
from src.grievance.infrastructure.models import (
    DepartmentModel,
    GrievanceEventModel,
    GrievanceModel,
    SupportSignalModel,
)
from src.infrastructure.database import translate_database_error
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


async def _flush(session: AsyncSession) -> None:
    try:
        await session.flush()
    except SQLAlchemyError as e:
        raise translate_database_error(e) from e


def _grievance_to_entity(model: GrievanceModel) -> Grievance:
    return Grievance(
        id=model.id,
        citizen_id=model.citizen_id,
        category=GrievanceCategory(model.category),
        title=model.title,
        description=model.description,
        location=GrievanceLocation.from_dict(model.location),
        privacy_level=PrivacyLevel(model.privacy_level),
        status=GrievanceStatus(model.status),
        sla_status=SLAState(model.sla_status),
        sla_deadline_at=model.sla_deadline_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
        department_id=model.department_id,
        officer_id=model.officer_id,
        support_count=model.support_count,
        reopen_count=model.reopen_count,
        closed_at=model.closed_at,
        version=model.version
    )


def _event_to_entity(model: GrievanceEventModel) -> GrievanceEvent:
    return GrievanceEvent(
        id=model.id,
        grievance_id=model.grievance_id,
        event_type=model.event_type,
        actor_id=model.actor_id,
        actor_role=model.actor_role,
        payload=dict(model.payload or {}),
        created_at=model.created_at,
        sequence=model.sequence
    )


def _department_to_entity(model: DepartmentModel) -> Department:
    return Department(
        id=model.id,
        name=model.name,
        slug=model.slug,
        description=model.description,
        sla_hours_default=model.sla_hours_default,
        governance_health=GovernanceHealth(model.governance_health),
        created_at=model.created_at,
        updated_at=model.updated_at
    )


class SQLAlchemyGrievanceRepository(IGrievanceRepository):
    """
    SQLAlchemy implementation of grievance repository.

    Handles persistence of Grievance entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, grievance_id: str, for_update: bool = False) -> Optional[Grievance]:
        stmt = select(GrievanceModel).where(GrievanceModel.id == grievance_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _grievance_to_entity(model) if model else None

    async def add(self, grievance: Grievance) -> None:
        model = GrievanceModel(
            id=grievance.id,
            citizen_id=grievance.citizen_id,
            category=grievance.category.value,
            title=grievance.title,
            description=grievance.description,
            location=grievance.location.to_dict(),
            ward=grievance.location.ward,
            privacy_level=grievance.privacy_level.value,
            status=grievance.status.value,
            sla_status=grievance.sla_status.value,
            sla_deadline_at=grievance.sla_deadline_at,
            department_id=grievance.department_id,
            officer_id=grievance.officer_id,
            support_count=grievance.support_count,
            reopen_count=grievance.reopen_count,
            created_at=grievance.created_at,
            updated_at=grievance.updated_at,
            closed_at=grievance.closed_at
        )
        self._session.add(model)
        await _flush(self._session)
        grievance.version = model.version

    async def save(self, grievance: Grievance) -> None:
        model = await self._session.get(GrievanceModel, grievance.id)
        if model is None or model.version != grievance.version:
            raise ConflictException(
                "Grievance was modified concurrently",
                {"grievance_id": grievance.id}
            )

        # privacy_level, citizen_id and content are immutable after creation
        model.status = grievance.status.value
        model.sla_status = grievance.sla_status.value
        model.sla_deadline_at = grievance.sla_deadline_at
        model.department_id = grievance.department_id
        model.officer_id = grievance.officer_id
        model.support_count = grievance.support_count
        model.reopen_count = grievance.reopen_count
        model.updated_at = grievance.updated_at
        model.closed_at = grievance.closed_at

        await _flush(self._session)
        grievance.version = model.version

    async def next_sequence(self, year: int) -> int:
        stmt = select(func.max(GrievanceModel.id)).where(GrievanceModel.id.like(f"JM-{year:04d}-%"))
        result = await self._session.execute(stmt)
        latest = result.scalar_one_or_none()
        if not latest:
            return 1
        return grievance_id_sequence(latest) + 1

    def _conditions(self, filters: dict) -> list:
        conditions = []
        if filters.get("status"):
            status_filter = filters["status"]
            if isinstance(status_filter, (list, tuple, set, frozenset)):
                conditions.append(GrievanceModel.status.in_(list(status_filter)))
            else:
                conditions.append(GrievanceModel.status == status_filter)
        for key in ("sla_status", "department_id", "citizen_id", "privacy_level"):
            if filters.get(key):
                conditions.append(getattr(GrievanceModel, key) == filters[key])
        return conditions

    async def list(self, filters: dict, limit: int = 100, offset: int = 0) -> List[Grievance]:
        stmt = select(GrievanceModel)
        conditions = self._conditions(filters)
        if conditions:
            stmt = stmt.where(and_(*conditions))

        # Order by created_at descending
        stmt = stmt.order_by(GrievanceModel.created_at.desc(), GrievanceModel.id.desc())
        stmt = stmt.limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return [_grievance_to_entity(model) for model in result.scalars().all()]

    async def count(self, filters: dict) -> int:
        stmt = select(func.count()).select_from(GrievanceModel)
        conditions = self._conditions(filters)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def find_breach_candidates(self, now: datetime, limit: int) -> List[Grievance]:
        stmt = (
            select(GrievanceModel)
            .where(
                GrievanceModel.sla_status != SLAState.BREACHED.value,
                GrievanceModel.status.not_in([status.value for status in CLOSED_STATUSES]),
                GrievanceModel.sla_deadline_at < now,
            )
            .order_by(GrievanceModel.sla_deadline_at.asc(), GrievanceModel.id.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(stmt)
        return [_grievance_to_entity(model) for model in result.scalars().all()]

    async def mark_breached(self, grievance_id: str, now: datetime) -> bool:
        stmt = (
            update(GrievanceModel)
            .where(
                GrievanceModel.id == grievance_id,
                GrievanceModel.sla_status != SLAState.BREACHED.value,
            )
            .values(
                sla_status=SLAState.BREACHED.value,
                updated_at=now,
                version=GrievanceModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise translate_database_error(e) from e
        return result.rowcount == 1

    async def department_breakdown(self) -> List[Tuple[Optional[str], int, int]]:
        breached = func.sum(case((GrievanceModel.sla_status == SLAState.BREACHED.value, 1), else_=0))
        stmt = (
            select(GrievanceModel.department_id, func.count(), breached)
            .group_by(GrievanceModel.department_id)
            .order_by(GrievanceModel.department_id)
        )
        result = await self._session.execute(stmt)
        return [(dept, int(total), int(breach or 0)) for dept, total, breach in result.all()]

    async def public_wards(self, limit: int) -> List[Optional[str]]:
        stmt = (
            select(GrievanceModel.ward)
            .where(GrievanceModel.privacy_level == PrivacyLevel.PUBLIC.value)
            .order_by(GrievanceModel.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemyEventRepository(IEventRepository):
    """Append-only ledger storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, event: GrievanceEvent) -> None:
        # The previous entry may already sit in the identity map
        if await self._session.get(GrievanceEventModel, event.id) is not None:
            raise ConflictException("Ledger event already exists", {"event_id": event.id})

        self._session.add(GrievanceEventModel(
            id=event.id,
            grievance_id=event.grievance_id,
            event_type=event.event_type,
            actor_id=event.actor_id,
            actor_role=event.actor_role,
            payload=dict(event.payload),
            created_at=event.created_at,
            sequence=event.sequence
        ))
        await _flush(self._session)

    async def last_for(self, grievance_id: str) -> Optional[GrievanceEvent]:
        stmt = (
            select(GrievanceEventModel)
            .where(GrievanceEventModel.grievance_id == grievance_id)
            .order_by(GrievanceEventModel.sequence.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _event_to_entity(model) if model else None

    async def list_for(self, grievance_id: str) -> List[GrievanceEvent]:
        stmt = (
            select(GrievanceEventModel)
            .where(GrievanceEventModel.grievance_id == grievance_id)
            .order_by(GrievanceEventModel.created_at.asc(), GrievanceEventModel.sequence.asc())
        )
        result = await self._session.execute(stmt)
        return [_event_to_entity(model) for model in result.scalars().all()]


class SQLAlchemySupportRepository(ISupportRepository):
    """Support signals keyed by (grievance_id, citizen_id)."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, grievance_id: str, citizen_id: str) -> Optional[SupportSignal]:
        model = await self._session.get(SupportSignalModel, (grievance_id, citizen_id))
        if model is None:
            return None
        return SupportSignal(
            grievance_id=model.grievance_id,
            citizen_id=model.citizen_id,
            created_at=model.created_at
        )

    async def add(self, signal: SupportSignal) -> None:
        self._session.add(SupportSignalModel(
            grievance_id=signal.grievance_id,
            citizen_id=signal.citizen_id,
            created_at=signal.created_at
        ))
        await _flush(self._session)

    async def delete(self, grievance_id: str, citizen_id: str) -> bool:
        stmt = delete(SupportSignalModel).where(
            SupportSignalModel.grievance_id == grievance_id,
            SupportSignalModel.citizen_id == citizen_id,
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise translate_database_error(e) from e
        return result.rowcount == 1


class SQLAlchemyDepartmentRepository(IDepartmentRepository):
    """SQLAlchemy implementation of department repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, department_id: str) -> Optional[Department]:
        model = await self._session.get(DepartmentModel, department_id)
        return _department_to_entity(model) if model else None

    async def list(self) -> List[Department]:
        result = await self._session.execute(select(DepartmentModel).order_by(DepartmentModel.name))
        return [_department_to_entity(model) for model in result.scalars().all()]

    async def add(self, department: Department) -> None:
        self._session.add(DepartmentModel(
            id=department.id,
            slug=department.slug,
            name=department.name,
            description=department.description,
            sla_hours_default=department.sla_hours_default,
            governance_health=department.governance_health.value,
            created_at=department.created_at,
            updated_at=department.updated_at
        ))
        await _flush(self._session)

    async def save(self, department: Department) -> None:
        model = await self._session.get(DepartmentModel, department.id)
        if model is None:
            raise ConflictException("Department no longer exists", {"department_id": department.id})
        model.name = department.name
        model.description = department.description
        model.sla_hours_default = department.sla_hours_default
        model.governance_health = department.governance_health.value
        model.updated_at = department.updated_at
        await _flush(self._session)

    async def delete(self, department_id: str) -> bool:
        model = await self._session.get(DepartmentModel, department_id)
        if model is None:
            return False
        await self._session.delete(model)
        await _flush(self._session)
        return True


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    One AsyncSession per unit of work.

    Storage failures leave the block as core exceptions; the raw
    SQLAlchemy error is chained as the cause.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self._session = self._session_maker()
        self.grievances = SQLAlchemyGrievanceRepository(self._session)
        self.events = SQLAlchemyEventRepository(self._session)
        self.supports = SQLAlchemySupportRepository(self._session)
        self.departments = SQLAlchemyDepartmentRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        session = self._session
        self._session = None
        try:
            await session.rollback()
        except SQLAlchemyError as e:
            logger.warning("Rollback failed", extra={"error": str(e)})
        finally:
            await session.close()

        if isinstance(exc, SQLAlchemyError):
            raise translate_database_error(exc) from exc

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            raise translate_database_error(e) from e

    async def rollback(self) -> None:
        await self._session.rollback()
