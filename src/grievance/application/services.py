"""
Grievance Application Services
===============================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Every write runs inside one unit of work: the grievance row and the ledger
entry it produces commit together or not at all.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from src.config import (
    CLOSED_STATUSES, EventType, GovernanceHealth, GrievanceStatus,
    PrivacyLevel, SLAState, UserRole,
)
from src.core import (
    ConflictException,
    ForbiddenException,
    ResourceNotFoundException,
    UnauthorizedException,
    ValidationException,
)
from src.grievance.application.dto import (
    DepartmentCreateRequest,
    DepartmentStats,
    DepartmentUpdateRequest,
    GrievanceCreateRequest,
    PublicStatsResponse,
    WardHeatmapEntry,
)
from src.grievance.domain import (
    AccessPolicy,
    Actor,
    Department,
    EventPayload,
    Grievance,
    GrievanceEvent,
    RoutingConfig,
    SubmissionPayload,
    SupportSignal,
    can_transition,
    event_type_for_status,
    format_grievance_id,
    normalize_category,
    parse_event_payload,
    parse_event_type,
)
from src.shared.infrastructure.logging import get_logger
from src.sla.domain import ESCALATION_EXTENSION, SLAClock

logger = get_logger(__name__)

Clock = Callable[[], datetime]

HEATMAP_SAMPLE_LIMIT = 500


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IGrievanceRepository(ABC):
    """Interface for grievance data access."""

    @abstractmethod
    async def get(self, grievance_id: str, for_update: bool = False) -> Optional[Grievance]:
        """Get grievance by ID, optionally row-locked for the rest of the transaction."""

    @abstractmethod
    async def add(self, grievance: Grievance) -> None:
        """Insert a new grievance."""

    @abstractmethod
    async def save(self, grievance: Grievance) -> None:
        """
        Persist changes to an existing grievance.

        Raises:
            ConflictException: If the row changed since it was loaded
        """

    @abstractmethod
    async def next_sequence(self, year: int) -> int:
        """Next free per-year ID sequence."""

    @abstractmethod
    async def list(self, filters: dict, limit: int = 100, offset: int = 0) -> List[Grievance]:
        """List grievances, newest first."""

    @abstractmethod
    async def count(self, filters: dict) -> int:
        """Count grievances matching filters."""

    @abstractmethod
    async def find_breach_candidates(self, now: datetime, limit: int) -> List[Grievance]:
        """Open, not yet breached grievances whose deadline passed, oldest deadline first."""

    @abstractmethod
    async def mark_breached(self, grievance_id: str, now: datetime) -> bool:
        """
        Conditionally set sla_status=breached.

        Returns:
            False if the row was already breached
        """

    @abstractmethod
    async def department_breakdown(self) -> List[Tuple[Optional[str], int, int]]:
        """(department_id, total, breached) per department."""

    @abstractmethod
    async def public_wards(self, limit: int) -> List[Optional[str]]:
        """Ward of up to `limit` public grievances."""


class IEventRepository(ABC):
    """Interface for the append-only ledger."""

    @abstractmethod
    async def append(self, event: GrievanceEvent) -> None:
        """
        Insert a ledger entry.

        Raises:
            ConflictException: If the event ID or sequence already exists
        """

    @abstractmethod
    async def last_for(self, grievance_id: str) -> Optional[GrievanceEvent]:
        """Most recent entry for a grievance."""

    @abstractmethod
    async def list_for(self, grievance_id: str) -> List[GrievanceEvent]:
        """All entries for a grievance, oldest first."""


class ISupportRepository(ABC):
    """Interface for support signal data access."""

    @abstractmethod
    async def get(self, grievance_id: str, citizen_id: str) -> Optional[SupportSignal]:
        """Get a signal by its composite key."""

    @abstractmethod
    async def add(self, signal: SupportSignal) -> None:
        """
        Raises:
            ConflictException: If the signal already exists
        """

    @abstractmethod
    async def delete(self, grievance_id: str, citizen_id: str) -> bool:
        """Returns False if there was nothing to delete."""


class IDepartmentRepository(ABC):
    """Interface for department data access."""

    @abstractmethod
    async def get(self, department_id: str) -> Optional[Department]:
        """Get department by ID (its slug)."""

    @abstractmethod
    async def list(self) -> List[Department]:
        """All departments ordered by name."""

    @abstractmethod
    async def add(self, department: Department) -> None:
        """
        Raises:
            ConflictException: If the slug is taken
        """

    @abstractmethod
    async def save(self, department: Department) -> None:
        """Persist changes to an existing department."""

    @abstractmethod
    async def delete(self, department_id: str) -> bool:
        """Returns False if there was nothing to delete."""


class IUnitOfWork(ABC):
    """
    One transaction spanning every repository.

    Used as `async with factory() as uow: ...; await uow.commit()`. Leaving
    the block without commit rolls back.
    """

    grievances: IGrievanceRepository
    events: IEventRepository
    supports: ISupportRepository
    departments: IDepartmentRepository

    @abstractmethod
    async def __aenter__(self) -> "IUnitOfWork":
        """Open the transaction."""

    @abstractmethod
    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Roll back anything uncommitted and release the connection."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard the transaction."""


UnitOfWorkFactory = Callable[[], IUnitOfWork]


class IRoutingConfigProvider(ABC):
    """Interface for category routing configuration access."""

    @abstractmethod
    def get_config(self) -> RoutingConfig:
        """Get current routing configuration."""


class ILedgerEventPublisher(ABC):
    """Receives each ledger entry after its transaction commits."""

    @abstractmethod
    async def publish(self, event: GrievanceEvent) -> bool:
        """Returns True if the event was delivered."""


class ISessionVerifier(ABC):
    """Turns request credentials into a verified actor."""

    @abstractmethod
    async def verify(self, credentials: Mapping[str, str]) -> Actor:
        """
        Raises:
            UnauthorizedException: If no valid identity is present
        """


# ========== Shared helpers ==========

def require_actor(actor: Optional[Actor]) -> Actor:
    """
    Raises:
        UnauthorizedException: If no verified actor accompanied the call
    """
    if actor is None or not actor.actor_id:
        raise UnauthorizedException()
    return actor


def parse_status(value: Any) -> GrievanceStatus:
    if not value:
        raise ValidationException("status is required")
    try:
        return GrievanceStatus(value)
    except ValueError as e:
        raise ValidationException(f"Unknown status: {value}", {"status": str(value)}) from e


async def load_grievance(uow: IUnitOfWork, grievance_id: str, for_update: bool = False) -> Grievance:
    grievance = await uow.grievances.get(grievance_id, for_update=for_update)
    if grievance is None:
        raise ResourceNotFoundException("Grievance", grievance_id)
    return grievance


async def stamp_ledger_event(
    uow: IUnitOfWork,
    grievance_id: str,
    event_type: EventType,
    actor_id: str,
    actor_role: str,
    payload: EventPayload,
    now: datetime
) -> GrievanceEvent:
    """
    Append the next ledger entry for a grievance inside `uow`.

    Timestamps never go backwards within one grievance's ledger: if the
    clock is behind the latest entry, the entry inherits its timestamp and
    `sequence` keeps the order total.
    """
    last = await uow.events.last_for(grievance_id)
    created_at = now
    sequence = 1
    if last is not None:
        sequence = last.sequence + 1
        if last.created_at > now:
            created_at = last.created_at

    event = GrievanceEvent(
        id=GrievanceEvent.build_id(grievance_id, event_type.value, created_at),
        grievance_id=grievance_id,
        event_type=event_type.value,
        actor_id=actor_id,
        actor_role=actor_role,
        payload=payload.to_json(),
        created_at=created_at,
        sequence=sequence
    )
    await uow.events.append(event)
    return event


# ========== Ledger publishing ==========

_pending_publishes: Set["asyncio.Task[bool]"] = set()


def _on_publish_done(task: "asyncio.Task[bool]") -> None:
    _pending_publishes.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(
            "Ledger event publish failed",
            extra={"event_id": task.get_name(), "error": str(error)}
        )


def schedule_publish(
    publisher: Optional[ILedgerEventPublisher],
    event: GrievanceEvent
) -> Optional["asyncio.Task[bool]"]:
    """
    Hand a committed ledger entry to the publisher in the background.

    The caller never waits on the publisher. Failures are logged by the
    done callback.
    """
    if publisher is None:
        return None
    task = asyncio.create_task(publisher.publish(event), name=event.id)
    _pending_publishes.add(task)
    task.add_done_callback(_on_publish_done)
    return task


async def drain_publishes(timeout: Optional[float] = None) -> int:
    """
    Wait for in-flight publishes, e.g. on shutdown.

    Returns:
        Number of publishes still pending when the timeout expired
    """
    if not _pending_publishes:
        return 0
    _, pending = await asyncio.wait(set(_pending_publishes), timeout=timeout)
    if pending:
        logger.warning("Ledger publishes still pending", extra={"pending": len(pending)})
    return len(pending)


class _PublishingService:
    """Mixin for services that hand committed ledger entries to a publisher."""

    _publisher: Optional[ILedgerEventPublisher] = None

    def _publish(self, event: GrievanceEvent) -> None:
        schedule_publish(self._publisher, event)


# ========== Application Services ==========

class GrievanceStateMachine(_PublishingService):
    """
    Owns every write to a grievance's status, SLA and counters.

    Each operation pairs the grievance write with its ledger entry in a
    single transaction.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        routing_provider: IRoutingConfigProvider,
        publisher: Optional[ILedgerEventPublisher] = None,
        clock: Clock = utc_now,
        escalation_extension: timedelta = ESCALATION_EXTENSION,
        max_submit_attempts: int = 3
    ):
        self._uow_factory = uow_factory
        self._routing_provider = routing_provider
        self._publisher = publisher
        self._clock = clock
        self._escalation_extension = escalation_extension
        self._max_submit_attempts = max_submit_attempts

    async def submit_grievance(
        self,
        actor: Optional[Actor],
        data: GrievanceCreateRequest
    ) -> Tuple[Grievance, GrievanceEvent]:
        """
        File a new grievance and its GRIEVANCE_SUBMITTED entry.

        Citizens always file for themselves. Staff may name the citizen they
        file for. A collision on the generated ID is retried with the next
        sequence.

        Raises:
            UnauthorizedException: No verified actor
            ConflictException: The ID kept colliding
        """
        actor = require_actor(actor)
        if actor.role == UserRole.CITIZEN or not data.citizen_id:
            citizen_id = actor.actor_id
        else:
            citizen_id = data.citizen_id

        category = normalize_category(data.category)
        config = self._routing_provider.get_config()
        department_slug = config.department_for(category)

        for attempt in range(1, self._max_submit_attempts + 1):
            try:
                grievance, event = await self._insert_grievance(
                    actor, citizen_id, category, department_slug, config, data
                )
                break
            except ConflictException:
                if attempt == self._max_submit_attempts:
                    raise
                logger.warning(
                    "Grievance ID collision, retrying",
                    extra={"attempt": attempt}
                )

        logger.info(
            "Grievance submitted",
            extra={
                "grievance_id": grievance.id,
                "category": category.value,
                "department_id": department_slug,
                "actor_role": actor.role.value
            }
        )
        self._publish(event)
        return grievance, event

    async def _insert_grievance(self, actor, citizen_id, category, department_slug, config, data):
        async with self._uow_factory() as uow:
            now = self._clock()
            department = await uow.departments.get(department_slug)
            sla_hours = department.sla_hours_default if department else config.default_sla_hours
            sequence = await uow.grievances.next_sequence(now.year)

            grievance = Grievance(
                id=format_grievance_id(now.year, sequence),
                citizen_id=citizen_id,
                category=category,
                title=data.title,
                description=data.description,
                location=data.location.to_domain(),
                privacy_level=PrivacyLevel(data.privacy_level),
                status=GrievanceStatus.SUBMITTED,
                sla_status=SLAState.ON_TRACK,
                sla_deadline_at=SLAClock.deadline_for(now, sla_hours),
                created_at=now,
                updated_at=now,
                department_id=department_slug
            )
            await uow.grievances.add(grievance)

            event = await stamp_ledger_event(
                uow,
                grievance.id,
                EventType.GRIEVANCE_SUBMITTED,
                actor.actor_id,
                actor.role.value,
                SubmissionPayload(category=category, department_id=department_slug),
                now
            )
            await uow.commit()
        return grievance, event

    async def apply_status_change(
        self,
        grievance_id: str,
        actor: Optional[Actor],
        new_status: Any,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[Grievance, GrievanceEvent]:
        """
        Move a grievance to `new_status` and record the matching ledger entry.

        Closing stamps closed_at and settles sla_status against the deadline.
        Escalating pushes the deadline to at least now + the escalation
        extension and resets sla_status to on_track.

        Args:
            grievance_id: Grievance to change
            actor: Verified staff actor
            new_status: Target status
            metadata: Optional note, estimated_resolution_date, officer_id, department_id

        Returns:
            Tuple of (updated grievance, created event)

        Raises:
            UnauthorizedException: No verified actor
            ResourceNotFoundException: Grievance absent
            ForbiddenException: Actor is not staff
            ValidationException: Missing, unknown or disallowed status, or bad metadata
            ConflictException: Concurrent write on the same grievance
        """
        actor = require_actor(actor)
        metadata = dict(metadata or {})
        officer_id = metadata.pop("officer_id", None)
        department_id = metadata.pop("department_id", None)

        async with self._uow_factory() as uow:
            grievance = await load_grievance(uow, grievance_id, for_update=True)
            AccessPolicy.ensure_staff(actor.role)
            target = parse_status(new_status)
            if not can_transition(grievance.status, target):
                raise ValidationException(
                    f"Cannot move grievance from {grievance.status.value} to {target.value}",
                    {"from": grievance.status.value, "to": target.value}
                )

            event_type = event_type_for_status(target)
            payload = parse_event_payload(event_type, {**metadata, "status": target.value})

            now = self._clock()
            previous_status = grievance.status
            grievance.apply_status(target, now, self._escalation_extension)
            if officer_id:
                grievance.officer_id = officer_id
            if department_id:
                grievance.department_id = department_id

            await uow.grievances.save(grievance)
            event = await stamp_ledger_event(
                uow, grievance.id, event_type, actor.actor_id, actor.role.value, payload, now
            )
            await uow.commit()

        logger.info(
            "Grievance status changed",
            extra={
                "grievance_id": grievance.id,
                "from_status": previous_status.value,
                "to_status": target.value,
                "sla_status": grievance.sla_status.value,
                "actor_role": actor.role.value
            }
        )
        self._publish(event)
        return grievance, event

    async def add_support(self, grievance_id: str, actor: Optional[Actor]) -> Tuple[SupportSignal, int]:
        """
        Record a one-time endorsement and bump support_count.

        Raises:
            UnauthorizedException: No verified actor
            ResourceNotFoundException: Grievance absent
            ConflictException: This actor already supports the grievance
        """
        actor = require_actor(actor)
        async with self._uow_factory() as uow:
            grievance = await load_grievance(uow, grievance_id, for_update=True)
            if await uow.supports.get(grievance_id, actor.actor_id) is not None:
                raise ConflictException(
                    "You have already supported this grievance",
                    {"grievance_id": grievance_id}
                )

            now = self._clock()
            signal = SupportSignal(grievance_id=grievance_id, citizen_id=actor.actor_id, created_at=now)
            await uow.supports.add(signal)
            grievance.add_support(now)
            await uow.grievances.save(grievance)
            await uow.commit()

        logger.info(
            "Support signal added",
            extra={"grievance_id": grievance_id, "support_count": grievance.support_count}
        )
        return signal, grievance.support_count

    async def remove_support(self, grievance_id: str, actor: Optional[Actor]) -> int:
        """
        Withdraw an endorsement and decrement support_count.

        Raises:
            UnauthorizedException: No verified actor
            ResourceNotFoundException: Grievance or signal absent
        """
        actor = require_actor(actor)
        async with self._uow_factory() as uow:
            grievance = await load_grievance(uow, grievance_id, for_update=True)
            if not await uow.supports.delete(grievance_id, actor.actor_id):
                raise ResourceNotFoundException("SupportSignal", f"{grievance_id}_{actor.actor_id}")

            grievance.remove_support(self._clock())
            await uow.grievances.save(grievance)
            await uow.commit()

        logger.info(
            "Support signal removed",
            extra={"grievance_id": grievance_id, "support_count": grievance.support_count}
        )
        return grievance.support_count


class EventLedgerService(_PublishingService):
    """Role-gated ledger authoring and reading."""

    _OWNER_ONLY_EVENTS = frozenset({EventType.CITIZEN_FEEDBACK_SUBMITTED, EventType.REOPENED})

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        publisher: Optional[ILedgerEventPublisher] = None,
        clock: Clock = utc_now
    ):
        self._uow_factory = uow_factory
        self._publisher = publisher
        self._clock = clock

    async def append_event(
        self,
        grievance_id: str,
        actor: Optional[Actor],
        event_type: Any,
        payload: Optional[Dict[str, Any]] = None
    ) -> GrievanceEvent:
        """
        Append a non-transition event to a grievance's ledger.

        REOPENED is the one type that also changes the grievance: it needs a
        closed grievance, moves it to reopened and increments reopen_count.

        Raises:
            UnauthorizedException: No verified actor
            ValidationException: Missing or unknown event type, payload of the wrong shape,
                or a reopen of a grievance that is not closed
            ResourceNotFoundException: Grievance absent
            ForbiddenException: Not visible to the actor, role may not author the type,
                or an owner-only event from someone else
        """
        actor = require_actor(actor)
        resolved_type = parse_event_type(event_type)
        body = parse_event_payload(resolved_type, payload)
        reopening = resolved_type == EventType.REOPENED

        async with self._uow_factory() as uow:
            grievance = await load_grievance(uow, grievance_id, for_update=reopening)
            AccessPolicy.ensure_can_read(
                actor.role, actor.actor_id, grievance.citizen_id, grievance.privacy_level
            )
            AccessPolicy.ensure_can_create_event(actor.role, resolved_type)
            if (
                resolved_type in self._OWNER_ONLY_EVENTS
                and actor.role != UserRole.SYSTEM_ADMIN
                and actor.actor_id != grievance.citizen_id
            ):
                raise ForbiddenException("Forbidden: only the grievance owner can author this event")

            now = self._clock()
            if reopening:
                if grievance.status != GrievanceStatus.CLOSED:
                    raise ValidationException(
                        "Only closed grievances can be reopened",
                        {"status": grievance.status.value}
                    )
                grievance.reopen(now)
                await uow.grievances.save(grievance)

            event = await stamp_ledger_event(
                uow, grievance_id, resolved_type, actor.actor_id, actor.role.value, body, now
            )
            await uow.commit()

        logger.info(
            "Ledger event appended",
            extra={
                "grievance_id": grievance_id,
                "event_type": resolved_type.value,
                "actor_role": actor.role.value
            }
        )
        self._publish(event)
        return event

    async def list_events(self, grievance_id: str, actor: Optional[Actor]) -> List[GrievanceEvent]:
        """Ledger in (created_at, sequence) order."""
        actor = require_actor(actor)
        async with self._uow_factory() as uow:
            grievance = await load_grievance(uow, grievance_id)
            AccessPolicy.ensure_can_read(
                actor.role, actor.actor_id, grievance.citizen_id, grievance.privacy_level
            )
            return await uow.events.list_for(grievance_id)


class GrievanceQueryService:
    """Read paths for grievances."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def get_grievance(self, grievance_id: str, actor: Optional[Actor]) -> Grievance:
        actor = require_actor(actor)
        async with self._uow_factory() as uow:
            grievance = await load_grievance(uow, grievance_id)
        AccessPolicy.ensure_can_read(
            actor.role, actor.actor_id, grievance.citizen_id, grievance.privacy_level
        )
        return grievance

    async def list_grievances(
        self,
        actor: Optional[Actor],
        filters: Optional[dict] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[Grievance]:
        """
        Citizens only ever see their own grievances; staff see all of them.

        Supported filters: status, department_id, sla_status.
        """
        actor = require_actor(actor)
        query = {
            key: value for key, value in (filters or {}).items()
            if key in ("status", "department_id", "sla_status") and value
        }
        if not AccessPolicy.is_staff(actor.role):
            query["citizen_id"] = actor.actor_id

        async with self._uow_factory() as uow:
            return await uow.grievances.list(query, limit=limit, offset=offset)


class DepartmentService:
    """Department directory. Mutations are system_admin only."""

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now):
        self._uow_factory = uow_factory
        self._clock = clock

    @staticmethod
    def _ensure_admin(actor: Optional[Actor]) -> Actor:
        actor = require_actor(actor)
        if actor.role != UserRole.SYSTEM_ADMIN:
            raise ForbiddenException("Forbidden: system_admin role required")
        return actor

    async def list_departments(self) -> List[Department]:
        async with self._uow_factory() as uow:
            return await uow.departments.list()

    async def get_department(self, department_id: str) -> Department:
        async with self._uow_factory() as uow:
            department = await uow.departments.get(department_id)
        if department is None:
            raise ResourceNotFoundException("Department", department_id)
        return department

    async def create_department(self, actor: Optional[Actor], data: DepartmentCreateRequest) -> Department:
        actor = self._ensure_admin(actor)
        now = self._clock()
        department = Department(
            id=data.slug,
            slug=data.slug,
            name=data.name,
            description=data.description,
            sla_hours_default=data.sla_hours_default,
            governance_health=GovernanceHealth(data.governance_health),
            created_at=now,
            updated_at=now
        )
        async with self._uow_factory() as uow:
            if await uow.departments.get(department.id) is not None:
                raise ConflictException(
                    "Department slug already exists",
                    {"slug": department.slug}
                )
            await uow.departments.add(department)
            await uow.commit()

        logger.info("Department created", extra={"department_id": department.id, "actor_id": actor.actor_id})
        return department

    async def update_department(
        self,
        actor: Optional[Actor],
        department_id: str,
        data: DepartmentUpdateRequest
    ) -> Department:
        self._ensure_admin(actor)
        async with self._uow_factory() as uow:
            department = await uow.departments.get(department_id)
            if department is None:
                raise ResourceNotFoundException("Department", department_id)

            changes = data.model_dump(exclude_none=True)
            if "governance_health" in changes:
                changes["governance_health"] = GovernanceHealth(changes["governance_health"])
            for field_name, value in changes.items():
                setattr(department, field_name, value)
            department.updated_at = self._clock()

            await uow.departments.save(department)
            await uow.commit()

        logger.info("Department updated", extra={"department_id": department_id, "fields": sorted(changes)})
        return department

    async def delete_department(self, actor: Optional[Actor], department_id: str) -> None:
        self._ensure_admin(actor)
        async with self._uow_factory() as uow:
            if not await uow.departments.delete(department_id):
                raise ResourceNotFoundException("Department", department_id)
            await uow.commit()

        logger.info("Department deleted", extra={"department_id": department_id})


class TransparencyService:
    """Aggregate, publishable outcome statistics. No authentication."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def get_public_stats(self) -> PublicStatsResponse:
        async with self._uow_factory() as uow:
            total = await uow.grievances.count({})
            resolved_on_time = await uow.grievances.count({
                "status": [status.value for status in CLOSED_STATUSES],
                "sla_status": SLAState.ON_TRACK.value,
            })
            breakdown = await uow.grievances.department_breakdown()
            departments = {d.id: d for d in await uow.departments.list()}
            wards = await uow.grievances.public_wards(HEATMAP_SAMPLE_LIMIT)

        department_stats = [
            DepartmentStats(
                department_id=department_id,
                name=departments[department_id].name if department_id in departments else department_id,
                total=dept_total,
                breached=breached
            )
            for department_id, dept_total, breached in breakdown
            if department_id
        ]

        ward_counts: Dict[str, int] = {}
        for ward in wards:
            if ward:
                ward_counts[ward] = ward_counts.get(ward, 0) + 1

        return PublicStatsResponse(
            total_complaints=total,
            resolved_on_time=resolved_on_time,
            sla_honesty_rate=round(resolved_on_time / total * 100) if total > 0 else 0,
            department_stats=department_stats,
            ward_heatmap=[WardHeatmapEntry(ward=w, count=c) for w, c in ward_counts.items()]
        )
