"""
FastAPI dependencies for the grievance and SLA routers.

Collaborators are taken from `app.state` (wired in the lifespan) and fall
back to process defaults, so routers also work in a bare app.
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Request

from src.config import settings
from src.grievance.application import (
    DepartmentService,
    EventLedgerService,
    GrievanceQueryService,
    GrievanceStateMachine,
    ILedgerEventPublisher,
    IRoutingConfigProvider,
    ISessionVerifier,
    TransparencyService,
    UnitOfWorkFactory,
    utc_now,
)
from src.grievance.application.services import Clock
from src.grievance.domain import Actor
from src.grievance.infrastructure import (
    NullEventPublisher,
    SQLAlchemyUnitOfWork,
    StaticRoutingConfigProvider,
    TrustedHeaderSessionVerifier,
)
from src.infrastructure.database import get_session_maker
from src.sla.application import SLAStatusService, SLASweepService


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    factory = getattr(request.app.state, "uow_factory", None)
    if factory is not None:
        return factory
    session_maker = get_session_maker()
    return lambda: SQLAlchemyUnitOfWork(session_maker)


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", None) or utc_now


def get_event_publisher(request: Request) -> ILedgerEventPublisher:
    return getattr(request.app.state, "event_publisher", None) or NullEventPublisher()


def get_routing_provider(request: Request) -> IRoutingConfigProvider:
    return getattr(request.app.state, "routing_provider", None) or StaticRoutingConfigProvider()


def get_session_verifier(request: Request) -> ISessionVerifier:
    return getattr(request.app.state, "session_verifier", None) or TrustedHeaderSessionVerifier()


async def get_current_actor(
    request: Request,
    verifier: ISessionVerifier = Depends(get_session_verifier)
) -> Actor:
    """Verified caller; raises UnauthorizedException without one."""
    return await verifier.verify(request.headers)


def get_cron_secret() -> Optional[str]:
    return settings.cron_secret


# ========== Services ==========

def get_state_machine(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    routing_provider: IRoutingConfigProvider = Depends(get_routing_provider),
    publisher: ILedgerEventPublisher = Depends(get_event_publisher),
    clock: Clock = Depends(get_clock)
) -> GrievanceStateMachine:
    return GrievanceStateMachine(
        uow_factory,
        routing_provider,
        publisher=publisher,
        clock=clock,
        escalation_extension=timedelta(hours=settings.sla_escalation_extension_hours)
    )


def get_ledger_service(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: ILedgerEventPublisher = Depends(get_event_publisher),
    clock: Clock = Depends(get_clock)
) -> EventLedgerService:
    return EventLedgerService(uow_factory, publisher=publisher, clock=clock)


def get_query_service(uow_factory: UnitOfWorkFactory = Depends(get_uow_factory)) -> GrievanceQueryService:
    return GrievanceQueryService(uow_factory)


def get_department_service(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    clock: Clock = Depends(get_clock)
) -> DepartmentService:
    return DepartmentService(uow_factory, clock=clock)


def get_transparency_service(uow_factory: UnitOfWorkFactory = Depends(get_uow_factory)) -> TransparencyService:
    return TransparencyService(uow_factory)


def get_sla_status_service(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    clock: Clock = Depends(get_clock)
) -> SLAStatusService:
    return SLAStatusService(
        uow_factory,
        clock=clock,
        at_risk_threshold=timedelta(hours=settings.sla_at_risk_hours),
        default_window=timedelta(hours=settings.sla_default_window_hours)
    )


def get_sweep_service(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    publisher: ILedgerEventPublisher = Depends(get_event_publisher),
    clock: Clock = Depends(get_clock)
) -> SLASweepService:
    return SLASweepService(uow_factory, publisher=publisher, clock=clock)
