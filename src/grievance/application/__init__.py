"""
Grievance Application Layer
============================

Application layer for the grievance lifecycle module.

Contains:
- Services: Orchestrate business logic and coordinate with repositories
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.grievance.application.dto import (
    DepartmentCreateRequest,
    DepartmentListResponse,
    DepartmentResponse,
    DepartmentStats,
    DepartmentUpdateRequest,
    EventCreateRequest,
    EventListResponse,
    EventResponse,
    GrievanceCreateRequest,
    GrievanceListResponse,
    GrievanceResponse,
    LocationDTO,
    PublicStatsResponse,
    StatusChangeRequest,
    StatusChangeResponse,
    SubmitResponse,
    SupportResponse,
    WardHeatmapEntry,
)
from src.grievance.application.services import (
    DepartmentService,
    EventLedgerService,
    GrievanceQueryService,
    GrievanceStateMachine,
    IDepartmentRepository,
    IEventRepository,
    IGrievanceRepository,
    ILedgerEventPublisher,
    IRoutingConfigProvider,
    ISessionVerifier,
    ISupportRepository,
    IUnitOfWork,
    TransparencyService,
    UnitOfWorkFactory,
    drain_publishes,
    load_grievance,
    require_actor,
    schedule_publish,
    stamp_ledger_event,
    utc_now,
)

__all__ = [
    # DTOs
    "DepartmentCreateRequest",
    "DepartmentListResponse",
    "DepartmentResponse",
    "DepartmentStats",
    "DepartmentUpdateRequest",
    "EventCreateRequest",
    "EventListResponse",
    "EventResponse",
    "GrievanceCreateRequest",
    "GrievanceListResponse",
    "GrievanceResponse",
    "LocationDTO",
    "PublicStatsResponse",
    "StatusChangeRequest",
    "StatusChangeResponse",
    "SubmitResponse",
    "SupportResponse",
    "WardHeatmapEntry",
    # Services
    "DepartmentService",
    "EventLedgerService",
    "GrievanceQueryService",
    "GrievanceStateMachine",
    "TransparencyService",
    # Helpers
    "drain_publishes",
    "load_grievance",
    "require_actor",
    "schedule_publish",
    "stamp_ledger_event",
    "utc_now",
    # Repository Interfaces
    "IDepartmentRepository",
    "IEventRepository",
    "IGrievanceRepository",
    "ISupportRepository",
    "IUnitOfWork",
    "UnitOfWorkFactory",
    # Collaborator Interfaces
    "ILedgerEventPublisher",
    "IRoutingConfigProvider",
    "ISessionVerifier",
]
