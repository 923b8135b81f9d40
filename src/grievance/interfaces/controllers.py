"""
Grievance Controllers (API Routes)
===================================

FastAPI routes for grievances, departments and public statistics.

Controllers are thin - they delegate to application services. Core
exceptions are turned into JSON errors by the application exception handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from src.core import ValidationException
from src.grievance.application import (
    DepartmentCreateRequest,
    DepartmentListResponse,
    DepartmentResponse,
    DepartmentService,
    DepartmentUpdateRequest,
    EventCreateRequest,
    EventListResponse,
    EventLedgerService,
    EventResponse,
    GrievanceCreateRequest,
    GrievanceListResponse,
    GrievanceQueryService,
    GrievanceResponse,
    GrievanceStateMachine,
    PublicStatsResponse,
    StatusChangeRequest,
    StatusChangeResponse,
    SubmitResponse,
    SupportResponse,
    TransparencyService,
)
from src.grievance.domain import Actor, is_valid_grievance_id
from src.grievance.interfaces.dependencies import (
    get_current_actor,
    get_department_service,
    get_ledger_service,
    get_query_service,
    get_sla_status_service,
    get_state_machine,
    get_transparency_service,
)
from src.shared.infrastructure.logging import get_logger
from src.sla.application import GrievanceSLAResponse, SLAReadingResponse, SLAStatusService

logger = get_logger(__name__)

router = APIRouter(prefix="/grievances", tags=["Grievances"])
departments_router = APIRouter(prefix="/departments", tags=["Departments"])
public_router = APIRouter(prefix="/public", tags=["Transparency"])


# ========== Example payloads for Swagger ==========

GRIEVANCE_CREATE_EXAMPLE = {
    "category": "Water Supply",
    "title": "No water since Monday",
    "description": "The municipal supply to our lane has been off for three days.",
    "location": {"address_text": "12 MG Road", "ward": "Ward 7", "pincode": "560001"},
    "privacy_level": "public"
}


def _check_id(grievance_id: str) -> str:
    if not is_valid_grievance_id(grievance_id):
        raise ValidationException(
            "Malformed grievance ID, expected JM-YYYY-NNNNNN",
            {"grievance_id": grievance_id}
        )
    return grievance_id


# ========== Grievances ==========

@router.post(
    "",
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="File a grievance",
    description="""
    File a grievance. The category is normalised (`"Roads & Transport"` ->
    `roads_transport`), routed to a department through `routing_config.yaml`,
    and the SLA deadline is set from that department's default window.

    Citizens always file for themselves; staff may set `citizen_id`.
    """,
    openapi_extra={"requestBody": {"content": {"application/json": {"example": GRIEVANCE_CREATE_EXAMPLE}}}}
)
async def submit_grievance(
    request: GrievanceCreateRequest,
    actor: Actor = Depends(get_current_actor),
    state_machine: GrievanceStateMachine = Depends(get_state_machine)
):
    grievance, event = await state_machine.submit_grievance(actor, request)
    return SubmitResponse(
        grievance=GrievanceResponse.from_domain(grievance),
        event=EventResponse.from_domain(event)
    )


@router.get(
    "",
    response_model=GrievanceListResponse,
    summary="List grievances",
    description="Citizens see only their own grievances; staff see all, filterable."
)
async def list_grievances(
    grievance_status: Optional[str] = Query(None, alias="status", description="Filter by status"),
    department_id: Optional[str] = Query(None, description="Filter by department"),
    sla_status: Optional[str] = Query(None, description="Filter by SLA status (on_track, at_risk, breached)"),
    limit: int = Query(100, ge=1, le=500, description="Results per page"),
    offset: int = Query(0, ge=0, description="Page offset"),
    actor: Actor = Depends(get_current_actor),
    query_service: GrievanceQueryService = Depends(get_query_service)
):
    grievances = await query_service.list_grievances(
        actor,
        {"status": grievance_status, "department_id": department_id, "sla_status": sla_status},
        limit=limit,
        offset=offset
    )
    return GrievanceListResponse(
        grievances=[GrievanceResponse.from_domain(g) for g in grievances],
        count=len(grievances)
    )


@router.get("/{grievance_id}", response_model=GrievanceResponse, summary="Get a grievance")
async def get_grievance(
    grievance_id: str,
    actor: Actor = Depends(get_current_actor),
    query_service: GrievanceQueryService = Depends(get_query_service)
):
    grievance = await query_service.get_grievance(_check_id(grievance_id), actor)
    return GrievanceResponse.from_domain(grievance)


@router.patch(
    "/{grievance_id}/status",
    response_model=StatusChangeResponse,
    summary="Change grievance status (staff)",
    description="""
    Apply a lifecycle transition and record its ledger entry atomically.

    - `closed` / `final_closed`: stamps `closed_at`; `sla_status` becomes
      `on_track` if closed before the deadline, else `breached`
    - `escalated`: deadline moves to at least now + 3 days, `sla_status` resets to `on_track`

    Disallowed transitions return 400; a concurrent write on the same grievance returns 409.
    """
)
async def change_status(
    grievance_id: str,
    request: StatusChangeRequest,
    actor: Actor = Depends(get_current_actor),
    state_machine: GrievanceStateMachine = Depends(get_state_machine)
):
    grievance, event = await state_machine.apply_status_change(
        _check_id(grievance_id), actor, request.status, request.metadata()
    )
    return StatusChangeResponse(
        grievance=GrievanceResponse.from_domain(grievance),
        event=EventResponse.from_domain(event)
    )


@router.get("/{grievance_id}/events", response_model=EventListResponse, summary="Grievance ledger")
async def list_events(
    grievance_id: str,
    actor: Actor = Depends(get_current_actor),
    ledger: EventLedgerService = Depends(get_ledger_service)
):
    events = await ledger.list_events(_check_id(grievance_id), actor)
    return EventListResponse(events=[EventResponse.from_domain(e) for e in events])


@router.post(
    "/{grievance_id}/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a ledger event",
    description="""
    Append a role-gated event. Each role may author a fixed set of event
    types; `REOPENED` additionally reopens a closed grievance.
    """
)
async def append_event(
    grievance_id: str,
    request: EventCreateRequest,
    actor: Actor = Depends(get_current_actor),
    ledger: EventLedgerService = Depends(get_ledger_service)
):
    event = await ledger.append_event(_check_id(grievance_id), actor, request.event_type, request.payload)
    return EventResponse.from_domain(event)


@router.post(
    "/{grievance_id}/support",
    response_model=SupportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Support a grievance"
)
async def add_support(
    grievance_id: str,
    actor: Actor = Depends(get_current_actor),
    state_machine: GrievanceStateMachine = Depends(get_state_machine)
):
    signal, count = await state_machine.add_support(_check_id(grievance_id), actor)
    return SupportResponse(grievance_id=grievance_id, signal_id=signal.signal_id, support_count=count)


@router.delete("/{grievance_id}/support", response_model=SupportResponse, summary="Withdraw support")
async def remove_support(
    grievance_id: str,
    actor: Actor = Depends(get_current_actor),
    state_machine: GrievanceStateMachine = Depends(get_state_machine)
):
    count = await state_machine.remove_support(_check_id(grievance_id), actor)
    return SupportResponse(
        grievance_id=grievance_id,
        signal_id=f"{grievance_id}_{actor.actor_id}",
        support_count=count
    )


@router.get("/{grievance_id}/sla", response_model=GrievanceSLAResponse, summary="Live SLA status")
async def get_sla_status(
    grievance_id: str,
    actor: Actor = Depends(get_current_actor),
    sla_service: SLAStatusService = Depends(get_sla_status_service)
):
    grievance, reading = await sla_service.get_sla_status(_check_id(grievance_id), actor)
    return GrievanceSLAResponse(
        grievance_id=grievance.id,
        status=grievance.status.value,
        recorded_sla_status=grievance.sla_status.value,
        sla=SLAReadingResponse.from_domain(reading)
    )


# ========== Departments ==========

@departments_router.get("", response_model=DepartmentListResponse, summary="List departments")
async def list_departments(service: DepartmentService = Depends(get_department_service)):
    departments = await service.list_departments()
    return DepartmentListResponse(departments=[DepartmentResponse.from_domain(d) for d in departments])


@departments_router.get("/{department_id}", response_model=DepartmentResponse, summary="Get a department")
async def get_department(department_id: str, service: DepartmentService = Depends(get_department_service)):
    return DepartmentResponse.from_domain(await service.get_department(department_id))


@departments_router.post(
    "",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a department (system_admin)"
)
async def create_department(
    request: DepartmentCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: DepartmentService = Depends(get_department_service)
):
    return DepartmentResponse.from_domain(await service.create_department(actor, request))


@departments_router.patch(
    "/{department_id}",
    response_model=DepartmentResponse,
    summary="Update a department (system_admin)"
)
async def update_department(
    department_id: str,
    request: DepartmentUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: DepartmentService = Depends(get_department_service)
):
    return DepartmentResponse.from_domain(await service.update_department(actor, department_id, request))


@departments_router.delete(
    "/{department_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a department (system_admin)"
)
async def delete_department(
    department_id: str,
    actor: Actor = Depends(get_current_actor),
    service: DepartmentService = Depends(get_department_service)
):
    await service.delete_department(actor, department_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== Transparency ==========

@public_router.get(
    "/stats",
    response_model=PublicStatsResponse,
    summary="Public outcome statistics",
    description="Aggregates only. The ward heatmap samples public grievances only."
)
async def get_public_stats(service: TransparencyService = Depends(get_transparency_service)):
    return await service.get_public_stats()


# Export routers for inclusion in main app
grievance_router = router
