"""
Grievance Application DTOs
===========================

Data Transfer Objects for the grievance API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from src.grievance.domain import Department, Grievance, GrievanceEvent, GrievanceLocation


# ========== Type Aliases for Literals ==========
PrivacyLevelStr = Literal["public", "restricted", "private"]
SLAStateStr = Literal["on_track", "at_risk", "breached"]
GovernanceHealthStr = Literal["stable", "under_strain", "critical"]


# ========== Request DTOs ==========

class LocationDTO(BaseModel):
    """Where the problem is."""
    address_text: str = Field(default="", max_length=500)
    ward: Optional[str] = Field(None, max_length=100)
    area: Optional[str] = Field(None, max_length=200)
    pincode: Optional[str] = Field(None, pattern=r"^\d{6}$")
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

    def to_domain(self) -> GrievanceLocation:
        return GrievanceLocation(**self.model_dump())


class GrievanceCreateRequest(BaseModel):
    """Request model for filing a grievance."""
    category: str = Field(..., min_length=1, max_length=100, description="Free-text or canonical category")
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    location: LocationDTO = Field(default_factory=LocationDTO)
    privacy_level: PrivacyLevelStr = Field(default="public")
    citizen_id: Optional[str] = Field(
        None,
        min_length=1,
        description="Owner when staff file on a citizen's behalf; ignored for citizens"
    )

    @field_validator("title", "description")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class StatusChangeRequest(BaseModel):
    """Request model for a staff status transition."""
    status: str = Field(..., description="Target status")
    note: Optional[str] = Field(None, max_length=4000)
    estimated_resolution_date: Optional[date] = None
    officer_id: Optional[str] = Field(None, min_length=1)
    department_id: Optional[str] = Field(None, min_length=1)

    def metadata(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"status"}, exclude_none=True)


class EventCreateRequest(BaseModel):
    """Request model for appending a ledger event."""
    event_type: str = Field(..., description="Ledger event type")
    payload: Dict[str, Any] = Field(default_factory=dict)


class DepartmentCreateRequest(BaseModel):
    """Request model for creating a department."""
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    sla_hours_default: int = Field(default=168, ge=1, le=24 * 365)
    governance_health: GovernanceHealthStr = "stable"


class DepartmentUpdateRequest(BaseModel):
    """Partial department update."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    sla_hours_default: Optional[int] = Field(None, ge=1, le=24 * 365)
    governance_health: Optional[GovernanceHealthStr] = None


# ========== Response DTOs ==========

class LocationResponse(BaseModel):
    address_text: str
    ward: Optional[str] = None
    area: Optional[str] = None
    pincode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class GrievanceResponse(BaseModel):
    """Response model for a grievance."""
    id: str
    citizen_id: str
    category: str
    title: str
    description: str
    location: LocationResponse
    privacy_level: PrivacyLevelStr
    status: str
    sla_status: SLAStateStr
    sla_deadline_at: datetime
    department_id: Optional[str] = None
    officer_id: Optional[str] = None
    support_count: int
    reopen_count: int
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, grievance: Grievance) -> "GrievanceResponse":
        return cls(
            id=grievance.id,
            citizen_id=grievance.citizen_id,
            category=grievance.category.value,
            title=grievance.title,
            description=grievance.description,
            location=LocationResponse(**grievance.location.to_dict()),
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


class EventResponse(BaseModel):
    """Response model for a ledger event."""
    id: str
    grievance_id: str
    event_type: str
    actor_id: str
    actor_role: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    sequence: int

    @classmethod
    def from_domain(cls, event: GrievanceEvent) -> "EventResponse":
        return cls(
            id=event.id,
            grievance_id=event.grievance_id,
            event_type=event.event_type,
            actor_id=event.actor_id,
            actor_role=event.actor_role,
            payload=dict(event.payload),
            created_at=event.created_at,
            sequence=event.sequence
        )


class EventListResponse(BaseModel):
    events: List[EventResponse]


class GrievanceListResponse(BaseModel):
    grievances: List[GrievanceResponse]
    count: int


class StatusChangeResponse(BaseModel):
    """Grievance after the transition, plus the ledger entry it produced."""
    grievance: GrievanceResponse
    event: EventResponse


class SubmitResponse(BaseModel):
    grievance: GrievanceResponse
    event: EventResponse


class SupportResponse(BaseModel):
    grievance_id: str
    signal_id: str
    support_count: int


class DepartmentResponse(BaseModel):
    """Response model for a department."""
    id: str
    slug: str
    name: str
    description: str
    sla_hours_default: int
    governance_health: GovernanceHealthStr
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, department: Department) -> "DepartmentResponse":
        return cls(
            id=department.id,
            slug=department.slug,
            name=department.name,
            description=department.description,
            sla_hours_default=department.sla_hours_default,
            governance_health=department.governance_health.value,
            created_at=department.created_at,
            updated_at=department.updated_at
        )


class DepartmentListResponse(BaseModel):
    departments: List[DepartmentResponse]


class DepartmentStats(BaseModel):
    """Per-department counters for the transparency page."""
    department_id: str
    name: str
    total: int
    breached: int


class WardHeatmapEntry(BaseModel):
    ward: str
    count: int


class PublicStatsResponse(BaseModel):
    """Aggregate outcomes, safe to publish."""
    total_complaints: int = Field(..., description="All grievances ever filed")
    resolved_on_time: int = Field(..., description="Closed grievances that met their SLA")
    sla_honesty_rate: int = Field(..., description="resolved_on_time / total_complaints, as a rounded percentage")
    department_stats: List[DepartmentStats] = Field(default_factory=list)
    ward_heatmap: List[WardHeatmapEntry] = Field(default_factory=list)
