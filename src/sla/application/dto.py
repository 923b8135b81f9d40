"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API layer.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.sla.domain import SLAReading

SLAStateStr = Literal["on_track", "at_risk", "breached"]


# ========== Request DTOs ==========

class SweepRequest(BaseModel):
    """Optional overrides for a manually triggered sweep."""
    now: Optional[datetime] = Field(None, description="Evaluation instant (defaults to the server clock)")
    batch_size: Optional[int] = Field(None, ge=1, le=500, description="Maximum grievances to mark")


# ========== Response DTOs ==========

class SLAReadingResponse(BaseModel):
    """Live classification of one deadline."""
    state: SLAStateStr
    deadline: datetime
    evaluated_at: datetime
    remaining_seconds: float
    overdue_seconds: float
    days: int
    hours: int
    progress_percent: int = Field(..., ge=0, le=100, description="Display only")
    label: str

    @classmethod
    def from_domain(cls, reading: SLAReading) -> "SLAReadingResponse":
        return cls(**reading.to_dict())


class GrievanceSLAResponse(BaseModel):
    """SLA status for a grievance."""
    grievance_id: str
    status: str
    recorded_sla_status: SLAStateStr = Field(..., description="sla_status as last persisted")
    sla: SLAReadingResponse


class SweepResponse(BaseModel):
    message: str
    breached: int = Field(..., description="Grievances marked breached in this run")
