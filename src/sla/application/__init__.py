"""
SLA Application Layer
======================

Application layer for SLA monitoring module.

Contains:
- Services: live SLA status and the breach sweep
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.sla.application.dto import (
    GrievanceSLAResponse,
    SLAReadingResponse,
    SweepRequest,
    SweepResponse,
)
from src.sla.application.services import (
    SLAStatusService,
    SLASweepService,
)

__all__ = [
    # DTOs
    "GrievanceSLAResponse",
    "SLAReadingResponse",
    "SweepRequest",
    "SweepResponse",
    # Services
    "SLAStatusService",
    "SLASweepService",
]
