"""
SLA Controllers (API Routes)
=============================

Cron trigger for the SLA breach sweep.

Guarded by `Authorization: Bearer <CRON_SECRET>`, so a hosted cron service
can call it. GET is accepted too, since most cron services only issue GETs.
"""

import secrets
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header

from src.core import UnauthorizedException
from src.grievance.interfaces.dependencies import get_cron_secret, get_sweep_service
from src.shared.infrastructure.logging import get_logger
from src.sla.application import SLASweepService, SweepRequest, SweepResponse

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Monitoring"])


def verify_cron_secret(
    authorization: Optional[str] = Header(None),
    cron_secret: Optional[str] = Depends(get_cron_secret)
) -> None:
    """
    Raises:
        UnauthorizedException: Secret not configured, or header mismatch
    """
    if not cron_secret:
        logger.warning("Sweep trigger rejected: CRON_SECRET not configured")
        raise UnauthorizedException()
    expected = f"Bearer {cron_secret}"
    if not authorization or not secrets.compare_digest(authorization.encode(), expected.encode()):
        raise UnauthorizedException()


def _summary(breached: int) -> SweepResponse:
    message = "SLA check complete" if breached else "No SLA breaches detected"
    return SweepResponse(message=message, breached=breached)


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Run the SLA breach sweep",
    description="""
    Marks open grievances past their deadline as `breached` and appends one
    `SLA_BREACHED` ledger entry each (actor `system`). At most `batch_size`
    grievances per run (default 100); the rest are picked up next run.

    Best-effort: a failed run is rolled back and reports `breached: 0`.
    """,
    dependencies=[Depends(verify_cron_secret)]
)
async def run_sweep(
    request: Optional[SweepRequest] = Body(None),
    sweep_service: SLASweepService = Depends(get_sweep_service)
):
    request = request or SweepRequest()
    breached = await sweep_service.run_sweep(now=request.now, batch_size=request.batch_size)
    return _summary(breached)


@router.get(
    "/sweep",
    response_model=SweepResponse,
    summary="Run the SLA breach sweep (cron GET)",
    dependencies=[Depends(verify_cron_secret)]
)
async def run_sweep_get(sweep_service: SLASweepService = Depends(get_sweep_service)):
    return _summary(await sweep_service.run_sweep())


# Export router for inclusion in main app
sla_router = router
