"""
SLA Application Services
=========================

Application services for grievance SLAs:
- SLAStatusService: live SLA reading for one grievance
- SLASweepService: periodic breach detection

Both work through the grievance unit of work so the breach flag and its
SLA_BREACHED ledger entry are written in the same transaction.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from src.config import SYSTEM_ACTOR, EventType, settings
from src.grievance.application import (
    ILedgerEventPublisher,
    UnitOfWorkFactory,
    load_grievance,
    require_actor,
    schedule_publish,
    stamp_ledger_event,
    utc_now,
)
from src.grievance.application.services import Clock
from src.grievance.domain import AccessPolicy, Actor, Grievance, GrievanceEvent, SLABreachPayload
from src.shared.infrastructure.logging import get_logger, log_latency
from src.sla.domain import AT_RISK_THRESHOLD, DEFAULT_SLA_WINDOW, SLAClock, SLAReading, parse_timestamp

logger = get_logger(__name__)


class SLAStatusService:
    """Evaluates a grievance's deadline with the SLA clock."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock = utc_now,
        at_risk_threshold: timedelta = AT_RISK_THRESHOLD,
        default_window: timedelta = DEFAULT_SLA_WINDOW
    ):
        self._uow_factory = uow_factory
        self._clock = clock
        self._at_risk_threshold = at_risk_threshold
        self._default_window = default_window

    async def get_sla_status(
        self,
        grievance_id: str,
        actor: Optional[Actor],
        now: Optional[datetime] = None
    ) -> Tuple[Grievance, SLAReading]:
        """
        Live SLA reading for a grievance.

        Closed grievances are evaluated at the moment they closed, so their
        reading no longer moves.

        Raises:
            UnauthorizedException: No verified actor
            ResourceNotFoundException: Grievance absent
            ForbiddenException: Grievance not visible to the actor
        """
        actor = require_actor(actor)
        async with self._uow_factory() as uow:
            grievance = await load_grievance(uow, grievance_id)
        AccessPolicy.ensure_can_read(
            actor.role, actor.actor_id, grievance.citizen_id, grievance.privacy_level
        )

        evaluated_at = grievance.closed_at if grievance.is_closed and grievance.closed_at else (
            parse_timestamp(now) if now is not None else self._clock()
        )
        window = grievance.sla_deadline_at - grievance.created_at
        reading = SLAClock.evaluate(
            grievance.sla_deadline_at,
            evaluated_at,
            total_window=window if window.total_seconds() > 0 else self._default_window,
            at_risk_threshold=self._at_risk_threshold
        )
        return grievance, reading


class SLASweepService:
    """
    Marks overdue grievances as breached.

    Best-effort: a failed run is logged, rolled back and reported as 0; the
    next run picks the same grievances up again. The `sla_status != breached`
    guard on the update keeps concurrent sweeps from double-marking.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        publisher: Optional[ILedgerEventPublisher] = None,
        clock: Clock = utc_now,
        batch_size: Optional[int] = None
    ):
        self._uow_factory = uow_factory
        self._publisher = publisher
        self._clock = clock
        self._batch_size = batch_size or settings.sla_sweep_batch_size

    async def run_sweep(self, now: Optional[datetime] = None, batch_size: Optional[int] = None) -> int:
        """
        Run one sweep.

        Args:
            now: Evaluation instant (defaults to the clock)
            batch_size: Maximum grievances marked in this run

        Returns:
            Number of grievances marked breached
        """
        current = parse_timestamp(now) if now is not None else self._clock()
        limit = batch_size or self._batch_size
        payload = SLABreachPayload(breached_at=current.isoformat())
        events: List[GrievanceEvent] = []

        try:
            with log_latency(logger, "sla_sweep", batch_size=limit):
                async with self._uow_factory() as uow:
                    candidates = await uow.grievances.find_breach_candidates(current, limit)
                    for grievance in candidates:
                        if not await uow.grievances.mark_breached(grievance.id, current):
                            # Already breached by a concurrent sweep
                            continue
                        events.append(await stamp_ledger_event(
                            uow,
                            grievance.id,
                            EventType.SLA_BREACHED,
                            SYSTEM_ACTOR,
                            SYSTEM_ACTOR,
                            payload,
                            current
                        ))
                    await uow.commit()
        except Exception as e:
            logger.error(
                "SLA sweep failed, batch rolled back",
                extra={"error": str(e), "error_type": type(e).__name__},
                exc_info=True
            )
            return 0

        if events:
            logger.info("SLA sweep marked grievances breached", extra={"breached": len(events)})
        else:
            logger.debug("SLA sweep found no breaches")

        for event in events:
            schedule_publish(self._publisher, event)

        return len(events)
