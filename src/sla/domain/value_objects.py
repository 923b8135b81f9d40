"""
SLA Value Objects
==================

Immutable value objects and pure functions for SLA arithmetic.

The classification is deadline-relative only. Progress percentage is a
display aid and never feeds back into the classification.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Union

from src.config import SLAState
from src.core import ValidationException

DEFAULT_SLA_WINDOW = timedelta(days=7)
AT_RISK_THRESHOLD = timedelta(hours=24)
ESCALATION_EXTENSION = timedelta(days=3)

_DAY_SECONDS = 24 * 60 * 60
_HOUR_SECONDS = 60 * 60

Timestamp = Union[datetime, str]


def parse_timestamp(value: Timestamp) -> datetime:
    """
    Coerce a datetime or ISO-8601 string into an aware UTC datetime.

    Naive datetimes are taken to be UTC.

    Raises:
        ValidationException: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise ValidationException(
                f"Invalid timestamp: {value!r}",
                {"value": value}
            ) from e
    else:
        raise ValidationException(f"Invalid timestamp: {value!r}", {"value": repr(value)})

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class SLAReading:
    """
    Snapshot of a deadline evaluated at one instant.

    `days`/`hours` describe the time left, or the time overdue once breached.
    """

    state: SLAState
    deadline: datetime
    evaluated_at: datetime
    remaining_seconds: float
    overdue_seconds: float
    days: int
    hours: int
    progress_percent: int

    @property
    def is_breached(self) -> bool:
        return self.state == SLAState.BREACHED

    @property
    def label(self) -> str:
        """Short human readable countdown."""
        if self.is_breached:
            prefix = f"{self.days}d " if self.days > 0 else ""
            return f"Breached {prefix}{self.hours}h ago"
        if self.days > 0:
            return f"{self.days}d {self.hours}h left"
        return f"{self.hours}h left"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "state": self.state.value,
            "deadline": self.deadline.isoformat(),
            "evaluated_at": self.evaluated_at.isoformat(),
            "remaining_seconds": self.remaining_seconds,
            "overdue_seconds": self.overdue_seconds,
            "days": self.days,
            "hours": self.hours,
            "progress_percent": self.progress_percent,
            "label": self.label,
        }


class SLAClock:
    """
    Pure functions for SLA calculations.

    Stateless; every method takes the current time explicitly.
    """

    @staticmethod
    def classify(
        deadline: Timestamp,
        now: Timestamp,
        at_risk_threshold: timedelta = AT_RISK_THRESHOLD
    ) -> SLAState:
        """
        Three-state risk classification.

        breached when deadline <= now, at_risk when less than the threshold
        remains, on_track otherwise.
        """
        diff = parse_timestamp(deadline) - parse_timestamp(now)
        if diff <= timedelta(0):
            return SLAState.BREACHED
        if diff < at_risk_threshold:
            return SLAState.AT_RISK
        return SLAState.ON_TRACK

    @staticmethod
    def evaluate(
        deadline: Timestamp,
        now: Timestamp,
        total_window: timedelta = DEFAULT_SLA_WINDOW,
        at_risk_threshold: timedelta = AT_RISK_THRESHOLD
    ) -> SLAReading:
        """
        Evaluate a deadline at `now`.

        Args:
            deadline: SLA deadline
            now: Evaluation instant
            total_window: SLA window granted at creation, for the progress bar
            at_risk_threshold: Remaining time below which the grievance is at risk

        Returns:
            SLAReading with state, magnitude and display progress
        """
        deadline_at = parse_timestamp(deadline)
        current = parse_timestamp(now)
        state = SLAClock.classify(deadline_at, current, at_risk_threshold)

        diff_seconds = (deadline_at - current).total_seconds()
        magnitude = abs(diff_seconds)
        days = int(magnitude // _DAY_SECONDS)
        hours = int((magnitude % _DAY_SECONDS) // _HOUR_SECONDS)

        total_seconds = total_window.total_seconds()
        if state == SLAState.BREACHED or total_seconds <= 0:
            progress = 100
        else:
            elapsed = total_seconds - diff_seconds
            progress = max(0, min(100, round(elapsed / total_seconds * 100)))

        return SLAReading(
            state=state,
            deadline=deadline_at,
            evaluated_at=current,
            remaining_seconds=max(0.0, diff_seconds),
            overdue_seconds=max(0.0, -diff_seconds),
            days=days,
            hours=hours,
            progress_percent=progress,
        )

    @staticmethod
    def deadline_for(created_at: datetime, sla_hours: int) -> datetime:
        """Deadline for a grievance created at `created_at`."""
        return parse_timestamp(created_at) + timedelta(hours=sla_hours)

    @staticmethod
    def escalated_deadline(
        current_deadline: datetime,
        now: datetime,
        extension: timedelta = ESCALATION_EXTENSION
    ) -> datetime:
        """
        Deadline after an escalation at `now`.

        Deadlines only move forward: an escalation never shortens one that is
        already further out than `now + extension`.
        """
        return max(parse_timestamp(current_deadline), parse_timestamp(now) + extension)
