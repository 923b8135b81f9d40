"""
Grievance Domain Entities
==========================

Pure Python domain entities for the grievance lifecycle.

The Grievance aggregate owns its own state changes; services decide
whether a change is allowed and persist it together with a ledger event.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from src.config import (
    CLOSED_STATUSES, STAFF_ROLES,
    GovernanceHealth, GrievanceCategory, GrievanceStatus,
    PrivacyLevel, SLAState, UserRole,
)
from src.core import ConflictException
from src.sla.domain import ESCALATION_EXTENSION, SLAClock


@dataclass(frozen=True)
class Actor:
    """A verified (actor_id, role) pair supplied by the identity layer."""

    actor_id: str
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass
class GrievanceLocation:
    """Free-text address plus optional structured hints."""

    address_text: str = ""
    ward: Optional[str] = None
    area: Optional[str] = None
    pincode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address_text": self.address_text,
            "ward": self.ward,
            "area": self.area,
            "pincode": self.pincode,
            "lat": self.lat,
            "lng": self.lng,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GrievanceLocation":
        data = data or {}
        return cls(
            address_text=data.get("address_text") or "",
            ward=data.get("ward"),
            area=data.get("area"),
            pincode=data.get("pincode"),
            lat=data.get("lat"),
            lng=data.get("lng"),
        )


@dataclass
class Grievance:
    """
    Grievance aggregate root.

    Mutated only through the lifecycle methods below. Never deleted.
    """

    id: str
    citizen_id: str
    category: GrievanceCategory
    title: str
    description: str
    location: GrievanceLocation
    privacy_level: PrivacyLevel
    status: GrievanceStatus
    sla_status: SLAState
    sla_deadline_at: datetime
    created_at: datetime
    updated_at: datetime

    department_id: Optional[str] = None
    officer_id: Optional[str] = None
    support_count: int = 0
    reopen_count: int = 0
    closed_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        if self.support_count < 0:
            raise ConflictException(
                "support_count cannot go below zero",
                {"grievance_id": self.id}
            )
        if self.reopen_count < 0:
            raise ValueError("reopen_count cannot be negative")
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")

    def _touch(self, now: datetime) -> None:
        self.updated_at = max(self.updated_at, now)

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    def apply_status(
        self,
        new_status: GrievanceStatus,
        now: datetime,
        escalation_extension: timedelta = ESCALATION_EXTENSION
    ) -> None:
        """Move to `new_status` and apply its SLA side effects."""
        if new_status in CLOSED_STATUSES:
            self.closed_at = now
            self.sla_status = SLAState.ON_TRACK if now < self.sla_deadline_at else SLAState.BREACHED
        elif new_status == GrievanceStatus.ESCALATED:
            self.sla_deadline_at = SLAClock.escalated_deadline(
                self.sla_deadline_at, now, escalation_extension
            )
            self.sla_status = SLAState.ON_TRACK

        self.status = new_status
        self._touch(now)

    def reopen(self, now: datetime) -> None:
        self.status = GrievanceStatus.REOPENED
        self.reopen_count += 1
        self.closed_at = None
        self._touch(now)

    def mark_breached(self, now: datetime) -> None:
        self.sla_status = SLAState.BREACHED
        self._touch(now)

    def add_support(self, now: datetime) -> None:
        self.support_count += 1
        self._touch(now)

    def remove_support(self, now: datetime) -> None:
        if self.support_count == 0:
            raise ValueError("support_count cannot be negative")
        self.support_count -= 1
        self._touch(now)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "citizen_id": self.citizen_id,
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "location": self.location.to_dict(),
            "privacy_level": self.privacy_level.value,
            "status": self.status.value,
            "sla_status": self.sla_status.value,
            "sla_deadline_at": self.sla_deadline_at.isoformat(),
            "department_id": self.department_id,
            "officer_id": self.officer_id,
            "support_count": self.support_count,
            "reopen_count": self.reopen_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }


@dataclass(frozen=True)
class GrievanceEvent:
    """
    Immutable ledger entry.

    `sequence` is a per-grievance tie-breaker that keeps the ledger totally
    ordered when timestamps collide.
    """

    id: str
    grievance_id: str
    event_type: str
    actor_id: str
    actor_role: str
    created_at: datetime
    sequence: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def build_id(grievance_id: str, event_type: str, created_at: datetime) -> str:
        """Deterministic ID: a repeated create at the same instant collides."""
        millis = int(created_at.timestamp() * 1000)
        return f"{grievance_id}_{event_type}_{millis}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "grievance_id": self.grievance_id,
            "event_type": self.event_type,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "payload": dict(self.payload),
            "created_at": self.created_at.isoformat(),
            "sequence": self.sequence,
        }


@dataclass(frozen=True)
class SupportSignal:
    """A citizen's one-time endorsement, keyed by (grievance, citizen)."""

    grievance_id: str
    citizen_id: str
    created_at: datetime

    @property
    def signal_id(self) -> str:
        return f"{self.grievance_id}_{self.citizen_id}"


@dataclass
class Department:
    """Administrative routing target."""

    id: str
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    sla_hours_default: int = 168
    governance_health: GovernanceHealth = GovernanceHealth.STABLE

    def __post_init__(self):
        if self.sla_hours_default <= 0:
            raise ValueError("sla_hours_default must be positive")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "sla_hours_default": self.sla_hours_default,
            "governance_health": self.governance_health.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
