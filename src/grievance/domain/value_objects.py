"""
Grievance Value Objects
========================

Identifiers, category routing, the lifecycle transition table and the typed
payload carried by each ledger event type.
"""

import re
from datetime import date
from typing import Any, Dict, FrozenSet, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.config import DelayReason, EventType, GrievanceCategory, GrievanceStatus, settings
from src.core import ValidationException

# ========== Identifiers ==========

GRIEVANCE_ID_PREFIX = "JM"
GRIEVANCE_ID_PATTERN = re.compile(r"^JM-\d{4}-\d{6}$")


def format_grievance_id(year: int, sequence: int) -> str:
    """Format `JM-YYYY-NNNNNN`."""
    if not 0 < sequence <= 999999:
        raise ValidationException(
            f"Grievance sequence out of range: {sequence}",
            {"year": year, "sequence": sequence}
        )
    return f"{GRIEVANCE_ID_PREFIX}-{year:04d}-{sequence:06d}"


def is_valid_grievance_id(value: Any) -> bool:
    return isinstance(value, str) and GRIEVANCE_ID_PATTERN.match(value) is not None


def grievance_id_sequence(grievance_id: str) -> int:
    """Per-year sequence number encoded in a grievance ID."""
    return int(grievance_id.rsplit("-", 1)[1])


# ========== Categories ==========

_CATEGORY_ALIASES: Dict[str, GrievanceCategory] = {
    "water": GrievanceCategory.WATER_SUPPLY,
    "watersupply": GrievanceCategory.WATER_SUPPLY,
    "electricity": GrievanceCategory.ELECTRICITY,
    "power": GrievanceCategory.ELECTRICITY,
    "sanitation": GrievanceCategory.SANITATION,
    "garbage": GrievanceCategory.SANITATION,
    "roads": GrievanceCategory.ROADS_TRANSPORT,
    "roadstransport": GrievanceCategory.ROADS_TRANSPORT,
    "publictransport": GrievanceCategory.PUBLIC_TRANSPORT,
    "health": GrievanceCategory.HEALTH_HOSPITAL,
    "healthhospital": GrievanceCategory.HEALTH_HOSPITAL,
    "education": GrievanceCategory.EDUCATION,
    "parks": GrievanceCategory.PARKS_RECREATION,
    "parksrecreation": GrievanceCategory.PARKS_RECREATION,
    "pollution": GrievanceCategory.POLLUTION,
    "landproperty": GrievanceCategory.LAND_PROPERTY,
    "police": GrievanceCategory.POLICE_SAFETY,
    "policesafety": GrievanceCategory.POLICE_SAFETY,
    "other": GrievanceCategory.OTHER,
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _category_key(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def normalize_category(value: Optional[str]) -> GrievanceCategory:
    """
    Map free text onto the closed category set.

    Case, whitespace, punctuation and `&` are ignored, so "Roads & Transport"
    and "roads_transport" are the same category. Anything unrecognised is OTHER.
    """
    if not value:
        return GrievanceCategory.OTHER
    return _CATEGORY_ALIASES.get(_category_key(value), GrievanceCategory.OTHER)


class RoutingConfig(BaseModel):
    """
    Category to department routing, loaded from YAML.

    Keys of `category_departments` may be written in any form
    `normalize_category` accepts.
    """

    category_departments: Dict[str, str] = Field(default_factory=lambda: {
        GrievanceCategory.WATER_SUPPLY.value: "water-supply",
        GrievanceCategory.ELECTRICITY.value: "electricity",
        GrievanceCategory.SANITATION.value: "sanitation",
        GrievanceCategory.ROADS_TRANSPORT.value: "roads-transport",
        GrievanceCategory.PARKS_RECREATION.value: "public-parks",
    })
    fallback_department: str = "general"
    default_sla_hours: int = Field(default_factory=lambda: settings.sla_default_window_hours, ge=1)

    def department_for(self, category: GrievanceCategory) -> str:
        for key, slug in self.category_departments.items():
            if normalize_category(key) == category:
                return slug
        return self.fallback_department


# ========== Lifecycle ==========

ALLOWED_TRANSITIONS: Mapping[GrievanceStatus, FrozenSet[GrievanceStatus]] = {
    GrievanceStatus.SUBMITTED: frozenset({
        GrievanceStatus.ROUTED, GrievanceStatus.ASSIGNED, GrievanceStatus.ACKNOWLEDGED,
        GrievanceStatus.ESCALATED, GrievanceStatus.CLOSED,
    }),
    GrievanceStatus.ROUTED: frozenset({
        GrievanceStatus.ASSIGNED, GrievanceStatus.ACKNOWLEDGED,
        GrievanceStatus.ESCALATED, GrievanceStatus.CLOSED,
    }),
    GrievanceStatus.ASSIGNED: frozenset({
        GrievanceStatus.ACKNOWLEDGED, GrievanceStatus.IN_PROGRESS,
        GrievanceStatus.ESCALATED, GrievanceStatus.CLOSED,
    }),
    GrievanceStatus.ACKNOWLEDGED: frozenset({
        GrievanceStatus.IN_PROGRESS, GrievanceStatus.ESCALATED, GrievanceStatus.CLOSED,
    }),
    GrievanceStatus.IN_PROGRESS: frozenset({
        GrievanceStatus.IN_PROGRESS, GrievanceStatus.ESCALATED, GrievanceStatus.CLOSED,
    }),
    GrievanceStatus.ESCALATED: frozenset({
        GrievanceStatus.ASSIGNED, GrievanceStatus.IN_PROGRESS,
        GrievanceStatus.ESCALATED, GrievanceStatus.CLOSED,
    }),
    # reopened is reachable only through the citizen REOPENED event
    GrievanceStatus.CLOSED: frozenset({GrievanceStatus.FINAL_CLOSED}),
    GrievanceStatus.REOPENED: frozenset({
        GrievanceStatus.ACKNOWLEDGED, GrievanceStatus.IN_PROGRESS,
        GrievanceStatus.ESCALATED, GrievanceStatus.CLOSED,
    }),
    GrievanceStatus.FINAL_CLOSED: frozenset(),
}


def can_transition(current: GrievanceStatus, target: GrievanceStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


STATUS_EVENT_TYPES: Mapping[GrievanceStatus, EventType] = {
    GrievanceStatus.SUBMITTED: EventType.GRIEVANCE_SUBMITTED,
    GrievanceStatus.ROUTED: EventType.ROUTED_TO_DEPARTMENT,
    GrievanceStatus.ASSIGNED: EventType.OFFICER_ASSIGNED,
    GrievanceStatus.ACKNOWLEDGED: EventType.OFFICER_ACKNOWLEDGED,
    GrievanceStatus.IN_PROGRESS: EventType.UPDATE_PROVIDED,
    GrievanceStatus.ESCALATED: EventType.ESCALATED,
    GrievanceStatus.CLOSED: EventType.COMPLAINT_CLOSED,
    GrievanceStatus.REOPENED: EventType.REOPENED,
    GrievanceStatus.FINAL_CLOSED: EventType.FINAL_CLOSED,
}


def event_type_for_status(status: GrievanceStatus) -> EventType:
    return STATUS_EVENT_TYPES[status]


# ========== Event payloads ==========

class EventPayload(BaseModel):
    """Base for ledger payloads. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class StatusChangePayload(EventPayload):
    status: Optional[GrievanceStatus] = None
    note: Optional[str] = Field(default=None, max_length=4000)
    estimated_resolution_date: Optional[date] = None

    def to_json(self) -> Dict[str, Any]:
        data = super().to_json()
        if self.status is not None:
            # Status change entries always carry status, note and estimated date
            data.setdefault("note", "")
            data.setdefault("estimated_resolution_date", None)
        return data


class SubmissionPayload(EventPayload):
    status: GrievanceStatus = GrievanceStatus.SUBMITTED
    category: GrievanceCategory
    department_id: Optional[str] = None


class SLABreachPayload(EventPayload):
    breached_at: str


class FeedbackPayload(EventPayload):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=4000)


class ReopenPayload(EventPayload):
    reason: Optional[str] = Field(default=None, max_length=4000)


class SupportPayload(EventPayload):
    note: Optional[str] = Field(default=None, max_length=1000)


class ProofPayload(EventPayload):
    file_urls: list[str] = Field(min_length=1)
    note: Optional[str] = Field(default=None, max_length=4000)


class DelayExplanationPayload(EventPayload):
    reason: DelayReason
    explanation: str = Field(min_length=1, max_length=4000)
    estimated_resolution_date: Optional[date] = None


class ReassignPayload(EventPayload):
    department_id: Optional[str] = None
    officer_id: Optional[str] = None
    note: Optional[str] = Field(default=None, max_length=4000)


class OverridePayload(EventPayload):
    reason: str = Field(min_length=1, max_length=4000)
    note: Optional[str] = Field(default=None, max_length=4000)


EVENT_PAYLOAD_MODELS: Mapping[EventType, Type[EventPayload]] = {
    EventType.GRIEVANCE_SUBMITTED: SubmissionPayload,
    EventType.ROUTED_TO_DEPARTMENT: StatusChangePayload,
    EventType.OFFICER_ASSIGNED: StatusChangePayload,
    EventType.OFFICER_ACKNOWLEDGED: StatusChangePayload,
    EventType.UPDATE_PROVIDED: StatusChangePayload,
    EventType.PROOF_UPLOADED: ProofPayload,
    EventType.DELAY_EXPLANATION_SUBMITTED: DelayExplanationPayload,
    EventType.SLA_BREACHED: SLABreachPayload,
    EventType.ESCALATED: StatusChangePayload,
    EventType.COMPLAINT_CLOSED: StatusChangePayload,
    EventType.CITIZEN_FEEDBACK_SUBMITTED: FeedbackPayload,
    EventType.REOPENED: ReopenPayload,
    EventType.FINAL_CLOSED: StatusChangePayload,
    EventType.SUPPORT_SIGNAL_ADDED: SupportPayload,
    EventType.REASSIGNED: ReassignPayload,
    EventType.OVERRIDE: OverridePayload,
}


def parse_event_type(value: Any) -> EventType:
    """
    Raises:
        ValidationException: If the value is missing or not a known event type
    """
    if not value:
        raise ValidationException("event_type is required")
    try:
        return EventType(value)
    except ValueError as e:
        raise ValidationException(
            f"Unknown event type: {value}",
            {"event_type": str(value)}
        ) from e


def parse_event_payload(event_type: EventType, payload: Optional[Dict[str, Any]]) -> EventPayload:
    """
    Validate a raw payload against the model registered for `event_type`.

    Raises:
        ValidationException: If the payload does not match
    """
    model = EVENT_PAYLOAD_MODELS[event_type]
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise ValidationException(
            f"Invalid payload for {event_type.value}",
            {"errors": e.errors(include_url=False, include_context=False, include_input=False)}
        ) from e


def _check_exhaustive() -> None:
    missing_statuses = set(GrievanceStatus) - set(STATUS_EVENT_TYPES)
    missing_payloads = set(EventType) - set(EVENT_PAYLOAD_MODELS)
    missing_transitions = set(GrievanceStatus) - set(ALLOWED_TRANSITIONS)
    if missing_statuses or missing_payloads or missing_transitions:
        raise RuntimeError(
            "Incomplete lifecycle tables: "
            f"statuses={sorted(s.value for s in missing_statuses)} "
            f"payloads={sorted(e.value for e in missing_payloads)} "
            f"transitions={sorted(s.value for s in missing_transitions)}"
        )


_check_exhaustive()
