"""
Grievance Domain Layer
======================

Contains:
- Entities: Grievance, GrievanceEvent, SupportSignal, Department, Actor
- Value Objects: identifiers, category routing, transitions, event payloads
- Policies: AccessPolicy (read visibility and event authorship)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.grievance.domain.entities import (
    Actor,
    Department,
    Grievance,
    GrievanceEvent,
    GrievanceLocation,
    SupportSignal,
)
from src.grievance.domain.policies import ROLE_EVENT_PERMISSIONS, AccessPolicy
from src.grievance.domain.value_objects import (
    ALLOWED_TRANSITIONS,
    EVENT_PAYLOAD_MODELS,
    STATUS_EVENT_TYPES,
    EventPayload,
    RoutingConfig,
    SLABreachPayload,
    StatusChangePayload,
    SubmissionPayload,
    can_transition,
    event_type_for_status,
    format_grievance_id,
    grievance_id_sequence,
    is_valid_grievance_id,
    normalize_category,
    parse_event_payload,
    parse_event_type,
)

__all__ = [
    # Entities
    "Actor",
    "Department",
    "Grievance",
    "GrievanceEvent",
    "GrievanceLocation",
    "SupportSignal",
    # Policies
    "AccessPolicy",
    "ROLE_EVENT_PERMISSIONS",
    # Value Objects
    "ALLOWED_TRANSITIONS",
    "EVENT_PAYLOAD_MODELS",
    "STATUS_EVENT_TYPES",
    "EventPayload",
    "RoutingConfig",
    "SLABreachPayload",
    "StatusChangePayload",
    "SubmissionPayload",
    "can_transition",
    "event_type_for_status",
    "format_grievance_id",
    "grievance_id_sequence",
    "is_valid_grievance_id",
    "normalize_category",
    "parse_event_payload",
    "parse_event_type",
]
