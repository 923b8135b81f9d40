"""
Access Policy
=============

Read visibility and event authorship rules.

Pure functions over (role, actor, owner, privacy) with no I/O. The event
table is fixed; unknown roles and unknown event types are always denied.
"""

from typing import Any, FrozenSet, Mapping, Optional

from src.config import STAFF_ROLES, EventType, PrivacyLevel, UserRole
from src.core import ForbiddenException

_CITIZEN_EVENTS = frozenset({
    EventType.CITIZEN_FEEDBACK_SUBMITTED,
    EventType.REOPENED,
    EventType.SUPPORT_SIGNAL_ADDED,
})
_OFFICER_EVENTS = frozenset({
    EventType.OFFICER_ACKNOWLEDGED,
    EventType.UPDATE_PROVIDED,
    EventType.PROOF_UPLOADED,
    EventType.DELAY_EXPLANATION_SUBMITTED,
    EventType.COMPLAINT_CLOSED,
    EventType.ESCALATED,
})
_DEPT_ADMIN_EVENTS = frozenset({
    EventType.ESCALATED,
    EventType.REASSIGNED,
})

ROLE_EVENT_PERMISSIONS: Mapping[UserRole, FrozenSet[EventType]] = {
    UserRole.CITIZEN: _CITIZEN_EVENTS,
    UserRole.OFFICER: _OFFICER_EVENTS,
    UserRole.DEPT_ADMIN: _DEPT_ADMIN_EVENTS,
    UserRole.SYSTEM_ADMIN: (
        _CITIZEN_EVENTS | _OFFICER_EVENTS | _DEPT_ADMIN_EVENTS | {EventType.OVERRIDE}
    ),
}


def _as_role(role: Any) -> Optional[UserRole]:
    try:
        return UserRole(role)
    except ValueError:
        return None


def _as_event_type(event_type: Any) -> Optional[EventType]:
    try:
        return EventType(event_type)
    except ValueError:
        return None


class AccessPolicy:
    """Stateless access rules for grievances and ledger events."""

    @staticmethod
    def is_staff(role: Any) -> bool:
        return _as_role(role) in STAFF_ROLES

    @staticmethod
    def can_read(role: Any, actor_id: str, citizen_id: str, privacy_level: Any) -> bool:
        """
        Owner and staff always read; anyone else only public grievances.
        """
        if actor_id and actor_id == citizen_id:
            return True
        if AccessPolicy.is_staff(role):
            return True
        return privacy_level in (PrivacyLevel.PUBLIC, PrivacyLevel.PUBLIC.value)

    @staticmethod
    def ensure_can_read(role: Any, actor_id: str, citizen_id: str, privacy_level: Any) -> None:
        if not AccessPolicy.can_read(role, actor_id, citizen_id, privacy_level):
            raise ForbiddenException("Forbidden: grievance is not visible to this actor")

    @staticmethod
    def can_create_event(role: Any, event_type: Any) -> bool:
        resolved_role = _as_role(role)
        resolved_type = _as_event_type(event_type)
        if resolved_role is None or resolved_type is None:
            return False
        return resolved_type in ROLE_EVENT_PERMISSIONS[resolved_role]

    @staticmethod
    def ensure_can_create_event(role: Any, event_type: Any) -> None:
        if not AccessPolicy.can_create_event(role, event_type):
            raise ForbiddenException(
                "Forbidden: role cannot author event type",
                {"role": str(role), "event_type": str(event_type)}
            )

    @staticmethod
    def ensure_staff(role: Any) -> None:
        if not AccessPolicy.is_staff(role):
            raise ForbiddenException("Forbidden: staff role required")
