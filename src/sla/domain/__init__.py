"""
SLA Domain Layer
================

Pure deadline arithmetic for grievance SLAs.

Contains:
- Value Objects: SLAReading
- Domain Services: SLAClock (stateless classification and deadline maths)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.sla.domain.value_objects import (
    AT_RISK_THRESHOLD,
    DEFAULT_SLA_WINDOW,
    ESCALATION_EXTENSION,
    SLAClock,
    SLAReading,
    parse_timestamp,
)

__all__ = [
    "AT_RISK_THRESHOLD",
    "DEFAULT_SLA_WINDOW",
    "ESCALATION_EXTENSION",
    "SLAClock",
    "SLAReading",
    "parse_timestamp",
]
