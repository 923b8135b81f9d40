"""
Grievance Infrastructure Layer
===============================

Contains:
- Models: SQLAlchemy ORM models
- Repositories: SQLAlchemy repositories and the unit of work
- External: routing config, ledger anchoring, session verification
"""

from src.grievance.infrastructure.external import (
    CircuitBreaker,
    NullEventPublisher,
    RoutingConfigManager,
    StaticRoutingConfigProvider,
    TrustedHeaderSessionVerifier,
    WebhookAnchorPublisher,
    build_event_publisher,
    event_digest,
)
from src.grievance.infrastructure.repositories import (
    SQLAlchemyDepartmentRepository,
    SQLAlchemyEventRepository,
    SQLAlchemyGrievanceRepository,
    SQLAlchemySupportRepository,
    SQLAlchemyUnitOfWork,
)

__all__ = [
    "CircuitBreaker",
    "NullEventPublisher",
    "RoutingConfigManager",
    "StaticRoutingConfigProvider",
    "TrustedHeaderSessionVerifier",
    "WebhookAnchorPublisher",
    "build_event_publisher",
    "event_digest",
    "SQLAlchemyDepartmentRepository",
    "SQLAlchemyEventRepository",
    "SQLAlchemyGrievanceRepository",
    "SQLAlchemySupportRepository",
    "SQLAlchemyUnitOfWork",
]
