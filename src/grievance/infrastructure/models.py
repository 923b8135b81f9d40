"""
Grievance Infrastructure Models
================================

SQLAlchemy ORM models for the grievance module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint, event,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.config import GovernanceHealth, PrivacyLevel, SLAState
from src.core import RepositoryException
from src.infrastructure.database import Base, UTCDateTime


class GrievanceModel(Base):
    """
    Database model for the Grievance aggregate.

    Maps to the 'grievances' table. `version` is bumped on every UPDATE and
    checked in its WHERE clause, so a lost update surfaces as StaleDataError.
    """
    __tablename__ = "grievances"

    # Primary key (JM-YYYY-NNNNNN)
    id: Mapped[str] = mapped_column(String(20), primary_key=True)

    citizen_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    ward: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    privacy_level: Mapped[str] = mapped_column(String(20), nullable=False, default=PrivacyLevel.PUBLIC.value)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    sla_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SLAState.ON_TRACK.value, index=True)
    sla_deadline_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)

    # Assignment
    department_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    officer_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Counters
    support_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reopen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class GrievanceEventModel(Base):
    """
    Database model for a ledger entry.

    Maps to the 'grievance_events' table. Rows are insert-only; the ORM
    refuses to update or delete them.
    """
    __tablename__ = "grievance_events"

    # {grievance_id}_{event_type}_{epoch_millis}
    id: Mapped[str] = mapped_column(String(120), primary_key=True)

    grievance_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("grievances.id"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("grievance_id", "sequence", name="uq_grievance_events_sequence"),
        Index("ix_grievance_events_order", "grievance_id", "created_at", "sequence"),
    )


@event.listens_for(GrievanceEventModel, "before_update")
def _reject_event_update(mapper, connection, target):
    raise RepositoryException("Ledger events are append-only", {"event_id": target.id})


@event.listens_for(GrievanceEventModel, "before_delete")
def _reject_event_delete(mapper, connection, target):
    raise RepositoryException("Ledger events are append-only", {"event_id": target.id})


class SupportSignalModel(Base):
    """
    Database model for a support signal.

    The composite primary key allows one signal per (grievance, citizen).
    """
    __tablename__ = "support_signals"

    grievance_id: Mapped[str] = mapped_column(String(20), ForeignKey("grievances.id"), primary_key=True)
    citizen_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class DepartmentModel(Base):
    """Database model for a department. Maps to the 'departments' table."""
    __tablename__ = "departments"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sla_hours_default: Mapped[int] = mapped_column(Integer, nullable=False, default=168)
    governance_health: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GovernanceHealth.STABLE.value
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
