"""
Configuration Module
====================

Application settings and domain constants.

Settings are loaded from environment variables (and `.env`) using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="grievance-ledger", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/grievances",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA ==========
    sla_default_window_hours: int = Field(
        default=168,
        description="SLA window used when a department has none configured",
        ge=1
    )
    sla_at_risk_hours: int = Field(
        default=24,
        description="Remaining hours below which a grievance is at risk",
        ge=1
    )
    sla_escalation_extension_hours: int = Field(
        default=72,
        description="Hours granted from the moment of escalation",
        ge=1
    )
    sla_sweep_batch_size: int = Field(
        default=100,
        description="Maximum grievances marked breached per sweep run",
        ge=1,
        le=500
    )
    sla_sweep_interval_seconds: int = Field(
        default=3600,
        description="Seconds between in-process SLA sweeps (0 disables the scheduler)",
        ge=0
    )
    cron_secret: Optional[str] = Field(
        default=None,
        description="Bearer secret required by the external sweep trigger"
    )

    # ========== Routing ==========
    routing_config_path: Path = Field(
        default=Path("routing_config.yaml"),
        description="Path to the category routing YAML file"
    )

    # ========== Ledger anchoring ==========
    anchor_webhook_url: Optional[str] = Field(
        default=None,
        description="Endpoint receiving ledger event hashes after each append"
    )
    anchor_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for anchoring calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

SYSTEM_ACTOR = "system"


class UserRole(str, Enum):
    """Roles carried by a verified session."""
    CITIZEN = "citizen"
    OFFICER = "officer"
    DEPT_ADMIN = "dept_admin"
    SYSTEM_ADMIN = "system_admin"


class PrivacyLevel(str, Enum):
    """Who may read a grievance besides its owner and staff."""
    PUBLIC = "public"
    RESTRICTED = "restricted"
    PRIVATE = "private"


class GrievanceStatus(str, Enum):
    """Grievance lifecycle statuses."""
    SUBMITTED = "submitted"
    ROUTED = "routed"
    ASSIGNED = "assigned"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    ESCALATED = "escalated"
    CLOSED = "closed"
    REOPENED = "reopened"
    FINAL_CLOSED = "final_closed"


class SLAState(str, Enum):
    """SLA status states."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"


class GovernanceHealth(str, Enum):
    """Department health, derived outside this service."""
    STABLE = "stable"
    UNDER_STRAIN = "under_strain"
    CRITICAL = "critical"


class GrievanceCategory(str, Enum):
    """Grievance categories. Anything unrecognised is OTHER."""
    WATER_SUPPLY = "water_supply"
    ELECTRICITY = "electricity"
    SANITATION = "sanitation"
    ROADS_TRANSPORT = "roads_transport"
    PUBLIC_TRANSPORT = "public_transport"
    HEALTH_HOSPITAL = "health_hospital"
    EDUCATION = "education"
    PARKS_RECREATION = "parks_recreation"
    POLLUTION = "pollution"
    LAND_PROPERTY = "land_property"
    POLICE_SAFETY = "police_safety"
    OTHER = "other"


class EventType(str, Enum):
    """Ledger event types."""
    GRIEVANCE_SUBMITTED = "GRIEVANCE_SUBMITTED"
    ROUTED_TO_DEPARTMENT = "ROUTED_TO_DEPARTMENT"
    OFFICER_ASSIGNED = "OFFICER_ASSIGNED"
    OFFICER_ACKNOWLEDGED = "OFFICER_ACKNOWLEDGED"
    UPDATE_PROVIDED = "UPDATE_PROVIDED"
    PROOF_UPLOADED = "PROOF_UPLOADED"
    DELAY_EXPLANATION_SUBMITTED = "DELAY_EXPLANATION_SUBMITTED"
    SLA_BREACHED = "SLA_BREACHED"
    ESCALATED = "ESCALATED"
    COMPLAINT_CLOSED = "COMPLAINT_CLOSED"
    CITIZEN_FEEDBACK_SUBMITTED = "CITIZEN_FEEDBACK_SUBMITTED"
    REOPENED = "REOPENED"
    FINAL_CLOSED = "FINAL_CLOSED"
    SUPPORT_SIGNAL_ADDED = "SUPPORT_SIGNAL_ADDED"
    REASSIGNED = "REASSIGNED"
    OVERRIDE = "OVERRIDE"


class DelayReason(str, Enum):
    """Reasons an officer may give for a delay."""
    WEATHER_NATURAL_EVENT = "weather_natural_event"
    BUDGET_APPROVAL_PENDING = "budget_approval_pending"
    CONTRACTOR_DELAY = "contractor_delay"
    INTER_DEPARTMENT_DEPENDENCY = "inter_department_dependency"
    EQUIPMENT_RESOURCE_FAILURE = "equipment_resource_failure"
    LEGAL_REGULATORY_HOLD = "legal_regulatory_hold"
    OTHER = "other"


# ========== Role and status groups ==========

STAFF_ROLES = frozenset({UserRole.OFFICER, UserRole.DEPT_ADMIN, UserRole.SYSTEM_ADMIN})
CLOSED_STATUSES = frozenset({GrievanceStatus.CLOSED, GrievanceStatus.FINAL_CLOSED})
