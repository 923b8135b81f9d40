"""
Grievance Ledger - Main Application
====================================

Civic grievance lifecycle service.

Modules:
- Grievance: filing, lifecycle state machine, event ledger, access policy
- SLA: deadline clock, breach sweep

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and policies
- Infrastructure: Database, routing config, ledger anchoring
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from src.config import settings
from src.core import ApplicationException, ConfigurationException

# Infrastructure
from src.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
    is_database_ready,
)

# Grievance Module
from src.grievance.application import drain_publishes
from src.grievance.infrastructure import (
    RoutingConfigManager,
    SQLAlchemyUnitOfWork,
    StaticRoutingConfigProvider,
    TrustedHeaderSessionVerifier,
    build_event_publisher,
)
from src.grievance.interfaces import departments_router, grievance_router, public_router

# SLA Module
from src.sla.application import SLASweepService
from src.sla.infrastructure import SLAScheduler
from src.sla.interfaces import sla_router

# Logging
from src.shared.infrastructure.logging import get_logger, setup_logging
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    application_exception_handler,
    global_exception_handler,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load routing configuration
    4. Build the ledger event publisher
    5. Start the SLA sweep scheduler

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Stop config watcher
    3. Close publisher and database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Grievance Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    # Note: If database is not available, the server will start but
    # database-dependent endpoints will fail
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    session_maker = get_session_maker()
    app.state.uow_factory = lambda: SQLAlchemyUnitOfWork(session_maker)

    # Routing config falls back to built-in mappings if the file is unusable
    logger.info("Loading routing configuration")
    routing_manager = RoutingConfigManager()
    try:
        routing_manager.load(settings.routing_config_path)
        routing_manager.start_watching()
        app.state.routing_provider = routing_manager
    except ConfigurationException as e:
        logger.warning(f"Routing config not loaded, using defaults: {e.message}")
        routing_manager = None
        app.state.routing_provider = StaticRoutingConfigProvider()

    app.state.event_publisher = build_event_publisher()
    app.state.session_verifier = TrustedHeaderSessionVerifier()

    sweep_service = SLASweepService(app.state.uow_factory, publisher=app.state.event_publisher)

    async def sla_sweep_job():
        """Background SLA sweep job."""
        await sweep_service.run_sweep()

    sla_scheduler = SLAScheduler(interval_seconds=settings.sla_sweep_interval_seconds)
    await sla_scheduler.start(sla_sweep_job)
    app.state.sla_scheduler = sla_scheduler

    logger.info("Grievance Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Grievance Service")

    await sla_scheduler.stop()

    if routing_manager:
        routing_manager.stop_watching()

    # Let in-flight anchoring calls finish before the client closes
    await drain_publishes(timeout=settings.anchor_timeout_seconds * 2)

    close_publisher = getattr(app.state.event_publisher, "close", None)
    if close_publisher is not None:
        await close_publisher()

    await close_database()

    logger.info("Grievance Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Grievance Ledger API",
    description="""
    ## Civic Grievance Lifecycle Service

    Citizens file grievances, departments act on them, and every change is
    recorded in an append-only ledger with an enforced SLA deadline.

    ---

    ### Grievances

    - `POST /grievances` - File a grievance
    - `GET /grievances` - List grievances (citizens see their own)
    - `PATCH /grievances/{id}/status` - Staff lifecycle transition
    - `GET|POST /grievances/{id}/events` - Read or append the ledger
    - `POST|DELETE /grievances/{id}/support` - Citizen support signals
    - `GET /grievances/{id}/sla` - Live SLA reading

    ### SLA

    - `POST /sla/sweep` - Cron-triggered breach sweep (`Authorization: Bearer <CRON_SECRET>`)

    ### Transparency

    - `GET /public/stats` - Aggregate outcomes, no personal data

    ---

    **Authentication:** the upstream gateway sets `X-Actor-Id` and `X-Actor-Role`
    (`citizen`, `officer`, `dept_admin`, `system_admin`).
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(grievance_router)
app.include_router(departments_router)
app.include_router(public_router)
app.include_router(sla_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "routing_config": "loaded",
                        "sla_scheduler": "running"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database readiness, routing config source and scheduler state.
    """
    scheduler = getattr(request.app.state, "sla_scheduler", None)
    routing = getattr(request.app.state, "routing_provider", None)
    checks = {
        "database": "connected" if is_database_ready() else "not_configured",
        "routing_config": "loaded" if isinstance(routing, RoutingConfigManager) else "defaults",
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped"
    }

    return {
        "status": "healthy" if is_database_ready() else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Grievance Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "grievance": {"prefix": "/grievances"},
            "departments": {"prefix": "/departments"},
            "transparency": {"prefix": "/public"},
            "sla": {"prefix": "/sla"}
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
