"""
Grievance Interfaces Layer
===========================

Interface adapters (controllers) for the grievance module.

Contains:
- Controllers: FastAPI route handlers for grievances, departments, public stats
- Dependencies: request-scoped wiring of services and the calling actor
"""

from src.grievance.interfaces.controllers import departments_router, grievance_router, public_router

__all__ = ["grievance_router", "departments_router", "public_router"]
