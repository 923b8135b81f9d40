"""
Shared Kernel Module
====================

Shared infrastructure used by every bounded context (Grievance Lifecycle
and SLA Monitoring).

Architecture Pattern: Modular Monolith
- Each module (grievance, sla) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add grievance or SLA business rules to the shared kernel.
"""

__version__ = "1.0.0"
