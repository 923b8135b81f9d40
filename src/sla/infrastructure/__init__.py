"""
SLA Infrastructure Layer
=========================

Contains:
- External: APScheduler wrapper for the periodic sweep
"""

from src.sla.infrastructure.external import SLAScheduler

__all__ = ["SLAScheduler"]
