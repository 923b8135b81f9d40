"""
SLA Monitoring Module
=====================

Bounded Context for grievance service-level agreements.

Responsibilities:
- Classify a deadline as on_track / at_risk / breached
- Report live SLA status for a grievance
- Sweep overdue grievances into the breached state, one ledger event each
- Schedule the sweep in-process and expose it to an external cron
"""

__version__ = "1.0.0"
