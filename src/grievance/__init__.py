"""
Grievance Module
================

Bounded Context for the grievance lifecycle.

Responsibilities:
- Accept grievances, route them to departments and stamp SLA deadlines
- Drive status changes through the lifecycle state machine
- Keep an append-only, role-gated event ledger per grievance
- Count citizen support signals
- Publish aggregate transparency statistics
"""

__version__ = "1.0.0"
