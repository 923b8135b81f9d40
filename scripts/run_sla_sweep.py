#!/usr/bin/env python3
"""
Run SLA Sweep
=============

One-off breach sweep, for system cron or a manual catch-up run.

Usage:
    python scripts/run_sla_sweep.py [--batch-size N]
"""

import argparse
import asyncio
from pathlib import Path

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import settings
from src.grievance.application import drain_publishes
from src.grievance.infrastructure import SQLAlchemyUnitOfWork, build_event_publisher
from src.infrastructure.database import close_database, get_session_maker, init_database
from src.shared.infrastructure.logging import setup_logging
from src.sla.application import SLASweepService


async def main(batch_size: int):
    setup_logging(settings.log_level, settings.environment)
    init_database()

    session_maker = get_session_maker()
    publisher = build_event_publisher()
    service = SLASweepService(lambda: SQLAlchemyUnitOfWork(session_maker), publisher=publisher)

    breached = await service.run_sweep(batch_size=batch_size)
    print(f"Marked {breached} grievance(s) breached")
    await drain_publishes()

    close_publisher = getattr(publisher, "close", None)
    if close_publisher is not None:
        await close_publisher()
    await close_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one SLA breach sweep")
    parser.add_argument("--batch-size", type=int, default=settings.sla_sweep_batch_size)
    args = parser.parse_args()
    asyncio.run(main(args.batch_size))
