#!/usr/bin/env python3
"""
Seed Departments
================

Creates the default municipal departments that `routing_config.yaml`
routes categories to. Existing slugs are skipped.
"""

import asyncio
from pathlib import Path

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import SYSTEM_ACTOR, UserRole
from src.core import ConflictException
from src.grievance.application import DepartmentCreateRequest, DepartmentService
from src.grievance.domain import Actor
from src.grievance.infrastructure import SQLAlchemyUnitOfWork
from src.infrastructure.database import close_database, create_tables, get_session_maker, init_database


DEFAULT_DEPARTMENTS = [
    ("water-supply", "Water Supply", 120),
    ("electricity", "Electricity", 72),
    ("sanitation", "Sanitation", 96),
    ("roads-transport", "Roads & Transport", 168),
    ("public-parks", "Public Parks", 240),
    ("general", "General Administration", 168),
]


async def main():
    init_database()
    await create_tables()

    session_maker = get_session_maker()
    service = DepartmentService(lambda: SQLAlchemyUnitOfWork(session_maker))
    admin = Actor(SYSTEM_ACTOR, UserRole.SYSTEM_ADMIN)

    for slug, name, sla_hours in DEFAULT_DEPARTMENTS:
        request = DepartmentCreateRequest(slug=slug, name=name, sla_hours_default=sla_hours)
        try:
            await service.create_department(admin, request)
            print(f"Created {slug} ({sla_hours}h SLA)")
        except ConflictException:
            print(f"Skipped {slug}: already exists")

    await close_database()


if __name__ == "__main__":
    asyncio.run(main())
