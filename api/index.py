"""
Vercel entry point for the Grievance Ledger API
"""
import sys
import os

# Add parent directory to path
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

# Serverless: no in-process scheduler, the sweep runs from an external cron
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("SLA_SWEEP_INTERVAL_SECONDS", "0")

from mangum import Mangum
from src.main import app
from src.infrastructure.database import init_database

# Lifespan is off in serverless, so the engine is initialized at import
init_database()

handler = Mangum(app, lifespan="off")
