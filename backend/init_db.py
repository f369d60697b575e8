#!/usr/bin/env python3
# backend/init_db.py
"""
Price cache table initialization script.

This script can be run from any directory:
    python backend/init_db.py
    cd backend && python init_db.py
"""
import sys
from pathlib import Path

# Add the backend directory to Python path so 'portfolio_core' is importable
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from portfolio_core.database import get_engine
from portfolio_core.models import Base


def init_db() -> None:
    """Create the price cache table (no-op when it already exists)."""
    print("Creating price cache tables...")
    Base.metadata.create_all(bind=get_engine())
    print("Tables created successfully!")


if __name__ == "__main__":
    init_db()
