#!/usr/bin/env python3
"""
Script: init_schema.py
Purpose: Create the marketplace tables from bazaar.models.schema

Tables: users, products, orders, order_items (existing tables are left as
they are; create_all only adds what is missing).

Usage:
    cd backend && source venv/bin/activate
    python scripts/migrations/init_schema.py [--drop]

Options:
    --drop    Drop all marketplace tables first (destroys data)
"""

import sys
import argparse
import logging
from pathlib import Path

# Add backend to path
BACKEND_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from dotenv import load_dotenv

load_dotenv(BACKEND_DIR / '.env')

from bazaar.core.database import Base, get_engine  # noqa: E402
from bazaar import models  # noqa: E402,F401  (registers the tables on Base)

logger = logging.getLogger("init_schema")


def main():
    parser = argparse.ArgumentParser(description="Create marketplace tables")
    parser.add_argument('--drop', action='store_true', help='Drop existing tables first')
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    engine = get_engine(args.database_url)
    try:
        if args.drop:
            logger.warning("Dropping tables: " + ", ".join(sorted(Base.metadata.tables)))
            Base.metadata.drop_all(engine)

        Base.metadata.create_all(engine)
        logger.info("Schema ready: " + ", ".join(sorted(Base.metadata.tables)))
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
