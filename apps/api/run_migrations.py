#!/usr/bin/env python3
"""Container entrypoint step: bring the schema to the requested revision.

Blocks until the database accepts connections (up to --wait-seconds), then
runs `alembic upgrade`. Exits non-zero on either failure so the API never
starts against an unknown schema.

    python run_migrations.py                 # upgrade to head
    python run_migrations.py --revision growfit_001
"""

import argparse
import logging
import os
import sys
import time

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("run_migrations")

ALEMBIC_INI = os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini")


def wait_for_database(wait_seconds: int) -> bool:
    from core.database import check_db_connection

    deadline = time.monotonic() + wait_seconds
    while not check_db_connection():
        if time.monotonic() >= deadline:
            return False
        logger.info("Database not reachable yet, retrying in 1s")
        time.sleep(1)
    return True


def upgrade(revision: str) -> None:
    from alembic import command
    from alembic.config import Config

    command.upgrade(Config(ALEMBIC_INI), revision)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--revision", default="head")
    parser.add_argument("--wait-seconds", type=int, default=30)
    args = parser.parse_args()

    from core.logging import setup_logging

    setup_logging()

    if not wait_for_database(args.wait_seconds):
        logger.error(f"Database still unreachable after {args.wait_seconds}s")
        return 1

    try:
        upgrade(args.revision)
    except Exception:
        logger.exception(f"Alembic upgrade to {args.revision} failed")
        return 1

    logger.info(f"Schema is at {args.revision}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
