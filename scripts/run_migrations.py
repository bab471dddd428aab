#!/usr/bin/env python
"""Upgrade the catalog store schema to the latest Alembic revision."""

import logging
import sys
from pathlib import Path

from alembic.config import Config
from alembic import command

ROOT = Path(__file__).resolve().parent.parent

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_migrations(revision: str = "head") -> bool:
    """Run all pending migrations. Returns False if any of them failed."""
    try:
        logger.info("=" * 60)
        logger.info("RUNNING DATABASE MIGRATIONS")
        logger.info("=" * 60)

        alembic_cfg = Config(str(ROOT / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(ROOT / "alembic"))
        command.upgrade(alembic_cfg, revision)

        logger.info("=" * 60)
        logger.info("MIGRATIONS COMPLETE - store schema is up to date")
        logger.info("=" * 60)
        return True

    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return False


if __name__ == "__main__":
    success = run_migrations()
    sys.exit(0 if success else 1)
