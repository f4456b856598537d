"""
Create missing tables and migrate the catalogue store to the latest version.

Usage:
    python -m platelog.scripts.run_migrations [--database-url URL] [--target N]
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from sqlalchemy import inspect

from ..core.config import get_settings
from ..core.db import create_store
from ..core.errors import SchemaError
from ..core.logging_config import setup_logging
from ..services.schema import LATEST_VERSION, SchemaManager


logger = logging.getLogger("scripts.run_migrations")


def run_migrations(database_url: str, target: Optional[int] = None) -> int:
    store = create_store(database_url)
    try:
        manager = SchemaManager(store)
        if target is None or target >= LATEST_VERSION:
            return manager.initialize()
        # Partial upgrades stop short of the latest step; the store is not marked ready.
        # Steps only upgrade existing tables, so a fresh store must be initialized.
        if "plates" not in inspect(store.engine).get_table_names():
            raise SchemaError(f"Store has no catalogue tables; cannot migrate to partial version {target}")
        return manager.migrate(target)
    finally:
        store.dispose()


def main(argv: Optional[list[str]] = None) -> int:
    cfg = get_settings()
    parser = argparse.ArgumentParser(description="Migrate the platelog store")
    parser.add_argument("--database-url", default=cfg.database_url)
    parser.add_argument("--target", type=int, default=None, help=f"Schema version (latest {LATEST_VERSION})")
    args = parser.parse_args(argv)
    setup_logging(cfg.log_level)
    try:
        version = run_migrations(args.database_url, args.target)
    except SchemaError as exc:
        logger.error("Migration failed: %s", exc)
        return 1
    logger.info("Store at schema version %s", version)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
