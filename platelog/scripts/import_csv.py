"""
Import plates or serial patterns from a CSV file.

Usage:
    python -m platelog.scripts.import_csv plates catalogue.csv
    python -m platelog.scripts.import_csv patterns patterns.csv
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from ..core.config import get_settings
from ..core.db import create_store
from ..core.errors import PlatelogError
from ..core.logging_config import setup_logging
from ..services.importer import ImportReconciler
from ..services.schema import SchemaManager


logger = logging.getLogger("scripts.import_csv")


def main(argv: Optional[list[str]] = None) -> int:
    cfg = get_settings()
    parser = argparse.ArgumentParser(description="Bulk-import catalogue CSV data")
    parser.add_argument("kind", choices=["plates", "patterns"])
    parser.add_argument("path", type=Path)
    parser.add_argument("--database-url", default=cfg.database_url)
    args = parser.parse_args(argv)
    setup_logging(cfg.log_level)

    try:
        raw_text = args.path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Cannot read %s: %s", args.path, exc)
        return 2

    store = create_store(args.database_url)
    try:
        SchemaManager(store).initialize()
        reconciler = ImportReconciler(store, cfg)
        if args.kind == "plates":
            report = reconciler.import_plates(raw_text)
        else:
            report = reconciler.import_patterns(raw_text)
    except PlatelogError as exc:
        logger.error("Import failed: %s", exc)
        return 1
    finally:
        store.dispose()

    print(f"inserted={report.inserted} skipped={report.skipped} errors={report.errors} total={report.total}")
    for issue in report.samples:
        print(f"  row {issue.row_number} {issue.identifier}: {issue.reason} ({issue.message or ''})")
    if report.truncated:
        print("  …")
    return 0 if report.errors == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
