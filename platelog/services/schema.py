"""
Schema lifecycle for the catalogue store.

`SchemaManager.initialize()` is called on every start: it creates missing
tables (with their indexes) from the ORM metadata, then walks the ordered
migration steps above the persisted version. Each step inspects the live
schema before acting, so it is a no-op against a store that already has the
change, including a fresh store created from the latest table definitions.
DDL goes through Alembic's `Operations` API without revision scripts.

SQLite commits DDL outside the surrounding transaction, so a step and its
version bump are not atomic; an interrupted step is simply re-run next time.

Baseline (version 0) tables, as first released:
    plates(id, external_id, state, country, name UNIQUE, years_available,
           available, base, primary_background_colors, all_colors,
           background_desc, description, notes, images)
    patterns(id, plate_id -> plates ON DELETE CASCADE, pattern, type, series_years)
    sightings(id, plate_id -> plates ON DELETE CASCADE, location, time, notes, image_uri)
"""

from __future__ import annotations

import logging
from typing import Callable

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..core.db import Store
from ..core.errors import SchemaError, log_exception
from ..models import Base, SchemaVersion

_logger = logging.getLogger("schema")

VERSION_ROW_ID = 1


def _operations(conn: Connection) -> Operations:
    return Operations(MigrationContext.configure(conn))


def _table_names(conn: Connection) -> set[str]:
    return set(inspect(conn).get_table_names())


def _columns(conn: Connection, table: str) -> set[str]:
    return {col["name"] for col in inspect(conn).get_columns(table)}


def _indexes(conn: Connection, table: str) -> set[str]:
    return {idx["name"] for idx in inspect(conn).get_indexes(table) if idx.get("name")}


def _require_table(conn: Connection, table: str) -> None:
    if table not in _table_names(conn):
        raise SchemaError(f"Table {table!r} is missing; cannot migrate")


def _add_missing_columns(conn: Connection, table: str, columns: list[sa.Column]) -> list[str]:
    _require_table(conn, table)
    existing = _columns(conn, table)
    op = _operations(conn)
    added: list[str] = []
    for column in columns:
        if column.name in existing:
            continue
        op.add_column(table, column)
        added.append(column.name)
    if added:
        _logger.info("Added columns table=%s columns=%s", table, ",".join(added))
    return added


def _ensure_index(conn: Connection, name: str, table: str, columns: list[str], *, unique: bool = False) -> bool:
    _require_table(conn, table)
    if name in _indexes(conn, table):
        return False
    _operations(conn).create_index(name, table, columns, unique=unique)
    _logger.info("Created index name=%s table=%s unique=%s", name, table, unique)
    return True


# -------------------------
# Migration steps
# -------------------------
def _step_base_indexes(conn: Connection) -> None:
    _ensure_index(conn, "ix_plates_state", "plates", ["state"])
    _ensure_index(conn, "ix_patterns_plate_id", "patterns", ["plate_id"])
    _ensure_index(conn, "ix_sightings_plate_id", "sightings", ["plate_id"])


def _step_plate_attributes(conn: Connection) -> None:
    _add_missing_columns(
        conn,
        "plates",
        [
            sa.Column("embossed", sa.Boolean(), nullable=True, server_default=sa.text("0")),
            sa.Column("has_county", sa.Boolean(), nullable=True, server_default=sa.text("0")),
            sa.Column("has_url", sa.Boolean(), nullable=True, server_default=sa.text("0")),
            sa.Column("num_font", sa.String(length=128), nullable=True),
            sa.Column("num_color", sa.String(length=128), nullable=True),
            sa.Column("state_font", sa.String(length=128), nullable=True),
            sa.Column("state_color", sa.String(length=128), nullable=True),
            sa.Column("state_location", sa.String(length=128), nullable=True),
            sa.Column("text", sa.Text(), nullable=True),
            sa.Column("features_tags", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        ],
    )


def _step_pattern_separator(conn: Connection) -> None:
    _add_missing_columns(conn, "patterns", [sa.Column("separator", sa.String(length=8), nullable=True)])


def _step_sighting_trips(conn: Connection) -> None:
    # trip_id is added without a REFERENCES clause on upgraded stores;
    # trips.delete_trip unlinks sightings explicitly for that reason.
    _add_missing_columns(
        conn,
        "sightings",
        [
            sa.Column("trip", sa.String(length=128), nullable=True),
            sa.Column("trip_id", sa.Integer(), nullable=True),
        ],
    )
    _ensure_index(conn, "ix_sightings_trip_id", "sightings", ["trip_id"])


def _step_sighting_geocoding(conn: Connection) -> None:
    _add_missing_columns(
        conn,
        "sightings",
        [
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("city", sa.String(length=128), nullable=True),
            sa.Column("state", sa.String(length=64), nullable=True),
            sa.Column("country", sa.String(length=64), nullable=True),
            sa.Column("full_address", sa.String(length=512), nullable=True),
        ],
    )


def dedupe_external_ids(conn: Connection) -> int:
    """Null out duplicated external ids, keeping the value on the lowest id.

    Blank ids are nulled first so they do not count as duplicates.
    Returns the number of rows whose external id was cleared.
    """
    cleared = conn.execute(
        text("UPDATE plates SET external_id = NULL WHERE external_id IS NOT NULL AND TRIM(external_id) = ''")
    ).rowcount or 0
    groups = conn.execute(
        text(
            "SELECT external_id, MIN(id) AS keep_id FROM plates "
            "WHERE external_id IS NOT NULL GROUP BY external_id HAVING COUNT(*) > 1"
        )
    ).all()
    for external_id, keep_id in groups:
        result = conn.execute(
            text("UPDATE plates SET external_id = NULL WHERE external_id = :ext AND id <> :keep"),
            {"ext": external_id, "keep": keep_id},
        )
        cleared += result.rowcount or 0
    if groups:
        _logger.warning(
            "Cleared duplicate external ids groups=%s rows=%s",
            len(groups),
            cleared,
        )
    return cleared


def _step_unique_external_id(conn: Connection) -> None:
    _require_table(conn, "plates")
    if "ux_plates_external_id" in _indexes(conn, "plates"):
        return
    # Index creation fails while duplicates remain.
    dedupe_external_ids(conn)
    _ensure_index(conn, "ux_plates_external_id", "plates", ["external_id"], unique=True)


MigrationStep = Callable[[Connection], None]

MIGRATIONS: list[tuple[int, MigrationStep]] = [
    (1, _step_base_indexes),
    (2, _step_plate_attributes),
    (3, _step_pattern_separator),
    (4, _step_sighting_trips),
    (5, _step_sighting_geocoding),
    (6, _step_unique_external_id),
]

LATEST_VERSION = MIGRATIONS[-1][0]


class SchemaManager:
    def __init__(self, store: Store) -> None:
        self._store = store

    def initialize(self) -> int:
        """Create missing tables, migrate to the latest version, mark the store ready.

        Raises SchemaError on any failure; the store then stays unusable.
        """
        self._store.ready = False
        with self._store.schema_lock():
            try:
                Base.metadata.create_all(bind=self._store.engine)
            except SQLAlchemyError as exc:
                log_exception(_logger, "Schema create_all failed", exc=exc)
                raise SchemaError(f"Failed to create tables: {exc}") from exc
            version = self.migrate(LATEST_VERSION)
        self._store.ready = True
        _logger.info("Store ready schema_version=%s", version)
        return version

    def current_version(self) -> int:
        try:
            with self._store.engine.connect() as conn:
                return self._read_version(conn)
        except SQLAlchemyError as exc:
            raise SchemaError(f"Failed to read schema version: {exc}") from exc

    def set_version(self, version: int) -> None:
        try:
            with self._store.engine.begin() as conn:
                self._write_version(conn, version)
        except SQLAlchemyError as exc:
            raise SchemaError(f"Failed to write schema version: {exc}") from exc

    def migrate(self, target: int = LATEST_VERSION) -> int:
        if target > LATEST_VERSION:
            raise SchemaError(f"Unknown schema version {target}; latest is {LATEST_VERSION}")
        current = self.current_version()
        if target <= current:
            return current
        for version, step in MIGRATIONS:
            if version <= current or version > target:
                continue
            _logger.info("Applying migration version=%s step=%s", version, step.__name__)
            try:
                with self._store.engine.begin() as conn:
                    step(conn)
                    self._write_version(conn, version)
            except SchemaError:
                raise
            except Exception as exc:
                log_exception(_logger, "Migration failed", extra={"version": version, "step": step.__name__}, exc=exc)
                raise SchemaError(f"Migration to version {version} ({step.__name__}) failed: {exc}") from exc
            current = version
        return current

    @staticmethod
    def _read_version(conn: Connection) -> int:
        if SchemaVersion.__tablename__ not in _table_names(conn):
            return 0
        row = conn.execute(
            sa.select(SchemaVersion.version).where(SchemaVersion.id == VERSION_ROW_ID)
        ).first()
        return int(row[0]) if row else 0

    def _write_version(self, conn: Connection, version: int) -> None:
        current = self._read_version(conn)
        if version < current:
            raise SchemaError(f"Schema version only increases (current={current}, requested={version})")
        if version == current and current:
            return
        table = SchemaVersion.__table__
        table.create(conn, checkfirst=True)
        if conn.execute(sa.select(table.c.id).where(table.c.id == VERSION_ROW_ID)).first():
            conn.execute(table.update().where(table.c.id == VERSION_ROW_ID).values(version=version))
        else:
            conn.execute(table.insert().values(id=VERSION_ROW_ID, version=version))
