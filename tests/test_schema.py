from pathlib import Path

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from platelog.core.db import create_store
from platelog.core.errors import SchemaError
from platelog.services.schema import LATEST_VERSION, SchemaManager, dedupe_external_ids


def _make_store(tmp_path: Path, name: str = "catalogue.db"):
    return create_store(f"sqlite+pysqlite:///{tmp_path / name}")


def _create_legacy_tables(store) -> None:
    with store.engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE plates ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, external_id TEXT, state TEXT, country TEXT, "
                "name TEXT NOT NULL UNIQUE, years_available TEXT, available BOOLEAN, base BOOLEAN, "
                "primary_background_colors TEXT, all_colors TEXT, background_desc TEXT, "
                "description TEXT, notes TEXT, images TEXT)"
            )
        )
        conn.execute(
            text(
                "CREATE TABLE patterns ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "plate_id INTEGER NOT NULL REFERENCES plates(id) ON DELETE CASCADE, "
                "pattern TEXT NOT NULL, type TEXT, series_years TEXT)"
            )
        )
        conn.execute(
            text(
                "CREATE TABLE sightings ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "plate_id INTEGER NOT NULL REFERENCES plates(id) ON DELETE CASCADE, "
                "location TEXT, time DATETIME, notes TEXT, image_uri TEXT)"
            )
        )


def test_initialize_fresh_store_reaches_latest_version(tmp_path: Path):
    store = _make_store(tmp_path)
    manager = SchemaManager(store)

    assert manager.initialize() == LATEST_VERSION
    assert store.ready is True
    assert manager.current_version() == LATEST_VERSION

    inspector = inspect(store.engine)
    assert {"plates", "patterns", "sightings", "trips", "schema_version"} <= set(inspector.get_table_names())
    index_names = {idx["name"] for idx in inspector.get_indexes("plates")}
    assert "ux_plates_external_id" in index_names


def _schema_snapshot(store) -> dict:
    inspector = inspect(store.engine)
    snapshot = {}
    for table in sorted(inspector.get_table_names()):
        columns = [(col["name"], str(col["type"]), col["nullable"]) for col in inspector.get_columns(table)]
        indexes = sorted(
            (idx["name"], tuple(idx["column_names"]), bool(idx["unique"])) for idx in inspector.get_indexes(table)
        )
        snapshot[table] = (columns, indexes)
    return snapshot


def test_initialize_is_idempotent(tmp_path: Path):
    store = _make_store(tmp_path)
    SchemaManager(store).initialize()
    before = _schema_snapshot(store)

    again = create_store(str(store.engine.url))
    assert SchemaManager(again).initialize() == LATEST_VERSION
    assert again.ready is True
    assert _schema_snapshot(again) == before


def test_legacy_store_is_migrated_and_external_ids_deduplicated(tmp_path: Path):
    store = _make_store(tmp_path)
    _create_legacy_tables(store)
    with store.engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO plates (id, external_id, state, name) VALUES "
                "(1, 'CA1', 'CA', 'First'), (2, 'CA1', 'CA', 'Second'), "
                "(3, 'CA1', 'CA', 'Third'), (4, 'NY1', 'NY', 'Empire'), (5, '  ', 'NY', 'Blank')"
            )
        )

    assert SchemaManager(store).initialize() == LATEST_VERSION

    with store.engine.connect() as conn:
        rows = dict(conn.execute(text("SELECT id, external_id FROM plates ORDER BY id")).all())
        sighting_cols = {col["name"] for col in inspect(conn).get_columns("sightings")}
        plate_cols = {col["name"] for col in inspect(conn).get_columns("plates")}
        pattern_cols = {col["name"] for col in inspect(conn).get_columns("patterns")}

    assert rows == {1: "CA1", 2: None, 3: None, 4: "NY1", 5: None}
    assert {"trip", "trip_id", "latitude", "longitude", "city", "full_address"} <= sighting_cols
    assert {"embossed", "has_county", "has_url", "text", "features_tags"} <= plate_cols
    assert "separator" in pattern_cols

    # The unique index is live: a second CA1 is rejected by the store.
    with pytest.raises(IntegrityError):
        with store.engine.begin() as conn:
            conn.execute(text("INSERT INTO plates (external_id, name) VALUES ('CA1', 'Fourth')"))


def test_dedupe_keeps_lowest_id(tmp_path: Path):
    store = _make_store(tmp_path)
    _create_legacy_tables(store)
    with store.engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO plates (id, external_id, name) VALUES "
                "(7, 'TX9', 'A'), (3, 'TX9', 'B'), (5, 'TX9', 'C')"
            )
        )
        cleared = dedupe_external_ids(conn)
        kept = conn.execute(text("SELECT id FROM plates WHERE external_id = 'TX9'")).all()

    assert cleared == 2
    assert [row[0] for row in kept] == [3]


def test_migrate_to_intermediate_version_then_latest(tmp_path: Path):
    store = _make_store(tmp_path)
    _create_legacy_tables(store)
    manager = SchemaManager(store)

    assert manager.migrate(3) == 3
    with store.engine.connect() as conn:
        sighting_cols = {col["name"] for col in inspect(conn).get_columns("sightings")}
    assert "trip" not in sighting_cols

    # Lower or equal targets are no-ops.
    assert manager.migrate(2) == 3
    assert manager.migrate(LATEST_VERSION) == LATEST_VERSION


def test_migrate_rejects_unknown_version(tmp_path: Path):
    store = _make_store(tmp_path)
    SchemaManager(store).initialize()
    with pytest.raises(SchemaError):
        SchemaManager(store).migrate(LATEST_VERSION + 1)


def test_set_version_never_decreases(tmp_path: Path):
    store = _make_store(tmp_path)
    manager = SchemaManager(store)
    manager.initialize()

    with pytest.raises(SchemaError):
        manager.set_version(LATEST_VERSION - 1)
    assert manager.current_version() == LATEST_VERSION


def test_failed_migration_leaves_store_not_ready(tmp_path: Path):
    store = _make_store(tmp_path)
    with store.engine.begin() as conn:
        # A plates table without the columns the indexes need.
        conn.execute(text("CREATE TABLE plates (id INTEGER PRIMARY KEY, name TEXT)"))

    with pytest.raises(SchemaError):
        SchemaManager(store).initialize()
    assert store.ready is False
    with pytest.raises(SchemaError):
        with store.session():
            pass


def test_store_refuses_io_before_initialize(tmp_path: Path):
    store = _make_store(tmp_path)
    with pytest.raises(SchemaError):
        with store.write():
            pass
