from datetime import datetime
from pathlib import Path

import pytest

from platelog.core.config import Settings
from platelog.core.db import create_store
from platelog.core.errors import DuplicateError, NotFoundError, ValidationError
from platelog.schemas.pattern import PatternCreate
from platelog.schemas.plate import PlateCreate, PlateUpdate
from platelog.schemas.sighting import SightingCreate
from platelog.services import patterns as pattern_service
from platelog.services import plates as plate_service
from platelog.services import sightings as sighting_service
from platelog.services.schema import SchemaManager


def _make_store(tmp_path: Path):
    store = create_store(f"sqlite+pysqlite:///{tmp_path / 'plates.db'}")
    SchemaManager(store).initialize()
    return store


def test_create_plate_generates_state_prefixed_id(tmp_path: Path):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="Gold", state="CA", external_id="CA1"))

    plate = plate_service.create_plate(store, PlateCreate(name="Sample", state="CA"))

    assert plate.external_id == "CA2"
    assert plate.available is True
    assert plate.embossed is False


def test_create_plate_without_state_uses_default_prefix(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="Mystery"))
    assert plate.external_id == "PLT1"


def test_generated_id_does_not_reuse_lower_gaps(tmp_path: Path):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="Second", state="CA", external_id="CA2"))

    plate = plate_service.create_plate(store, PlateCreate(name="Sample", state="CA"))

    assert plate.external_id == "CA3"


def test_create_plate_trims_and_requires_name(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="  Sunset  ", state=" NV ", notes="   "))
    assert plate.name == "Sunset"
    assert plate.state == "NV"
    assert plate.notes is None

    with pytest.raises(ValidationError):
        plate_service.create_plate(store, PlateCreate(name="   "))


def test_user_supplied_duplicate_id_is_rejected(tmp_path: Path):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="One", state="CA", external_id="CA7"))

    with pytest.raises(DuplicateError) as excinfo:
        plate_service.create_plate(store, PlateCreate(name="Two", state="CA", external_id="CA7"))
    assert excinfo.value.field == "external_id"


def test_duplicate_name_is_rejected(tmp_path: Path):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="Twin", state="OR"))
    with pytest.raises(DuplicateError) as excinfo:
        plate_service.create_plate(store, PlateCreate(name="Twin", state="OR"))
    assert excinfo.value.field == "name"


def test_generated_id_collision_is_retried(tmp_path: Path, monkeypatch):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="Existing", state="WA", external_id="WA1"))

    calls = []
    real_allocate = plate_service.allocate_external_id

    def _stale_then_real(db, state, *, max_attempts):
        calls.append(state)
        if len(calls) == 1:
            # Another writer took this candidate between probe and insert.
            return "WA1"
        return real_allocate(db, state, max_attempts=max_attempts)

    monkeypatch.setattr(plate_service, "allocate_external_id", _stale_then_real)
    plate = plate_service.create_plate(store, PlateCreate(name="Fresh", state="WA"), cfg=Settings())

    assert len(calls) == 2
    assert plate.external_id == "WA2"


def test_search_is_case_insensitive_and_capped(tmp_path: Path):
    store = _make_store(tmp_path)
    for i in range(5):
        plate_service.create_plate(store, PlateCreate(name=f"Desert {i}", state="AZ"))
    plate_service.create_plate(store, PlateCreate(name="Ocean", state="HI", notes="desert island"))
    plate_service.create_plate(store, PlateCreate(name="Forest", state="OR"))

    results = plate_service.search_plates(store, "DESERT")
    assert [p.name for p in results] == ["Desert 0", "Desert 1", "Desert 2", "Desert 3", "Desert 4", "Ocean"]

    assert len(plate_service.search_plates(store, "desert", limit=3)) == 3
    assert plate_service.search_plates(store, "az1")[0].external_id == "AZ1"


def test_search_treats_wildcards_literally(tmp_path: Path):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="100% Pure", state="CA"))
    plate_service.create_plate(store, PlateCreate(name="Plain", state="CA"))

    assert [p.name for p in plate_service.search_plates(store, "%")] == ["100% Pure"]


def test_update_plate_replaces_all_fields(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="Old", state="CA", notes="keep?"))

    updated = plate_service.update_plate(
        store,
        plate.id,
        PlateUpdate(name="New", state="CA", external_id=plate.external_id, embossed=True),
    )
    assert updated.name == "New"
    assert updated.notes is None
    assert updated.embossed is True

    with pytest.raises(NotFoundError):
        plate_service.update_plate(store, 9999, PlateUpdate(name="Ghost"))


def test_delete_plate_cascades_to_patterns_and_sightings(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="Doomed", state="CA"))
    keeper = plate_service.create_plate(store, PlateCreate(name="Keeper", state="CA"))
    for serial in ("1ABC234", "ABC 123"):
        pattern_service.create_pattern(store, PatternCreate(plate_id=plate.id, pattern=serial))
    for hour in (8, 9, 10):
        sighting_service.create_sighting(
            store, SightingCreate(plate_id=plate.id, time=datetime(2024, 5, 1, hour), location="I-5")
        )
    sighting_service.create_sighting(store, SightingCreate(plate_id=keeper.id, location="I-80"))

    result = plate_service.delete_plate(store, plate.id)

    assert (result.patterns_removed, result.sightings_removed) == (2, 3)
    assert pattern_service.list_patterns_for_plate(store, plate.id) == []
    assert sighting_service.list_sightings_for_plate(store, plate.id) == []
    assert len(sighting_service.list_sightings_for_plate(store, keeper.id)) == 1
    with pytest.raises(NotFoundError):
        plate_service.get_plate(store, plate.id)


def test_get_plate_by_external_id_falls_back_to_case_insensitive(tmp_path: Path):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="Mixed", external_id="US-CA-0012"))

    assert plate_service.get_plate_by_external_id(store, "us-ca-0012").name == "Mixed"
    assert plate_service.get_plate_by_external_id(store, "missing") is None


def test_count_and_list_plates(tmp_path: Path):
    store = _make_store(tmp_path)
    plate_service.create_plate(store, PlateCreate(name="beta", state="CA"))
    plate_service.create_plate(store, PlateCreate(name="Alpha", state="NV"))

    assert [p.name for p in plate_service.list_plates(store)] == ["Alpha", "beta"]
    assert plate_service.count_plates(store) == 2
    assert plate_service.count_plates(store, state="CA") == 1
