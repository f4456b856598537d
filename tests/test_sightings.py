from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from platelog.core.db import create_store
from platelog.core.errors import MissingParentError, NotFoundError, ValidationError
from platelog.integrations.geocoding import GeocodeResult, GeocodingNetworkError, GeocodingNoResults
from platelog.schemas.plate import PlateCreate
from platelog.schemas.sighting import SightingCreate, SightingFilter, SightingUpdate
from platelog.services import plates as plate_service
from platelog.services import sightings as sighting_service
from platelog.services import trips as trip_service
from platelog.services.schema import SchemaManager


def _make_store(tmp_path: Path):
    store = create_store(f"sqlite+pysqlite:///{tmp_path / 'sightings.db'}")
    SchemaManager(store).initialize()
    return store


def _seed(store):
    ca = plate_service.create_plate(store, PlateCreate(name="Golden", state="CA", country="USA"))
    on = plate_service.create_plate(store, PlateCreate(name="Trillium", state="ON", country="Canada"))
    start = datetime(2024, 6, 1, 12, 0)
    for i in range(7):
        plate = ca if i % 2 == 0 else on
        sighting_service.create_sighting(
            store,
            SightingCreate(
                plate_id=plate.id,
                time=start + timedelta(days=i),
                location=f"Stop {i}",
                trip="Summer Roadtrip" if i < 4 else None,
            ),
        )
    return ca, on


def test_pages_are_newest_first_and_sum_to_count(tmp_path: Path):
    store = _make_store(tmp_path)
    _seed(store)

    total = sighting_service.count_sightings(store, None)
    seen = []
    offset = 0
    while True:
        page = sighting_service.get_sightings_page(store, None, 3, offset)
        if not page:
            break
        assert len(page) <= 3
        seen.extend(page)
        offset += 3

    assert total == 7
    assert len(seen) == total
    assert len({s.id for s in seen}) == total
    times = [s.time for s in seen]
    assert times == sorted(times, reverse=True)
    assert seen[0].location == "Stop 6"
    assert seen[0].plate_name == "Golden"
    assert seen[0].plate_external_id == "CA1"


def test_ties_on_time_break_by_id_descending(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="Tie", state="TX"))
    when = datetime(2024, 1, 1, 9, 30)
    first = sighting_service.create_sighting(store, SightingCreate(plate_id=plate.id, time=when))
    second = sighting_service.create_sighting(store, SightingCreate(plate_id=plate.id, time=when))

    page = sighting_service.get_sightings_page(store, None, 10, 0)
    assert [s.id for s in page] == [second.id, first.id]


def test_filters_apply_to_page_and_count_alike(tmp_path: Path):
    store = _make_store(tmp_path)
    _seed(store)

    by_state = SightingFilter(state="CA")
    assert sighting_service.count_sightings(store, by_state) == 4
    assert {s.plate_state for s in sighting_service.get_sightings_page(store, by_state, 50, 0)} == {"CA"}

    by_country = SightingFilter(country="Canada")
    assert sighting_service.count_sightings(store, by_country) == 3

    window = SightingFilter(date_from=datetime(2024, 6, 2), date_to=datetime(2024, 6, 4, 23, 59))
    assert sighting_service.count_sightings(store, window) == 3
    assert len(sighting_service.get_sightings_page(store, window, 50, 0)) == 3

    by_trip = SightingFilter(trip="summer roadtrip")
    assert sighting_service.count_sightings(store, by_trip) == 4


def test_aware_filter_bounds_are_compared_in_utc(tmp_path: Path):
    store = _make_store(tmp_path)
    _seed(store)
    pacific = timezone(timedelta(hours=-7))
    # 2024-06-03 05:00 at UTC-7 is 12:00 UTC, the time of "Stop 2".
    f = SightingFilter(date_from=datetime(2024, 6, 3, 5, 0, tzinfo=pacific))
    assert sighting_service.count_sightings(store, f) == 5


def test_page_rejects_bad_bounds(tmp_path: Path):
    store = _make_store(tmp_path)
    with pytest.raises(ValidationError):
        sighting_service.get_sightings_page(store, None, 0, 0)
    with pytest.raises(ValidationError):
        sighting_service.get_sightings_page(store, None, 10, -1)


def test_create_sighting_requires_existing_plate(tmp_path: Path):
    store = _make_store(tmp_path)
    with pytest.raises(MissingParentError):
        sighting_service.create_sighting(store, SightingCreate(plate_id=404, location="Nowhere"))
    assert sighting_service.count_sightings(store) == 0


def test_label_mode_keeps_trip_as_text_only(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="Label", state="UT"))

    sighting = sighting_service.create_sighting(
        store, SightingCreate(plate_id=plate.id, trip="Moab", trip_id=12), trip_mode="label"
    )

    assert sighting.trip == "Moab"
    assert sighting.trip_id is None
    assert trip_service.list_trips(store) == []


def test_registry_mode_links_and_reuses_trips(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="Registry", state="UT"))

    first = sighting_service.create_sighting(
        store, SightingCreate(plate_id=plate.id, trip="Moab"), trip_mode="registry"
    )
    second = sighting_service.create_sighting(
        store, SightingCreate(plate_id=plate.id, trip="moab"), trip_mode="registry"
    )

    trips = trip_service.list_trips(store)
    assert [t.name for t in trips] == ["Moab"]
    assert first.trip_id == second.trip_id == trips[0].id
    assert second.trip == "Moab"

    unlinked = trip_service.delete_trip(store, trips[0].id)
    assert unlinked == 2
    assert sighting_service.get_sighting(store, first.id).trip_id is None


def test_update_and_delete_sighting(tmp_path: Path):
    store = _make_store(tmp_path)
    plate = plate_service.create_plate(store, PlateCreate(name="Edit", state="ID"))
    sighting = sighting_service.create_sighting(store, SightingCreate(plate_id=plate.id, location="Boise"))

    updated = sighting_service.update_sighting(store, sighting.id, SightingUpdate(location="  Twin Falls "))
    assert updated.location == "Twin Falls"
    assert updated.plate_id == plate.id

    sighting_service.delete_sighting(store, sighting.id)
    with pytest.raises(NotFoundError):
        sighting_service.get_sighting(store, sighting.id)


class _FakeGeocoder:
    def __init__(self, outcome):
        self.outcome = outcome

    def reverse_geocode(self, latitude, longitude):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_apply_geocode_fills_location_fields():
    payload = SightingCreate(plate_id=1, latitude=37.8, longitude=-122.4)
    result = GeocodeResult(city="San Francisco", state="CA", country="United States", full_address="SF, CA")

    filled = sighting_service.apply_geocode(payload, _FakeGeocoder(result))

    assert (filled.city, filled.state, filled.country) == ("San Francisco", "CA", "United States")


def test_apply_geocode_no_results_leaves_fields_empty():
    payload = SightingCreate(plate_id=1, latitude=0.0, longitude=0.0)
    filled = sighting_service.apply_geocode(payload, _FakeGeocoder(GeocodingNoResults("none")))
    assert filled.city is None and filled.full_address is None


def test_apply_geocode_network_failure_propagates():
    payload = SightingCreate(plate_id=1, latitude=1.0, longitude=1.0)
    with pytest.raises(GeocodingNetworkError):
        sighting_service.apply_geocode(payload, _FakeGeocoder(GeocodingNetworkError("offline")))
