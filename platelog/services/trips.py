"""
Trip registry.

Used when ``trip_mode=registry``: a sighting's trip label resolves to (or
creates) a row here. In label mode the registry is still available for
explicit registration but sightings are not linked to it.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import Store
from ..core.errors import NotFoundError
from ..models import Sighting, Trip
from ..schemas.trip import TripCreate, TripOut, TripUpdate
from .normalize import normalize_record

_logger = logging.getLogger("trips")


def ensure_trip(db: Session, name: str) -> Trip:
    """Return the trip called ``name`` (case-insensitive), creating it on first use."""
    trip = db.query(Trip).filter(func.lower(Trip.name) == name.lower()).first()
    if trip is not None:
        return trip
    trip = Trip(name=name)
    db.add(trip)
    db.flush()
    _logger.info("Trip registered implicitly id=%s name=%s", trip.id, name)
    return trip


def list_trips(store: Store) -> list[TripOut]:
    with store.session() as db:
        rows = db.query(Trip).order_by(Trip.start_date.desc(), Trip.id.desc()).all()
        return [TripOut.model_validate(t) for t in rows]


def get_trip_by_name(store: Store, name: str) -> Optional[TripOut]:
    with store.session() as db:
        trip = db.query(Trip).filter(func.lower(Trip.name) == name.strip().lower()).first()
        return TripOut.model_validate(trip) if trip else None


def register_trip(store: Store, payload: TripCreate) -> TripOut:
    fields = normalize_record(payload.model_dump(), required=("name",))
    with store.write() as db:
        trip = Trip(**fields)
        db.add(trip)
        db.flush()
        return TripOut.model_validate(trip)


def update_trip(store: Store, trip_id: int, payload: TripUpdate) -> TripOut:
    fields = normalize_record(payload.model_dump(), required=("name",))
    with store.write() as db:
        trip = db.get(Trip, trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        for key, value in fields.items():
            setattr(trip, key, value)
        db.flush()
        return TripOut.model_validate(trip)


def delete_trip(store: Store, trip_id: int) -> int:
    """Delete a trip and unlink its sightings. Returns the number unlinked."""
    with store.write() as db:
        trip = db.get(Trip, trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        # Upgraded stores have trip_id without a REFERENCES clause.
        unlinked = (
            db.query(Sighting)
            .filter(Sighting.trip_id == trip_id)
            .update({Sighting.trip_id: None}, synchronize_session=False)
        )
        db.delete(trip)
    return int(unlinked or 0)
