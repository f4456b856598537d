"""
Sighting queries and writes, including the filtered/paged list.

`get_sightings_page` and `count_sightings` build their WHERE clause with the
same `_apply_filter` helper, so summing pages equals the count as long as no
writes happen between calls. There is no snapshot isolation: a page walk
that races with inserts or deletes can skip or repeat rows.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from ..core.db import Store
from ..core.errors import MissingParentError, NotFoundError, ValidationError
from ..integrations.geocoding import GeocodingClient, GeocodingNoResults
from ..models import Plate, Sighting, Trip
from ..schemas.sighting import (
    SightingCreate,
    SightingFilter,
    SightingListItem,
    SightingOut,
    SightingUpdate,
)
from .normalize import normalize_record, normalize_timestamp
from .trips import ensure_trip

_logger = logging.getLogger("sightings")


def _resolve_trip(db: Session, fields: dict[str, Any], trip_mode: str) -> None:
    if trip_mode != "registry":
        fields["trip_id"] = None
        return
    label = fields.get("trip")
    if label:
        trip = ensure_trip(db, label)
        fields["trip_id"] = trip.id
        fields["trip"] = trip.name
    elif fields.get("trip_id") is not None:
        trip = db.get(Trip, fields["trip_id"])
        if trip is None:
            raise MissingParentError(f"Trip {fields['trip_id']} does not exist")
        fields["trip"] = trip.name


def apply_geocode(payload: SightingCreate, client: GeocodingClient) -> SightingCreate:
    """Fill city/state/country/address from coordinates.

    Zero results leaves the fields empty; network and service errors
    propagate so the caller can prompt or surface them.
    """
    if payload.latitude is None or payload.longitude is None:
        return payload
    try:
        result = client.reverse_geocode(payload.latitude, payload.longitude)
    except GeocodingNoResults:
        _logger.info("No geocoding results lat=%s lon=%s", payload.latitude, payload.longitude)
        return payload
    return payload.model_copy(
        update={
            "city": result.city,
            "state": result.state,
            "country": result.country,
            "full_address": result.full_address,
        }
    )


def list_sightings_for_plate(store: Store, plate_id: int) -> list[SightingOut]:
    with store.session() as db:
        rows = (
            db.query(Sighting)
            .filter(Sighting.plate_id == plate_id)
            .order_by(Sighting.time.desc(), Sighting.id.desc())
            .all()
        )
        return [SightingOut.model_validate(s) for s in rows]


def get_sighting(store: Store, sighting_id: int) -> SightingOut:
    with store.session() as db:
        sighting = db.get(Sighting, sighting_id)
        if sighting is None:
            raise NotFoundError(f"Sighting {sighting_id} not found")
        return SightingOut.model_validate(sighting)


def create_sighting(store: Store, payload: SightingCreate, *, trip_mode: str = "label") -> SightingOut:
    fields = normalize_record(payload.model_dump())
    with store.write() as db:
        if db.get(Plate, fields["plate_id"]) is None:
            raise MissingParentError(f"Plate {fields['plate_id']} does not exist")
        _resolve_trip(db, fields, trip_mode)
        sighting = Sighting(**fields)
        db.add(sighting)
        db.flush()
        out = SightingOut.model_validate(sighting)
    _logger.info("Sighting created id=%s plate_id=%s", out.id, out.plate_id)
    return out


def update_sighting(
    store: Store,
    sighting_id: int,
    payload: SightingUpdate,
    *,
    trip_mode: str = "label",
) -> SightingOut:
    fields = normalize_record(payload.model_dump())
    with store.write() as db:
        sighting = db.get(Sighting, sighting_id)
        if sighting is None:
            raise NotFoundError(f"Sighting {sighting_id} not found")
        _resolve_trip(db, fields, trip_mode)
        for key, value in fields.items():
            setattr(sighting, key, value)
        db.flush()
        return SightingOut.model_validate(sighting)


def delete_sighting(store: Store, sighting_id: int) -> None:
    with store.write() as db:
        sighting = db.get(Sighting, sighting_id)
        if sighting is None:
            raise NotFoundError(f"Sighting {sighting_id} not found")
        db.delete(sighting)


# -------------------------
# Filtered listing
# -------------------------
def _apply_filter(db: Session, f: Optional[SightingFilter], *entities: Any) -> Query:
    query = db.query(*entities).select_from(Sighting).join(Plate, Plate.id == Sighting.plate_id)
    if f is None:
        return query
    if f.date_from is not None:
        query = query.filter(Sighting.time >= normalize_timestamp(f.date_from))
    if f.date_to is not None:
        query = query.filter(Sighting.time <= normalize_timestamp(f.date_to))
    if f.state:
        query = query.filter(Plate.state == f.state.strip())
    if f.country:
        query = query.filter(Plate.country == f.country.strip())
    if f.trip:
        query = query.filter(func.lower(Sighting.trip) == f.trip.strip().lower())
    return query


def get_sightings_page(
    store: Store,
    f: Optional[SightingFilter],
    limit: int,
    offset: int = 0,
) -> list[SightingListItem]:
    """Most recent first (ties broken by id), joined to the parent plate."""
    if limit < 1:
        raise ValidationError("limit must be positive", field="limit")
    if offset < 0:
        raise ValidationError("offset must not be negative", field="offset")
    with store.session() as db:
        rows = (
            _apply_filter(db, f, Sighting, Plate.name, Plate.state, Plate.country, Plate.external_id)
            .order_by(Sighting.time.desc(), Sighting.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        items: list[SightingListItem] = []
        for sighting, name, state, country, external_id in rows:
            base = SightingOut.model_validate(sighting).model_dump()
            items.append(
                SightingListItem(
                    **base,
                    plate_name=name,
                    plate_state=state,
                    plate_country=country,
                    plate_external_id=external_id,
                )
            )
        return items


def count_sightings(store: Store, f: Optional[SightingFilter] = None) -> int:
    with store.session() as db:
        return int(_apply_filter(db, f, func.count(Sighting.id)).scalar() or 0)
