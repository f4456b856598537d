"""
Trip registry APIs.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.db import Store, get_store
from ...schemas.trip import TripCreate, TripOut, TripUpdate
from ...services import trips as trip_service


router = APIRouter(prefix="/api/v1/trips", tags=["trips"])


@router.get("", response_model=list[TripOut])
def list_trips(
    name: Optional[str] = Query(None, description="Exact trip name, case-insensitive"),
    store: Store = Depends(get_store),
) -> list[TripOut]:
    if name:
        trip = trip_service.get_trip_by_name(store, name)
        return [trip] if trip else []
    return trip_service.list_trips(store)


@router.post("", response_model=TripOut, status_code=201)
def register_trip(payload: TripCreate, store: Store = Depends(get_store)) -> TripOut:
    return trip_service.register_trip(store, payload)


@router.put("/{trip_id}", response_model=TripOut)
def update_trip(trip_id: int, payload: TripUpdate, store: Store = Depends(get_store)) -> TripOut:
    return trip_service.update_trip(store, trip_id, payload)


@router.delete("/{trip_id}")
def delete_trip(trip_id: int, store: Store = Depends(get_store)) -> dict:
    unlinked = trip_service.delete_trip(store, trip_id)
    return {"status": "ok", "trip_id": trip_id, "sightings_unlinked": unlinked}
