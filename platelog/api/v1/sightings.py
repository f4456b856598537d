"""
Sighting APIs: per-record CRUD plus the filtered, paged log.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ...core.config import Settings, get_app_settings
from ...core.db import Store, get_store
from ...core.pagination import clamp_limit, clamp_offset, set_pagination_headers
from ...schemas.sighting import (
    SightingCreate,
    SightingFilter,
    SightingListItem,
    SightingOut,
    SightingUpdate,
)
from ...services import sightings as sighting_service


router = APIRouter(prefix="/api/v1/sightings", tags=["sightings"])


def _sighting_filter(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    state: Optional[str] = Query(None, description="Jurisdiction of the sighted plate"),
    country: Optional[str] = Query(None),
    trip: Optional[str] = Query(None),
) -> SightingFilter:
    return SightingFilter(date_from=date_from, date_to=date_to, state=state, country=country, trip=trip)


@router.get("", response_model=list[SightingListItem])
def list_sightings(
    response: Response,
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    f: SightingFilter = Depends(_sighting_filter),
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_app_settings),
) -> list[SightingListItem]:
    limit = clamp_limit(limit if limit is not None else cfg.default_page_size, cfg)
    offset = clamp_offset(offset)
    items = sighting_service.get_sightings_page(store, f, limit, offset)
    total = sighting_service.count_sightings(store, f)
    set_pagination_headers(response, total=total, limit=limit, offset=offset)
    return items


@router.get("/count")
def count_sightings(f: SightingFilter = Depends(_sighting_filter), store: Store = Depends(get_store)) -> dict:
    return {"count": sighting_service.count_sightings(store, f)}


@router.post("", response_model=SightingOut, status_code=201)
def create_sighting(
    payload: SightingCreate,
    request: Request,
    geocode: bool = Query(False, description="Fill city/state/country from latitude and longitude"),
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_app_settings),
) -> SightingOut:
    if geocode:
        client = getattr(request.app.state, "geocoder", None)
        if client is None:
            raise HTTPException(status_code=400, detail="Reverse geocoding is not configured")
        payload = sighting_service.apply_geocode(payload, client)
    return sighting_service.create_sighting(store, payload, trip_mode=cfg.trip_mode)


@router.get("/{sighting_id}", response_model=SightingOut)
def get_sighting(sighting_id: int, store: Store = Depends(get_store)) -> SightingOut:
    return sighting_service.get_sighting(store, sighting_id)


@router.put("/{sighting_id}", response_model=SightingOut)
def update_sighting(
    sighting_id: int,
    payload: SightingUpdate,
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_app_settings),
) -> SightingOut:
    return sighting_service.update_sighting(store, sighting_id, payload, trip_mode=cfg.trip_mode)


@router.delete("/{sighting_id}")
def delete_sighting(sighting_id: int, store: Store = Depends(get_store)) -> dict:
    sighting_service.delete_sighting(store, sighting_id)
    return {"status": "ok", "sighting_id": sighting_id}
