"""
Plate catalogue APIs.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from ...core.config import Settings, get_app_settings
from ...core.db import Store, get_store
from ...core.request_limits import enforce_upload_limit, read_upload_text
from ...schemas.imports import ImportReport
from ...schemas.pattern import PatternOut
from ...schemas.plate import PlateCreate, PlateDeleteResult, PlateOut, PlateUpdate
from ...schemas.sighting import SightingOut
from ...services import patterns as pattern_service
from ...services import plates as plate_service
from ...services import sightings as sighting_service
from ...services.importer import ImportReconciler


router = APIRouter(prefix="/api/v1/plates", tags=["plates"])


@router.get("", response_model=list[PlateOut])
def list_plates(
    q: Optional[str] = Query(None, description="Case-insensitive search text"),
    limit: Optional[int] = Query(None, ge=1),
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_app_settings),
) -> list[PlateOut]:
    if q and q.strip():
        cap = min(limit or cfg.search_limit, cfg.search_limit)
        return plate_service.search_plates(store, q, limit=cap)
    return plate_service.list_plates(store)


@router.post("", response_model=PlateOut, status_code=201)
def create_plate(
    payload: PlateCreate,
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_app_settings),
) -> PlateOut:
    return plate_service.create_plate(store, payload, cfg=cfg)


@router.post("/import", response_model=ImportReport)
def import_plates(
    file: UploadFile = File(...),
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_app_settings),
    _limit=Depends(enforce_upload_limit),
) -> ImportReport:
    raw_text = read_upload_text(file)
    return ImportReconciler(store, cfg).import_plates(raw_text)


@router.get("/{plate_id}", response_model=PlateOut)
def get_plate(plate_id: int, store: Store = Depends(get_store)) -> PlateOut:
    return plate_service.get_plate(store, plate_id)


@router.put("/{plate_id}", response_model=PlateOut)
def update_plate(plate_id: int, payload: PlateUpdate, store: Store = Depends(get_store)) -> PlateOut:
    return plate_service.update_plate(store, plate_id, payload)


@router.delete("/{plate_id}", response_model=PlateDeleteResult)
def delete_plate(plate_id: int, store: Store = Depends(get_store)) -> PlateDeleteResult:
    return plate_service.delete_plate(store, plate_id)


@router.get("/{plate_id}/patterns", response_model=list[PatternOut])
def list_plate_patterns(plate_id: int, store: Store = Depends(get_store)) -> list[PatternOut]:
    plate_service.get_plate(store, plate_id)
    return pattern_service.list_patterns_for_plate(store, plate_id)


@router.get("/{plate_id}/sightings", response_model=list[SightingOut])
def list_plate_sightings(plate_id: int, store: Store = Depends(get_store)) -> list[SightingOut]:
    plate_service.get_plate(store, plate_id)
    return sighting_service.list_sightings_for_plate(store, plate_id)
