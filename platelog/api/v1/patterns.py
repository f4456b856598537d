"""
Serial pattern APIs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from ...core.config import Settings, get_app_settings
from ...core.db import Store, get_store
from ...core.request_limits import enforce_upload_limit, read_upload_text
from ...schemas.imports import ImportReport
from ...schemas.pattern import PatternCreate, PatternOut, PatternUpdate
from ...services import patterns as pattern_service
from ...services.importer import ImportReconciler


router = APIRouter(prefix="/api/v1/patterns", tags=["patterns"])


@router.post("", response_model=PatternOut, status_code=201)
def create_pattern(payload: PatternCreate, store: Store = Depends(get_store)) -> PatternOut:
    return pattern_service.create_pattern(store, payload)


@router.post("/import", response_model=ImportReport)
def import_patterns(
    file: UploadFile = File(...),
    store: Store = Depends(get_store),
    cfg: Settings = Depends(get_app_settings),
    _limit=Depends(enforce_upload_limit),
) -> ImportReport:
    raw_text = read_upload_text(file)
    return ImportReconciler(store, cfg).import_patterns(raw_text)


@router.get("/{pattern_id}", response_model=PatternOut)
def get_pattern(pattern_id: int, store: Store = Depends(get_store)) -> PatternOut:
    return pattern_service.get_pattern(store, pattern_id)


@router.put("/{pattern_id}", response_model=PatternOut)
def update_pattern(pattern_id: int, payload: PatternUpdate, store: Store = Depends(get_store)) -> PatternOut:
    return pattern_service.update_pattern(store, pattern_id, payload)


@router.delete("/{pattern_id}")
def delete_pattern(pattern_id: int, store: Store = Depends(get_store)) -> dict:
    pattern_service.delete_pattern(store, pattern_id)
    return {"status": "ok", "pattern_id": pattern_id}
