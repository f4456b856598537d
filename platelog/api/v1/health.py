"""
Health endpoint for the platelog backend.

Reports store readiness and the persisted schema version.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request

from ...core.db import Store, get_store
from ...core.errors import SchemaError
from ...services.schema import LATEST_VERSION, SchemaManager


router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
def health(request: Request, store: Store = Depends(get_store)) -> dict:
    try:
        version = SchemaManager(store).current_version()
    except SchemaError:
        version = None
    return {
        "timestamp_utc": datetime.utcnow().isoformat() + "Z",
        "ready": store.ready,
        "schema_version": version,
        "latest_schema_version": LATEST_VERSION,
        "geocoding_enabled": getattr(request.app.state, "geocoder", None) is not None,
    }
