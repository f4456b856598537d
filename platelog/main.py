"""
Entry point for the platelog backend.

This module creates the FastAPI application, includes all API routers,
and initializes the catalogue store on startup. Run with:

    uvicorn platelog.main:app --reload

"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import api_router
from .core.config import Settings, get_settings, validate_runtime_settings
from .core.db import create_store
from .core.errors import (
    ConstraintViolation,
    DuplicateError,
    NotFoundError,
    PlatelogError,
    SchemaError,
    TransientStoreError,
    ValidationError,
    log_exception,
)
from .core.logging_config import setup_logging
from .integrations.geocoding import GeocodingClient, GeocodingNetworkError, GeocodingServiceError
from .services.schema import SchemaManager

_STATUS_BY_ERROR: list[tuple[type[PlatelogError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConstraintViolation, 409),
    (SchemaError, 503),
    (TransientStoreError, 503),
]


def _status_for(exc: PlatelogError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _register_error_handlers(app: FastAPI) -> None:
    logger = logging.getLogger("api")

    @app.exception_handler(PlatelogError)
    async def _platelog_error(request: Request, exc: PlatelogError) -> JSONResponse:
        status = _status_for(exc)
        body: dict = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, ConstraintViolation):
            body["reason"] = exc.reason
        if isinstance(exc, (DuplicateError, ValidationError)) and exc.field:
            body["field"] = exc.field
        if status >= 500:
            log_exception(logger, "Request failed", extra={"path": request.url.path}, exc=exc)
        return JSONResponse(status_code=status, content=body)

    @app.exception_handler(GeocodingNetworkError)
    async def _geocoding_offline(request: Request, exc: GeocodingNetworkError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc), "error": "GeocodingNetworkError"})

    @app.exception_handler(GeocodingServiceError)
    async def _geocoding_failed(request: Request, exc: GeocodingServiceError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": str(exc), "error": "GeocodingServiceError"})


def create_app(cfg: Optional[Settings] = None) -> FastAPI:
    cfg = cfg or get_settings()
    validate_runtime_settings(cfg)
    app = FastAPI(title="Platelog Backend", version="0.1.0")
    app.include_router(api_router)
    _register_error_handlers(app)
    app.state.settings = cfg
    app.state.store = create_store(cfg)
    app.state.geocoder = GeocodingClient.from_settings(cfg) if cfg.geocoding_api_key else None

    @app.on_event("startup")
    def _init_store() -> None:
        logger = logging.getLogger("startup")
        try:
            version = SchemaManager(app.state.store).initialize()
        except SchemaError as exc:
            # The store stays not-ready; refuse to serve on a half-migrated schema.
            log_exception(logger, "Schema initialization failed", exc=exc)
            raise
        logger.info("Platelog started schema_version=%s trip_mode=%s", version, cfg.trip_mode)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        store = getattr(app.state, "store", None)
        if store:
            store.dispose()

    return app


def _build_default_app() -> FastAPI:
    cfg = get_settings()
    setup_logging(cfg.log_level)
    return create_app(cfg)


app = _build_default_app()
