"""
API package for the platelog backend.

This package aggregates all API routers to be included in the FastAPI
application. The API is versioned under ``/api/v1``.
"""

from fastapi import APIRouter
from .v1.health import router as health_router
from .v1.plates import router as plates_router
from .v1.patterns import router as patterns_router
from .v1.sightings import router as sightings_router
from .v1.trips import router as trips_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(plates_router)
api_router.include_router(patterns_router)
api_router.include_router(sightings_router)
api_router.include_router(trips_router)
