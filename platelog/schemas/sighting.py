"""
Pydantic schemas for sightings and sighting list filters.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SightingFields(BaseModel):
    location: Optional[str] = None
    time: Optional[datetime] = None
    notes: Optional[str] = None
    image_uri: Optional[str] = None
    trip: Optional[str] = None
    trip_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    full_address: Optional[str] = None


class SightingCreate(SightingFields):
    plate_id: int


class SightingUpdate(SightingFields):
    """Full-field replacement of everything except the parent plate."""

    pass


class SightingOut(SightingFields):
    id: int
    plate_id: int

    model_config = ConfigDict(from_attributes=True)


class SightingListItem(SightingOut):
    plate_name: Optional[str] = None
    plate_state: Optional[str] = None
    plate_country: Optional[str] = None
    plate_external_id: Optional[str] = None


class SightingFilter(BaseModel):
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    # Jurisdiction of the sighted plate, not the geocoded observation state.
    state: Optional[str] = None
    country: Optional[str] = None
    trip: Optional[str] = None
