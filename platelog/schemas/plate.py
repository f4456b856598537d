"""
Pydantic schemas for plates.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlateFields(BaseModel):
    external_id: Optional[str] = Field(None, description="Left blank to auto-generate from the state.")
    state: Optional[str] = None
    country: Optional[str] = None
    name: str
    years_available: Optional[str] = None
    available: Optional[bool] = True
    base: Optional[bool] = False
    embossed: Optional[bool] = False
    has_county: Optional[bool] = False
    has_url: Optional[bool] = False
    num_font: Optional[str] = None
    num_color: Optional[str] = None
    state_font: Optional[str] = None
    state_color: Optional[str] = None
    state_location: Optional[str] = None
    primary_background_colors: Optional[str] = None
    all_colors: Optional[str] = None
    background_desc: Optional[str] = None
    text: Optional[str] = None
    features_tags: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    images: Optional[str] = None


class PlateCreate(PlateFields):
    pass


class PlateUpdate(PlateFields):
    """Full-field replacement; every column is overwritten."""

    pass


class PlateOut(PlateFields):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlateDeleteResult(BaseModel):
    id: int
    patterns_removed: int = 0
    sightings_removed: int = 0
