"""
Pydantic schemas for serial patterns.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class PatternCreate(BaseModel):
    plate_id: int
    pattern: str
    type: Optional[str] = None
    separator: Optional[str] = None
    series_years: Optional[str] = None


class PatternUpdate(BaseModel):
    pattern: str
    type: Optional[str] = None
    separator: Optional[str] = None
    series_years: Optional[str] = None


class PatternOut(BaseModel):
    id: int
    plate_id: int
    pattern: str
    type: Optional[str] = None
    separator: Optional[str] = None
    series_years: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
