"""
Pydantic schemas for the trip registry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TripCreate(BaseModel):
    name: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class TripUpdate(TripCreate):
    pass


class TripOut(TripCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)
