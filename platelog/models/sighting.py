"""
ORM model for sightings (field observations of a plate).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


class Sighting(Base):
    __tablename__ = "sightings"
    __table_args__ = (
        Index("ix_sightings_plate_id", "plate_id"),
        Index("ix_sightings_trip_id", "trip_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plate_id: Mapped[int] = mapped_column(Integer, ForeignKey("plates.id", ondelete="CASCADE"), nullable=False)
    location: Mapped[str | None] = mapped_column(String(512), nullable=True)
    time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_uri: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    trip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    trip_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("trips.id", ondelete="SET NULL"), nullable=True
    )

    # Reverse-geocoded location of the observation (not the plate's jurisdiction).
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    full_address: Mapped[str | None] = mapped_column(String(512), nullable=True)

    plate: Mapped["Plate"] = relationship("Plate", back_populates="sightings")  # noqa: F821
