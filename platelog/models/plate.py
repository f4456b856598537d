"""
ORM model for the plate catalogue.

One row per distinct license-plate design. `external_id` is the
human-meaningful identifier (e.g. ``CA12`` or ``US-CA-0012``). Its unique
index only constrains non-null values: SQLite treats NULLs as distinct.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Plate(Base):
    __tablename__ = "plates"
    __table_args__ = (
        Index("ux_plates_external_id", "external_id", unique=True),
        Index("ix_plates_state", "state"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    years_available: Mapped[str | None] = mapped_column(String(128), nullable=True)

    available: Mapped[bool] = mapped_column(Boolean, default=True)
    base: Mapped[bool] = mapped_column(Boolean, default=False)
    embossed: Mapped[bool] = mapped_column(Boolean, default=False)
    has_county: Mapped[bool] = mapped_column(Boolean, default=False)
    has_url: Mapped[bool] = mapped_column(Boolean, default=False)

    num_font: Mapped[str | None] = mapped_column(String(128), nullable=True)
    num_color: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state_font: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state_color: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state_location: Mapped[str | None] = mapped_column(String(128), nullable=True)
    primary_background_colors: Mapped[str | None] = mapped_column(String(256), nullable=True)
    all_colors: Mapped[str | None] = mapped_column(String(256), nullable=True)
    background_desc: Mapped[str | None] = mapped_column(Text, nullable=True)
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    features_tags: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=True
    )

    patterns: Mapped[list["Pattern"]] = relationship(  # noqa: F821
        "Pattern", back_populates="plate", cascade="all, delete-orphan", passive_deletes=True
    )
    sightings: Mapped[list["Sighting"]] = relationship(  # noqa: F821
        "Sighting", back_populates="plate", cascade="all, delete-orphan", passive_deletes=True
    )
