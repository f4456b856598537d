"""
ORM model for serial-number patterns.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base


class Pattern(Base):
    __tablename__ = "patterns"
    __table_args__ = (Index("ix_patterns_plate_id", "plate_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plate_id: Mapped[int] = mapped_column(Integer, ForeignKey("plates.id", ondelete="CASCADE"), nullable=False)
    pattern: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    separator: Mapped[str | None] = mapped_column(String(8), nullable=True)
    series_years: Mapped[str | None] = mapped_column(String(128), nullable=True)

    plate: Mapped["Plate"] = relationship("Plate", back_populates="patterns")  # noqa: F821
