"""
SQLAlchemy model base class for the platelog catalogue.

This package defines ORM models for plates, serial patterns, sightings,
trips and the schema version counter. All models inherit from the
declarative `Base` defined here.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .plate import Plate  # noqa: E402,F401
from .pattern import Pattern  # noqa: E402,F401
from .trip import Trip  # noqa: E402,F401
from .sighting import Sighting  # noqa: E402,F401
from .schema_version import SchemaVersion  # noqa: E402,F401

__all__ = [
    "Base",

    # Catalogue
    "Plate",
    "Pattern",

    # Observations
    "Sighting",
    "Trip",

    # Bookkeeping
    "SchemaVersion",
]
