"""
Service layer for the platelog backend.

This package holds the schema lifecycle, the query layer over plates,
patterns, sightings and trips, and the bulk CSV importer.
"""

from .importer import ImportReconciler
from .schema import SchemaManager

__all__ = ["ImportReconciler", "SchemaManager"]
