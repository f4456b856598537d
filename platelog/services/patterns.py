"""
Serial pattern queries and writes.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from ..core.db import Store
from ..core.errors import MissingParentError, NotFoundError
from ..models import Pattern, Plate
from ..schemas.pattern import PatternCreate, PatternOut, PatternUpdate
from .normalize import normalize_record

_logger = logging.getLogger("patterns")


def prepare_pattern_fields(data: dict[str, Any]) -> dict[str, Any]:
    return normalize_record(data, required=("pattern",))


def insert_pattern(db: Session, fields: dict[str, Any]) -> Pattern:
    if db.get(Plate, fields["plate_id"]) is None:
        raise MissingParentError(f"Plate {fields['plate_id']} does not exist")
    pattern = Pattern(**fields)
    db.add(pattern)
    db.flush()
    return pattern


def list_patterns_for_plate(store: Store, plate_id: int) -> list[PatternOut]:
    with store.session() as db:
        rows = db.query(Pattern).filter(Pattern.plate_id == plate_id).order_by(Pattern.id).all()
        return [PatternOut.model_validate(p) for p in rows]


def get_pattern(store: Store, pattern_id: int) -> PatternOut:
    with store.session() as db:
        pattern = db.get(Pattern, pattern_id)
        if pattern is None:
            raise NotFoundError(f"Pattern {pattern_id} not found")
        return PatternOut.model_validate(pattern)


def create_pattern(store: Store, payload: PatternCreate) -> PatternOut:
    fields = prepare_pattern_fields(payload.model_dump())
    with store.write() as db:
        pattern = insert_pattern(db, fields)
        out = PatternOut.model_validate(pattern)
    _logger.info("Pattern created id=%s plate_id=%s", out.id, out.plate_id)
    return out


def update_pattern(store: Store, pattern_id: int, payload: PatternUpdate) -> PatternOut:
    fields = prepare_pattern_fields(payload.model_dump())
    with store.write() as db:
        pattern = db.get(Pattern, pattern_id)
        if pattern is None:
            raise NotFoundError(f"Pattern {pattern_id} not found")
        for key, value in fields.items():
            setattr(pattern, key, value)
        db.flush()
        return PatternOut.model_validate(pattern)


def delete_pattern(store: Store, pattern_id: int) -> None:
    with store.write() as db:
        pattern = db.get(Pattern, pattern_id)
        if pattern is None:
            raise NotFoundError(f"Pattern {pattern_id} not found")
        db.delete(pattern)
