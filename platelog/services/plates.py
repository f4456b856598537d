"""
Plate catalogue queries and writes.

Every function takes the injected `Store` and returns pydantic records;
ORM rows never leave this module.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import delete, func, or_
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.db import Store
from ..core.errors import DuplicateError, NotFoundError
from ..models import Pattern, Plate, Sighting
from ..schemas.plate import PlateCreate, PlateDeleteResult, PlateOut, PlateUpdate
from .identifiers import DEFAULT_MAX_ATTEMPTS, IdentifierAllocator
from .normalize import normalize_record

_logger = logging.getLogger("plates")

DEFAULT_SEARCH_LIMIT = 100

PLATE_BOOL_DEFAULTS: dict[str, bool] = {
    "available": True,
    "base": False,
    "embossed": False,
    "has_county": False,
    "has_url": False,
}


def prepare_plate_fields(data: dict[str, Any]) -> dict[str, Any]:
    return normalize_record(
        data,
        bool_fields=PLATE_BOOL_DEFAULTS.keys(),
        required=("name",),
        defaults=PLATE_BOOL_DEFAULTS,
    )


def _like_term(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# -------------------------
# Session-level helpers (shared with the importer)
# -------------------------
def external_id_exists(db: Session, candidate: str, *, case_insensitive: bool = False) -> bool:
    if case_insensitive:
        cond = func.lower(Plate.external_id) == candidate.lower()
    else:
        cond = Plate.external_id == candidate
    return db.query(Plate.id).filter(cond).first() is not None


def count_in_partition(db: Session, state: Optional[str]) -> int:
    query = db.query(func.count(Plate.id))
    if state is None:
        query = query.filter(Plate.state.is_(None))
    else:
        query = query.filter(Plate.state == state)
    return int(query.scalar() or 0)


def allocate_external_id(db: Session, state: Optional[str], *, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> str:
    allocator = IdentifierAllocator(lambda key: count_in_partition(db, key), max_attempts=max_attempts)
    return allocator.generate(state, lambda candidate: external_id_exists(db, candidate))


def insert_plate(db: Session, fields: dict[str, Any], *, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> Plate:
    """Insert normalized fields, allocating an external id when none is given."""
    values = dict(fields)
    if not values.get("external_id"):
        values["external_id"] = allocate_external_id(db, values.get("state"), max_attempts=max_attempts)
    plate = Plate(**values)
    db.add(plate)
    db.flush()
    return plate


def find_plate_id_by_external_id(db: Session, external_id: str) -> Optional[int]:
    row = db.query(Plate.id).filter(Plate.external_id == external_id).first()
    if row is None:
        row = db.query(Plate.id).filter(func.lower(Plate.external_id) == external_id.lower()).first()
    return row[0] if row else None


# -------------------------
# Reads
# -------------------------
def list_plates(store: Store) -> list[PlateOut]:
    with store.session() as db:
        rows = db.query(Plate).order_by(Plate.name.collate("NOCASE"), Plate.id).all()
        return [PlateOut.model_validate(p) for p in rows]


def get_plate(store: Store, plate_id: int) -> PlateOut:
    with store.session() as db:
        plate = db.get(Plate, plate_id)
        if plate is None:
            raise NotFoundError(f"Plate {plate_id} not found")
        return PlateOut.model_validate(plate)


def get_plate_by_external_id(store: Store, external_id: str) -> Optional[PlateOut]:
    with store.session() as db:
        plate_id = find_plate_id_by_external_id(db, external_id.strip())
        if plate_id is None:
            return None
        return PlateOut.model_validate(db.get(Plate, plate_id))


def search_plates(store: Store, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT) -> list[PlateOut]:
    """Case-insensitive substring match over the descriptive columns, ordered by name."""
    term = _like_term((query or "").strip())
    columns = (Plate.name, Plate.state, Plate.country, Plate.notes, Plate.external_id, Plate.description)
    with store.session() as db:
        rows = (
            db.query(Plate)
            .filter(or_(*[col.ilike(term, escape="\\") for col in columns]))
            .order_by(Plate.name.collate("NOCASE"), Plate.id)
            .limit(max(1, limit))
            .all()
        )
        return [PlateOut.model_validate(p) for p in rows]


def count_plates(store: Store, *, state: Optional[str] = None) -> int:
    with store.session() as db:
        query = db.query(func.count(Plate.id))
        if state:
            query = query.filter(Plate.state == state)
        return int(query.scalar() or 0)


# -------------------------
# Writes
# -------------------------
def create_plate(store: Store, payload: PlateCreate, *, cfg: Optional[Settings] = None) -> PlateOut:
    """Insert a plate, generating ``external_id`` from the state when blank.

    Allocation and insert are not atomic across processes, so a uniqueness
    failure on a generated id re-runs allocation a bounded number of times.
    A caller-supplied id that collides fails immediately with DuplicateError.
    """
    fields = prepare_plate_fields(payload.model_dump())
    generated = fields.get("external_id") is None
    max_attempts = cfg.identifier_max_attempts if cfg else DEFAULT_MAX_ATTEMPTS
    attempts = (cfg.insert_retry_attempts if cfg else 3) if generated else 1
    for attempt in range(1, attempts + 1):
        try:
            with store.write() as db:
                plate = insert_plate(db, fields, max_attempts=max_attempts)
                out = PlateOut.model_validate(plate)
            _logger.info("Plate created id=%s external_id=%s", out.id, out.external_id)
            return out
        except DuplicateError as exc:
            if not generated or exc.field != "external_id" or attempt >= attempts:
                raise
            _logger.warning("Generated external id collided; retrying attempt=%s", attempt)
    raise DuplicateError("duplicate external id", field="external_id")


def update_plate(store: Store, plate_id: int, payload: PlateUpdate) -> PlateOut:
    fields = prepare_plate_fields(payload.model_dump())
    with store.write() as db:
        plate = db.get(Plate, plate_id)
        if plate is None:
            raise NotFoundError(f"Plate {plate_id} not found")
        for key, value in fields.items():
            setattr(plate, key, value)
        db.flush()
        return PlateOut.model_validate(plate)


def delete_plate(store: Store, plate_id: int) -> PlateDeleteResult:
    """Delete a plate; its patterns and sightings go with it (FK cascade)."""
    with store.write() as db:
        if db.get(Plate, plate_id) is None:
            raise NotFoundError(f"Plate {plate_id} not found")
        patterns = db.query(func.count(Pattern.id)).filter(Pattern.plate_id == plate_id).scalar() or 0
        sightings = db.query(func.count(Sighting.id)).filter(Sighting.plate_id == plate_id).scalar() or 0
        db.expunge_all()
        db.execute(delete(Plate).where(Plate.id == plate_id))
    _logger.info("Plate deleted id=%s patterns=%s sightings=%s", plate_id, patterns, sightings)
    return PlateDeleteResult(id=plate_id, patterns_removed=int(patterns), sightings_removed=int(sightings))
