"""
Bulk CSV import for plates and serial patterns.

Imports are row-granular: every accepted row is written in its own
`Store.write()` unit, so a failing row never rolls back rows committed
before it, and an interrupted import keeps everything already inserted.
Rows that fail validation or reconcile against existing data are skipped;
store failures on a row are counted as errors. Neither stops the batch.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Any, Callable, Iterator, Optional, Union

from ..core.config import Settings, settings
from ..core.db import Store
from ..core.errors import (
    ConstraintViolation,
    DuplicateError,
    MissingParentError,
    PlatelogError,
    ValidationError,
    log_exception,
)
from ..schemas.imports import ImportIssue, ImportReport
from .normalize import clean_text, external_id_segments_ok
from .patterns import insert_pattern, prepare_pattern_fields
from .plates import external_id_exists, find_plate_id_by_external_id, insert_plate, prepare_plate_fields

_logger = logging.getLogger("importer")

CancelCheck = Callable[[], bool]


class RowSkipped(Exception):
    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


def build_header_map(fieldnames: list[str], aliases: dict[str, list[str]]) -> dict[str, str]:
    """Map raw CSV headers to canonical field names. Unknown headers are dropped."""
    lookup: dict[str, str] = {}
    for canonical, names in aliases.items():
        for name in names:
            lookup.setdefault(name.strip().lower(), canonical)
    mapping: dict[str, str] = {}
    seen: set[str] = set()
    for header in fieldnames:
        canonical = lookup.get((header or "").strip().lower())
        if canonical and canonical not in seen:
            mapping[header] = canonical
            seen.add(canonical)
    return mapping


class MalformedRow:
    """Placeholder for a CSV record the reader could not parse."""

    def __init__(self, message: str) -> None:
        self.message = message


def iter_csv_rows(
    raw_text: str, aliases: dict[str, list[str]]
) -> Iterator[tuple[int, Union[dict[str, Any], MalformedRow]]]:
    """Yield ``(row_number, record)`` pairs; row numbers count the header as row 1.

    A record the reader rejects (for example a field over the csv module's
    size limit) is yielded as a `MalformedRow` and reading resumes on the
    next line.
    """
    text = (raw_text or "").lstrip("\ufeff")
    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        fieldnames = reader.fieldnames
    except csv.Error as exc:
        raise ValidationError(f"CSV header could not be parsed: {exc}") from exc
    if not fieldnames or not any((h or "").strip() for h in fieldnames):
        raise ValidationError("CSV input has no header row")
    mapping = build_header_map(list(fieldnames), aliases)
    if not mapping:
        raise ValidationError("CSV header has no recognised columns")
    index = 1
    while True:
        index += 1
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            yield index, MalformedRow(f"unreadable CSV row: {exc}")
            continue
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        yield index, {canonical: row.get(header) for header, canonical in mapping.items()}


class _ReportBuilder:
    def __init__(self, sample_limit: int) -> None:
        self.report = ImportReport()
        self._sample_limit = max(0, sample_limit)

    def _sample(self, issue: ImportIssue) -> None:
        if len(self.report.samples) < self._sample_limit:
            self.report.samples.append(issue)
        else:
            self.report.truncated = True

    def inserted(self) -> None:
        self.report.inserted += 1

    def skipped(self, row_number: int, identifier: str, reason: str, message: str) -> None:
        self.report.skipped += 1
        self._sample(ImportIssue(row_number=row_number, identifier=identifier, reason=reason, message=message))

    def error(self, row_number: int, identifier: str, message: str) -> None:
        self.report.errors += 1
        self._sample(ImportIssue(row_number=row_number, identifier=identifier, reason="error", message=message))


def _row_identifier(row_number: int, *values: Optional[str]) -> str:
    for value in values:
        if value:
            return value
    return f"row {row_number}"


class ImportReconciler:
    def __init__(self, store: Store, cfg: Optional[Settings] = None) -> None:
        self._store = store
        self._cfg = cfg or settings

    # -------------------------
    # Plates
    # -------------------------
    def import_plates(self, raw_text: str, should_cancel: Optional[CancelCheck] = None) -> ImportReport:
        return self._run(
            "plates",
            iter_csv_rows(raw_text, self._cfg.plate_import_aliases),
            self._import_plate_row,
            should_cancel,
        )

    def _import_plate_row(self, row: dict[str, Any]) -> None:
        external_id = clean_text(row.get("external_id"))
        if external_id is None and self._cfg.import_require_external_id:
            raise RowSkipped("missing_identifier", "external_id is required")
        if external_id is not None and not external_id_segments_ok(external_id, self._cfg.external_id_min_segments):
            raise RowSkipped(
                "invalid_identifier",
                f"external_id needs at least {self._cfg.external_id_min_segments} hyphen-separated segments",
            )
        fields = prepare_plate_fields(row)
        with self._store.write() as db:
            if external_id is not None and external_id_exists(db, external_id, case_insensitive=True):
                raise DuplicateError("duplicate external id", field="external_id", value=external_id)
            insert_plate(db, fields, max_attempts=self._cfg.identifier_max_attempts)

    # -------------------------
    # Patterns
    # -------------------------
    def import_patterns(self, raw_text: str, should_cancel: Optional[CancelCheck] = None) -> ImportReport:
        return self._run(
            "patterns",
            iter_csv_rows(raw_text, self._cfg.pattern_import_aliases),
            self._import_pattern_row,
            should_cancel,
        )

    def _import_pattern_row(self, row: dict[str, Any]) -> None:
        external_id = clean_text(row.pop("external_id", None))
        if external_id is None:
            raise RowSkipped("missing_identifier", "plate external_id is required")
        with self._store.write() as db:
            plate_id = find_plate_id_by_external_id(db, external_id)
            if plate_id is None:
                raise MissingParentError(f"No plate with external_id {external_id!r}")
            insert_pattern(db, prepare_pattern_fields({**row, "plate_id": plate_id}))

    # -------------------------
    # Shared row loop
    # -------------------------
    def _run(
        self,
        kind: str,
        rows: Iterator[tuple[int, Union[dict[str, Any], MalformedRow]]],
        handle_row: Callable[[dict[str, Any]], None],
        should_cancel: Optional[CancelCheck],
    ) -> ImportReport:
        builder = _ReportBuilder(self._cfg.import_sample_limit)
        report = builder.report
        for row_number, row in rows:
            if should_cancel is not None and should_cancel():
                report.cancelled = True
                _logger.info("Import cancelled kind=%s after_rows=%s", kind, report.total)
                break
            report.total += 1
            if isinstance(row, MalformedRow):
                builder.skipped(row_number, f"row {row_number}", "invalid", row.message)
                continue
            identifier = _row_identifier(row_number, clean_text(row.get("external_id")), clean_text(row.get("name")))
            try:
                handle_row(row)
                builder.inserted()
            except RowSkipped as exc:
                builder.skipped(row_number, identifier, exc.reason, exc.message)
            except ValidationError as exc:
                builder.skipped(row_number, identifier, "invalid", str(exc))
            except ConstraintViolation as exc:
                builder.skipped(row_number, identifier, exc.reason, str(exc))
            except PlatelogError as exc:
                log_exception(_logger, "Import row failed", extra={"kind": kind, "row": row_number}, exc=exc)
                builder.error(row_number, identifier, str(exc))
            except Exception as exc:
                log_exception(_logger, "Import row crashed", extra={"kind": kind, "row": row_number}, exc=exc)
                builder.error(row_number, identifier, f"unexpected error: {exc}")
        _logger.info(
            "Import finished kind=%s total=%s inserted=%s skipped=%s errors=%s",
            kind,
            report.total,
            report.inserted,
            report.skipped,
            report.errors,
        )
        return report
