"""
Pydantic schemas for bulk CSV import results.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class ImportIssue(BaseModel):
    row_number: int
    identifier: str
    reason: str
    message: Optional[str] = None


class ImportReport(BaseModel):
    total: int = 0
    inserted: int = 0
    skipped: int = 0
    errors: int = 0
    samples: List[ImportIssue] = []
    truncated: bool = False
    cancelled: bool = False
