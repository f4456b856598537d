"""Pagination helpers with hard caps."""

from __future__ import annotations

from typing import Optional

from fastapi import Response

from .config import Settings


def clamp_limit(limit: int, cfg: Settings) -> int:
    if limit < 1:
        return 1
    return min(limit, cfg.max_page_size)


def clamp_offset(offset: int) -> int:
    return max(offset, 0)


def set_pagination_headers(
    response: Optional[Response],
    *,
    total: Optional[int],
    limit: int,
    offset: int,
) -> None:
    if not response:
        return
    if total is not None:
        response.headers["X-Total-Count"] = str(total)
    response.headers["X-Limit"] = str(limit)
    response.headers["X-Offset"] = str(offset)
