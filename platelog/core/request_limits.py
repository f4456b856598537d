"""Request size limits for CSV uploads."""

from __future__ import annotations

import os
from typing import Optional

from fastapi import HTTPException, Request, UploadFile


def _max_upload_bytes() -> int:
    raw = os.getenv("PLATELOG_MAX_UPLOAD_BYTES", "10485760")
    try:
        val = int(raw)
    except ValueError:
        val = 10485760
    return max(val, 1024)


def _content_length_too_large(request: Request, max_bytes: int) -> bool:
    length = request.headers.get("content-length")
    if not length:
        return False
    try:
        return int(length) > max_bytes
    except ValueError:
        return False


def enforce_upload_limit(request: Request) -> None:
    max_bytes = _max_upload_bytes()
    if _content_length_too_large(request, max_bytes):
        raise HTTPException(status_code=413, detail="Payload too large")


def read_upload_text(upload: UploadFile, *, max_bytes: Optional[int] = None) -> str:
    limit = max_bytes or _max_upload_bytes()
    data = upload.file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=413, detail="Upload too large")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV upload must be UTF-8 encoded")
