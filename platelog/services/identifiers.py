"""
Collision-free external identifiers for new catalogue entries.

Candidates look like ``CA12``: the upper-cased partition key (a plate's
state) followed by a counter seeded from the number of records already in
that partition. The probe is read-then-write and is not atomic with the
caller's insert; callers that can race must handle a uniqueness failure.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

_logger = logging.getLogger("identifiers")

DEFAULT_PREFIX = "PLT"
DEFAULT_MAX_ATTEMPTS = 10_000


def identifier_prefix(partition_key: Optional[str]) -> str:
    prefix = (partition_key or "").strip().upper()
    return prefix or DEFAULT_PREFIX


class IdentifierAllocator:
    def __init__(
        self,
        count_existing: Callable[[Optional[str]], int],
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._count_existing = count_existing
        self._max_attempts = max(1, max_attempts)
        self._clock = clock

    def generate(self, partition_key: Optional[str], exists_check: Callable[[str], bool]) -> str:
        prefix = identifier_prefix(partition_key)
        # Seeded from the partition size, so a free lower number left by a
        # deleted or hand-entered id is not reused.
        counter = self._count_existing(partition_key) + 1
        for _ in range(self._max_attempts):
            candidate = f"{prefix}{counter}"
            if not exists_check(candidate):
                return candidate
            counter += 1
        fallback = f"{prefix}{int(self._clock() * 1000)}"
        _logger.warning(
            "Identifier probe exhausted prefix=%s attempts=%s; using %s",
            prefix,
            self._max_attempts,
            fallback,
        )
        return fallback
