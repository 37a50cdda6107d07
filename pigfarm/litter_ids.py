from __future__ import annotations

import logging
import re

from .errors import ConflictError
from .stores import LitterStore

logger = logging.getLogger(__name__)

# Highest -k suffix tried before giving up
MAX_SUFFIX = 999


def _pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}(\d+)$")


def highest_number(existing_ids: list[str], prefix: str) -> int:
    pattern = _pattern(prefix)
    numbers = [int(m.group(1)) for m in map(pattern.match, existing_ids) if m]
    return max(numbers, default=0)


def format_litter_id(prefix: str, number: int) -> str:
    return f"{prefix}{number:03d}"


def _first_free_suffix(litters: LitterStore, base: str) -> str:
    for n in range(1, MAX_SUFFIX + 1):
        candidate = f"{base}-{n}"
        if not litters.exists(candidate):
            return candidate
    raise ConflictError(f"No free suffix left for litter id {base}")


def next_litter_id(litters: LitterStore, prefix: str = "LT", max_attempts: int = 10) -> str:
    """
    Next sequential litter id, e.g. LT001, LT002, ...

    Probes up to `max_attempts` consecutive numbers in case another request
    inserted one in the meantime, then falls back to `<prefix><n>-<k>` with
    the first free `k`. The result is a suggestion only; uniqueness is
    checked again when the litter is inserted.
    """
    start = highest_number(litters.ids_with_prefix(prefix), prefix) + 1

    for attempt in range(max_attempts):
        candidate = format_litter_id(prefix, start + attempt)
        if not litters.exists(candidate):
            return candidate

    logger.warning(
        "Litter id probing exhausted after %s attempts from %s, using suffix fallback",
        max_attempts,
        format_litter_id(prefix, start),
    )
    return _first_free_suffix(litters, format_litter_id(prefix, start))


def suggest_alternate(litters: LitterStore, litter_id: str) -> str:
    """Free id derived from one that is already taken: LT004 -> LT004-1."""
    return _first_free_suffix(litters, litter_id)
