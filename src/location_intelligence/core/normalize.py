"""Address normalization, hierarchical cache keys and fuzzy matching.

Everything here is pure: no I/O, no logging, no clocks.
"""

from __future__ import annotations

import re
import unicodedata

from .models import Region
from .reference_data import DEFAULT_REGION, STATE_NAMES, STATE_TO_REGION

MIN_KEY_LENGTH = 3

_RE_NOISE = re.compile(r"[^\w\s,-]")
_RE_SPACES = re.compile(r"\s+")
_RE_COMMA = re.compile(r"\s*,\s*")


def normalize(raw: str) -> str:
    """Canonicalize an address into a location key.

    Lowercases, strips characters outside ``[\\w\\s,-]``, collapses whitespace
    and drops empty comma components. Idempotent:
    ``normalize(normalize(s)) == normalize(s)``.
    """
    if not raw:
        return ""
    text = _RE_NOISE.sub("", raw.lower())
    text = _RE_SPACES.sub(" ", text).strip()
    parts = [p for p in _RE_COMMA.split(text) if p]
    return ", ".join(parts)


def derive_search_keys(raw: str) -> list[str]:
    """Lookup keys for ``raw`` in priority order.

    1. the full normalized address
    2. the address without its first component (street / house number)
    3. the last two components (city, state)
    4. the last component (state)

    Keys shorter than three characters and repeated keys are dropped.
    """
    key = normalize(raw)
    if not key:
        return []
    parts = key.split(", ")
    candidates = [
        key,
        ", ".join(parts[1:]),
        ", ".join(parts[-2:]),
        parts[-1],
    ]
    keys: list[str] = []
    for candidate in candidates:
        if len(candidate) >= MIN_KEY_LENGTH and candidate not in keys:
            keys.append(candidate)
    return keys


def split_address(raw: str) -> list[str]:
    """Trimmed, non-empty comma components of the raw address."""
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold(text: str) -> str:
    """Lowercase, accent-free, whitespace-collapsed form used for matching."""
    return _RE_SPACES.sub(" ", strip_accents(text or "").lower()).strip()


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance with a rolling row."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                current[j - 1] + 1,
                previous[j] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized edit-distance similarity in ``[0, 1]``.

    ``(len(longer) - distance) / len(longer)``; two empty strings are
    identical (1.0).
    """
    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if not longer:
        return 1.0
    return (len(longer) - levenshtein(longer, shorter)) / len(longer)


def extract_state_code(part: str) -> str:
    """Map a trailing address component to a two-letter state code.

    Full names are recognised with or without accents; anything else is
    returned upper-cased so a bare code passes through.
    """
    folded = fold(part)
    if not folded:
        return ""
    if folded in STATE_NAMES:
        return STATE_NAMES[folded]
    return folded.upper()


def region_for_state(state_code: str) -> Region:
    return STATE_TO_REGION.get((state_code or "").upper(), DEFAULT_REGION)
