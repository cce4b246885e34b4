"""Neighborhood refinement for addresses inside the metropolitan area.

The base score from the generic pipeline is multiplied by a real-estate
factor and a business-density factor taken from the neighborhood's profile.
When the neighborhood cannot be identified the score passes through
unchanged.
"""

from __future__ import annotations

import logging
import re
from statistics import mean
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .core.models import NeighborhoodAnalysis, NeighborhoodCategory, NeighborhoodProfile, utcnow
from .core.normalize import fold, similarity, split_address
from .core.reference_data import (
    CANONICAL_NEIGHBORHOOD_NAMES,
    DEFAULT_BASE_PRICE_PER_AREA,
    KNOWN_NEIGHBORHOODS,
    METRO_NAME_MARKERS,
    METRO_POSTAL_PREFIXES,
    METRO_TOKEN_MARKERS,
)
from .core.scoring import (
    business_factor,
    combined_factor,
    compose_neighborhood_score,
    default_business_factor,
    real_estate_factor,
)
from .db import get_session_factory
from .sqlmodels import NeighborhoodProfileRow

logger = logging.getLogger(__name__)

NAME_MATCH_THRESHOLD = 0.8
MIN_PARTIAL_LENGTH = 4

_RE_STREET_PREFIX = re.compile(r"^(rua|av|avenida|praca|r\.|av\.)\s+")
_RE_HOUSE_NUMBER = re.compile(r"\s+\d+.*$")
_RE_WORD = re.compile(r"[a-z0-9]+")
_RE_CEP = re.compile(r"\b(\d{5})-?\d{3}\b")
_LOWERCASE_WORDS = {"da", "das", "de", "do", "dos", "e", "os", "as"}


def is_metro_address(address: str) -> bool:
    """True when the address mentions the metropolitan area by name, token or postal code."""
    folded = fold(address)
    if not folded:
        return False
    if any(marker in folded for marker in METRO_NAME_MARKERS):
        return True
    tokens = set(_RE_WORD.findall(folded))
    if any(marker in tokens for marker in METRO_TOKEN_MARKERS):
        return True
    return any(match.group(1) in METRO_POSTAL_PREFIXES for match in _RE_CEP.finditer(folded))


def display_name(key: str) -> str:
    """Canonical spelling of a known neighborhood key."""
    if key in CANONICAL_NEIGHBORHOOD_NAMES:
        return CANONICAL_NEIGHBORHOOD_NAMES[key]
    words = key.split()
    return " ".join(
        w if i and w in _LOWERCASE_WORDS else w.capitalize()
        for i, w in enumerate(words)
    )


def _clean_component(part: str) -> str:
    cleaned = _RE_STREET_PREFIX.sub("", fold(part))
    return _RE_HOUSE_NUMBER.sub("", cleaned).strip()


def extract_neighborhood(address: str) -> Optional[str]:
    """Find a known neighborhood among the address components.

    Street prefixes and house numbers are stripped before matching. A
    component matches by containment either way or by edit-distance
    similarity of at least 0.8.
    """
    for part in split_address(address):
        cleaned = _clean_component(part)
        if not cleaned:
            continue
        for known in KNOWN_NEIGHBORHOODS:
            if known in cleaned:
                return display_name(known)
            if len(cleaned) >= MIN_PARTIAL_LENGTH and cleaned in known:
                return display_name(known)
            if similarity(cleaned, known) >= NAME_MATCH_THRESHOLD:
                return display_name(known)
    return None


def name_variations(name: str) -> list[str]:
    """Spellings to try when a profile is not found under ``name``.

    Covers accents, the ``vila`` prefix (added or removed) and a leading
    ``bairro``.
    """
    normalized = " ".join(name.lower().split())
    variations = [normalized]

    folded = fold(normalized)
    variations.append(folded)
    if folded in CANONICAL_NEIGHBORHOOD_NAMES:
        variations.append(CANONICAL_NEIGHBORHOOD_NAMES[folded].lower())

    if normalized.startswith("bairro "):
        normalized = normalized[len("bairro "):]
        variations.append(normalized)

    if normalized.startswith("vila "):
        variations.append(normalized[len("vila "):])
    elif "vila" not in normalized and "centro" not in normalized:
        variations.append(f"vila {normalized}")

    unique: list[str] = []
    for variation in variations:
        if variation and variation not in unique:
            unique.append(variation)
    return unique


def _profile(row: NeighborhoodProfileRow) -> NeighborhoodProfile:
    return NeighborhoodProfile(
        name=row.name,
        category=NeighborhoodCategory(row.category),
        real_estate_factor=max(1.0, row.real_estate_factor),
        business_factor=max(1.0, row.business_factor),
        reference_price_per_area=row.reference_price_per_area or None,
        last_analyzed=row.last_analyzed,
        active=row.active,
    )


class NeighborhoodRepository:
    """Read/administer neighborhood profiles.

    Store errors propagate; the enhancer decides how to degrade.
    """

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _sessions(self):
        return self._session_factory or get_session_factory()

    async def _find_row(self, session, name: str) -> Optional[NeighborhoodProfileRow]:
        result = await session.execute(select(NeighborhoodProfileRow))
        rows = list(result.scalars())
        by_lower = {row.name.lower(): row for row in rows}
        by_folded = {fold(row.name): row for row in rows}
        for variation in name_variations(name):
            row = by_lower.get(variation) or by_folded.get(fold(variation))
            if row is not None:
                return row
        return None

    async def get_profile(self, name: str) -> Optional[NeighborhoodProfile]:
        """Active profile by name, trying exact then variant spellings."""
        if not name or not name.strip():
            return None
        async with self._sessions()() as session:
            row = await self._find_row(session, name)
        if row is None or not row.active:
            return None
        return _profile(row)

    async def touch(self, name: str) -> None:
        """Record that the profile was just used for an analysis."""
        async with self._sessions()() as session:
            row = await self._find_row(session, name)
            if row is None:
                return
            row.last_analyzed = utcnow()
            await session.commit()

    async def update_profile(
        self,
        name: str,
        category: Optional[NeighborhoodCategory] = None,
        real_estate_factor: Optional[float] = None,
        business_factor: Optional[float] = None,
        reference_price_per_area: Optional[float] = None,
        active: Optional[bool] = None,
    ) -> NeighborhoodProfile:
        """Create or update a profile and recompute its combined factor."""
        async with self._sessions()() as session:
            row = await self._find_row(session, name)
            if row is None:
                category = category or NeighborhoodCategory.STANDARD
                row = NeighborhoodProfileRow(
                    name=name.strip(),
                    category=category.value,
                    real_estate_factor=1.0,
                    business_factor=default_business_factor(category),
                    combined_factor=1.0,
                    active=True,
                )
                session.add(row)

            if category is not None:
                row.category = category.value
            if real_estate_factor is not None:
                row.real_estate_factor = real_estate_factor
            if business_factor is not None:
                row.business_factor = business_factor
            if reference_price_per_area is not None:
                row.reference_price_per_area = reference_price_per_area
            if active is not None:
                row.active = active

            profile = _profile(row)
            row.combined_factor = combined_factor(profile.real_estate_factor, profile.business_factor)
            row.updated_at = utcnow()
            await session.commit()

        logger.info("Neighborhood profile updated: %s", profile.name)
        return profile

    async def list_profiles(self, active_only: bool = True) -> list[NeighborhoodProfile]:
        stmt = select(NeighborhoodProfileRow).order_by(NeighborhoodProfileRow.name)
        if active_only:
            stmt = stmt.where(NeighborhoodProfileRow.active.is_(True))
        async with self._sessions()() as session:
            result = await session.execute(stmt)
            return [_profile(row) for row in result.scalars()]

    async def stats(self) -> dict:
        """Counts per category, mean combined factor and latest analysis time."""
        async with self._sessions()() as session:
            result = await session.execute(
                select(NeighborhoodProfileRow).where(NeighborhoodProfileRow.active.is_(True))
            )
            rows = list(result.scalars())

        by_category = {category.value: 0 for category in NeighborhoodCategory}
        for row in rows:
            by_category[row.category] = by_category.get(row.category, 0) + 1
        analyzed = [row.last_analyzed for row in rows if row.last_analyzed]
        return {
            "total": len(rows),
            "by_category": by_category,
            "average_combined_factor": round(mean(row.combined_factor for row in rows), 2) if rows else 0.0,
            "last_analyzed": max(analyzed).isoformat() if analyzed else None,
        }


class NeighborhoodEnhancer:
    """Applies neighborhood multipliers to a base score.

    Never raises: any failure yields a pass-through analysis with both
    factors at 1.0.
    """

    def __init__(
        self,
        repository: NeighborhoodRepository,
        base_price_per_area: float = DEFAULT_BASE_PRICE_PER_AREA,
    ):
        self.repository = repository
        self.base_price_per_area = base_price_per_area

    def applies_to(self, address: str) -> bool:
        return is_metro_address(address)

    async def enhance(self, address: str, base_score: int) -> NeighborhoodAnalysis:
        passthrough = NeighborhoodAnalysis(base_score=base_score, final_score=base_score)
        if not self.applies_to(address):
            return passthrough

        name = extract_neighborhood(address)
        if name is None:
            logger.info("No known neighborhood in %r, keeping base score %d", address, base_score)
            return passthrough

        try:
            profile = await self.repository.get_profile(name)
        except SQLAlchemyError as exc:
            logger.warning("Neighborhood profile lookup failed for %s: %s", name, exc)
            return NeighborhoodAnalysis(neighborhood=name, base_score=base_score, final_score=base_score)
        if profile is None:
            logger.info("No profile for neighborhood %s, keeping base score %d", name, base_score)
            return NeighborhoodAnalysis(neighborhood=name, base_score=base_score, final_score=base_score)

        re_factor = real_estate_factor(profile, self.base_price_per_area)
        biz_factor = business_factor(profile)
        final = compose_neighborhood_score(base_score, re_factor, biz_factor)

        try:
            await self.repository.touch(profile.name)
        except SQLAlchemyError as exc:
            logger.warning("Could not record analysis time for %s: %s", profile.name, exc)

        logger.info(
            "Neighborhood %s (%s): %d x %.2f x %.2f = %d",
            profile.name, profile.category.value, base_score, re_factor, biz_factor, final,
        )
        return NeighborhoodAnalysis(
            neighborhood=profile.name,
            category=profile.category,
            base_score=base_score,
            real_estate_factor=re_factor,
            business_factor=biz_factor,
            final_score=final,
            applied=True,
        )
