"""City and regional score estimates used when live resolution fails.

Both tables are read per lookup; edits made by operators take effect on the
next request.
"""

from __future__ import annotations

import logging
from statistics import mean
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .core.models import CityEstimate, Region
from .core.normalize import fold, region_for_state
from .core.reference_data import DEFAULT_SCORE, REGION_DEFAULT_SCORES
from .core.scoring import clamp_score, round_half_up
from .db import get_session_factory
from .sqlmodels import CityEstimateRow

logger = logging.getLogger(__name__)


def _estimate(row: CityEstimateRow) -> CityEstimate:
    region = None
    if row.region:
        try:
            region = Region(row.region)
        except ValueError:
            region = None
    return CityEstimate(
        city_name=row.city_name,
        state_code=row.state_code,
        estimated_income=row.estimated_income,
        score=row.score,
        region=region,
        population_range=row.population_range,
    )


class CityEstimateTable:
    """Administrable per-city estimates."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _sessions(self):
        return self._session_factory or get_session_factory()

    async def lookup_city(self, city_name: str, state_code: str) -> Optional[CityEstimate]:
        """Case- and accent-insensitive containment match within the state.

        An exact name wins over a containing one.
        """
        target = fold(city_name)
        if not target or not state_code:
            return None
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    select(CityEstimateRow)
                    .where(CityEstimateRow.state_code == state_code.upper())
                    .order_by(CityEstimateRow.id)
                )
                rows = list(result.scalars())
        except SQLAlchemyError as exc:
            logger.warning("City estimate lookup failed for %s/%s: %s", city_name, state_code, exc)
            return None

        containing = [row for row in rows if target in fold(row.city_name)]
        for row in containing:
            if fold(row.city_name) == target:
                return _estimate(row)
        return _estimate(containing[0]) if containing else None

    async def scores_for_region(self, region: Region) -> list[int]:
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    select(CityEstimateRow.score).where(CityEstimateRow.region == region.value)
                )
                return list(result.scalars())
        except SQLAlchemyError as exc:
            logger.warning("Regional estimate lookup failed for %s: %s", region.value, exc)
            return []

    async def add(self, estimate: CityEstimate) -> None:
        region = estimate.region or region_for_state(estimate.state_code)
        async with self._sessions()() as session:
            session.add(CityEstimateRow(
                city_name=estimate.city_name,
                state_code=estimate.state_code.upper(),
                estimated_income=estimate.estimated_income,
                score=estimate.score,
                region=region.value,
                population_range=estimate.population_range,
            ))
            await session.commit()


class RegionalEstimateTable:
    """Region-wide score: mean of the region's city scores, else a fixed default."""

    def __init__(self, cities: CityEstimateTable):
        self._cities = cities

    async def lookup_region(self, region: Optional[Region]) -> int:
        if region is None:
            return DEFAULT_SCORE
        scores = await self._cities.scores_for_region(region)
        if scores:
            return clamp_score(round_half_up(mean(scores)))
        return REGION_DEFAULT_SCORES.get(region, DEFAULT_SCORE)

    async def lookup_state(self, state_code: str) -> tuple[Region, int]:
        region = region_for_state(state_code)
        return region, await self.lookup_region(region)
