"""Location scoring pipeline.

Tiers are tried in order and the first one that produces a score answers:

    CACHE_CHECK -> LIVE_RESOLUTION -> CITY_FALLBACK -> REGIONAL_FALLBACK -> DEFAULT

Every non-cache answer is written back to the score cache with its tier's
source label, so repeating a lookup is served from the cache. The
neighborhood enhancer refines the base score for metropolitan addresses
before the write. ``score_address`` always returns a ``ScoreResult``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Optional

import httpx

from .cache import ProviderCache, ScoreCache
from .config import Settings
from .core.clients.geocoding import GeocodeProvider
from .core.clients.ibge import NationalStatsProvider
from .core.models import (
    CacheEntry,
    CacheStats,
    ConnectivityReport,
    GeocodeMatch,
    IncomeRecord,
    Municipality,
    NeighborhoodProfile,
    ResolutionTier,
    ScoreResult,
    ScoreSource,
)
from .core.normalize import extract_state_code, split_address
from .core.reference_data import DEFAULT_SCORE, STATE_TO_REGION
from .core.scoring import score_from_income
from .estimates import CityEstimateTable, RegionalEstimateTable
from .neighborhoods import NeighborhoodEnhancer, NeighborhoodRepository

logger = logging.getLogger(__name__)


class LiveResolutionError(Exception):
    """The live tier could not produce a score for this attempt."""


@dataclass
class TierAnswer:
    tier: ResolutionTier
    source: ScoreSource
    score: int
    reason: str
    success: bool
    fallback_used: bool
    match: Optional[GeocodeMatch] = None
    municipality: Optional[Municipality] = None
    income: Optional[IncomeRecord] = None


class LocationScoringOrchestrator:
    """Runs the tiered scoring pipeline for one address or a batch.

    Collaborators are injected; ``from_settings`` wires the defaults.
    """

    def __init__(
        self,
        geocoder: GeocodeProvider,
        stats: NationalStatsProvider,
        cache: ScoreCache,
        cities: CityEstimateTable,
        regions: RegionalEstimateTable,
        enhancer: Optional[NeighborhoodEnhancer] = None,
        provider_cache: Optional[ProviderCache] = None,
        retry_attempts: int = 2,
        retry_delay: float = 1.0,
        batch_size: int = 3,
        batch_pause: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.geocoder = geocoder
        self.stats = stats
        self.cache = cache
        self.cities = cities
        self.regions = regions
        self.enhancer = enhancer
        self.provider_cache = provider_cache
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.batch_size = max(1, batch_size)
        self.batch_pause = batch_pause
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "LocationScoringOrchestrator":
        provider_cache = ProviderCache()
        cities = CityEstimateTable()
        return cls(
            geocoder=GeocodeProvider(
                settings.google_maps_api_key,
                client=client,
                timeout=settings.http_timeout_seconds,
            ),
            stats=NationalStatsProvider(
                client=client,
                cache=provider_cache,
                timeout=settings.http_timeout_seconds,
            ),
            cache=ScoreCache(
                retention=timedelta(days=settings.cache_retention_days),
                freshness_hours=settings.cache_freshness_hours,
            ),
            cities=cities,
            regions=RegionalEstimateTable(cities),
            enhancer=NeighborhoodEnhancer(NeighborhoodRepository(), settings.base_price_per_area),
            provider_cache=provider_cache,
            retry_attempts=settings.live_retry_attempts,
            retry_delay=settings.live_retry_delay_seconds,
            batch_size=settings.batch_size,
            batch_pause=settings.batch_pause_seconds,
        )

    # ─── Single address ───

    async def score_address(self, address: str) -> ScoreResult:
        """Score one address. Never raises."""
        address = address or ""
        if not address.strip():
            return ScoreResult(
                address=address,
                score=DEFAULT_SCORE,
                score_reason=f"Empty address: default score of {DEFAULT_SCORE} points",
                fallback_used=True,
            )
        try:
            return await self._score(address)
        except Exception as exc:
            logger.error("Scoring failed for %r: %s", address, exc, exc_info=True)
            return ScoreResult(
                address=address,
                score=DEFAULT_SCORE,
                score_reason=f"Analysis error ({exc.__class__.__name__}): default score of {DEFAULT_SCORE} points",
                fallback_used=True,
            )

    async def _score(self, address: str) -> ScoreResult:
        entry = await self.cache.lookup(address)
        if entry is not None:
            logger.info("Cache hit for %r: %d (%s)", address, entry.score, entry.source.value)
            return self._from_cache(address, entry)

        answer = await self.live_tier(address)
        if answer is None:
            answer = await self.city_tier(address)
        if answer is None:
            answer = await self.regional_tier(address)
        if answer is None:
            answer = self.default_tier()
        logger.info("Tier %s answered %r with %d points", answer.tier.value, address, answer.score)

        analysis = None
        score = answer.score
        reason = answer.reason
        if self.enhancer is not None and self.enhancer.applies_to(address):
            analysis = await self.enhancer.enhance(address, answer.score)
            if analysis.applied:
                score = analysis.final_score
                reason = (
                    f"{reason}; neighborhood {analysis.neighborhood} "
                    f"x{analysis.real_estate_factor:.2f} x{analysis.business_factor:.2f} = {score} points"
                )

        await self.cache.put(address, score, answer.source, answer.municipality, answer.income)

        return ScoreResult(
            address=address,
            coordinates=answer.match.coordinates if answer.match else None,
            municipality=answer.municipality,
            income=answer.income,
            score=score,
            score_reason=reason,
            success=answer.success,
            fallback_used=answer.fallback_used,
            source=answer.source,
            tier=answer.tier,
            neighborhood=analysis,
        )

    def _from_cache(self, address: str, entry: CacheEntry) -> ScoreResult:
        municipality = None
        if entry.municipality_id:
            municipality = Municipality(
                id=entry.municipality_id,
                name=entry.municipality_name or "",
                state_code=entry.state_code or "",
            )
        reason = f"Cache {entry.source.value}: {entry.score} points"
        if entry.average_income is not None:
            reason += f" (average income R$ {entry.average_income:.2f})"
        return ScoreResult(
            address=address,
            municipality=municipality,
            score=entry.score,
            score_reason=reason,
            success=entry.source != ScoreSource.FALLBACK,
            fallback_used=entry.source != ScoreSource.LIVE,
            source=entry.source,
            tier=ResolutionTier.CACHE_CHECK,
        )

    # ─── Tiers ───

    async def resolve_live(self, address: str) -> TierAnswer:
        """One live attempt: geocode, municipality, income, step score."""
        match = await self.geocoder.locate(address)
        if match is None:
            raise LiveResolutionError("address could not be geocoded")

        municipality = await self.stats.resolve_municipality(match.coordinates, match.locality, match.state_code)
        if municipality is None:
            raise LiveResolutionError("municipality not found")

        income = await self.stats.resolve_income(municipality.id)
        score = score_from_income(income.average_income)
        if income.is_fallback:
            return TierAnswer(
                tier=ResolutionTier.LIVE_RESOLUTION,
                source=ScoreSource.ESTIMATE,
                score=score,
                reason=f"IBGE (estimated data): average income R$ {income.average_income:.2f} = {score} points",
                success=True,
                fallback_used=True,
                match=match,
                municipality=municipality,
                income=income,
            )
        return TierAnswer(
            tier=ResolutionTier.LIVE_RESOLUTION,
            source=ScoreSource.LIVE,
            score=score,
            reason=f"IBGE: average income R$ {income.average_income:.2f} = {score} points",
            success=True,
            fallback_used=False,
            match=match,
            municipality=municipality,
            income=income,
        )

    async def live_tier(self, address: str) -> Optional[TierAnswer]:
        """Live resolution with linear backoff between attempts."""
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await self.resolve_live(address)
            except LiveResolutionError as exc:
                logger.warning(
                    "Live resolution attempt %d/%d failed for %r: %s",
                    attempt, self.retry_attempts, address, exc,
                )
                if attempt < self.retry_attempts:
                    await self._sleep(self.retry_delay * attempt)
        return None

    async def city_tier(self, address: str) -> Optional[TierAnswer]:
        parts = split_address(address)
        if len(parts) < 2:
            return None
        state_code = extract_state_code(parts[-1])
        estimate = await self.cities.lookup_city(parts[-2], state_code)
        if estimate is None:
            return None
        return TierAnswer(
            tier=ResolutionTier.CITY_FALLBACK,
            source=ScoreSource.ESTIMATE,
            score=estimate.score,
            reason=f"City estimate {estimate.city_name}: R$ {estimate.estimated_income:.2f} = {estimate.score} points",
            success=True,
            fallback_used=True,
        )

    async def regional_tier(self, address: str) -> Optional[TierAnswer]:
        """Regional estimate; needs a recognizable state in the last component."""
        parts = split_address(address)
        if not parts:
            return None
        state_code = extract_state_code(parts[-1])
        if state_code not in STATE_TO_REGION:
            return None
        region, score = await self.regions.lookup_state(state_code)
        return TierAnswer(
            tier=ResolutionTier.REGIONAL_FALLBACK,
            source=ScoreSource.FALLBACK,
            score=score,
            reason=f"Regional estimate {region.value}: {score} points",
            success=False,
            fallback_used=True,
        )

    def default_tier(self) -> TierAnswer:
        return TierAnswer(
            tier=ResolutionTier.DEFAULT,
            source=ScoreSource.FALLBACK,
            score=DEFAULT_SCORE,
            reason=f"Default score: {DEFAULT_SCORE} points",
            success=False,
            fallback_used=True,
        )

    # ─── Batches ───

    async def batch_score_addresses(
        self,
        addresses: list[str],
        batch_size: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[ScoreResult]:
        """Score addresses in fixed-size concurrent groups, pausing between groups.

        Results follow input order. Setting ``cancel_event`` stops new groups
        from starting; groups already in flight complete.
        """
        size = max(1, batch_size or self.batch_size)
        results: list[ScoreResult] = []
        total_groups = (len(addresses) + size - 1) // size

        for index, start in enumerate(range(0, len(addresses), size), start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Batch cancelled after %d of %d addresses", len(results), len(addresses))
                break
            if start:
                await self._sleep(self.batch_pause)
            group = addresses[start:start + size]
            logger.info("Scoring group %d/%d (%d addresses)", index, total_groups, len(group))
            results.extend(await asyncio.gather(*(self.score_address(a) for a in group)))

        successes = sum(1 for r in results if r.success)
        fallbacks = sum(1 for r in results if r.fallback_used)
        logger.info(
            "Batch complete: %d scored, %d successful, %d using fallback data",
            len(results), successes, fallbacks,
        )
        return results

    # ─── Maintenance ───

    async def clear_cache(self) -> dict[str, int]:
        cleared = {"scores": await self.cache.clear(), "provider": 0}
        if self.provider_cache is not None:
            cleared["provider"] = await self.provider_cache.clear()
        return cleared

    async def cache_stats(self) -> CacheStats:
        return await self.cache.stats()

    async def purge_expired(self) -> dict[str, int]:
        """Drop score entries past retention and expired provider records."""
        purged = {"scores": await self.cache.purge_older_than(self.cache.retention), "provider": 0}
        if self.provider_cache is not None:
            purged["provider"] = await self.provider_cache.purge_expired()
        return purged

    async def test_connectivity(self) -> ConnectivityReport:
        return await self.stats.test_connectivity()

    async def neighborhood_profiles(self) -> tuple[list[NeighborhoodProfile], dict]:
        """Active neighborhood profiles and their summary statistics."""
        if self.enhancer is None:
            return [], {}
        repository = self.enhancer.repository
        return await repository.list_profiles(), await repository.stats()
