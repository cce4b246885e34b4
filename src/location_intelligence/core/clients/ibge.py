"""IBGE (Brazilian Institute of Geography and Statistics) API client.

Localidades docs: https://servicodados.ibge.gov.br/api/docs/localidades
SIDRA docs: https://apisidra.ibge.gov.br/home/ajuda

No API key required. Municipality lookups and income records are cached
through an optional TTL cache (anything with async ``get(key)``,
``set(key, value, ttl)`` and ``has_fresh(prefix)``), so repeated lookups for
nearby points never reach the network.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Optional

import httpx

from ..models import (
    FALLBACK_POPULATION,
    ConnectivityReport,
    Coordinates,
    IncomeRecord,
    IncomeResponse,
    Municipality,
    MunicipalityResponse,
    ProviderStatus,
)
from ..normalize import fold, similarity

logger = logging.getLogger(__name__)

LOCALIDADES_BASE = "https://servicodados.ibge.gov.br/api/v1/localidades"
SIDRA_BASE = "https://apisidra.ibge.gov.br/values"

# Table 5938, variable 10267: municipal income indicator, latest period
INCOME_TABLE = "5938"
INCOME_VARIABLE = "10267"

DEFAULT_TIMEOUT = 10.0
PROBE_TIMEOUT = 5.0
NAME_MATCH_THRESHOLD = 0.8

MUNICIPALITY_TTL = timedelta(hours=24)
INCOME_TTL = timedelta(hours=24)
FALLBACK_INCOME_TTL = timedelta(hours=6)
CONNECTIVITY_TTL = timedelta(hours=4)

MUNICIPALITY_PREFIX = "municipality:"
INCOME_PREFIX = "income:"
FALLBACK_INCOME_PREFIX = "income_fallback:"
CONNECTIVITY_KEY = "connectivity"

# Belo Horizonte, used as the income probe
PROBE_MUNICIPALITY_ID = "3106200"


def income_url(municipality_id: str) -> str:
    return f"{SIDRA_BASE}/t/{INCOME_TABLE}/n6/{municipality_id}/v/{INCOME_VARIABLE}/p/last%201"


def municipality_cache_key(coordinates: Coordinates) -> str:
    return f"{MUNICIPALITY_PREFIX}{coordinates.grid_key(3)}"


def income_cache_key(municipality_id: str, fallback: bool = False) -> str:
    prefix = FALLBACK_INCOME_PREFIX if fallback else INCOME_PREFIX
    return f"{prefix}{municipality_id}"


def _state_of(item: dict) -> str:
    """UF sigla from either the legacy or the current region hierarchy."""
    try:
        return item["microrregiao"]["mesorregiao"]["UF"]["sigla"]
    except (KeyError, TypeError):
        pass
    try:
        return item["regiao-imediata"]["regiao-intermediaria"]["UF"]["sigla"]
    except (KeyError, TypeError):
        return ""


def parse_municipalities(payload: Any, state_code: Optional[str] = None) -> list[Municipality]:
    """Parse a localidades municipality list, skipping malformed rows."""
    if not isinstance(payload, list):
        return []
    municipalities = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        try:
            municipalities.append(Municipality(
                id=str(item["id"]),
                name=item["nome"],
                state_code=_state_of(item) or (state_code or ""),
            ))
        except (KeyError, ValueError):
            continue
    return municipalities


def pick_municipality(
    candidates: list[Municipality],
    locality: str,
    state_code: Optional[str] = None,
) -> Optional[Municipality]:
    """Best name match for ``locality``: exact (accent-insensitive) first,
    then the most similar name at or above the match threshold."""
    target = fold(locality)
    if not target:
        return None
    if state_code:
        in_state = [m for m in candidates if m.state_code.upper() == state_code.upper()]
        candidates = in_state or candidates

    for municipality in candidates:
        if fold(municipality.name) == target:
            return municipality

    best: Optional[Municipality] = None
    best_score = 0.0
    for municipality in candidates:
        score = similarity(fold(municipality.name), target)
        if score > best_score:
            best, best_score = municipality, score
    if best is not None and best_score >= NAME_MATCH_THRESHOLD:
        return best
    return None


def parse_income(payload: Any, municipality_id: str) -> IncomeResponse:
    """Parse a SIDRA values table.

    The first row is header metadata; the second carries ``V`` (value),
    ``D1C`` (period, i.e. year) and ``D2C`` (population column).
    """
    if not isinstance(payload, list) or len(payload) < 2 or not isinstance(payload[1], dict):
        return IncomeResponse(status=ProviderStatus.EMPTY, detail="no data row")

    row = payload[1]
    try:
        income = float(row.get("V") or 0)
    except ValueError:
        return IncomeResponse(status=ProviderStatus.UNPARSEABLE, detail=f"income value {row.get('V')!r}")
    if income <= 0:
        return IncomeResponse(status=ProviderStatus.EMPTY, detail="non-positive income value")

    try:
        population = int(row.get("D2C") or 0) or FALLBACK_POPULATION
    except ValueError:
        population = FALLBACK_POPULATION
    try:
        year = int(row.get("D1C") or 0) or date.today().year
    except ValueError:
        year = date.today().year

    record = IncomeRecord(
        municipality_id=municipality_id,
        average_income=income,
        population_count=population,
        data_year=year,
    )
    return IncomeResponse(status=ProviderStatus.OK, record=record)


def _failure(exc: Exception) -> tuple[ProviderStatus, str]:
    if isinstance(exc, httpx.TimeoutException):
        return ProviderStatus.TIMEOUT, str(exc) or "timeout"
    if isinstance(exc, httpx.HTTPStatusError):
        return ProviderStatus.HTTP_ERROR, f"HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.HTTPError):
        return ProviderStatus.NETWORK_ERROR, str(exc)
    return ProviderStatus.UNPARSEABLE, str(exc)


class NationalStatsProvider:
    """Municipality and income resolution against IBGE.

    Args:
        client: Optional shared ``httpx.AsyncClient``.
        cache: Optional TTL cache for municipalities, income records and
            connectivity reports.
        timeout: Per-request timeout in seconds.
        max_retries: Total attempts for transport errors and 5xx replies.
        retry_delay: Seconds to wait between attempts.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cache=None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ):
        self._client = client
        self._cache = cache
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay

    # ─── HTTP ───

    async def _send(self, method: str, url: str, timeout: float) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, timeout=timeout)
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0)) as client:
            return await client.request(method, url)

    async def _get_json(self, url: str) -> Any:
        """GET with retries on transport errors and 5xx; raises on final failure."""
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._send("GET", url, self._timeout)
                if response.status_code >= 500 and attempt < self._max_retries:
                    logger.warning("IBGE returned %d for %s (attempt %d)", response.status_code, url, attempt)
                    await asyncio.sleep(self._retry_delay)
                    continue
                response.raise_for_status()
                return response.json()
            except httpx.TransportError as exc:
                if attempt >= self._max_retries:
                    raise
                logger.warning("IBGE request failed for %s (attempt %d): %s", url, attempt, exc)
                await asyncio.sleep(self._retry_delay)

    # ─── Cache helpers ───

    async def _cache_get(self, key: str) -> Optional[dict]:
        if self._cache is None:
            return None
        return await self._cache.get(key)

    async def _cache_set(self, key: str, value: dict, ttl: timedelta) -> None:
        if self._cache is not None:
            await self._cache.set(key, value, ttl)

    async def _cache_has(self, prefix: str) -> bool:
        if self._cache is None:
            return False
        return await self._cache.has_fresh(prefix)

    # ─── Municipalities ───

    async def fetch_municipality(self, locality: str, state_code: Optional[str] = None) -> MunicipalityResponse:
        """Find ``locality`` in the municipality list of its state (or the whole country)."""
        if not locality or not locality.strip():
            return MunicipalityResponse(status=ProviderStatus.INVALID_INPUT, detail="no locality")

        if state_code and len(state_code) == 2:
            url = f"{LOCALIDADES_BASE}/estados/{state_code.upper()}/municipios"
        else:
            url = f"{LOCALIDADES_BASE}/municipios"

        try:
            payload = await self._get_json(url)
        except (httpx.HTTPError, ValueError) as exc:
            status, detail = _failure(exc)
            return MunicipalityResponse(status=status, detail=detail)

        candidates = parse_municipalities(payload, state_code)
        if not candidates:
            return MunicipalityResponse(status=ProviderStatus.EMPTY, detail="empty municipality list")

        municipality = pick_municipality(candidates, locality, state_code)
        if municipality is None:
            return MunicipalityResponse(status=ProviderStatus.EMPTY, detail=f"no municipality named {locality!r}")
        return MunicipalityResponse(status=ProviderStatus.OK, municipality=municipality)

    async def resolve_municipality(
        self,
        coordinates: Coordinates,
        locality: Optional[str] = None,
        state_code: Optional[str] = None,
    ) -> Optional[Municipality]:
        """Municipality for a point, cached by its ~110 m grid cell for 24h."""
        key = municipality_cache_key(coordinates)
        cached = await self._cache_get(key)
        if cached:
            return Municipality(**cached)

        if not locality:
            logger.warning("No locality for %s, cannot resolve municipality", coordinates.grid_key())
            return None

        result = await self.fetch_municipality(locality, state_code)
        if not result.ok:
            logger.warning("Municipality lookup failed for %r: %s %s", locality, result.status.value, result.detail)
            return None

        await self._cache_set(key, result.municipality.model_dump(mode="json"), MUNICIPALITY_TTL)
        logger.info("Municipality resolved: %s (%s)", result.municipality.name, result.municipality.id)
        return result.municipality

    # ─── Income ───

    async def fetch_income(self, municipality_id: str) -> IncomeResponse:
        if not municipality_id:
            return IncomeResponse(status=ProviderStatus.INVALID_INPUT, detail="no municipality id")
        try:
            payload = await self._get_json(income_url(municipality_id))
        except (httpx.HTTPError, ValueError) as exc:
            status, detail = _failure(exc)
            return IncomeResponse(status=status, detail=detail)
        return parse_income(payload, municipality_id)

    async def resolve_income(self, municipality_id: str) -> IncomeRecord:
        """Income record for a municipality; never ``None``.

        Failures yield the sentinel fallback record, cached for 6h under its
        own key so a later live success is not masked for long.
        """
        cached = await self._cache_get(income_cache_key(municipality_id))
        if cached:
            return IncomeRecord(**cached)
        if await self._cache_get(income_cache_key(municipality_id, fallback=True)):
            return IncomeRecord.fallback(municipality_id)

        result = await self.fetch_income(municipality_id)
        if result.ok:
            await self._cache_set(income_cache_key(municipality_id), result.record.model_dump(mode="json"), INCOME_TTL)
            return result.record

        logger.warning("Income lookup failed for %s: %s %s, using fallback", municipality_id, result.status.value, result.detail)
        record = IncomeRecord.fallback(municipality_id)
        await self._cache_set(
            income_cache_key(municipality_id, fallback=True),
            record.model_dump(mode="json"),
            FALLBACK_INCOME_TTL,
        )
        return record

    # ─── Connectivity ───

    async def _probe(self, url: str) -> tuple[bool, str]:
        try:
            response = await self._send("HEAD", url, PROBE_TIMEOUT)
        except httpx.HTTPError as exc:
            return False, f"failed: {_failure(exc)[1]}"
        if response.is_success or response.is_redirect:
            return True, f"ok (HTTP {response.status_code})"
        return False, f"failed: HTTP {response.status_code}"

    async def test_connectivity(self) -> ConnectivityReport:
        """Probe both endpoints; the report is cached for 4 hours.

        A failed probe still counts as OK when live cached data for that
        concern can keep serving requests.
        """
        cached = await self._cache_get(CONNECTIVITY_KEY)
        if cached:
            return ConnectivityReport(**{**cached, "cached": True})

        municipalities_ok, municipalities_detail = await self._probe(f"{LOCALIDADES_BASE}/municipios?view=nivelado")
        income_ok, income_detail = await self._probe(income_url(PROBE_MUNICIPALITY_ID))

        if not municipalities_ok and await self._cache_has(MUNICIPALITY_PREFIX):
            municipalities_ok = True
            municipalities_detail += "; cache available"
        if not income_ok and await self._cache_has(INCOME_PREFIX):
            income_ok = True
            income_detail += "; cache available"

        report = ConnectivityReport(
            municipalities_ok=municipalities_ok,
            income_ok=income_ok,
            details={"municipalities": municipalities_detail, "income": income_detail},
        )
        await self._cache_set(CONNECTIVITY_KEY, report.model_dump(mode="json"), CONNECTIVITY_TTL)
        return report
