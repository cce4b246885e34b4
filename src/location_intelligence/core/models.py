"""Pydantic data models shared by every layer.

The orchestrator, the provider adapters and the MCP tools all exchange these
models. Untyped upstream JSON never travels past an adapter: each endpoint is
parsed into a tagged response record (``GeocodeResponse``,
``MunicipalityResponse``, ``IncomeResponse``) whose ``status`` tells success
from every failure variant.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

FALLBACK_INCOME = 2500.0
FALLBACK_DATA_YEAR = 2022
FALLBACK_POPULATION = 50000


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how SQLite stores DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ScoreSource(str, Enum):
    """Provenance label stored with every cached score."""

    LIVE = "LIVE"
    CACHE = "CACHE"
    ESTIMATE = "ESTIMATE"
    FALLBACK = "FALLBACK"


class ResolutionTier(str, Enum):
    """States of the scoring ladder, in the order they are tried."""

    CACHE_CHECK = "cache_check"
    LIVE_RESOLUTION = "live_resolution"
    CITY_FALLBACK = "city_fallback"
    REGIONAL_FALLBACK = "regional_fallback"
    DEFAULT = "default"


class Region(str, Enum):
    """Brazilian macro-regions used by the regional estimate table."""

    SOUTHEAST = "Southeast"
    SOUTH = "South"
    CENTER_WEST = "Center-West"
    NORTHEAST = "Northeast"
    NORTH = "North"


class NeighborhoodCategory(str, Enum):
    """Business-density classification of a neighborhood."""

    HIGH = "HIGH"
    MID = "MID"
    STANDARD = "STANDARD"


class ProviderStatus(str, Enum):
    """Outcome of a single upstream call."""

    OK = "ok"
    EMPTY = "empty"
    NOT_OK = "not_ok"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    UNPARSEABLE = "unparseable"
    INVALID_INPUT = "invalid_input"


class Coordinates(BaseModel):
    """A WGS84 point."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)

    def grid_key(self, places: int = 3) -> str:
        """Rounded-coordinate key (3 places is roughly a 110 m grid)."""
        return f"{self.lat:.{places}f}_{self.lng:.{places}f}"


class GeocodeMatch(BaseModel):
    """First geocoding result with the administrative components we use."""

    model_config = ConfigDict(frozen=True)

    coordinates: Coordinates
    locality: Optional[str] = None
    state_code: Optional[str] = None
    formatted_address: Optional[str] = None


class Municipality(BaseModel):
    """Municipality reference data from the national statistics provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    state_code: str = ""


class IncomeRecord(BaseModel):
    """Average household income for one municipality."""

    model_config = ConfigDict(frozen=True)

    municipality_id: str
    average_income: float
    population_count: int = 0
    data_year: int

    @property
    def is_fallback(self) -> bool:
        """True when this is the synthesized sentinel record, not live data."""
        return self.average_income == FALLBACK_INCOME and self.data_year == FALLBACK_DATA_YEAR

    @classmethod
    def fallback(cls, municipality_id: str) -> "IncomeRecord":
        return cls(
            municipality_id=municipality_id,
            average_income=FALLBACK_INCOME,
            population_count=FALLBACK_POPULATION,
            data_year=FALLBACK_DATA_YEAR,
        )


class CityEstimate(BaseModel):
    """Administrable estimate row used when live resolution fails."""

    city_name: str
    state_code: str
    estimated_income: float
    score: int = Field(ge=0, le=100)
    region: Optional[Region] = None
    population_range: Optional[str] = None


class NeighborhoodProfile(BaseModel):
    """Per-neighborhood multipliers layered on top of the income score."""

    name: str
    category: NeighborhoodCategory = NeighborhoodCategory.STANDARD
    real_estate_factor: float = Field(default=1.0, ge=1.0)
    business_factor: float = Field(default=1.0, ge=1.0)
    reference_price_per_area: Optional[float] = Field(default=None, gt=0)
    last_analyzed: Optional[datetime] = None
    active: bool = True


class NeighborhoodAnalysis(BaseModel):
    """Breakdown of how a neighborhood adjusted the base score."""

    model_config = ConfigDict(frozen=True)

    neighborhood: Optional[str] = None
    category: Optional[NeighborhoodCategory] = None
    base_score: int
    real_estate_factor: float = 1.0
    business_factor: float = 1.0
    final_score: int
    applied: bool = False


class CacheEntry(BaseModel):
    """A cached score keyed by normalized location."""

    key: str
    score: int = Field(ge=0, le=100)
    source: ScoreSource
    municipality_id: Optional[str] = None
    municipality_name: Optional[str] = None
    state_code: Optional[str] = None
    average_income: Optional[float] = None
    last_checked: datetime
    created_at: datetime

    def is_stale(self, freshness_hours: float, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return (now - self.last_checked).total_seconds() > freshness_hours * 3600


class CacheStats(BaseModel):
    """Observability snapshot of the score cache."""

    total: int = 0
    count_by_source: dict[str, int] = Field(default_factory=dict)
    stale_count: int = 0
    expired_count: int = 0


class ConnectivityReport(BaseModel):
    """Result of probing the national statistics endpoints."""

    municipalities_ok: bool
    income_ok: bool
    details: dict[str, str] = Field(default_factory=dict)
    cached: bool = False
    checked_at: datetime = Field(default_factory=utcnow)

    @property
    def ok(self) -> bool:
        return self.municipalities_ok and self.income_ok


class ScoreResult(BaseModel):
    """Fully explained output of the scoring pipeline. Never mutated."""

    model_config = ConfigDict(frozen=True)

    address: str
    coordinates: Optional[Coordinates] = None
    municipality: Optional[Municipality] = None
    income: Optional[IncomeRecord] = None
    score: int = Field(ge=0, le=100)
    score_reason: str
    success: bool = False
    fallback_used: bool = False
    source: ScoreSource = ScoreSource.FALLBACK
    tier: ResolutionTier = ResolutionTier.DEFAULT
    neighborhood: Optional[NeighborhoodAnalysis] = None
    analysis_timestamp: datetime = Field(default_factory=utcnow)


# --- Tagged upstream responses ---------------------------------------------


class GeocodeResponse(BaseModel):
    """Parsed geocoding API reply."""

    status: ProviderStatus
    match: Optional[GeocodeMatch] = None
    upstream_status: Optional[str] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ProviderStatus.OK and self.match is not None


class MunicipalityResponse(BaseModel):
    """Parsed municipality-list reply, already narrowed to one municipality."""

    status: ProviderStatus
    municipality: Optional[Municipality] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ProviderStatus.OK and self.municipality is not None


class IncomeResponse(BaseModel):
    """Parsed income-table reply."""

    status: ProviderStatus
    record: Optional[IncomeRecord] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ProviderStatus.OK and self.record is not None
