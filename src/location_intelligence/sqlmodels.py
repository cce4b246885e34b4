"""SQLAlchemy models for local SQLite storage.

Stores the score cache, the provider response cache and the two
administrable reference tables (city estimates and neighborhood profiles).
Raw upstream payloads are never persisted, only their parsed records.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .core.models import utcnow


class Base(DeclarativeBase):
    pass


class GeocacheRow(Base):
    """A cached location score keyed by normalized address."""

    __tablename__ = "geocache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_key: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    municipality_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    municipality_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    state_code: Mapped[str | None] = mapped_column(String(2), nullable=True)
    average_income: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_checked: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_geocache_last_checked", "last_checked"),
        Index("ix_geocache_source", "source"),
    )


class ProviderCacheRow(Base):
    """A parsed upstream record (municipality, income, connectivity) with expiry."""

    __tablename__ = "provider_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cache_key: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_provider_cache_expires", "expires_at"),
    )


class CityEstimateRow(Base):
    """Estimated score for a recognized city, used when live data fails."""

    __tablename__ = "city_estimates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    city_name: Mapped[str] = mapped_column(String(200), nullable=False)
    state_code: Mapped[str] = mapped_column(String(2), nullable=False)
    estimated_income: Mapped[float] = mapped_column(Float, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    region: Mapped[str | None] = mapped_column(String(20), nullable=True)
    population_range: Mapped[str | None] = mapped_column(String(50), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_city_estimates_state_city", "state_code", "city_name"),
        Index("ix_city_estimates_region", "region"),
    )


class NeighborhoodProfileRow(Base):
    """Real-estate and business multipliers for one metropolitan neighborhood."""

    __tablename__ = "neighborhood_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="STANDARD")
    real_estate_factor: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    business_factor: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    combined_factor: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    reference_price_per_area: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_analyzed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_neighborhood_category", "category"),
    )
