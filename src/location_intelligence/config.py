"""Runtime configuration read from environment variables.

All values have defaults suitable for local use; only GOOGLE_MAPS_API_KEY is
needed for the live geocoding tier. Invalid numeric values raise ValueError
at startup. DATA_DIR is read by the database layer (see ``db.get_data_dir``).
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field

from .core.reference_data import DEFAULT_BASE_PRICE_PER_AREA

DEFAULT_DATA_DIR = os.path.expanduser("~/.location-intelligence")


class Settings(BaseModel):
    google_maps_api_key: Optional[str] = None
    cache_retention_days: int = Field(default=30, ge=1)
    cache_freshness_hours: float = Field(default=24.0, gt=0)
    http_timeout_seconds: float = Field(default=10.0, gt=0, le=10.0)
    live_retry_attempts: int = Field(default=2, ge=1)
    live_retry_delay_seconds: float = Field(default=1.0, ge=0)
    batch_size: int = Field(default=3, ge=1)
    batch_pause_seconds: float = Field(default=1.0, ge=0)
    base_price_per_area: float = Field(default=DEFAULT_BASE_PRICE_PER_AREA, gt=0)
    purge_interval_hours: float = Field(default=24.0, gt=0)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "Settings":
        """Build settings from ``os.environ`` (or the given mapping)."""
        env = os.environ if environ is None else environ
        mapping = {
            "google_maps_api_key": "GOOGLE_MAPS_API_KEY",
            "cache_retention_days": "CACHE_RETENTION_DAYS",
            "cache_freshness_hours": "CACHE_FRESHNESS_HOURS",
            "http_timeout_seconds": "HTTP_TIMEOUT_SECONDS",
            "live_retry_attempts": "LIVE_RETRY_ATTEMPTS",
            "live_retry_delay_seconds": "LIVE_RETRY_DELAY_SECONDS",
            "batch_size": "BATCH_SIZE",
            "batch_pause_seconds": "BATCH_PAUSE_SECONDS",
            "base_price_per_area": "BASE_PRICE_PER_AREA",
            "purge_interval_hours": "PURGE_INTERVAL_HOURS",
        }
        values = {field: env[var] for field, var in mapping.items() if env.get(var)}
        return cls(**values)
