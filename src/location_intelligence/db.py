"""SQLite database connection and schema management.

Data is stored in ~/.location-intelligence/data.db by default.
WAL mode is enabled so cache upserts never wait on concurrent readers.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import DEFAULT_DATA_DIR

logger = logging.getLogger(__name__)


def get_data_dir() -> Path:
    """Get the data directory, creating it if needed."""
    data_dir = Path(os.path.expanduser(os.environ.get("DATA_DIR", DEFAULT_DATA_DIR)))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_url() -> str:
    """Get the SQLite database URL."""
    db_path = get_data_dir() / "data.db"
    return f"sqlite+aiosqlite:///{db_path}"


def _set_wal_mode(dbapi_connection, connection_record):
    """Enable WAL mode for concurrent reads during writes."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


_engine = None
_session_factory = None


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(get_db_url(), echo=False)
        event.listen(_engine.sync_engine, "connect", _set_wal_mode)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def init_db():
    """Create all tables if they don't exist."""
    from .sqlmodels import Base

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized at %s", get_data_dir() / "data.db")


async def seed_reference_data() -> dict[str, int]:
    """Populate the city estimate and neighborhood tables on first run.

    Tables that already hold rows are left alone: once seeded, operators
    administer them directly.
    """
    from .core.reference_data import CITY_ESTIMATE_SEED, NEIGHBORHOOD_SEED
    from .core.scoring import combined_factor, default_business_factor
    from .sqlmodels import CityEstimateRow, NeighborhoodProfileRow

    inserted = {"city_estimates": 0, "neighborhood_profiles": 0}
    session_factory = get_session_factory()
    async with session_factory() as session:
        city_count = await session.scalar(select(func.count()).select_from(CityEstimateRow))
        if not city_count:
            for row in CITY_ESTIMATE_SEED:
                session.add(CityEstimateRow(
                    city_name=row["city_name"],
                    state_code=row["state_code"],
                    estimated_income=row["estimated_income"],
                    score=row["score"],
                    region=row["region"].value,
                    population_range=row.get("population_range"),
                ))
            inserted["city_estimates"] = len(CITY_ESTIMATE_SEED)

        profile_count = await session.scalar(select(func.count()).select_from(NeighborhoodProfileRow))
        if not profile_count:
            for row in NEIGHBORHOOD_SEED:
                biz = default_business_factor(row["category"])
                session.add(NeighborhoodProfileRow(
                    name=row["name"],
                    category=row["category"].value,
                    real_estate_factor=row["real_estate_factor"],
                    business_factor=biz,
                    combined_factor=combined_factor(row["real_estate_factor"], biz),
                    reference_price_per_area=row.get("reference_price_per_area"),
                ))
            inserted["neighborhood_profiles"] = len(NEIGHBORHOOD_SEED)

        await session.commit()

    if any(inserted.values()):
        logger.info(
            "Seeded reference data: %d city estimates, %d neighborhood profiles",
            inserted["city_estimates"], inserted["neighborhood_profiles"],
        )
    return inserted


async def close_db():
    """Close the database engine."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
