"""Persistent caches: the location score cache and the provider TTL cache.

Both live in SQLite. Store failures are logged and behave like a miss so a
broken cache never fails a scoring request.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError

from .core.models import (
    CacheEntry,
    CacheStats,
    IncomeRecord,
    Municipality,
    ScoreSource,
    utcnow,
)
from .core.normalize import derive_search_keys, normalize
from .db import get_session_factory
from .sqlmodels import GeocacheRow, ProviderCacheRow

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=30)
DEFAULT_FRESHNESS_HOURS = 24.0


def _entry(row: GeocacheRow) -> CacheEntry:
    return CacheEntry(
        key=row.location_key,
        score=row.score,
        source=ScoreSource(row.source),
        municipality_id=row.municipality_id,
        municipality_name=row.municipality_name,
        state_code=row.state_code,
        average_income=row.average_income,
        last_checked=row.last_checked,
        created_at=row.created_at,
    )


class ScoreCache:
    """Location score cache keyed by normalized address.

    Lookups walk the hierarchy of derived keys (full address, locality,
    city and state, state) and return the first entry still inside the
    retention window. Upserts are last-write-wins on ``last_checked``, so a
    key's timestamp never moves backwards.
    """

    def __init__(
        self,
        session_factory=None,
        retention: timedelta = DEFAULT_RETENTION,
        freshness_hours: float = DEFAULT_FRESHNESS_HOURS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.retention = retention
        self.freshness_hours = freshness_hours
        self._clock = clock

    def _sessions(self):
        return self._session_factory or get_session_factory()

    async def lookup(self, raw_address: str) -> Optional[CacheEntry]:
        keys = derive_search_keys(raw_address)
        # put() stores under the full key whatever its length
        exact = normalize(raw_address)
        if exact and exact not in keys:
            keys.insert(0, exact)
        if not keys:
            return None
        cutoff = self._clock() - self.retention
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    select(GeocacheRow).where(
                        GeocacheRow.location_key.in_(keys),
                        GeocacheRow.last_checked >= cutoff,
                    )
                )
                rows = {row.location_key: row for row in result.scalars()}
        except SQLAlchemyError as exc:
            logger.warning("Cache lookup failed for %r: %s", raw_address, exc)
            return None

        for key in keys:
            if key in rows:
                return _entry(rows[key])
        return None

    async def put(
        self,
        key: str,
        score: int,
        source: ScoreSource,
        municipality: Optional[Municipality] = None,
        income: Optional[IncomeRecord] = None,
        checked_at: Optional[datetime] = None,
    ) -> Optional[CacheEntry]:
        """Upsert a score. Returns the stored entry, or ``None`` on store failure.

        A write carrying an older ``checked_at`` than the stored row leaves
        the row untouched.
        """
        if not 0 <= score <= 100:
            raise ValueError(f"score out of range: {score}")
        key = normalize(key)
        if not key:
            return None
        now = checked_at or self._clock()
        values = {
            "location_key": key,
            "score": int(score),
            "source": ScoreSource(source).value,
            "municipality_id": municipality.id if municipality else None,
            "municipality_name": municipality.name if municipality else None,
            "state_code": municipality.state_code or None if municipality else None,
            "average_income": income.average_income if income else None,
            "last_checked": now,
            "created_at": now,
        }
        stmt = insert(GeocacheRow).values(**values)
        update_cols = {k: stmt.excluded[k] for k in values if k not in ("location_key", "created_at")}
        stmt = stmt.on_conflict_do_update(
            index_elements=[GeocacheRow.location_key],
            set_=update_cols,
            where=stmt.excluded.last_checked >= GeocacheRow.last_checked,
        )
        try:
            async with self._sessions()() as session:
                await session.execute(stmt)
                await session.commit()
                row = await session.scalar(select(GeocacheRow).where(GeocacheRow.location_key == key))
        except SQLAlchemyError as exc:
            logger.warning("Cache write failed for %r: %s", key, exc)
            return None
        return _entry(row) if row is not None else None

    async def purge_older_than(self, age: timedelta) -> int:
        cutoff = self._clock() - age
        try:
            async with self._sessions()() as session:
                result = await session.execute(delete(GeocacheRow).where(GeocacheRow.last_checked < cutoff))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Cache purge failed: %s", exc)
            return 0
        if result.rowcount:
            logger.info("Purged %d cache entries older than %s", result.rowcount, age)
        return result.rowcount or 0

    async def stats(self) -> CacheStats:
        now = self._clock()
        stale_cutoff = now - timedelta(hours=self.freshness_hours)
        expired_cutoff = now - self.retention
        try:
            async with self._sessions()() as session:
                by_source = await session.execute(
                    select(GeocacheRow.source, func.count()).group_by(GeocacheRow.source)
                )
                counts = {source: count for source, count in by_source.all()}
                stale = await session.scalar(
                    select(func.count()).select_from(GeocacheRow).where(GeocacheRow.last_checked < stale_cutoff)
                )
                expired = await session.scalar(
                    select(func.count()).select_from(GeocacheRow).where(GeocacheRow.last_checked < expired_cutoff)
                )
        except SQLAlchemyError as exc:
            logger.warning("Cache stats failed: %s", exc)
            return CacheStats()
        return CacheStats(
            total=sum(counts.values()),
            count_by_source=counts,
            stale_count=stale or 0,
            expired_count=expired or 0,
        )

    async def clear(self) -> int:
        try:
            async with self._sessions()() as session:
                result = await session.execute(delete(GeocacheRow))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Cache clear failed: %s", exc)
            return 0
        logger.info("Cleared %d cache entries", result.rowcount or 0)
        return result.rowcount or 0


class ProviderCache:
    """Key/value TTL cache for parsed provider records.

    Values are JSON objects; an entry is live until its ``expires_at``.
    """

    def __init__(self, session_factory=None, clock: Callable[[], datetime] = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def _sessions(self):
        return self._session_factory or get_session_factory()

    async def get(self, key: str) -> Optional[dict]:
        try:
            async with self._sessions()() as session:
                row = await session.scalar(
                    select(ProviderCacheRow).where(
                        ProviderCacheRow.cache_key == key,
                        ProviderCacheRow.expires_at > self._clock(),
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning("Provider cache read failed for %s: %s", key, exc)
            return None
        if row is None:
            return None
        try:
            return json.loads(row.value)
        except ValueError:
            logger.warning("Discarding unreadable provider cache entry %s", key)
            return None

    async def set(self, key: str, value: dict, ttl: timedelta) -> None:
        now = self._clock()
        stmt = insert(ProviderCacheRow).values(
            cache_key=key,
            value=json.dumps(value),
            expires_at=now + ttl,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProviderCacheRow.cache_key],
            set_={"value": stmt.excluded.value, "expires_at": stmt.excluded.expires_at, "created_at": stmt.excluded.created_at},
        )
        try:
            async with self._sessions()() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Provider cache write failed for %s: %s", key, exc)

    async def has_fresh(self, prefix: str) -> bool:
        """True when any unexpired entry's key starts with ``prefix``."""
        try:
            async with self._sessions()() as session:
                count = await session.scalar(
                    select(func.count()).select_from(ProviderCacheRow).where(
                        ProviderCacheRow.cache_key.startswith(prefix, autoescape=True),
                        ProviderCacheRow.expires_at > self._clock(),
                    )
                )
        except SQLAlchemyError as exc:
            logger.warning("Provider cache read failed for prefix %s: %s", prefix, exc)
            return False
        return bool(count)

    async def purge_expired(self) -> int:
        try:
            async with self._sessions()() as session:
                result = await session.execute(
                    delete(ProviderCacheRow).where(ProviderCacheRow.expires_at <= self._clock())
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Provider cache purge failed: %s", exc)
            return 0
        return result.rowcount or 0

    async def clear(self) -> int:
        try:
            async with self._sessions()() as session:
                result = await session.execute(delete(ProviderCacheRow))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Provider cache clear failed: %s", exc)
            return 0
        return result.rowcount or 0
