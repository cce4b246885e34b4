"""Shared fixtures for the location intelligence test suite.

Each test gets its own SQLite file under tmp_path. Async code is driven
with asyncio.run from synchronous tests; the engine is created and disposed
inside the same event loop.
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from location_intelligence.db import close_db, init_db, seed_reference_data


class Clock:
    """Injectable clock for TTL and retention tests."""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 6, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeTTLCache:
    """In-memory stand-in for the provider cache port."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        entry = self.data.get(key)
        return entry[0] if entry else None

    async def set(self, key, value, ttl):
        self.data[key] = (value, ttl)

    async def has_fresh(self, prefix):
        return any(key.startswith(prefix) for key in self.data)


class RecordingSleep:
    """Replacement for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def run_db(data_dir):
    """Run ``fn()`` (a coroutine function) against a fresh database.

    Reference tables are seeded unless ``seed=False``.
    """
    def _run(fn, seed=True):
        async def _main():
            await init_db()
            if seed:
                await seed_reference_data()
            try:
                return await fn()
            finally:
                await close_db()
        return asyncio.run(_main())
    return _run


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def ttl_cache():
    return FakeTTLCache()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
