"""Tests for the MCP tool functions, called directly."""

import asyncio

import httpx
import pytest

from location_intelligence import server
from location_intelligence.config import Settings
from location_intelligence.orchestrator import LocationScoringOrchestrator


@pytest.fixture
def orchestrator(data_dir, monkeypatch):
    """Orchestrator whose upstream calls all fail, so answers come from estimates."""
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    settings = Settings(
        google_maps_api_key="test-key",
        live_retry_attempts=1,
        batch_pause_seconds=0,
    )
    orch = LocationScoringOrchestrator.from_settings(settings, client=client)
    monkeypatch.setattr(server, "_settings", settings)
    monkeypatch.setattr(server, "_orchestrator", orch)
    yield orch
    asyncio.run(client.aclose())


class TestTools:
    def test_location_score(self, run_db, orchestrator):
        async def scenario():
            return await server.location_score("Rua Nova 5, Curitiba, PR")

        data = run_db(scenario)
        assert data["score"] == 40
        assert data["source"] == "ESTIMATE"
        assert data["title"] == "Location Score: 40"
        assert data["summary"] == data["score_reason"]

    def test_location_batch_score(self, run_db, orchestrator):
        async def scenario():
            return await server.location_batch_score(["Rua Nova 5, Curitiba, PR", "Lugar Nenhum"], batch_size=1)

        data = run_db(scenario)
        assert data["total"] == 2
        assert [r["score"] for r in data["results"]] == [40, 25]
        assert data["successful"] == 1
        assert data["fallback_used"] == 2

    def test_batch_limit(self, run_db, orchestrator):
        async def scenario():
            return await server.location_batch_score(["Lugar Nenhum"] * (server.MAX_BATCH_ADDRESSES + 1))

        with pytest.raises(ValueError):
            run_db(scenario)

    def test_cache_tools(self, run_db, orchestrator):
        async def scenario():
            await server.location_score("Rua Nova 5, Curitiba, PR")
            stats = await server.location_cache_stats()
            purged = await server.location_cache_purge()
            cleared = await server.location_cache_clear()
            return stats, purged, cleared

        stats, purged, cleared = run_db(scenario)
        assert stats["total"] == 1
        assert "ESTIMATE: 1" in stats["summary"]
        assert purged["purged"]["scores"] == 0
        assert cleared["cleared"]["scores"] == 1

    def test_connectivity_offline(self, run_db, orchestrator):
        async def scenario():
            return await server.location_connectivity()

        data = run_db(scenario)
        assert data["ok"] is False
        assert "degraded" in data["summary"]

    def test_neighborhoods(self, run_db, orchestrator):
        async def scenario():
            return await server.location_neighborhoods()

        data = run_db(scenario)
        assert data["stats"]["total"] == 15
        assert len(data["profiles"]) == 15
        assert "Ibituruna" in [p["name"] for p in data["profiles"]]
        assert data["summary"].startswith("15 active neighborhood profiles")
