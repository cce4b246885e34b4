"""Location Intelligence MCP Server.

FastMCP server exposing the location scoring engine as 7 tools.
Run: location-intelligence-mcp
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from .config import Settings
from .core.models import ScoreResult
from .db import close_db, init_db, seed_reference_data
from .orchestrator import LocationScoringOrchestrator
from .scheduler import CachePurgeScheduler

logger = logging.getLogger(__name__)

READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=True)
MAINTENANCE = ToolAnnotations(readOnlyHint=False, destructiveHint=True, idempotentHint=True, openWorldHint=False)

MAX_BATCH_ADDRESSES = 50

_settings: Optional[Settings] = None
_orchestrator: Optional[LocationScoringOrchestrator] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_orchestrator() -> LocationScoringOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = LocationScoringOrchestrator.from_settings(get_settings())
    return _orchestrator


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Initialize database, seed reference tables on first run, start the purge scheduler."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    settings = get_settings()
    if not settings.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY not set, live resolution disabled (estimates only)")
    await init_db()
    await seed_reference_data()
    scheduler = CachePurgeScheduler(get_orchestrator().purge_expired, settings.purge_interval_hours)
    await scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()
        await close_db()


mcp = FastMCP(
    "Location Intelligence",
    instructions="Score Brazilian addresses 0-100 by estimated affluence using geocoding, IBGE income data, city and regional estimates and neighborhood multipliers. Every score explains which tier produced it.",
    lifespan=lifespan,
)


def _result_to_dict(result: ScoreResult) -> dict:
    data = result.model_dump(mode="json")
    data["title"] = f"Location Score: {result.score}"
    data["summary"] = result.score_reason
    return data


# ─── Tool 1: Score ───────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def location_score(address: str) -> dict:
    """Score one address from 0 to 100 with an explanation of the data source.

    Args:
        address: Free-text address, e.g. 'Rua Dr. Santos 120, Centro, Montes Claros, MG'.
    """
    result = await get_orchestrator().score_address(address)
    return _result_to_dict(result)


# ─── Tool 2: Batch Score ─────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def location_batch_score(addresses: list[str], batch_size: Optional[int] = None) -> dict:
    """Score several addresses in small groups, pausing between groups for rate limits.

    Args:
        addresses: Up to 50 free-text addresses. Results keep the input order.
        batch_size: Addresses scored concurrently per group. Default from BATCH_SIZE.
    """
    if len(addresses) > MAX_BATCH_ADDRESSES:
        raise ValueError(f"At most {MAX_BATCH_ADDRESSES} addresses per call, got {len(addresses)}")

    results = await get_orchestrator().batch_score_addresses(addresses, batch_size=batch_size)
    successes = sum(1 for r in results if r.success)
    fallbacks = sum(1 for r in results if r.fallback_used)
    return {
        "title": "Batch Location Scores",
        "results": [_result_to_dict(r) for r in results],
        "total": len(results),
        "successful": successes,
        "fallback_used": fallbacks,
        "summary": f"Scored {len(results)} addresses: {successes} successful, {fallbacks} from fallback data.",
    }


# ─── Tool 3: Cache Stats ─────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def location_cache_stats() -> dict:
    """Score cache size, entries per data source, and stale/expired counts."""
    stats = await get_orchestrator().cache_stats()
    by_source = ", ".join(f"{k}: {v}" for k, v in sorted(stats.count_by_source.items())) or "empty"
    return {
        "title": "Location Cache Stats",
        **stats.model_dump(mode="json"),
        "summary": f"{stats.total} cached scores ({by_source}); {stats.stale_count} stale, {stats.expired_count} past retention.",
    }


# ─── Tool 4: Purge ───────────────────────────────────────────────────────────


@mcp.tool(annotations=MAINTENANCE)
async def location_cache_purge() -> dict:
    """Delete cached scores past the retention window and expired provider records."""
    purged = await get_orchestrator().purge_expired()
    return {
        "title": "Cache Purge",
        "purged": purged,
        "summary": f"Removed {purged['scores']} expired scores and {purged['provider']} expired provider records.",
    }


# ─── Tool 5: Clear ───────────────────────────────────────────────────────────


@mcp.tool(annotations=MAINTENANCE)
async def location_cache_clear() -> dict:
    """Delete every cached score and provider record. The next lookups go live again."""
    cleared = await get_orchestrator().clear_cache()
    return {
        "title": "Cache Cleared",
        "cleared": cleared,
        "summary": f"Removed {cleared['scores']} cached scores and {cleared['provider']} provider records.",
    }


# ─── Tool 6: Connectivity ────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def location_connectivity() -> dict:
    """Check whether the IBGE municipality and income endpoints are reachable."""
    report = await get_orchestrator().test_connectivity()
    status = "reachable" if report.ok else "degraded"
    return {
        "title": "IBGE Connectivity",
        **report.model_dump(mode="json"),
        "ok": report.ok,
        "summary": f"IBGE is {status}: municipalities {report.details.get('municipalities', 'n/a')}, income {report.details.get('income', 'n/a')}"
        + (" (cached report)" if report.cached else ""),
    }


# ─── Tool 7: Neighborhoods ───────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def location_neighborhoods() -> dict:
    """List active Montes Claros neighborhood profiles with their multipliers."""
    profiles, stats = await get_orchestrator().neighborhood_profiles()
    return {
        "title": "Neighborhood Profiles",
        "profiles": [p.model_dump(mode="json") for p in profiles],
        "stats": stats,
        "summary": f"{len(profiles)} active neighborhood profiles; mean combined factor {stats.get('average_combined_factor', 0.0):.2f}.",
    }


def main():
    """Entry point for the CLI command."""
    mcp.run()


if __name__ == "__main__":
    main()
