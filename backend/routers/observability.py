"""
Task Analytics — Observability Router
Exposes: response cache stats and reset, structured logs, log distribution
"""

from fastapi import APIRouter, Depends, Query, HTTPException
from typing import Optional

from auth import require_admin, CurrentUser
from logging_system import get_logger, LogLevel, LogCategory
from response_cache import ResponseCache, get_response_cache

router = APIRouter(prefix="/api/v1/observability", tags=["Observability"])


# ── Response cache ────────────────────────────────────────────────────────────

@router.get("/cache")
async def get_cache_stats(
    current_user: CurrentUser = Depends(require_admin),
    cache: ResponseCache = Depends(get_response_cache),
):
    """Hit/miss counters and occupancy of the response cache."""
    cache.purge_expired()
    return {"data": cache.stats()}


@router.delete("/cache")
async def clear_cache(
    current_user: CurrentUser = Depends(require_admin),
    cache: ResponseCache = Depends(get_response_cache),
):
    """Drop every cached response; the next requests recompute."""
    cleared = cache.clear()
    get_logger().info(
        f"Response cache cleared ({cleared} entries)",
        category=LogCategory.CACHE,
        metadata={"cleared": cleared, "by": current_user.id},
    )
    return {"data": {"cleared": cleared}}


# ── Logs ─────────────────────────────────────────────────────────────────────

@router.get("/logs")
async def get_logs(
    level: Optional[str] = Query(None, description="Minimum log level"),
    category: Optional[str] = Query(None, description="Log category filter"),
    search: Optional[str] = Query(None, description="Search in message"),
    correlation_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    current_user: CurrentUser = Depends(require_admin),
):
    """Get structured logs with filtering."""
    level_enum = None
    if level:
        try:
            level_enum = LogLevel(level.lower())
        except ValueError:
            raise HTTPException(400, f"Invalid log level: {level}")

    category_enum = None
    if category:
        try:
            category_enum = LogCategory(category.lower())
        except ValueError:
            raise HTTPException(400, f"Invalid category: {category}")

    logs = get_logger().get_logs(
        level=level_enum,
        category=category_enum,
        correlation_id=correlation_id,
        search=search,
        limit=limit,
    )
    return {"data": {"logs": [log.to_dict() for log in logs], "count": len(logs)}}


@router.get("/logs/stats")
async def get_log_stats(current_user: CurrentUser = Depends(require_admin)):
    """Get log statistics and distribution."""
    return {"data": get_logger().get_stats()}
