# routers/analytics.py — Derived metrics over tasks, issues and profiles
# Every handler resolves the caller's scope, then serves from the response
# cache or computes against the query facade. Bodies are {"data": payload}.
import asyncio
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response

from analytics_engine import (
    RecommendationPolicy, WorkloadSnapshot,
    compute_dashboard, compute_completion_trend, compute_workload_snapshot,
    compute_recommendations, compute_issue_resolution, serialize_late_task,
    normalize_trend_days, trend_start,
)
from analytics_store import AnalyticsStore, get_analytics_store
from auth import get_current_user, require_admin, CurrentUser
from exceptions import AnalyticsError, ComputationError
from logging_system import get_logger, LogCategory, TimedOperation
from models import utcnow
from response_cache import ResponseCache, build_cache_key, get_response_cache
from scope import Scope, resolve_scope
from telemetry import computation_span

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

# Seconds; routes without a TTL are always recomputed
DASHBOARD_TTL = int(os.getenv("CACHE_TTL_DASHBOARD_SECONDS", "300"))
TREND_TTL = int(os.getenv("CACHE_TTL_TREND_SECONDS", "300"))
WORKLOAD_TTL = int(os.getenv("CACHE_TTL_WORKLOAD_SECONDS", "180"))


def get_recommendation_policy() -> RecommendationPolicy:
    return RecommendationPolicy.from_env()


# ============================================================
# HELPERS
# ============================================================

async def _compute(route: str, scope: Scope, compute: Callable[[], Awaitable[Any]]) -> Any:
    with computation_span(route, scope.cache_partition), TimedOperation(
        get_logger(),
        f"analytics.{route}",
        category=LogCategory.ANALYTICS,
        metadata={"route": route, "scope": scope.cache_partition},
    ):
        try:
            return await compute()
        except AnalyticsError:
            raise
        except Exception as exc:
            raise ComputationError() from exc


async def _serve(
    route: str,
    scope: Scope,
    compute: Callable[[], Awaitable[Any]],
    response: Response,
    cache: Optional[ResponseCache] = None,
    ttl: Optional[int] = None,
    params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    if cache is None or not ttl:
        return {"data": await _compute(route, scope, compute)}

    key = build_cache_key(route, scope, params)
    entry = cache.lookup(key)
    if entry is not None:
        response.headers["X-Cache"] = "HIT"
        return {"data": entry.payload}

    payload = await _compute(route, scope, compute)
    # Only reached when the computation finished without raising
    cache.put(key, payload, ttl)
    response.headers["X-Cache"] = "MISS"
    return {"data": payload}


async def _profile_snapshots(store: AnalyticsStore) -> List[WorkloadSnapshot]:
    """One snapshot per profile; sub-queries are fanned out and joined in profile order."""
    now = utcnow()
    profiles = await store.list_profiles()
    task_lists = await asyncio.gather(*(store.tasks_assigned_to(p.id) for p in profiles))
    return [compute_workload_snapshot(p, tasks, now) for p, tasks in zip(profiles, task_lists)]


# ============================================================
# ENDPOINTS
# ============================================================

@router.get("/dashboard")
async def get_dashboard(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    store: AnalyticsStore = Depends(get_analytics_store),
    cache: ResponseCache = Depends(get_response_cache),
):
    """Task and issue breakdowns for the caller's visible rows (cached 5 min)."""
    scope = resolve_scope(user)

    async def compute():
        tasks, issues = await asyncio.gather(store.scoped_tasks(scope), store.scoped_issues(scope))
        return compute_dashboard(tasks, issues, utcnow())

    return await _serve("dashboard", scope, compute, response, cache=cache, ttl=DASHBOARD_TTL)


@router.get("/task-completion-trend")
async def get_task_completion_trend(
    response: Response,
    days: Optional[str] = Query(None, description="Window length in days (1-365, default 30)"),
    user: CurrentUser = Depends(get_current_user),
    store: AnalyticsStore = Depends(get_analytics_store),
    cache: ResponseCache = Depends(get_response_cache),
):
    """Daily created/completed counts (cached 5 min per scope and window)."""
    scope = resolve_scope(user)
    window = normalize_trend_days(days)

    async def compute():
        now = utcnow()
        tasks = await store.tasks_created_between(scope, trend_start(window, now), now)
        return compute_completion_trend(tasks, window, now)

    return await _serve(
        "task-completion-trend", scope, compute, response,
        cache=cache, ttl=TREND_TTL, params={"days": window},
    )


@router.get("/user-workload")
async def get_user_workload(
    response: Response,
    user: CurrentUser = Depends(require_admin),
    store: AnalyticsStore = Depends(get_analytics_store),
    cache: ResponseCache = Depends(get_response_cache),
):
    """Per-profile task distribution (admin, cached 3 min)."""
    scope = resolve_scope(user)

    async def compute():
        return [s.to_workload_dict() for s in await _profile_snapshots(store)]

    return await _serve("user-workload", scope, compute, response, cache=cache, ttl=WORKLOAD_TTL)


@router.get("/issue-resolution-metrics")
async def get_issue_resolution_metrics(
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    store: AnalyticsStore = Depends(get_analytics_store),
):
    scope = resolve_scope(user)

    async def compute():
        return compute_issue_resolution(await store.scoped_issues(scope))

    return await _serve("issue-resolution-metrics", scope, compute, response)


@router.get("/employees-summary")
async def get_employees_summary(
    response: Response,
    user: CurrentUser = Depends(require_admin),
    store: AnalyticsStore = Depends(get_analytics_store),
):
    scope = resolve_scope(user)

    async def compute():
        return [s.to_employee_dict() for s in await _profile_snapshots(store)]

    return await _serve("employees-summary", scope, compute, response)


@router.get("/recommendations")
async def get_recommendations(
    response: Response,
    user: CurrentUser = Depends(require_admin),
    store: AnalyticsStore = Depends(get_analytics_store),
    policy: RecommendationPolicy = Depends(get_recommendation_policy),
):
    """Workload and performance recommendations from a fresh snapshot."""
    scope = resolve_scope(user)

    async def compute():
        snapshots = await _profile_snapshots(store)
        return [r.to_dict() for r in compute_recommendations(snapshots, policy)]

    return await _serve("recommendations", scope, compute, response)


@router.get("/late-tasks")
async def get_late_tasks(
    response: Response,
    user: CurrentUser = Depends(require_admin),
    store: AnalyticsStore = Depends(get_analytics_store),
):
    """Open tasks past their deadline, oldest deadline first."""
    scope = resolve_scope(user)

    async def compute():
        return [serialize_late_task(t) for t in await store.late_tasks(utcnow())]

    return await _serve("late-tasks", scope, compute, response)
