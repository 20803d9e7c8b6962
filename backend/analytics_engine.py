"""
Task Analytics — Aggregation Engine

Pure computations over rows fetched by the query facade: dashboard breakdowns,
daily completion trend, per-profile workload snapshots, rule-based
recommendations, issue resolution metrics and late-task serialisation.

Nothing here performs I/O. Rows may be ORM instances or column-selected Row
objects; only attribute access is used.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence
import math
import os

from models import TaskStatus, IssueStatus, Priority, as_utc


DEFAULT_SCORE = 100
TREND_DEFAULT_DAYS = int(os.getenv("TREND_DEFAULT_DAYS", "30"))
TREND_MAX_DAYS = int(os.getenv("TREND_MAX_DAYS", "365"))


class RecommendationType(str, Enum):
    WORKLOAD = "workload"
    PERFORMANCE = "performance"
    SUGGESTION = "suggestion"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# ============================================================
# HELPERS
# ============================================================

def _value(field_value: Any) -> Any:
    return field_value.value if isinstance(field_value, Enum) else field_value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    """Rounded percentage; 0 when the whole is empty."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def _utc_day(value: Optional[datetime]) -> Optional[date]:
    value = as_utc(value)
    return value.date() if value else None


def _is_past(value: Optional[datetime], now: datetime) -> bool:
    value = as_utc(value)
    return value is not None and value < now


def week_start(now: datetime) -> datetime:
    """Most recent Sunday 00:00 UTC (today when today is Sunday)."""
    now = as_utc(now)
    days_since_sunday = (now.weekday() + 1) % 7
    start = now - timedelta(days=days_since_sunday)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


# ============================================================
# DASHBOARD
# ============================================================

def _breakdown(rows: Sequence[Any], attr: str, buckets: Iterable[Enum]) -> Dict[str, int]:
    counts = Counter(_value(getattr(row, attr)) for row in rows)
    return {bucket.value: counts.get(bucket.value, 0) for bucket in buckets}


def compute_dashboard(tasks: Sequence[Any], issues: Sequence[Any], now: datetime) -> Dict[str, Any]:
    """Task and issue breakdowns over one scoped row set per table.

    Every bucket is derived from the same rows, so each breakdown sums to
    its total.
    """
    now = as_utc(now)
    by_status = _breakdown(tasks, "status", TaskStatus)
    total = len(tasks)
    completed = by_status[TaskStatus.COMPLETED.value]
    overdue = sum(
        1 for t in tasks
        if _value(t.status) != TaskStatus.COMPLETED.value and _is_past(t.due_date, now)
    )

    issue_by_status = _breakdown(issues, "status", IssueStatus)

    return {
        "tasks": {
            "total": total,
            "completed": completed,
            "inProgress": by_status[TaskStatus.IN_PROGRESS.value],
            "overdue": overdue,
            "completionRate": percentage(completed, total),
            "byPriority": _breakdown(tasks, "priority", Priority),
            "byStatus": by_status,
        },
        "issues": {
            "total": len(issues),
            "pending": issue_by_status[IssueStatus.PENDING_ASSIGNMENT.value],
            "byPriority": _breakdown(issues, "priority", Priority),
            "byStatus": issue_by_status,
        },
    }


# ============================================================
# COMPLETION TREND
# ============================================================

def normalize_trend_days(raw: Any) -> int:
    """Clamp the requested window to [1, TREND_MAX_DAYS].

    Missing or non-numeric input falls back to TREND_DEFAULT_DAYS.
    """
    if raw is None or isinstance(raw, bool):
        return TREND_DEFAULT_DAYS
    try:
        days = int(str(raw).strip())
    except ValueError:
        return TREND_DEFAULT_DAYS
    return max(1, min(days, TREND_MAX_DAYS))


def trend_start(days: int, now: datetime) -> datetime:
    """Midnight UTC of the first bucket day (today minus `days`)."""
    first_day = as_utc(now).date() - timedelta(days=days)
    return datetime(first_day.year, first_day.month, first_day.day, tzinfo=timezone.utc)


def compute_completion_trend(tasks: Sequence[Any], days: int, now: datetime) -> List[Dict[str, Any]]:
    """Exactly `days` contiguous daily buckets starting at today minus `days`."""
    first_day = trend_start(days, now).date()
    created = Counter(_utc_day(t.created_at) for t in tasks)
    completed = Counter(
        _utc_day(t.updated_at) for t in tasks
        if _value(t.status) == TaskStatus.COMPLETED.value and t.updated_at is not None
    )

    trend = []
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        trend.append({
            "date": day.isoformat(),
            "created": created.get(day, 0),
            "completed": completed.get(day, 0),
        })
    return trend


# ============================================================
# WORKLOAD / EMPLOYEE SUMMARY
# ============================================================

@dataclass
class WorkloadSnapshot:
    """Task counts for one profile, all taken from a single fetch"""
    profile_id: str
    full_name: str
    email: str
    role: Optional[str] = None
    job_description: Optional[str] = None
    score: Optional[int] = None
    weekly_hours: Optional[int] = None
    avatar_url: Optional[str] = None
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    active_tasks: int = 0
    completed_this_week: int = 0
    late_tasks: int = 0
    overdue_tasks: int = 0

    @property
    def completion_rate(self) -> int:
        return percentage(self.completed_tasks, self.total_tasks)

    @property
    def effective_score(self) -> int:
        return self.score if self.score is not None else DEFAULT_SCORE

    def to_workload_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.profile_id,
            "userName": self.full_name,
            "email": self.email,
            "totalTasks": self.total_tasks,
            "completedTasks": self.completed_tasks,
            "inProgressTasks": self.in_progress_tasks,
            "completionRate": self.completion_rate,
        }

    def to_employee_dict(self) -> Dict[str, Any]:
        return {
            "id": self.profile_id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "job_description": self.job_description,
            "score": self.score,
            "weekly_hours": self.weekly_hours,
            "avatar_url": self.avatar_url,
            "activeTasks": self.active_tasks,
            "completedThisWeek": self.completed_this_week,
            "lateTasks": self.late_tasks,
            "overdueTasks": self.overdue_tasks,
        }


def compute_workload_snapshot(profile: Any, tasks: Sequence[Any], now: datetime) -> WorkloadSnapshot:
    now = as_utc(now)
    since = week_start(now)
    snapshot = WorkloadSnapshot(
        profile_id=profile.id,
        full_name=profile.full_name or "",
        email=profile.email,
        role=_value(profile.role),
        job_description=profile.job_description,
        score=profile.score,
        weekly_hours=profile.weekly_hours,
        avatar_url=profile.avatar_url,
        total_tasks=len(tasks),
    )
    for task in tasks:
        status = _value(task.status)
        if status == TaskStatus.COMPLETED.value:
            snapshot.completed_tasks += 1
            completed_at = as_utc(task.completed_at)
            if completed_at is not None and completed_at >= since:
                snapshot.completed_this_week += 1
        else:
            snapshot.active_tasks += 1
            if _is_past(task.deadline, now):
                snapshot.overdue_tasks += 1
        if status == TaskStatus.IN_PROGRESS.value:
            snapshot.in_progress_tasks += 1
        if task.late_completion:
            snapshot.late_tasks += 1
    return snapshot


# ============================================================
# RECOMMENDATIONS
# ============================================================

@dataclass(frozen=True)
class RecommendationPolicy:
    """Thresholds for the recommendation rules"""
    overload_active_tasks: int = 10
    underutilized_active_tasks: int = 2
    low_score: int = 70

    @classmethod
    def from_env(cls) -> "RecommendationPolicy":
        return cls(
            overload_active_tasks=int(os.getenv("RECO_OVERLOAD_ACTIVE_TASKS", "10")),
            underutilized_active_tasks=int(os.getenv("RECO_UNDERUTILIZED_ACTIVE_TASKS", "2")),
            low_score=int(os.getenv("RECO_LOW_SCORE", "70")),
        )


@dataclass
class Recommendation:
    type: RecommendationType
    severity: Severity
    title: str
    description: str
    affected_users: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "affectedUsers": self.affected_users,
        }


def compute_recommendations(
    snapshots: Sequence[WorkloadSnapshot],
    policy: Optional[RecommendationPolicy] = None,
) -> List[Recommendation]:
    """Apply the rules in order against one snapshot set.

    Rules are independent: a profile can show up in several recommendations,
    and a rule with no matching profile produces nothing.
    """
    policy = policy or RecommendationPolicy()
    recommendations: List[Recommendation] = []

    overloaded = [s for s in snapshots if s.active_tasks > policy.overload_active_tasks]
    if overloaded:
        recommendations.append(Recommendation(
            type=RecommendationType.WORKLOAD,
            severity=Severity.WARNING,
            title="Excessive workload detected",
            description=(
                f"{len(overloaded)} employee(s) have more than {policy.overload_active_tasks} "
                "active tasks. Consider rebalancing assignments."
            ),
            affected_users=[s.full_name for s in overloaded],
        ))

    underutilized = [s for s in snapshots if s.active_tasks < policy.underutilized_active_tasks]
    if underutilized:
        recommendations.append(Recommendation(
            type=RecommendationType.WORKLOAD,
            severity=Severity.INFO,
            title="Low workload",
            description=(
                f"{len(underutilized)} employee(s) have fewer than {policy.underutilized_active_tasks} "
                "active tasks. New work can be assigned to them."
            ),
            affected_users=[s.full_name for s in underutilized],
        ))

    with_overdue = [s for s in snapshots if s.overdue_tasks > 0]
    if with_overdue:
        recommendations.append(Recommendation(
            type=RecommendationType.PERFORMANCE,
            severity=Severity.CRITICAL,
            title="Overdue tasks",
            description=(
                f"{len(with_overdue)} employee(s) have overdue tasks. Immediate follow-up may be needed."
            ),
            affected_users=[f"{s.full_name} ({s.overdue_tasks} overdue)" for s in with_overdue],
        ))

    low_score = [s for s in snapshots if s.effective_score < policy.low_score]
    if low_score:
        recommendations.append(Recommendation(
            type=RecommendationType.PERFORMANCE,
            severity=Severity.WARNING,
            title="Low performance score",
            description=f"{len(low_score)} employee(s) have a performance score below {policy.low_score}.",
            affected_users=[s.full_name for s in low_score],
        ))

    return recommendations


# ============================================================
# ISSUE RESOLUTION
# ============================================================

_RESOLVED = {IssueStatus.RESOLVED.value, IssueStatus.CLOSED.value}
_ASSIGNED = {IssueStatus.ASSIGNED.value, IssueStatus.IN_PROGRESS.value}


def compute_issue_resolution(issues: Sequence[Any]) -> Dict[str, Any]:
    total = len(issues)
    statuses = [_value(i.status) for i in issues]
    resolved = sum(1 for s in statuses if s in _RESOLVED)

    durations = [
        (as_utc(i.resolved_at) - as_utc(i.created_at)).total_seconds()
        for i in issues
        if _value(i.status) in _RESOLVED and i.resolved_at is not None and i.created_at is not None
    ]
    avg_hours = round_half_up(sum(durations) / len(durations) / 3600) if durations else 0

    return {
        "total": total,
        "resolved": resolved,
        "pending": statuses.count(IssueStatus.PENDING_ASSIGNMENT.value),
        "assigned": sum(1 for s in statuses if s in _ASSIGNED),
        "resolutionRate": percentage(resolved, total),
        "avgResolutionTimeHours": avg_hours,
    }


# ============================================================
# LATE TASKS
# ============================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def serialize_late_task(task: Any) -> Dict[str, Any]:
    assignee = task.assignee
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": _value(task.status),
        "priority": _value(task.priority),
        "assigned_to": task.assigned_to,
        "created_by": task.created_by,
        "due_date": _iso(task.due_date),
        "deadline": _iso(task.deadline),
        "completed_at": _iso(task.completed_at),
        "late_completion": bool(task.late_completion),
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
        "assigned_to_profile": (
            {"id": assignee.id, "full_name": assignee.full_name, "email": assignee.email}
            if assignee is not None else None
        ),
    }
