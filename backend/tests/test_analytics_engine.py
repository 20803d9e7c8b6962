# tests/test_analytics_engine.py — Pure metric computers
from datetime import datetime, timedelta, timezone

import pytest

from analytics_engine import (
    WorkloadSnapshot, RecommendationPolicy, RecommendationType, Severity,
    compute_dashboard, compute_completion_trend, compute_workload_snapshot,
    compute_recommendations, compute_issue_resolution, serialize_late_task,
    normalize_trend_days, trend_start, week_start, percentage,
    TREND_DEFAULT_DAYS, TREND_MAX_DAYS,
)
from models import Profile, ProfileRole, TaskStatus, IssueStatus, Priority
from tests.conftest import make_task, make_issue

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)  # a Friday


def _snapshot(name: str, **counts) -> WorkloadSnapshot:
    return WorkloadSnapshot(profile_id=name.lower(), full_name=name, email=f"{name.lower()}@tracker.dev", **counts)


# ── Dashboard ────────────────────────────────────────────────────────────────

def test_dashboard_empty_scope_is_all_zero():
    data = compute_dashboard([], [], NOW)
    assert data["tasks"]["total"] == 0
    assert data["tasks"]["completionRate"] == 0
    assert data["tasks"]["byPriority"] == {"low": 0, "medium": 0, "high": 0, "critical": 0}
    assert data["tasks"]["byStatus"] == {"not_started": 0, "in_progress": 0, "completed": 0, "blocked": 0}
    assert data["issues"]["byStatus"] == {
        "pending_assignment": 0, "assigned": 0, "in_progress": 0, "resolved": 0, "closed": 0,
    }


def test_dashboard_buckets_partition_the_scoped_rows():
    tasks = [
        make_task(status=TaskStatus.COMPLETED, priority=Priority.LOW),
        make_task(status=TaskStatus.IN_PROGRESS, priority=Priority.HIGH),
        make_task(status=TaskStatus.IN_PROGRESS, priority=Priority.CRITICAL),
        make_task(status=TaskStatus.BLOCKED, priority=Priority.HIGH),
        make_task(status=TaskStatus.NOT_STARTED),
    ]
    data = compute_dashboard(tasks, [], NOW)["tasks"]

    assert data["total"] == 5
    assert sum(data["byStatus"].values()) == data["total"]
    assert sum(data["byPriority"].values()) == data["total"]
    assert data["completed"] == data["byStatus"]["completed"] == 1
    assert data["inProgress"] == data["byStatus"]["in_progress"] == 2
    assert data["byPriority"] == {"low": 1, "medium": 1, "high": 2, "critical": 1}
    assert data["completionRate"] == 20


def test_dashboard_overdue_ignores_completed_and_future_due_dates():
    tasks = [
        make_task(status=TaskStatus.IN_PROGRESS, due_date=NOW - timedelta(days=1)),
        make_task(status=TaskStatus.BLOCKED, due_date=NOW - timedelta(minutes=1)),
        make_task(status=TaskStatus.COMPLETED, due_date=NOW - timedelta(days=3)),
        make_task(status=TaskStatus.NOT_STARTED, due_date=NOW + timedelta(days=1)),
        make_task(status=TaskStatus.NOT_STARTED),
    ]
    assert compute_dashboard(tasks, [], NOW)["tasks"]["overdue"] == 2


def test_dashboard_overdue_treats_naive_timestamps_as_utc():
    naive_past = (NOW - timedelta(hours=1)).replace(tzinfo=None)
    tasks = [make_task(status=TaskStatus.IN_PROGRESS, due_date=naive_past)]
    assert compute_dashboard(tasks, [], NOW)["tasks"]["overdue"] == 1


def test_completion_rate_rounds_half_up():
    tasks = [make_task(status=TaskStatus.COMPLETED)] + [make_task() for _ in range(7)]
    # 1/8 = 12.5%
    assert compute_dashboard(tasks, [], NOW)["tasks"]["completionRate"] == 13


def test_percentage_bounds():
    assert percentage(0, 0) == 0
    assert percentage(3, 3) == 100
    assert percentage(2, 3) == 67


def test_dashboard_issue_breakdowns():
    issues = [
        make_issue(status=IssueStatus.PENDING_ASSIGNMENT, priority=Priority.HIGH),
        make_issue(status=IssueStatus.PENDING_ASSIGNMENT),
        make_issue(status=IssueStatus.ASSIGNED, priority=Priority.LOW),
        make_issue(status=IssueStatus.CLOSED, priority=Priority.CRITICAL),
    ]
    data = compute_dashboard([], issues, NOW)["issues"]
    assert data["total"] == 4
    assert data["pending"] == 2
    assert sum(data["byStatus"].values()) == 4
    assert data["byPriority"] == {"low": 1, "medium": 1, "high": 1, "critical": 1}


# ── Completion trend ─────────────────────────────────────────────────────────

def test_trend_two_day_example():
    day0 = datetime(2026, 10, 14, 9, 30, tzinfo=timezone.utc)
    day1 = datetime(2026, 10, 15, 17, 0, tzinfo=timezone.utc)
    tasks = [
        make_task(status=TaskStatus.COMPLETED, created_at=day0, updated_at=day0),
        make_task(status=TaskStatus.IN_PROGRESS, created_at=day1),
    ]
    assert compute_completion_trend(tasks, 2, NOW) == [
        {"date": "2026-10-14", "created": 1, "completed": 1},
        {"date": "2026-10-15", "created": 1, "completed": 0},
    ]


@pytest.mark.parametrize("days", [1, 7, 30, 90])
def test_trend_buckets_are_contiguous_and_exactly_days_long(days):
    trend = compute_completion_trend([], days, NOW)
    assert len(trend) == days
    dates = [datetime.fromisoformat(b["date"]).date() for b in trend]
    assert dates[0] == NOW.date() - timedelta(days=days)
    assert all(later - earlier == timedelta(days=1) for earlier, later in zip(dates, dates[1:]))
    assert all(b["created"] == 0 and b["completed"] == 0 for b in trend)


def test_trend_counts_completion_on_update_day():
    created = datetime(2026, 10, 10, 8, tzinfo=timezone.utc)
    finished = datetime(2026, 10, 13, 23, 59, tzinfo=timezone.utc)
    tasks = [make_task(status=TaskStatus.COMPLETED, created_at=created, updated_at=finished)]
    by_date = {b["date"]: b for b in compute_completion_trend(tasks, 7, NOW)}
    assert by_date["2026-10-10"] == {"date": "2026-10-10", "created": 1, "completed": 0}
    assert by_date["2026-10-13"]["completed"] == 1


def test_trend_does_not_count_non_completed_updates():
    day = datetime(2026, 10, 12, 10, tzinfo=timezone.utc)
    tasks = [make_task(status=TaskStatus.BLOCKED, created_at=day, updated_at=day)]
    by_date = {b["date"]: b for b in compute_completion_trend(tasks, 7, NOW)}
    assert by_date["2026-10-12"]["completed"] == 0


def test_trend_start_is_midnight_of_first_bucket():
    assert trend_start(3, NOW) == datetime(2026, 10, 13, tzinfo=timezone.utc)


@pytest.mark.parametrize("raw, expected", [
    (None, TREND_DEFAULT_DAYS),
    ("abc", TREND_DEFAULT_DAYS),
    ("", TREND_DEFAULT_DAYS),
    ("7.5", TREND_DEFAULT_DAYS),
    ("0", 1),
    ("-4", 1),
    ("7", 7),
    (" 14 ", 14),
    (14, 14),
    ("100000", TREND_MAX_DAYS),
])
def test_normalize_trend_days_policy(raw, expected):
    assert normalize_trend_days(raw) == expected


# ── Workload ─────────────────────────────────────────────────────────────────

def test_week_start_is_most_recent_sunday_midnight():
    assert week_start(NOW) == datetime(2026, 10, 11, tzinfo=timezone.utc)
    sunday_noon = datetime(2026, 10, 11, 12, tzinfo=timezone.utc)
    assert week_start(sunday_noon) == datetime(2026, 10, 11, tzinfo=timezone.utc)
    saturday = datetime(2026, 10, 17, 23, 59, tzinfo=timezone.utc)
    assert week_start(saturday) == datetime(2026, 10, 11, tzinfo=timezone.utc)


def test_workload_snapshot_partitions_assigned_tasks():
    profile = Profile(id="p1", full_name="Mia Member", email="mia@tracker.dev", role=ProfileRole.MEMBER, score=80)
    tasks = [
        make_task(status=TaskStatus.COMPLETED, completed_at=NOW - timedelta(days=1)),
        make_task(status=TaskStatus.COMPLETED, completed_at=NOW - timedelta(days=9), late_completion=True),
        make_task(status=TaskStatus.IN_PROGRESS, deadline=NOW - timedelta(days=2)),
        make_task(status=TaskStatus.BLOCKED, deadline=NOW + timedelta(days=2)),
        make_task(status=TaskStatus.NOT_STARTED),
    ]
    snap = compute_workload_snapshot(profile, tasks, NOW)

    assert snap.total_tasks == 5
    assert snap.completed_tasks == 2
    assert snap.in_progress_tasks == 1
    assert snap.active_tasks == 3
    assert snap.completed_this_week == 1
    assert snap.late_tasks == 1
    assert snap.overdue_tasks == 1
    assert snap.completion_rate == 40

    workload = snap.to_workload_dict()
    assert workload == {
        "userId": "p1",
        "userName": "Mia Member",
        "email": "mia@tracker.dev",
        "totalTasks": 5,
        "completedTasks": 2,
        "inProgressTasks": 1,
        "completionRate": 40,
    }
    employee = snap.to_employee_dict()
    assert employee["role"] == "member"
    assert employee["activeTasks"] == 3
    assert employee["overdueTasks"] == 1


def test_workload_snapshot_without_tasks():
    profile = Profile(id="p2", full_name="Otto", email="otto@tracker.dev", role=ProfileRole.MEMBER)
    snap = compute_workload_snapshot(profile, [], NOW)
    assert snap.total_tasks == 0
    assert snap.completion_rate == 0


# ── Recommendations ──────────────────────────────────────────────────────────

def test_rules_are_independent():
    snapshots = [_snapshot("Busy", active_tasks=15, score=50)]
    recs = compute_recommendations(snapshots)
    titles = [r.title for r in recs]
    assert titles == ["Excessive workload detected", "Low performance score"]
    assert all(r.affected_users == ["Busy"] for r in recs)


def test_rules_emit_in_order_and_skip_empty_matches():
    snapshots = [
        _snapshot("Idle", active_tasks=0),
        _snapshot("Late", active_tasks=5, overdue_tasks=3),
        _snapshot("Swamped", active_tasks=11, score=90),
        _snapshot("Weak", active_tasks=4, score=69),
    ]
    recs = compute_recommendations(snapshots)

    assert [(r.type, r.severity) for r in recs] == [
        (RecommendationType.WORKLOAD, Severity.WARNING),
        (RecommendationType.WORKLOAD, Severity.INFO),
        (RecommendationType.PERFORMANCE, Severity.CRITICAL),
        (RecommendationType.PERFORMANCE, Severity.WARNING),
    ]
    assert recs[0].affected_users == ["Swamped"]
    assert recs[1].affected_users == ["Idle"]
    assert recs[2].affected_users == ["Late (3 overdue)"]
    assert recs[3].affected_users == ["Weak"]


def test_thresholds_are_strict():
    snapshots = [_snapshot("Edge", active_tasks=10, score=70), _snapshot("Two", active_tasks=2)]
    assert compute_recommendations(snapshots) == []


def test_missing_score_defaults_to_100():
    recs = compute_recommendations([_snapshot("New", active_tasks=5, score=None)])
    assert recs == []


def test_custom_policy_changes_thresholds():
    policy = RecommendationPolicy(overload_active_tasks=3, underutilized_active_tasks=0, low_score=95)
    recs = compute_recommendations([_snapshot("Mid", active_tasks=4, score=90)], policy)
    assert [r.title for r in recs] == ["Excessive workload detected", "Low performance score"]
    assert "more than 3" in recs[0].description


def test_recommendation_serialisation():
    rec = compute_recommendations([_snapshot("Idle", active_tasks=1)])[0]
    assert rec.to_dict() == {
        "type": "workload",
        "severity": "info",
        "title": "Low workload",
        "description": rec.description,
        "affectedUsers": ["Idle"],
    }


# ── Issue resolution ─────────────────────────────────────────────────────────

def test_issue_resolution_metrics():
    created = NOW - timedelta(days=2)
    issues = [
        make_issue(status=IssueStatus.RESOLVED, created_at=created, resolved_at=created + timedelta(hours=10)),
        make_issue(status=IssueStatus.CLOSED, created_at=created, resolved_at=created + timedelta(hours=15)),
        make_issue(status=IssueStatus.CLOSED, created_at=created),
        make_issue(status=IssueStatus.ASSIGNED),
        make_issue(status=IssueStatus.IN_PROGRESS),
        make_issue(status=IssueStatus.PENDING_ASSIGNMENT),
    ]
    data = compute_issue_resolution(issues)
    assert data == {
        "total": 6,
        "resolved": 3,
        "pending": 1,
        "assigned": 2,
        "resolutionRate": 50,
        # (10h + 15h) / 2 = 12.5h
        "avgResolutionTimeHours": 13,
    }


def test_issue_resolution_empty():
    assert compute_issue_resolution([]) == {
        "total": 0, "resolved": 0, "pending": 0, "assigned": 0,
        "resolutionRate": 0, "avgResolutionTimeHours": 0,
    }


# ── Late tasks ───────────────────────────────────────────────────────────────

def test_serialize_late_task_with_and_without_assignee():
    assignee = Profile(id="p1", full_name="Mia Member", email="mia@tracker.dev")
    task = make_task(
        id="t1", title="Ship it", status=TaskStatus.IN_PROGRESS, priority=Priority.HIGH,
        assigned_to="p1", deadline=NOW - timedelta(days=1),
    )
    task.assignee = assignee
    data = serialize_late_task(task)
    assert data["id"] == "t1"
    assert data["status"] == "in_progress"
    assert data["priority"] == "high"
    assert data["deadline"] == (NOW - timedelta(days=1)).isoformat()
    assert data["assigned_to_profile"] == {"id": "p1", "full_name": "Mia Member", "email": "mia@tracker.dev"}

    orphan = make_task(title="Nobody", deadline=NOW - timedelta(days=1))
    assert serialize_late_task(orphan)["assigned_to_profile"] is None
