#!/usr/bin/env python3
"""
Task Analytics — Sample Data Generator
Generates a task tracker population (profiles, tasks, issues) that exercises
every analytics route: overloaded and idle members, overdue and late tasks,
resolved and pending issues.

Usage:
    python scripts/generate-sample-data.py
    python scripts/generate-sample-data.py --members 40 --tasks 600 --output sample-data.json
    python scripts/generate-sample-data.py --seed-db      # insert into DATABASE_URL
"""

import asyncio
import json
import random
import uuid
import argparse
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional


# ── Configuration ───────────────────────────────────────────

TASK_STATUSES = ["not_started", "in_progress", "completed", "blocked"]
TASK_STATUS_WEIGHTS = [3, 3, 5, 1]
ISSUE_STATUSES = ["pending_assignment", "assigned", "in_progress", "resolved", "closed"]
PRIORITIES = ["low", "medium", "high", "critical"]
PRIORITY_WEIGHTS = [3, 5, 3, 1]

JOB_DESCRIPTIONS = [
    "Backend developer", "Frontend developer", "QA engineer", "Designer",
    "DevOps engineer", "Data analyst", "Support specialist",
]
TASK_VERBS = ["Implement", "Fix", "Review", "Document", "Refactor", "Test", "Deploy"]
TASK_OBJECTS = [
    "login flow", "billing export", "search index", "notification emails",
    "onboarding checklist", "audit report", "mobile layout", "API pagination",
]
ISSUE_TITLES = [
    "Page fails to load", "Export is missing rows", "Slow dashboard",
    "Wrong totals in report", "Email not delivered", "Permission denied on upload",
]

FIRST_NAMES = ["Alex", "Jordan", "Taylor", "Morgan", "Casey", "Riley", "Quinn", "Avery", "Sage", "River",
               "Kai", "Rowan", "Phoenix", "Skyler", "Dakota", "Reese", "Finley", "Harper", "Emery", "Blake"]
LAST_NAMES = ["Chen", "Patel", "Kim", "Santos", "Müller", "Okafor", "Tanaka", "Johansson", "Silva", "Kowalski",
              "Nguyen", "Andersen", "Dubois", "Rossi", "Yamamoto", "Petrov", "Larsson", "Fernandez", "Ali", "Park"]


class SampleDataGenerator:
    """Generates a reproducible task tracker population."""

    def __init__(self, seed: int = 42, now: Optional[datetime] = None):
        self.seed = seed
        self.rng = random.Random(seed)
        self.now = now or datetime.now(timezone.utc)

    def _uuid(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    def _past(self, max_days: int) -> datetime:
        return self.now - timedelta(days=self.rng.randint(0, max_days), hours=self.rng.randint(0, 23))

    # ── Generators ──────────────────────────────────────────

    def generate_profile(self, index: int, role: str = "member") -> dict:
        first = self.rng.choice(FIRST_NAMES)
        last = self.rng.choice(LAST_NAMES)
        return {
            "id": self._uuid(),
            "full_name": f"{first} {last}",
            "email": f"{first.lower()}.{last.lower()}{index}@tracker.dev",
            "role": role,
            "job_description": self.rng.choice(JOB_DESCRIPTIONS),
            # Some profiles have never been scored
            "score": self.rng.randint(40, 100) if self.rng.random() > 0.15 else None,
            "weekly_hours": self.rng.choice([20, 30, 40, 40, 40]),
            "avatar_url": None,
            "created_at": self._past(365),
        }

    def generate_task(self, assignee_id: Optional[str], creator_id: str) -> dict:
        status = self.rng.choices(TASK_STATUSES, weights=TASK_STATUS_WEIGHTS)[0]
        created_at = self._past(90)
        deadline = created_at + timedelta(days=self.rng.randint(1, 30)) if self.rng.random() > 0.2 else None
        due_date = deadline or (created_at + timedelta(days=self.rng.randint(1, 30)))
        completed_at = None
        updated_at = created_at
        late = False
        if status == "completed":
            completed_at = min(created_at + timedelta(days=self.rng.randint(0, 20), hours=self.rng.randint(1, 12)), self.now)
            updated_at = completed_at
            late = deadline is not None and completed_at > deadline
        return {
            "id": self._uuid(),
            "title": f"{self.rng.choice(TASK_VERBS)} {self.rng.choice(TASK_OBJECTS)}",
            "description": None,
            "status": status,
            "priority": self.rng.choices(PRIORITIES, weights=PRIORITY_WEIGHTS)[0],
            "assigned_to": assignee_id,
            "created_by": creator_id,
            "due_date": due_date,
            "deadline": deadline,
            "completed_at": completed_at,
            "late_completion": late,
            "created_at": created_at,
            "updated_at": updated_at,
        }

    def generate_issue(self, reporter_id: str, member_ids: List[str]) -> dict:
        status = self.rng.choice(ISSUE_STATUSES)
        created_at = self._past(60)
        assigned_to = self.rng.choice(member_ids) if status != "pending_assignment" else None
        resolved_at = None
        if status in ("resolved", "closed"):
            resolved_at = min(created_at + timedelta(hours=self.rng.randint(1, 120)), self.now)
        return {
            "id": self._uuid(),
            "title": self.rng.choice(ISSUE_TITLES),
            "description": None,
            "status": status,
            "priority": self.rng.choices(PRIORITIES, weights=PRIORITY_WEIGHTS)[0],
            "reported_by": reporter_id,
            "suggested_assignee_id": self.rng.choice(member_ids) if self.rng.random() > 0.5 else None,
            "assigned_to": assigned_to,
            "created_at": created_at,
            "resolved_at": resolved_at,
        }

    # ── Main Generator ──────────────────────────────────────

    def generate_all(self, counts: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        c = counts or {"admins": 2, "members": 20, "tasks": 300, "issues": 80}

        admins = [self.generate_profile(i, role="admin") for i in range(c["admins"])]
        members = [self.generate_profile(c["admins"] + i) for i in range(c["members"])]
        profiles = admins + members
        member_ids = [m["id"] for m in members] or [a["id"] for a in admins]

        # Skew assignments so some members end up overloaded and some idle
        weights = [self.rng.choice([1, 1, 2, 6]) for _ in member_ids]
        tasks = []
        for _ in range(c["tasks"]):
            assignee = self.rng.choices(member_ids, weights=weights)[0] if self.rng.random() > 0.05 else None
            creator = self.rng.choice(profiles)["id"]
            tasks.append(self.generate_task(assignee, creator))

        issues = [self.generate_issue(self.rng.choice(profiles)["id"], member_ids) for _ in range(c["issues"])]

        return {
            "generated_at": self.now.isoformat(),
            "generator": "Task Analytics Sample Data Generator v1.0",
            "seed": self.seed,
            "counts": {"profiles": len(profiles), "tasks": len(tasks), "issues": len(issues)},
            "data": {"profiles": profiles, "tasks": tasks, "issues": issues},
        }


# ── Database seeding ────────────────────────────────────────

async def seed_database(data: Dict[str, Any]) -> None:
    """Insert the generated rows into DATABASE_URL (tables are created if missing)."""
    from database import init_db, close_db, get_db_context
    from models import Profile, Task, Issue, ProfileRole, TaskStatus, IssueStatus, Priority

    await init_db()
    async with get_db_context() as session:
        for row in data["data"]["profiles"]:
            session.add(Profile(**{**row, "role": ProfileRole(row["role"])}))
        await session.flush()
        for row in data["data"]["tasks"]:
            session.add(Task(**{**row, "status": TaskStatus(row["status"]), "priority": Priority(row["priority"])}))
        for row in data["data"]["issues"]:
            session.add(Issue(**{**row, "status": IssueStatus(row["status"]), "priority": Priority(row["priority"])}))
    await close_db()


# ── CLI ─────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Task Analytics Sample Data Generator")
    parser.add_argument("--admins", type=int, default=2, help="Number of admin profiles")
    parser.add_argument("--members", type=int, default=20, help="Number of member profiles")
    parser.add_argument("--tasks", type=int, default=300, help="Number of tasks")
    parser.add_argument("--issues", type=int, default=80, help="Number of issues")
    parser.add_argument("--output", type=str, default="sample-data.json", help="Output file")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--seed-db", action="store_true", help="Insert into DATABASE_URL instead of writing JSON")
    args = parser.parse_args()

    generator = SampleDataGenerator(seed=args.seed)
    data = generator.generate_all({
        "admins": args.admins,
        "members": args.members,
        "tasks": args.tasks,
        "issues": args.issues,
    })
    counts = data["counts"]

    if args.seed_db:
        asyncio.run(seed_database(data))
        print("✅ Sample data inserted into DATABASE_URL")
    else:
        with open(args.output, "w") as f:
            json.dump(data, f, indent=2, default=str)
        print(f"✅ Sample data generated: {args.output}")

    print(f"   Profiles: {counts['profiles']}")
    print(f"   Tasks: {counts['tasks']}")
    print(f"   Issues: {counts['issues']}")
    print(f"   Total Records: {sum(counts.values())}")


if __name__ == "__main__":
    main()
