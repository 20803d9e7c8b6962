# analytics_store.py — Query facade over the task tracking store
# Every statement runs on its own short-lived session so per-profile
# sub-queries can be awaited concurrently. Store failures surface as
# DataAccessError; nothing is retried here.
from datetime import datetime
from typing import Any, List, Sequence

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from database import get_session_factory
from exceptions import DataAccessError
from logging_system import get_logger, LogCategory
from models import Task, Issue, Profile, TaskStatus
from scope import Scope


class AnalyticsStore:
    """Read-only queries used by the metric computers"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def _fetch(self, stmt, scalars: bool = True) -> Sequence[Any]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return result.scalars().all() if scalars else result.all()
        except SQLAlchemyError as exc:
            get_logger().error("Task store query failed", category=LogCategory.DATABASE, error=exc)
            raise DataAccessError(str(exc.__cause__ or exc)) from exc

    async def scoped_tasks(self, scope: Scope) -> List[Task]:
        stmt = select(Task).where(scope.task_predicate())
        return list(await self._fetch(stmt))

    async def scoped_issues(self, scope: Scope) -> List[Issue]:
        stmt = select(Issue).where(scope.issue_predicate())
        return list(await self._fetch(stmt))

    async def tasks_created_between(self, scope: Scope, start: datetime, end: datetime) -> List[Any]:
        """created_at/updated_at/status of scoped tasks created in [start, end]"""
        stmt = (
            select(Task.created_at, Task.updated_at, Task.status)
            .where(scope.task_predicate())
            .where(Task.created_at >= start, Task.created_at <= end)
        )
        return list(await self._fetch(stmt, scalars=False))

    async def list_profiles(self) -> List[Profile]:
        stmt = select(Profile).order_by(Profile.full_name, Profile.id)
        return list(await self._fetch(stmt))

    async def tasks_assigned_to(self, profile_id: str) -> List[Any]:
        stmt = (
            select(Task.status, Task.deadline, Task.completed_at, Task.late_completion)
            .where(Task.assigned_to == profile_id)
        )
        return list(await self._fetch(stmt, scalars=False))

    async def late_tasks(self, now: datetime) -> List[Task]:
        stmt = (
            select(Task)
            .options(selectinload(Task.assignee))
            .where(Task.deadline < now, Task.status != TaskStatus.COMPLETED)
            .order_by(Task.deadline.asc())
        )
        return list(await self._fetch(stmt))


def get_analytics_store(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AnalyticsStore:
    return AnalyticsStore(session_factory)
