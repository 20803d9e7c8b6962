# models.py — Read models for the task tracking store
# The analytics service never writes these tables; they are owned by the
# task/issue tracker. Declared here so the query facade can build statements:
# - Profiles (admin / member roles, performance score)
# - Tasks (status, priority, due date + deadline, completion flags)
# - Issues (reporting, suggested assignee, resolution timestamps)

import uuid
from datetime import datetime, timezone
from typing import Optional
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a stored timestamp to aware UTC (SQLite hands back naive values)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================
# ENUMS
# ============================================================

class ProfileRole(str, PyEnum):
    ADMIN = "admin"
    MEMBER = "member"


class TaskStatus(str, PyEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class IssueStatus(str, PyEnum):
    PENDING_ASSIGNMENT = "pending_assignment"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============================================================
# PROFILES
# ============================================================

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=new_uuid)
    full_name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(SQLEnum(ProfileRole), default=ProfileRole.MEMBER, nullable=False, index=True)
    job_description = Column(Text, nullable=True)
    score = Column(Integer, nullable=True)  # 0-100, treated as 100 when absent
    weekly_hours = Column(Integer, nullable=True)
    avatar_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assigned_tasks = relationship("Task", foreign_keys="Task.assigned_to", back_populates="assignee")


# ============================================================
# TASKS
# ============================================================

class Task(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False, default="")
    description = Column(Text, nullable=True)
    status = Column(SQLEnum(TaskStatus), default=TaskStatus.NOT_STARTED, nullable=False, index=True)
    priority = Column(SQLEnum(Priority), default=Priority.MEDIUM, nullable=False, index=True)
    assigned_to = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    created_by = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)  # set iff status == completed
    late_completion = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assignee = relationship("Profile", foreign_keys=[assigned_to], back_populates="assigned_tasks")

    __table_args__ = (
        Index("idx_task_assignee_status", "assigned_to", "status"),
    )


# ============================================================
# ISSUES
# ============================================================

class Issue(Base):
    __tablename__ = "issues"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False, default="")
    description = Column(Text, nullable=True)
    status = Column(SQLEnum(IssueStatus), default=IssueStatus.PENDING_ASSIGNMENT, nullable=False, index=True)
    priority = Column(SQLEnum(Priority), default=Priority.MEDIUM, nullable=False)
    reported_by = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    suggested_assignee_id = Column(String, ForeignKey("profiles.id"), nullable=True)
    assigned_to = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)  # only when resolved/closed
