# scope.py — Row visibility for analytics queries
# Admins see every row. Members see tasks they are assigned to or created,
# and issues they reported, were suggested for, or are assigned to.
from dataclasses import dataclass

from sqlalchemy import or_, true
from sqlalchemy.sql.elements import ColumnElement

from models import Task, Issue, ProfileRole


@dataclass(frozen=True)
class Scope:
    """Visibility of one caller, shared by every aggregate of a request."""
    user_id: str
    is_admin: bool

    @property
    def cache_partition(self) -> str:
        # Admin payloads are identical for every admin; member payloads are not
        return "admin" if self.is_admin else f"user:{self.user_id}"

    def task_predicate(self) -> ColumnElement:
        if self.is_admin:
            return true()
        return or_(Task.assigned_to == self.user_id, Task.created_by == self.user_id)

    def issue_predicate(self) -> ColumnElement:
        if self.is_admin:
            return true()
        return or_(
            Issue.reported_by == self.user_id,
            Issue.suggested_assignee_id == self.user_id,
            Issue.assigned_to == self.user_id,
        )


def resolve_scope(caller) -> Scope:
    """Build the scope for an authenticated caller (anything with id and role)."""
    role = caller.role.value if isinstance(caller.role, ProfileRole) else caller.role
    return Scope(user_id=str(caller.id), is_admin=role == ProfileRole.ADMIN.value)
