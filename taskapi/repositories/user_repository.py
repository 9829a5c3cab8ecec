# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Data-access layer for users and their pendingTasks set."""
from typing import Any, Dict, Optional

from taskapi.models.tables import user_pending_tasks, users
from taskapi.repositories.document_repository import DocumentRepository
from taskapi.repositories.filters import SetField


def normalise_email(value: str) -> str:
    return value.strip().lower()


class UserRepository(DocumentRepository):
    table = users
    fields = {
        "id": users.c.id,
        "name": users.c.name,
        "email": users.c.email,
        "createdAt": users.c.created_at,
    }
    set_fields = {
        "pendingTasks": SetField(
            user_pending_tasks,
            owner=user_pending_tasks.c.user_id,
            member=user_pending_tasks.c.task_id,
            order=user_pending_tasks.c.seq,
        ),
    }
    normalizers = {"email": normalise_email}
    defaults = {"pendingTasks": []}
    conflict_messages = {
        "user_pending_task": "task is already pending for this user",
        "email": "email already exists",
    }

    def find_by_email(self, email: str, exclude_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        spec: Dict[str, Any] = {"email": email}
        if exclude_id:
            spec["id"] = {"$ne": exclude_id}
        return self.find_one(spec)
