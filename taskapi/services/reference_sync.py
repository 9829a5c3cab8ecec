# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Reference synchronisation between tasks and users.

A task's ``assignedUser``/``assignedUserName`` and a user's ``pendingTasks``
are duals:

* ``assignedUser is None``  <=>  ``assignedUserName == "unassigned"``
* ``assignedUserName`` is a cache of the assignee's ``name``
* a task id is in ``user.pendingTasks``  <=>  it is assigned to that user and not completed

Both entity services route every counterpart write through this module; no
other code touches the other collection. Each step is its own store call, so
a failure part-way leaves earlier steps applied. Such failures are logged as
reconciliation work and re-raised. Concurrent conflicting writes to the same
user/task pair can interleave between steps.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from taskapi.core.errors import ReferenceNotFound
from taskapi.core.logging import get_logger
from taskapi.metrics import SYNC_FAILURES, SYNC_UPDATES
from taskapi.models.tables import UNASSIGNED
from taskapi.repositories import TaskRepository, UserRepository

logger = get_logger(__name__)


def assignment_for(user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """The ``assignedUser``/``assignedUserName`` pair pointing at ``user`` (or nobody)."""
    if user is None:
        return {"assignedUser": None, "assignedUserName": UNASSIGNED}
    return {"assignedUser": user["id"], "assignedUserName": user["name"]}


class ReferenceSynchronizer:
    def __init__(self, user_repo: UserRepository, task_repo: TaskRepository):
        self._users = user_repo
        self._tasks = task_repo

    # ── Lookups ────────────────────────────────────────────────────────

    def resolve_user(self, user_id: Any) -> Dict[str, Any]:
        user = self._users.find_by_id(user_id) if isinstance(user_id, str) and user_id else None
        if user is None:
            raise ReferenceNotFound("assignedUser not found")
        return user

    def resolve_tasks(self, task_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Load tasks in the given order (deduplicated); every id must exist."""
        ids = list(dict.fromkeys(task_ids))
        if not ids:
            return []
        found = {t["id"]: t for t in self._tasks.find({"id": {"$in": ids}})}
        missing = [i for i in ids if i not in found]
        if missing:
            raise ReferenceNotFound(f"Task not found: {', '.join(missing)}")
        return [found[i] for i in ids]

    # ── Task side ──────────────────────────────────────────────────────

    def task_saved(self, task: Dict[str, Any], previous_assignee: Optional[str]) -> None:
        """Bring pendingTasks in line after a task was created or updated."""
        task_id = task["id"]
        current = task.get("assignedUser")
        with self._reconciling("task_saved", task=task_id, user=current):
            if previous_assignee and previous_assignee != current:
                self._pull(previous_assignee, task_id)
            if current:
                if task["completed"]:
                    self._pull(current, task_id)
                else:
                    self._add(current, task_id)

    def task_deleted(self, task: Dict[str, Any]) -> None:
        task_id = task["id"]
        with self._reconciling("task_deleted", task=task_id, user=task.get("assignedUser")):
            removed = self._users.update_many(
                {"pendingTasks": task_id}, {"$pull": {"pendingTasks": task_id}}
            )
            SYNC_UPDATES.labels(kind="pending_remove").inc(removed)

    # ── User side ──────────────────────────────────────────────────────

    def pending_ids(self, tasks: Iterable[Dict[str, Any]]) -> List[str]:
        """The subset of ``tasks`` that belongs in an assignee's pendingTasks."""
        return [t["id"] for t in tasks if not t["completed"]]

    def claim_tasks(self, user: Dict[str, Any], tasks: List[Dict[str, Any]]) -> None:
        """Point every task at ``user``, detaching it from any other assignee's pendingTasks."""
        with self._reconciling("claim_tasks", user=user["id"]):
            for task in tasks:
                previous = task.get("assignedUser")
                if previous and previous != user["id"]:
                    self._pull(previous, task["id"])
                if previous != user["id"] or task.get("assignedUserName") != user["name"]:
                    self._tasks.update_one({"id": task["id"]}, {"$set": assignment_for(user)})
                    SYNC_UPDATES.labels(kind="assign").inc()

    def release_tasks(self, user: Dict[str, Any], task_ids: List[str]) -> None:
        """Unassign the tasks that are still assigned to ``user``; reassigned ones are left alone."""
        if not task_ids:
            return
        with self._reconciling("release_tasks", user=user["id"]):
            released = self._tasks.update_many(
                {"id": {"$in": task_ids}, "assignedUser": user["id"]},
                {"$set": assignment_for(None)},
            )
            SYNC_UPDATES.labels(kind="unassign").inc(released)

    def replace_pending_tasks(self, user: Dict[str, Any], tasks: List[Dict[str, Any]]) -> List[str]:
        """Make ``tasks`` the user's full desired set; returns the pendingTasks to store."""
        old_ids = set(user.get("pendingTasks") or [])
        new_ids = {t["id"] for t in tasks}
        self.claim_tasks(user, [t for t in tasks if t["id"] not in old_ids
                                or t.get("assignedUser") != user["id"]])
        self.release_tasks(user, [i for i in user.get("pendingTasks") or [] if i not in new_ids])
        return self.pending_ids(tasks)

    def user_renamed(self, user: Dict[str, Any]) -> None:
        """Refresh the assignedUserName cache on every task assigned to ``user``."""
        with self._reconciling("user_renamed", user=user["id"]):
            refreshed = self._tasks.update_many(
                {"assignedUser": user["id"]}, {"$set": {"assignedUserName": user["name"]}}
            )
            SYNC_UPDATES.labels(kind="rename").inc(refreshed)

    def user_deleted(self, user: Dict[str, Any]) -> None:
        """Unassign the user's pending tasks and any completed task still pointing at it."""
        with self._reconciling("user_deleted", user=user["id"]):
            released = self._tasks.update_many(
                {"$or": [
                    {"id": {"$in": list(user.get("pendingTasks") or [])}},
                    {"assignedUser": user["id"]},
                ]},
                {"$set": assignment_for(None)},
            )
            SYNC_UPDATES.labels(kind="unassign").inc(released)

    # ── Private ────────────────────────────────────────────────────────

    def _add(self, user_id: str, task_id: str) -> None:
        if self._users.update_one({"id": user_id}, {"$addToSet": {"pendingTasks": task_id}}):
            SYNC_UPDATES.labels(kind="pending_add").inc()

    def _pull(self, user_id: str, task_id: str) -> None:
        if self._users.update_one({"id": user_id}, {"$pull": {"pendingTasks": task_id}}):
            SYNC_UPDATES.labels(kind="pending_remove").inc()

    @contextmanager
    def _reconciling(self, operation: str, **ids):
        try:
            yield
        except Exception:
            SYNC_FAILURES.labels(operation=operation).inc()
            logger.error(
                "Reference sync incomplete op=%s ids=%s; earlier steps were not rolled back "
                "and need reconciliation", operation, ids, exc_info=True,
            )
            raise
