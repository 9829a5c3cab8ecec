# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Business logic for the task lifecycle."""
from typing import Any, Dict, List, Union

from taskapi.core.errors import NotFound, ReferenceNotFound
from taskapi.core.logging import get_logger
from taskapi.metrics import TASKS_CREATED, TASKS_DELETED
from taskapi.repositories.task_repository import TaskRepository
from taskapi.services.query_engine import QueryDescriptor, QueryEngine
from taskapi.services.reference_sync import ReferenceSynchronizer, assignment_for
from taskapi.services.validation import optional_text, parse_deadline, require_bool, require_text

logger = get_logger(__name__)


class TaskService:
    def __init__(self, repo: TaskRepository, sync: ReferenceSynchronizer, query_engine: QueryEngine):
        self._repo = repo
        self._sync = sync
        self._query = query_engine

    def list_tasks(self, query: QueryDescriptor) -> Union[int, List[Dict[str, Any]]]:
        return self._query.run(self._repo, query)

    def get_task(self, task_id: str, projection: Any = None) -> Dict[str, Any]:
        task = self._repo.find_by_id(task_id, projection=projection)
        if task is None:
            raise NotFound("Task not found")
        return task

    def create_task(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        name = require_text(payload.get("name"), "name")
        deadline = parse_deadline(payload.get("deadline"))
        description = optional_text(payload.get("description"), "description")
        completed = payload.get("completed")
        completed = False if completed is None else require_bool(completed, "completed")
        assignee_id = payload.get("assignedUser") or None

        task = self._repo.insert({
            "name": name,
            "description": description,
            "deadline": deadline,
            "completed": completed,
            **assignment_for(None),
        })
        TASKS_CREATED.labels(assigned=str(bool(assignee_id)).lower()).inc()

        if assignee_id:
            try:
                user = self._sync.resolve_user(assignee_id)
            except ReferenceNotFound as exc:
                logger.warning("Task created unassigned id=%s unknown assignee=%s",
                               task["id"], assignee_id)
                raise ReferenceNotFound(
                    f"assignedUser not found; task {task['id']} was created unassigned",
                    data=task,
                ) from exc
            task = self._repo.save({"id": task["id"], **assignment_for(user)})
            if task is None:
                raise NotFound("Task not found")
            self._sync.task_saved(task, previous_assignee=None)

        logger.info("Task created id=%s assigned=%s", task["id"], task["assignedUser"])
        return task

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        task = self._repo.find_by_id(task_id)
        if task is None:
            raise NotFound("Task not found")

        updates: Dict[str, Any] = {}
        if "name" in changes:
            updates["name"] = require_text(changes["name"], "name")
        if "deadline" in changes:
            updates["deadline"] = parse_deadline(changes["deadline"])
        if "description" in changes:
            updates["description"] = optional_text(changes["description"], "description")
        if "completed" in changes:
            updates["completed"] = require_bool(changes["completed"], "completed")

        previous_assignee = task["assignedUser"]
        if "assignedUser" in changes:
            assignee_id = changes["assignedUser"]
            user = self._sync.resolve_user(assignee_id) if assignee_id else None
            updates.update(assignment_for(user))

        task = self._repo.save({"id": task_id, **updates})
        if task is None:
            raise NotFound("Task not found")
        self._sync.task_saved(task, previous_assignee)

        logger.info("Task updated id=%s fields=%s", task_id, sorted(updates))
        return task

    def delete_task(self, task_id: str) -> None:
        task = self._repo.find_by_id(task_id)
        if task is None:
            raise NotFound("Task not found")
        self._sync.task_deleted(task)
        self._repo.delete_one(task_id)
        TASKS_DELETED.inc()
        logger.info("Task deleted id=%s", task_id)
