# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Business logic for users and their pendingTasks."""
from typing import Any, Dict, List, Optional, Union

from taskapi.core.errors import ConflictError, NotFound
from taskapi.core.logging import get_logger
from taskapi.metrics import USERS_CREATED, USERS_DELETED
from taskapi.repositories.user_repository import UserRepository, normalise_email
from taskapi.services.query_engine import QueryDescriptor, QueryEngine
from taskapi.services.reference_sync import ReferenceSynchronizer
from taskapi.services.validation import require_id_list, require_text

logger = get_logger(__name__)


class UserService:
    def __init__(self, repo: UserRepository, sync: ReferenceSynchronizer, query_engine: QueryEngine):
        self._repo = repo
        self._sync = sync
        self._query = query_engine

    def list_users(self, query: QueryDescriptor) -> Union[int, List[Dict[str, Any]]]:
        return self._query.run(self._repo, query)

    def get_user(self, user_id: str, projection: Any = None) -> Dict[str, Any]:
        user = self._repo.find_by_id(user_id, projection=projection)
        if user is None:
            raise NotFound("User not found")
        return user

    def create_user(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        name = require_text(payload.get("name"), "name")
        email = normalise_email(require_text(payload.get("email"), "email"))
        if self._repo.find_by_email(email):
            raise ConflictError("email already exists")

        task_ids = payload.get("pendingTasks")
        tasks = self._sync.resolve_tasks(require_id_list(task_ids, "pendingTasks")) if task_ids else []

        user = self._repo.insert({
            "name": name,
            "email": email,
            "pendingTasks": self._sync.pending_ids(tasks),
        })
        self._sync.claim_tasks(user, tasks)
        USERS_CREATED.inc()
        logger.info("User created id=%s pending=%d", user["id"], len(user["pendingTasks"]))
        return user

    def update_user(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        user = self._repo.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")

        updates: Dict[str, Any] = {}
        if "name" in changes:
            updates["name"] = require_text(changes["name"], "name")
        if "email" in changes:
            email = normalise_email(require_text(changes["email"], "email"))
            if self._repo.find_by_email(email, exclude_id=user_id):
                raise ConflictError("email already exists")
            updates["email"] = email
        tasks: Optional[List[Dict[str, Any]]] = None
        # null pendingTasks leaves the set untouched
        if changes.get("pendingTasks") is not None:
            tasks = self._sync.resolve_tasks(require_id_list(changes["pendingTasks"], "pendingTasks"))

        renamed = "name" in updates and updates["name"] != user["name"]
        user.update(updates)
        if tasks is not None:
            updates["pendingTasks"] = self._sync.replace_pending_tasks(user, tasks)

        user = self._repo.save({"id": user_id, **updates})
        if user is None:
            raise NotFound("User not found")
        if renamed:
            self._sync.user_renamed(user)

        logger.info("User updated id=%s fields=%s", user_id, sorted(updates))
        return user

    def delete_user(self, user_id: str) -> None:
        user = self._repo.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        self._sync.user_deleted(user)
        self._repo.delete_one(user_id)
        USERS_DELETED.inc()
        logger.info("User deleted id=%s released=%d", user_id, len(user["pendingTasks"]))
