# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
FastAPI dependency injection: wire repositories and services.
"""
from taskapi.core.database import engine
from taskapi.repositories import TaskRepository, UserRepository
from taskapi.services.query_engine import QueryEngine
from taskapi.services.reference_sync import ReferenceSynchronizer
from taskapi.services.task_service import TaskService
from taskapi.services.user_service import UserService

# ── Singleton instances ──
_user_repo = UserRepository(engine)
_task_repo = TaskRepository(engine)
_query_engine = QueryEngine()
_sync = ReferenceSynchronizer(_user_repo, _task_repo)
_user_service = UserService(_user_repo, _sync, _query_engine)
_task_service = TaskService(_task_repo, _sync, _query_engine)


# ── FastAPI dependency functions ──
def get_user_repo() -> UserRepository:
    return _user_repo


def get_query_engine() -> QueryEngine:
    return _query_engine


def get_user_service() -> UserService:
    return _user_service


def get_task_service() -> TaskService:
    return _task_service
