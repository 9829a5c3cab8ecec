# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Repository package: re-exports the collection repositories."""
from taskapi.repositories.task_repository import TaskRepository
from taskapi.repositories.user_repository import UserRepository

__all__ = ["TaskRepository", "UserRepository"]
