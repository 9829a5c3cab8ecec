# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Data-access layer for tasks."""
from taskapi.models.tables import UNASSIGNED, tasks
from taskapi.repositories.document_repository import DocumentRepository


class TaskRepository(DocumentRepository):
    table = tasks
    fields = {
        "id": tasks.c.id,
        "name": tasks.c.name,
        "description": tasks.c.description,
        "deadline": tasks.c.deadline,
        "completed": tasks.c.completed,
        "assignedUser": tasks.c.assigned_user,
        "assignedUserName": tasks.c.assigned_user_name,
        "createdAt": tasks.c.created_at,
    }
    defaults = {
        "description": "",
        "completed": False,
        "assignedUser": None,
        "assignedUserName": UNASSIGNED,
    }
