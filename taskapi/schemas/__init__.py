# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Pydantic request/response schemas.

Request bodies only check JSON types; required-field and cross-entity rules
live in the services so they hold for every caller. Field names follow the
document shape (camelCase).
"""
from typing import Any, List, Optional

from pydantic import BaseModel, field_validator


class UserCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    pendingTasks: Optional[List[str]] = None


class UserUpdate(UserCreate):
    pass


class TaskCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    deadline: Any = None
    completed: Optional[bool] = None
    assignedUser: Optional[str] = None

    @field_validator("assignedUser")
    @classmethod
    def blank_means_unassigned(cls, v: Optional[str]) -> Optional[str]:
        # null is the single "clear assignment" sentinel; blank strings collapse onto it
        if v is None:
            return None
        return v.strip() or None


class TaskUpdate(TaskCreate):
    pass


class Envelope(BaseModel):
    message: str
    data: Any = None
