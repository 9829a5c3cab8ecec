# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Table definitions: pure schema, NO FastAPI dependency.

``user_pending_tasks`` holds each user's ``pendingTasks`` set: one row per
(user, task) pair, unique on the pair, ordered by ``seq`` (insertion order).
"""

from sqlalchemy import (
    Boolean, Column, DateTime, Integer, MetaData, String, Table, Text, UniqueConstraint,
)

UNASSIGNED = "unassigned"

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    # stored lower-cased so the unique key is case-insensitive
    Column("email", String(320), nullable=False, unique=True),
    Column("created_at", DateTime, nullable=False),
)

tasks = Table(
    "tasks",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("deadline", DateTime, nullable=False),
    Column("completed", Boolean, nullable=False, default=False),
    Column("assigned_user", String(36), nullable=True, index=True),
    Column("assigned_user_name", String(255), nullable=False, default=UNASSIGNED),
    Column("created_at", DateTime, nullable=False),
)

user_pending_tasks = Table(
    "user_pending_tasks",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("task_id", String(36), nullable=False, index=True),
    UniqueConstraint("user_id", "task_id", name="uq_user_pending_task"),
)
