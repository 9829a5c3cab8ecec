# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Controller: task CRUD plus collection queries."""
from typing import Optional

from fastapi import APIRouter, Depends
from starlette.responses import Response

from taskapi.core.config import settings
from taskapi.core.dependencies import get_query_engine, get_task_service
from taskapi.schemas import Envelope, TaskCreate, TaskUpdate
from taskapi.services.query_engine import QueryEngine, parse_projection_param
from taskapi.services.task_service import TaskService

router = APIRouter(prefix=f"{settings.API_PREFIX}/tasks", tags=["Tasks"])


@router.get("", response_model=Envelope)
def list_tasks(
    where: Optional[str] = None,
    sort: Optional[str] = None,
    select: Optional[str] = None,
    skip: Optional[str] = None,
    limit: Optional[str] = None,
    count: Optional[str] = None,
    service: TaskService = Depends(get_task_service),
    query_engine: QueryEngine = Depends(get_query_engine),
):
    query = query_engine.parse(where, sort, select, skip, limit, count)
    return Envelope(message="OK", data=service.list_tasks(query))


@router.post("", status_code=201, response_model=Envelope)
def create_task(body: TaskCreate, service: TaskService = Depends(get_task_service)):
    task = service.create_task(body.model_dump(exclude_unset=True))
    return Envelope(message="Created", data=task)


@router.get("/{task_id}", response_model=Envelope)
def get_task(task_id: str, select: Optional[str] = None,
             service: TaskService = Depends(get_task_service)):
    return Envelope(message="OK", data=service.get_task(task_id, parse_projection_param(select)))


@router.put("/{task_id}", response_model=Envelope)
@router.patch("/{task_id}", response_model=Envelope)
def update_task(task_id: str, body: TaskUpdate,
                service: TaskService = Depends(get_task_service)):
    task = service.update_task(task_id, body.model_dump(exclude_unset=True))
    return Envelope(message="OK", data=task)


@router.delete("/{task_id}", status_code=204)
def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    service.delete_task(task_id)
    return Response(status_code=204)
