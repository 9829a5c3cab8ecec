# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Controller: user CRUD plus collection queries."""
from typing import Optional

from fastapi import APIRouter, Depends
from starlette.responses import Response

from taskapi.core.config import settings
from taskapi.core.dependencies import get_query_engine, get_user_service
from taskapi.schemas import Envelope, UserCreate, UserUpdate
from taskapi.services.query_engine import QueryEngine, parse_projection_param
from taskapi.services.user_service import UserService

router = APIRouter(prefix=f"{settings.API_PREFIX}/users", tags=["Users"])


@router.get("", response_model=Envelope)
def list_users(
    where: Optional[str] = None,
    sort: Optional[str] = None,
    select: Optional[str] = None,
    skip: Optional[str] = None,
    limit: Optional[str] = None,
    count: Optional[str] = None,
    service: UserService = Depends(get_user_service),
    query_engine: QueryEngine = Depends(get_query_engine),
):
    query = query_engine.parse(where, sort, select, skip, limit, count)
    return Envelope(message="OK", data=service.list_users(query))


@router.post("", status_code=201, response_model=Envelope)
def create_user(body: UserCreate, service: UserService = Depends(get_user_service)):
    user = service.create_user(body.model_dump(exclude_unset=True))
    return Envelope(message="Created", data=user)


@router.get("/{user_id}", response_model=Envelope)
def get_user(user_id: str, select: Optional[str] = None,
             service: UserService = Depends(get_user_service)):
    return Envelope(message="OK", data=service.get_user(user_id, parse_projection_param(select)))


@router.put("/{user_id}", response_model=Envelope)
@router.patch("/{user_id}", response_model=Envelope)
def update_user(user_id: str, body: UserUpdate,
                service: UserService = Depends(get_user_service)):
    user = service.update_user(user_id, body.model_dump(exclude_unset=True))
    return Envelope(message="OK", data=user)


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: str, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return Response(status_code=204)
