# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""System endpoints: banner, health, readiness, metrics."""
from fastapi import APIRouter, HTTPException
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from taskapi.core.config import settings
from taskapi.core.dependencies import get_user_repo

router = APIRouter(tags=["System"])


@router.get("/")
def root():
    return {"message": f"{settings.SERVICE_NAME} is running", "data": {"version": settings.SERVICE_VERSION}}


@router.get("/health")
def health_check():
    return {"status": "ok", "service": settings.SERVICE_NAME}


@router.get("/health/ready")
def readiness_check():
    try:
        get_user_repo().verify_connection()
        return {"status": "ok", "database": "connected"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc}")


@router.get("/metrics")
def prometheus_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
