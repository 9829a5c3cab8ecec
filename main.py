# type: ignore
# pyright: reportGeneralTypeIssues=false
# pyright: reportOptionalMemberAccess=false
"""
Users & Tasks API
=================
CRUD over two collections whose references are kept in step:
a task's ``assignedUser``/``assignedUserName`` and a user's ``pendingTasks``.

Collections support ``where`` / ``sort`` / ``select`` / ``skip`` / ``limit`` /
``count`` query parameters. Every body is a ``{message, data}`` envelope.

Port: 3000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskapi.controllers import system_controller, task_controller, user_controller
from taskapi.core.config import settings
from taskapi.core.database import engine, init_db
from taskapi.core.errors import ServiceError
from taskapi.core.logging import get_logger
from taskapi.middleware import MetricsMiddleware, RequestIDMiddleware

logger = get_logger(settings.SERVICE_NAME)


# ── Lifespan ──────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    init_db(engine)
    logger.info("Service started version=%s", settings.SERVICE_VERSION)
    yield
    engine.dispose()
    logger.info("Shutting down, connection pool disposed")


# ── FastAPI App ───────────────────────────────────────────────────────────
app = FastAPI(
    title="Users & Tasks API",
    description="Users and tasks with synchronised assignment references.",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)


# ── Error envelopes ───────────────────────────────────────────────────────
def _envelope(status_code: int, message: str, data=None, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "data": data},
                        headers=headers)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("Service failure on %s %s: %s", request.method, request.url.path, exc.message)
    return _envelope(exc.status_code, exc.message, exc.data)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
        message = f"Invalid value for '{field}': {first.get('msg', 'invalid')}"
    else:
        message = "Invalid request"
    return _envelope(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    return _envelope(500, "Internal server error")


# ── Routers ───────────────────────────────────────────────────────────────
app.include_router(system_controller.router)
app.include_router(user_controller.router)
app.include_router(task_controller.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_level="info")
