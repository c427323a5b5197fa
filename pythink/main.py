# pythink/main.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pythink.core.config import settings
from pythink.core.errors import (
    AILimitExceededError,
    AIUnavailableError,
    ClassroomDataUnavailableError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PythinkError,
)
from pythink.core.logging_config import setup_logging
from pythink.db.init_db import init_db
from pythink.api.v1.endpoints import (
    auth,
    classrooms,
    conversations,
    dashboard,
    health,
    problems,
    submissions,
    users,
)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ERROR_STATUS = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AILimitExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
    (AIUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ClassroomDataUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


@app.exception_handler(PythinkError)
async def pythink_error_handler(request: Request, exc: PythinkError):
    for error_cls, code in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            return JSONResponse(status_code=code, content={"detail": str(exc)})

    logger.error(f"Unhandled service error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "internal error"},
    )


@app.on_event("startup")
def on_startup():
    setup_logging(settings.LOG_LEVEL)
    init_db()


app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/v1")
app.include_router(classrooms.router, prefix="/api/v1")
app.include_router(problems.router, prefix="/api/v1")
app.include_router(submissions.router, prefix="/api/v1")
app.include_router(conversations.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(health.router, prefix="/api/v1/health")
