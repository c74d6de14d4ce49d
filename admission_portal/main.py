import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from admission_portal.api.v1.applications.router import router as applications_router
from admission_portal.api.v1.auth.router import router as auth_router
from admission_portal.api.v1.contact.router import router as contact_router
from admission_portal.api.v1.files.router import router as files_router
from admission_portal.api.v1.sessions.router import router as sessions_router
from admission_portal.api.v1.students.router import router as students_router
from admission_portal.auth.services import ensure_super_admin
from admission_portal.core.config import settings
from admission_portal.db.session import AsyncSessionLocal, create_tables
from admission_portal.logging_config import logging_settings, setup_logging

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request under the `http` logger."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("http")

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/health":
            return await call_next(request)

        start_time = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.monotonic() - start_time) * 1000
            self.logger.error(
                "request failed",
                exc_info=exc,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            if logging_settings.ENV == "dev":
                raise
            return Response(content="Internal server error", status_code=500)

        duration_ms = (time.monotonic() - start_time) * 1000
        self.logger.info(
            "request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await create_tables()
    async with AsyncSessionLocal() as db:
        await ensure_super_admin(db)
    logger.info("Admission portal started", extra={"bundle_delivery": settings.bundle_delivery})
    yield
    logger.info("Admission portal stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="Admission Portal", lifespan=lifespan)

    # Content-Disposition must be readable by browser clients downloading bundles
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Routers
    app.include_router(auth_router)
    app.include_router(sessions_router)
    app.include_router(students_router)
    app.include_router(applications_router)
    app.include_router(files_router)
    app.include_router(contact_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
