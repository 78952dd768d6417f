"""FastAPI application entrypoint for the knowledge intake service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Type

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from knowledge_intake.api.dependencies import build_session_manager
from knowledge_intake.api.middleware.logging import LoggingMiddleware
from knowledge_intake.api.routes import sources
from knowledge_intake.core.config import settings
from knowledge_intake.core.database import database_manager
from knowledge_intake.core.exceptions import (
    ApplicationError,
    DuplicateSourceError,
    IntakeError,
    InvalidTransitionError,
    MissingIdentityError,
    UnknownSourceError,
)
from knowledge_intake.core.observability import setup_tracing
from knowledge_intake.knowledge.ingestion.session import SessionManager
from knowledge_intake.knowledge.store import KnowledgeStoreUnavailable, MongoKnowledgeStore
from knowledge_intake.orchestration.publisher import notification_publisher

_INTAKE_ERROR_STATUS: Dict[Type[IntakeError], int] = {
    UnknownSourceError: status.HTTP_404_NOT_FOUND,
    DuplicateSourceError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    MissingIdentityError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def create_app(session_manager: Optional[SessionManager] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize shared resources on startup and tear them down on shutdown."""

        manager: SessionManager = app.state.session_manager
        if isinstance(manager.aggregator.store, MongoKnowledgeStore):
            await database_manager.initialize()
        try:
            yield
        finally:
            await manager.drain()
            await manager.transport.aclose()
            await notification_publisher.close()
            await database_manager.close()

    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager or build_session_manager()

    setup_tracing(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.include_router(sources.router, prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.exception_handler(ApplicationError)
    async def handle_application_error(_: Request, exc: ApplicationError):
        """Return standardized responses for application layer exceptions."""

        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(IntakeError)
    async def handle_intake_error(_: Request, exc: IntakeError):
        status_code = _INTAKE_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.error_code})

    @app.exception_handler(KnowledgeStoreUnavailable)
    async def handle_store_unavailable(_: Request, exc: KnowledgeStoreUnavailable):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc), "code": "store_unavailable"},
        )

    return app


app = create_app()
