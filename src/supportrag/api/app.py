"""FastAPI application exposing the support assistant."""

from __future__ import annotations

import traceback
from pathlib import Path
from typing import Optional, Union
from uuid import uuid4

from fastapi import Body, Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from supportrag.api.schemas import (
    ChatRequest,
    ChatResponse,
    IndexStatsResponse,
    IngestRequest,
    IngestResponse,
)
from supportrag.config import ConfigurationError, Settings, get_settings
from supportrag.dependencies import AppDependencies, LazyDependencies
from supportrag.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from supportrag.services.query import ConversationSession, SessionStore

Dependencies = Union[AppDependencies, LazyDependencies]

_MISSING_MESSAGE = {
    "type": "error",
    "answer": "No message provided",
    "error": "Message is required and must be a string",
}


def create_app(*, settings: Settings | None = None, dependencies: Dependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or LazyDependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="Support Assistant API", version="0.1.0")
    app.state.dependencies = deps
    app.state.sessions = SessionStore()

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            error = f"Endpoint not found: {request.method} {request.url.path}"
        elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            error = f"Method {request.method} not allowed"
        else:
            error = str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"type": "error", "error": error})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        if request.url.path == "/api/chat":
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_MISSING_MESSAGE)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"type": "error", "error": "Invalid request body"},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"type": "error", "answer": "Server error", "error": str(exc) or "Internal Server Error"},
        )

    def get_dependencies(request: Request) -> Dependencies:
        return request.app.state.dependencies

    def get_session(
        request: Request,
        session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
    ) -> ConversationSession | None:
        if not session_id:
            return None
        return request.app.state.sessions.get(session_id)

    @app.post("/api/chat", response_model=ChatResponse, response_model_exclude_none=True)
    def chat(
        payload: Optional[ChatRequest] = Body(default=None),
        dep: Dependencies = Depends(get_dependencies),
        session: ConversationSession | None = Depends(get_session),
    ) -> JSONResponse:
        message = payload.message if payload is not None else None
        if not message or not message.strip():
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_MISSING_MESSAGE)
        logger.info("chat.received", message=message[:50], session=session.session_id if session else None)
        try:
            pipeline = dep.pipeline
        except ConfigurationError as exc:
            logger.error("chat.configuration_error", missing=exc.missing)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"type": "error", "answer": "Server configuration error", "error": str(exc)},
            )
        result = pipeline.resolve(message, session)
        body = ChatResponse.from_result(result, include_detail=settings.is_dev)
        code = status.HTTP_500_INTERNAL_SERVER_ERROR if result.type == "error" else status.HTTP_200_OK
        return JSONResponse(status_code=code, content=body.model_dump(exclude_none=True))

    @app.post("/api/ingest", response_model=IngestResponse, response_model_exclude_none=True)
    def ingest(
        payload: Optional[IngestRequest] = Body(default=None),
        dep: Dependencies = Depends(get_dependencies),
    ) -> JSONResponse:
        request = payload or IngestRequest()
        path = Path(request.path) if request.path else settings.pdf_path
        logger.info("ingest.started", path=str(path), reset=request.reset)
        try:
            report = dep.indexer.index(
                [path],
                progress=lambda msg: logger.info("ingest.progress", message=msg),
                reset=request.reset,
            )
        except Exception as exc:
            logger.error("ingest.failed", error=str(exc), exc_info=True)
            body = IngestResponse(
                status="error",
                message=str(exc),
                error=traceback.format_exc() if settings.is_dev else None,
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=body.model_dump(exclude_none=True),
            )
        body = IngestResponse(status="ok", message="Ingestion completed", chunks=report.chunk_count)
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(exclude_none=True))

    @app.get("/index/stats", response_model=IndexStatsResponse)
    def index_stats(dep: Dependencies = Depends(get_dependencies)) -> IndexStatsResponse:
        return IndexStatsResponse(backend=settings.vector_backend, vectors=dep.indexer.store.count())

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from supportrag import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return app


app = create_app()
