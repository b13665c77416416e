"""Lesson Viewer API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lesson_viewer.config import Settings, get_settings
from lesson_viewer.core.context import get_request_id
from lesson_viewer.core.database import AsyncCassandraConnection, init_async_cassandra
from lesson_viewer.core.errors import ViewerError
from lesson_viewer.core.logging import configure_structlog, get_logger
from lesson_viewer.core.middleware import RequestContextMiddleware
from lesson_viewer.health import router as health_router
from lesson_viewer.playback.backend import LocalFileMediaBackend
from lesson_viewer.progress.memory import (
    InMemoryEnrollmentGateway,
    InMemoryLessonCatalog,
    InMemoryProgressStore,
)
from lesson_viewer.progress.service import (
    CassandraEnrollmentGateway,
    CassandraLessonCatalog,
    CassandraProgressStore,
)
from lesson_viewer.viewer.dependencies import handle_viewer_error
from lesson_viewer.viewer.router import router as viewer_router
from lesson_viewer.viewer.session import ViewerSessionRegistry


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(
    settings, log_dir=Path(settings.log_dir), file_output=not settings.is_testing
)

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra: AsyncCassandraConnection | None = None
    cassandra_session: Any = None
    viewer_registry: ViewerSessionRegistry | None = None


app_state = AppState()


def media_backend_factory(settings: Settings):
    """Build the factory the registry calls once per viewer session."""

    def factory() -> LocalFileMediaBackend:
        return LocalFileMediaBackend(
            media_root=settings.media_root,
            allowed_extensions=settings.media_allowed_extensions,
            probe_bytes=settings.media_probe_bytes,
        )

    return factory


def build_in_memory_registry(settings: Settings) -> ViewerSessionRegistry:
    """Registry over in-process stores (development and tests)."""
    catalog = InMemoryLessonCatalog()
    store = InMemoryProgressStore()
    return ViewerSessionRegistry(
        store=store,
        gateway=InMemoryEnrollmentGateway(catalog, store),
        catalog=catalog,
        backend_factory=media_backend_factory(settings),
        max_sessions=settings.viewer_max_open_sessions,
        signal_queue_size=settings.viewer_signal_queue_size,
        max_sessions_per_login=settings.viewer_max_sessions_per_login,
        idle_timeout=settings.viewer_idle_timeout_seconds,
    )


def build_cassandra_registry(settings: Settings, session) -> ViewerSessionRegistry:
    """Registry over the Cassandra-backed stores."""
    keyspace = settings.cassandra_keyspace
    catalog = CassandraLessonCatalog(session=session, keyspace=keyspace)
    return ViewerSessionRegistry(
        store=CassandraProgressStore(session=session, keyspace=keyspace),
        gateway=CassandraEnrollmentGateway(
            session=session, keyspace=keyspace, catalog=catalog
        ),
        catalog=catalog,
        backend_factory=media_backend_factory(settings),
        max_sessions=settings.viewer_max_open_sessions,
        signal_queue_size=settings.viewer_signal_queue_size,
        max_sessions_per_login=settings.viewer_max_sessions_per_login,
        idle_timeout=settings.viewer_idle_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    registry: ViewerSessionRegistry | None = None
    if settings.cassandra_enabled:
        try:
            app_state.cassandra = AsyncCassandraConnection(settings)
            app_state.cassandra_session = await init_async_cassandra(app_state.cassandra)
            registry = build_cassandra_registry(settings, app_state.cassandra_session)
            app.state.storage_backend = "cassandra"
            logger.info("viewer_registry_initialized", storage="cassandra")
        except Exception as e:
            logger.warning(
                "database_init_skipped",
                error=str(e),
                message="Running with in-memory progress storage",
            )

    if registry is None:
        registry = build_in_memory_registry(settings)
        app.state.storage_backend = "memory"
        logger.info("viewer_registry_initialized", storage="memory")

    app_state.viewer_registry = registry
    app.state.viewer_registry = registry

    yield

    # Shutdown
    logger.info("shutting_down_application", open_sessions=len(registry))
    registry.close_all()
    app.state.viewer_registry = None
    app_state.viewer_registry = None
    if app_state.cassandra is not None:
        app_state.cassandra.disconnect()
        app_state.cassandra = None
        app_state.cassandra_session = None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug=False keeps Starlette from rendering stack traces in responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Lesson progress and playback resource manager",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    def _error_body(
        request: Request, status_code: int, message: str, code: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
        }
        if code is not None:
            body["code"] = code
        return body

    # Global exception handlers (never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        code = None
        message = exc.detail
        if isinstance(message, dict):
            code = message.get("code")
            message = message.get("message")

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            code=code,
            detail=str(message),
            path=request.url.path,
            method=request.method,
        )

        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            message = "Internal server error"
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, str(message), code),
        )

    @app.exception_handler(ViewerError)
    async def viewer_exception_handler(
        request: Request, exc: ViewerError
    ) -> ORJSONResponse:
        """Viewer errors that escaped a route's own mapping."""
        http_exc = handle_viewer_error(exc)
        logger.warning(
            "viewer_error",
            code=exc.code,
            detail=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=http_exc.status_code,
            content=_error_body(request, http_exc.status_code, exc.message, exc.code),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        body = _error_body(
            request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error"
        )
        body["details"] = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "An unexpected error occurred. Please try again later.",
            ),
        )

    app.include_router(health_router)
    app.include_router(viewer_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        return {
            "message": "Lesson Viewer API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
