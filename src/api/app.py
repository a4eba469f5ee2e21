"""
FastAPI application factory for the bin-monitor HTTP and WebSocket API.

The routes are a thin shim over the ingestion coordinator and the
repositories; domain errors raised underneath are mapped to status codes
here rather than in each route.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.dependencies import cleanup_dependencies, get_observer_hub, stop_observer_hub
from src.api.routes import alerts, bins, collections, health, readings, ws_bins
from src.api.routes.ws_bins import get_hub, set_hub
from src.config.settings import get_settings
from src.observability.tracing import get_tracer, is_tracing_enabled, setup_tracing, traced
from src.services.errors import BinMonitorError, InvalidInputError, NotFoundError, StorageError

logger = structlog.get_logger(__name__)

API_VERSION = "0.1.0"

# Most specific first; the first isinstance match wins
_ERROR_STATUS: list[tuple[type[BinMonitorError], int, str]] = [
    (InvalidInputError, 422, "invalid_input"),
    (NotFoundError, 404, "not_found"),
    (StorageError, 503, "storage"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Bin monitor API starting up", environment=settings.environment)

    if settings.tracing_enabled:
        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
            environment=settings.environment,
        )

    # A hub installed beforehand (tests, embedding apps) is left alone
    owns_hub = False
    if settings.ws_enabled and get_hub() is None:
        try:
            set_hub(await get_observer_hub())
            owns_hub = True
        except Exception as e:
            logger.warning("Observer hub unavailable, /ws/bins will refuse clients", error=str(e))

    yield

    logger.info("Bin monitor API shutting down")
    if owns_hub:
        await stop_observer_hub()
        set_hub(None)
    await cleanup_dependencies()


async def request_context(request: Request, call_next) -> Response:
    """Bind a request id, open a span when tracing is on and log the outcome."""
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid.uuid4())
    )
    structlog.contextvars.bind_contextvars(request_id=request_id)
    start = time.perf_counter()

    try:
        if is_tracing_enabled():
            with traced(
                get_tracer("bin-monitor.api"),
                f"{request.method} {request.url.path}",
                {"http.method": request.method, "http.request_id": request_id},
            ) as span:
                response = await call_next(request)
                span.set_attribute("http.status_code", response.status_code)
        else:
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
    finally:
        structlog.contextvars.clear_contextvars()


async def domain_error_handler(request: Request, exc: BinMonitorError) -> JSONResponse:
    for error_cls, status_code, error_type in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            break
    else:
        status_code, error_type = 500, "internal"

    if status_code >= 500:
        logger.error("Request failed", error_type=error_type, error=str(exc))

    body = {"detail": str(exc), "error_type": error_type, "field": None}
    if isinstance(exc, InvalidInputError):
        body["field"] = exc.field
    return JSONResponse(status_code=status_code, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_type": "internal"},
    )


def create_app() -> FastAPI:
    """
    Build the application.

    Used as a uvicorn factory (``src.api.app:create_app``) so every
    worker process gets its own app, dependency globals and observer hub.
    """
    settings = get_settings()

    app = FastAPI(
        title="Bin Monitor API",
        description="""
Telemetry ingestion and alerting for smart waste bins.

Readings are stored, evaluated against configurable thresholds and turned
into alerts; alerts fan out to operators by email and SMS and are streamed
to dashboards over WebSocket.

Send `X-API-KEY` on every request except `/health` when `API_KEYS` is set.
        """,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Service health checks"},
            {"name": "readings", "description": "Sensor reading ingestion and history"},
            {"name": "collections", "description": "Bin collection events"},
            {"name": "alerts", "description": "Alert listing, stats and resolution"},
            {"name": "bins", "description": "Bin listing, detail and stats"},
            {"name": "websocket", "description": "Real-time bin events"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_context)

    app.add_exception_handler(BinMonitorError, domain_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    for module, tag in (
        (health, "health"),
        (readings, "readings"),
        (collections, "collections"),
        (alerts, "alerts"),
        (bins, "bins"),
        (ws_bins, "websocket"),
    ):
        app.include_router(module.router, tags=[tag])

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": "Bin Monitor API", "version": API_VERSION, "docs": "/docs"}

    return app
