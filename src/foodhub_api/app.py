from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from foodhub_api.core.errors import FoodhubError
from foodhub_api.core.settings import settings
from foodhub_api.services.rate_limit import InMemoryRateLimitStore, RateLimiterRegistry
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .workers import RateLimitSweeper


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry: RateLimiterRegistry = app.state.rate_limiters
    sweeper: RateLimitSweeper | None = None

    sweep_enabled = settings.rate_limit_sweep_enabled and isinstance(registry.store, InMemoryRateLimitStore)
    if sweep_enabled:
        sweeper = RateLimitSweeper(
            registry.store,
            interval_seconds=settings.rate_limit_sweep_interval_seconds,
        )
        sweeper.start()
    elif settings.rate_limit_sweep_enabled:
        logger.info("Rate limit sweeper disabled", reason="backend expires windows itself")
    else:
        logger.info("Rate limit sweeper disabled", reason="rate_limit_sweep_enabled is false")
    app.state.rate_limit_sweeper = sweeper

    try:
        yield
    finally:
        if sweeper is not None and sweeper.is_running:
            await sweeper.stop()


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [part for part in first.get("loc", ()) if isinstance(part, str) and part not in ("body", "query")]
    message = first.get("msg", "Invalid value")
    if location:
        return f"{'.'.join(location)}: {message}"
    return f"Invalid request body: {message}"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FoodhubError)
    async def handle_domain_error(request: Request, exc: FoodhubError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message, "code": exc.code},
            headers=exc.headers or None,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": _describe_validation_error(exc), "code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path, method=request.method)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"},
        )


def create_app(rate_limiters: RateLimiterRegistry | None = None) -> FastAPI:
    """Application factory for the FoodHub API service."""
    configure_logging(
        service_name="foodhub-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="FoodHub API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.rate_limiters = rate_limiters or RateLimiterRegistry.from_settings(settings)

    configure_tracing(
        app,
        service_name="foodhub-api",
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
