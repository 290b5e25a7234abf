from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn
import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from typing import Optional

from vision_gateway.analyzers.legacy_keys import LEGACY_APP_KEYS
from vision_gateway.analyzers.vision_client import CloudinaryVisionClient
from vision_gateway.models.schemas import AnalysisType, HealthResponse
from vision_gateway.routes.analysis_routes import router as analysis_router
from vision_gateway.utils.config import Settings, settings as default_settings
from vision_gateway.utils.errors import CorsError, GatewayError
from vision_gateway.utils.notifications import WebhookNotifier
from vision_gateway.utils.rate_limit import RateLimiter
from vision_gateway.utils.security import check_origin

# Configure logging
logging.basicConfig(
    level=default_settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown events"""
    settings = app.state.settings
    logger.info(f"Starting Vision Analysis Gateway v{settings.app_version} in {settings.environment} mode")

    if not settings.provider_configured():
        logger.warning("Cloudinary credentials missing - analysis requests will fail upstream")

    if settings.security_enabled:
        limiter = app.state.rate_limiter
        if limiter.backend == "redis":
            if await limiter.healthy():
                logger.info("Redis rate limit storage reachable")
            else:
                logger.warning("Redis unavailable - rate limited requests will fail until it recovers")
        if not settings.api_keys:
            logger.warning("No API keys configured - API key membership check disabled")
        logger.info(
            f"Security gate enabled: rate limit {settings.rate_limit_max} requests "
            f"per {settings.rate_limit_window_ms // 1000}s ({settings.rate_limit_backend})"
        )
    else:
        logger.warning("Security gate disabled (serverless profile)")

    if app.state.notifier.enabled:
        logger.info("Webhook notifications enabled")

    yield

    logger.info("Shutting down Vision Analysis Gateway...")
    await app.state.notifier.drain(timeout=settings.webhook_timeout_seconds)
    logger.info("Clean shutdown completed")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Vision Analysis Gateway",
        description="Validating gateway for Cloudinary AI Vision image analysis",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.state.vision_client = CloudinaryVisionClient.from_settings(settings)
    app.state.notifier = WebhookNotifier(settings.webhook_url, settings.webhook_timeout_seconds)
    app.state.rate_limiter = RateLimiter.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins or ["*"],
        allow_credentials=bool(settings.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "X-Timestamp"],
        expose_headers=["RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset", "Retry-After"],
    )

    # Registered after CORSMiddleware so it sees preflights first
    @app.middleware("http")
    async def reject_disallowed_preflight(request: Request, call_next):
        if settings.security_enabled and request.method == "OPTIONS":
            try:
                check_origin(request.headers.get("origin"), settings.allowed_origins)
            except CorsError as exc:
                logger.info(f"{exc.code} on preflight {request.url.path}: {exc.message}")
                return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        return await call_next(request)

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Health check endpoint with security summary"""
        health = {
            "status": "healthy",
            "timestamp": _now(),
            "version": settings.app_version,
            "environment": settings.environment,
            "security": settings.security_summary(),
        }
        limiter = request.app.state.rate_limiter
        if limiter.backend == "redis":
            redis_ok = await limiter.healthy()
            health["dependencies"] = {"redis": "connected" if redis_ok else "disconnected"}
            if not redis_ok:
                health["status"] = "degraded"
        return health

    @app.get("/")
    async def root():
        """Redirect to the landing page"""
        return RedirectResponse(url=settings.landing_page, status_code=302)

    @app.get("/api")
    async def api_index():
        """Service description and endpoint catalogue"""
        return {
            "name": "AI Vision API",
            "version": settings.app_version,
            "description": "AI vision analysis API using Cloudinary",
            "endpoints": {
                "health": {"path": "/health", "method": "GET", "auth": False},
                "analyze": {
                    "path": "/analyze",
                    "method": "POST",
                    "auth": settings.security_enabled,
                    "parameters": {
                        "imageUrl": "string (required) - URL of image to analyze",
                        "analysis_type": f"string (required) - {'|'.join(AnalysisType.values())}",
                        "prompts": "array (required unless tagging) - Prompts for analysis",
                        "tags": "array (required for tagging) - Tag definitions",
                        "multi_label": "boolean (optional) - Enable multi-label classification",
                    },
                },
                "batchAnalyze": {
                    "path": "/batch-analyze",
                    "method": "POST",
                    "auth": settings.security_enabled,
                    "parameters": {
                        "imageUrl": "string (required) - URL of image to analyze",
                        "analysisType": "string (required) - Analysis type",
                        "analysisData": "array (required) - Prompts or tag definitions",
                        "multiLabel": "boolean (optional) - Enable multi-label classification",
                    },
                },
                "legacyAnalyze": {
                    "path": "/analyze-image",
                    "method": "GET",
                    "auth": False,
                    "parameters": {
                        "imageUrl": "string (required) - URL of image to analyze",
                        "appKey": f"string (required) - Application key ({len(LEGACY_APP_KEYS)} recognized)",
                    },
                },
            },
            "headers": {
                "X-API-Key": "64 hex characters (protected routes)",
                "X-Timestamp": "Unix milliseconds (required)" if settings.require_timestamp
                else "Unix milliseconds (optional)",
            },
        }

    app.include_router(analysis_router, tags=["analysis"])

    # Error handlers
    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error} on {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers or None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation Error",
                "message": f"{location}: {message}" if location else message,
                "code": "INVALID_INPUT",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            content = {
                "error": "Not Found",
                "message": "The requested resource was not found",
                "code": "NOT_FOUND",
                "path": request.url.path,
            }
        elif exc.status_code == 405:
            content = {
                "error": "Method not allowed",
                "message": f"{request.method} is not supported on this path",
                "code": "METHOD_NOT_ALLOWED",
                "path": request.url.path,
            }
        else:
            content = {"error": str(exc.detail), "message": str(exc.detail), "path": request.url.path}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    return app


app = create_app()


def run():
    uvicorn.run(
        "vision_gateway.main:app",
        host="0.0.0.0",
        port=default_settings.port,
        reload=default_settings.is_development(),
        log_level=default_settings.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    run()
