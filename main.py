from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from dotenv import load_dotenv
import os
import sys
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse

from middleware.jwt_auth import is_jwt_auth_enabled
from services.container import ServiceContainer, build_container
from routers import calling, meetings, transcripts
from utils.errors import InvalidInputError, MinutesServiceError

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Validate required environment variables
REQUIRED_ENV_VARS = [
    "MICROSOFT_APP_ID",
    "MICROSOFT_APP_PASSWORD",
    "MICROSOFT_APP_TENANT_ID",
    "CALLING_WEBHOOK_URL",
]
AZURE_OPENAI_ENV_VARS = [
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_DEPLOYMENT_NAME",
]


def validate_environment():
    """Validate that all required environment variables are set."""
    missing = [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]

    # One generation backend is required: OpenAI or the full Azure OpenAI trio
    if not os.getenv("OPENAI_API_KEY"):
        missing_azure = [var for var in AZURE_OPENAI_ENV_VARS if not os.getenv(var)]
        if missing_azure:
            missing.append("OPENAI_API_KEY (or " + ", ".join(AZURE_OPENAI_ENV_VARS) + ")")

    if missing:
        logger.error(f"Missing required environment variables: {missing}")
        sys.exit(1)
    logger.info("Environment validation passed")


def log_auth_status():
    """Log whether administrative endpoints are protected by internal JWTs."""
    if is_jwt_auth_enabled():
        logger.info("=" * 60)
        logger.info("Internal JWT authentication ENABLED for administrative endpoints")
        logger.info(f"  Issuer: {os.getenv('INTERNAL_JWT_ISSUER', 'internal-gateway')}")
        logger.info(f"  Audience: {os.getenv('INTERNAL_JWT_AUDIENCE', 'meeting-minutes-bot')}")
        logger.info("=" * 60)
    else:
        logger.warning("=" * 60)
        logger.warning("Internal JWT authentication DISABLED")
        logger.warning("INTERNAL_JWT_SECRET is not set; administrative endpoints are open")
        logger.warning("=" * 60)


def _include_details() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() != "production"


def _error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        container: Pre-built services (tests pass fakes). When omitted, the
            environment is validated and production services are built at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = container
        if services is None:
            validate_environment()
            services = build_container()
        log_auth_status()
        app.state.services = services

        logger.info("=" * 60)
        logger.info(f"Meeting minutes bot v{VERSION} started")
        logger.info(f"  Environment: {os.getenv('ENVIRONMENT', 'development')}")
        logger.info(f"  Calling webhook: {os.getenv('CALLING_WEBHOOK_URL')}")
        logger.info(f"  Pipeline concurrency: {services.queue.max_concurrency}")
        logger.info("=" * 60)

        try:
            yield
        finally:
            logger.info("Shutting down")
            await services.aclose()

    app = FastAPI(title="Meeting Minutes Bot", version=VERSION, lifespan=lifespan)

    @app.exception_handler(MinutesServiceError)
    async def service_error_handler(request: Request, exc: MinutesServiceError):
        if exc.status_code >= 500:
            logger.error(f"Request failed: path={request.url.path}, code={exc.code}, error={exc.message}")
        else:
            logger.warning(f"Request rejected: path={request.url.path}, code={exc.code}, error={exc.message}")
        return _error_response(exc.status_code, exc.to_dict(include_details=_include_details()))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        error = InvalidInputError(
            message,
            details={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]},
        )
        logger.warning(f"Request validation failed: path={request.url.path}, error={message}")
        return _error_response(error.status_code, error.to_dict(include_details=_include_details()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error: path={request.url.path}, error={type(exc).__name__}: {exc}",
            exc_info=exc,
        )
        error = MinutesServiceError("Internal server error", details={"error": type(exc).__name__})
        return _error_response(error.status_code, error.to_dict(include_details=_include_details()))

    app.include_router(calling.router)
    app.include_router(meetings.router)
    app.include_router(transcripts.router)

    @app.get("/api/health")
    async def health(request: Request):
        services: ServiceContainer = request.app.state.services
        graph_healthy = (
            await services.auth_service.validate_credentials()
            if services.auth_service is not None
            else False
        )
        return {
            "status": "healthy" if graph_healthy else "unhealthy",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {
                "bot": True,
                "graphApi": graph_healthy,
                "openAI": True,
            },
            "trackedCalls": await services.call_store.count(),
            "pendingJobs": services.queue.pending,
        }

    @app.get("/", response_class=HTMLResponse)
    def index():
        return f"""<!DOCTYPE html>
<html>
<head><title>Meeting Minutes Bot</title></head>
<body>
  <h1>Meeting Minutes Bot</h1>
  <p>Bot is running (v{VERSION}, {os.getenv('ENVIRONMENT', 'development')})</p>
  <h2>Endpoints</h2>
  <ul>
    <li>GET /api/health - Health check</li>
    <li>POST /api/calling - Calling webhook</li>
    <li>POST /api/join-meeting - Join a meeting</li>
    <li>POST /api/process-transcript - Generate minutes for a meeting or call</li>
    <li>POST /api/format-transcript - Format an uploaded .vtt file</li>
    <li>POST /api/parse-transcript - Extract text from an uploaded .vtt file</li>
    <li>POST /api/generate-summary - Summarize an uploaded .txt or .vtt file</li>
    <li>GET /api/jobs/{{job_id}} - Post-call job status</li>
  </ul>
</body>
</html>"""

    return app


app = create_app()
