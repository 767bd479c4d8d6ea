"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leadline.api.v1.dependencies import load_call_script
from leadline.api.v1.routes import api_router
from leadline.core.config import get_settings
from leadline.core.validation import validate_providers_on_startup
from leadline.domain.errors import ConfigurationError, OutboundCallError, StoreError
from leadline.utils.background import BackgroundTaskRunner

logger = logging.getLogger(__name__)

# Seconds to wait for in-flight provider actions on shutdown
SHUTDOWN_DRAIN_TIMEOUT = 10.0


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Validates Supabase / Telnyx configuration (fatal only in production)
    - Loads the call script once
    - Creates the background task runner for fire-and-forget actions

    Shutdown:
    - Drains in-flight provider actions
    """
    # ========================
    # STARTUP
    # ========================
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting Leadline call core...")

    strict_validation = settings.environment == "production"
    try:
        validate_providers_on_startup(settings, strict=strict_validation)
    except RuntimeError as e:
        if strict_validation:
            logger.error(f"Startup failed: {e}")
            raise
        logger.warning(f"Configuration warnings (non-fatal in {settings.environment}): {e}")

    app.state.call_script = load_call_script(settings)
    app.state.task_runner = BackgroundTaskRunner()
    logger.info("Leadline call core started successfully")

    yield  # Application is running

    # ========================
    # SHUTDOWN
    # ========================
    logger.info("Shutting down Leadline call core...")
    runner: BackgroundTaskRunner = app.state.task_runner
    if runner.pending:
        logger.info(f"Waiting for {runner.pending} background tasks")
    await runner.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
    logger.info("Leadline call core shutdown complete")


app = FastAPI(
    title="Leadline Call Core",
    description="Telnyx call webhooks, outbound calling and follow-up scheduling",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OutboundCallError)
async def outbound_call_error_handler(request: Request, exc: OutboundCallError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Database error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Database error", "details": str(exc)})


# Include API routes
app.include_router(api_router, prefix=get_settings().api_prefix)


@app.get("/")
async def root():
    return {"message": "Leadline Call Core API", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("leadline.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
