from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from sandboxforge import __version__
from sandboxforge.core.config import settings
from sandboxforge.core.exceptions import ConfigurationError, ForgeError, error_response
from sandboxforge.core.logging_config import logger
from sandboxforge.core.middleware import RequestLoggingMiddleware
from sandboxforge.api.v1.router import api_router
from sandboxforge.modules.generation.cancellation import cancellation_controller
from sandboxforge.modules.workers.factory import worker_factory


def validate_worker_config():
    """Check credentials and transport at startup; warn, never fail"""
    warnings = []

    if not settings.DAYTONA_API_KEY:
        warnings.append("DAYTONA_API_KEY not set - every generation will be rejected")

    for backend, configured in settings.credential_status().items():
        if backend != "daytona" and not configured:
            warnings.append(f"{backend} credential not set - that backend will be rejected")

    try:
        worker_factory.validate()
    except ConfigurationError as e:
        warnings.append(f"Worker transport: {e.message}")

    if not settings.scripts_dir.is_dir():
        warnings.append(f"Worker scripts directory {settings.scripts_dir} does not exist")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    if not warnings:
        logger.info("[Startup] ✓ Worker configuration validated")
    return not warnings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info(f"Worker: {settings.WORKER_COMMAND} ({settings.WORKER_TRANSPORT})")
    logger.info("=" * 60)

    validate_worker_config()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")

    # Open streams own their workers; stopping their sessions kills them
    for session_id in cancellation_controller.active():
        cancellation_controller.cancel(session_id, reason="shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    description="Streams AI-driven project generation running in remote sandboxes",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False  # Prevent 307 redirects that break CORS
)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time", "X-Session-ID"],
)


@app.exception_handler(ForgeError)
async def forge_exception_handler(request: Request, exc: ForgeError):
    logger.warning(f"[API] {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": __version__,
        "environment": settings.ENVIRONMENT
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sandboxforge.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.is_dev_mode()
    )
