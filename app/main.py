"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes (WhatsApp webhook, collaborator callbacks)
- No business logic should be written here
- Manages application lifecycle (startup/shutdown, completion sweeper)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from app.db.indexes import create_indexes
from app.services.backend_client import close_backend_clients
from app.services.sweeper import get_sweeper
from app.services.whatsapp_service import close_whatsapp_service, get_whatsapp_service
from app.api import callbacks, webhook

# Initialize logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("🚀 Starting Toki Card bot...")

    try:
        # Validate configuration
        logger.info("Validating configuration...")
        validate_settings()
        logger.info("✅ Configuration validated")

        # Connect to MongoDB
        logger.info("Connecting to MongoDB...")
        await connect_to_mongo()
        logger.info("✅ MongoDB connected")

        # Create database indexes
        logger.info("Creating database indexes...")
        await create_indexes()
        logger.info("✅ Database indexes created")

        if not get_whatsapp_service().is_configured():
            logger.warning("⚠️ WhatsApp credentials missing, outbound messages will fail")

        if settings.SWEEPER_ENABLED:
            get_sweeper().start()
        else:
            logger.info("Completion sweeper disabled")

        logger.info("🎉 Toki Card bot started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Debug Mode: {settings.DEBUG}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    # Shutdown
    logger.info("🛑 Shutting down Toki Card bot...")

    try:
        await get_sweeper().stop()

        await close_backend_clients()
        await close_whatsapp_service()
        logger.info("✅ HTTP clients closed")

        # Close MongoDB connection
        await close_mongo_connection()
        logger.info("✅ MongoDB connection closed")

        logger.info("👋 Toki Card bot shut down successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


# Create FastAPI app with lifespan
app = FastAPI(
    title="Toki Card WhatsApp Bot",
    description="Conversational onboarding and funding for the Toki virtual USD card",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,  # Disable docs in production
    redoc_url="/redoc" if settings.is_development else None,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log slow requests
    if process_time > 5.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


# Register API routes
app.include_router(webhook.router, prefix=settings.API_PREFIX, tags=["Webhook"])
app.include_router(callbacks.router, tags=["Callbacks"])


# Root endpoint
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "Toki Card Bot",
        "version": APP_VERSION,
        "description": "WhatsApp onboarding and funding for the Toki Card",
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Comprehensive health check endpoint.
    Checks database connectivity and sweeper status.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {}
    }

    db_healthy = await check_database_health()
    health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
    if not db_healthy:
        health_status["status"] = "unhealthy"

    if settings.SWEEPER_ENABLED:
        health_status["checks"]["sweeper"] = "running" if get_sweeper().running else "stopped"
    else:
        health_status["checks"]["sweeper"] = "disabled"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness probe - indicates if app is ready to receive traffic.
    """
    if await check_database_health():
        return {"status": "ready"}
    return JSONResponse(
        status_code=503,
        content={"status": "not_ready", "reason": "database_unavailable"}
    )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
async def liveness_check():
    """
    Liveness probe - indicates if app is alive.
    """
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
