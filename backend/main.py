"""
FastAPI Main Application
Menu Price Monitor - scheduled vendor price update backend
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import time
import uvicorn

from config.settings import settings
from utils.logging import setup_logging, get_logger, performance_logger
from scheduler.services import build_services

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the FastAPI application."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")
    services = build_services(settings)
    app.state.price_update = services

    started = await services.start()
    if started:
        logger.info("Price update scheduler initialized", status=services.manager.get_status()["state"])
    else:
        logger.error("Price update scheduler failed to initialize, API stays up without it")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")
    try:
        await services.stop()
        logger.info("Price update scheduler stopped")
    except Exception as e:
        logger.error(f"Price update scheduler shutdown failed: {e}")


# Create FastAPI app with lifespan
app = FastAPI(
    title=settings.APP_NAME,
    description="Backend API for scheduled vendor menu price updates",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_request_time(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    performance_logger.log_request_time(
        request.url.path, request.method, time.perf_counter() - started, response.status_code
    )
    return response


# Import routers
from routers import price_update

# Include API routers
app.include_router(price_update.router)


# Root endpoints
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "description": "Backend API for scheduled vendor menu price updates",
        "status": "operational",
        "endpoints": {
            "docs": "/docs",
            "redoc": "/redoc",
            "price_update_api": "/api/price-update",
        },
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    services = getattr(request.app.state, "price_update", None)
    timestamp = datetime.now(timezone.utc).isoformat()
    if services is None:
        return {"status": "unhealthy", "error": "Price update services not started", "timestamp": timestamp}

    status = services.manager.get_status()
    return {
        "status": "healthy" if status["initialized"] else "degraded",
        "timestamp": timestamp,
        "services": {
            "scheduler": {
                "state": status["state"],
                "timer_running": status["scheduler_running"],
                "price_update_running": status["price_update_running"],
                "next_run_time": status["next_run_time"],
            },
            "config_store": services.config_manager.store.describe(),
        },
        "version": settings.VERSION,
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
        log_level=settings.LOG_LEVEL.lower()
    )
