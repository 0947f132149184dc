"""
Main FastAPI application
Lesson delivery backend: reading sessions, progress statistics and premium access
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import asyncio
import logging
import time

from lesson_tracker.config import settings
from lesson_tracker.database import init_db
from lesson_tracker.api import lessons, progress, statistics, subscription, telegram
from lesson_tracker.services.session_tracker import session_tracker
from lesson_tracker.utils.rate_limiter import rate_limiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Backend for a Telegram lesson academy with reading analytics and premium access",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SKIP_RATE_LIMIT_PATHS = ["/health", "/docs", "/redoc", "/openapi.json"]


# Rate limiting middleware
@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Apply rate limiting to all requests"""

    if request.url.path in SKIP_RATE_LIMIT_PATHS:
        return await call_next(request)

    try:
        await rate_limiter.check_rate_limit(request)
    except HTTPException as e:
        return JSONResponse(
            status_code=e.status_code,
            content=e.detail
        )

    return await call_next(request)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration:.3f}s"
    )

    return response


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors gracefully"""

    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "detail": str(exc) if settings.DEBUG else None
        }
    )


# HTTP exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Format HTTP exceptions consistently"""

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "message": exc.detail,
            "status_code": exc.status_code
        }
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring

    Returns service status and the number of open reading sessions
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "active_sessions": session_tracker.active_count(),
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Lesson Tracker API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health"
    }


# Include routers
app.include_router(progress.router)
app.include_router(statistics.router)
app.include_router(subscription.router)
app.include_router(lessons.router)
app.include_router(telegram.router)


async def reap_idle_sessions_forever(interval_seconds: int, idle_timeout_seconds: int):
    """Periodically drop reading sessions that were abandoned without an end call"""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            session_tracker.reap_idle_sessions(idle_timeout_seconds * 1000)
        except Exception as e:
            logger.error(f"Session reaper failed: {str(e)}", exc_info=True)


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize database and background tasks on startup"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Initialize database
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    app.state.reaper_task = None
    if settings.SESSION_IDLE_TIMEOUT_SECONDS > 0 and settings.SESSION_REAPER_INTERVAL_SECONDS > 0:
        app.state.reaper_task = asyncio.create_task(reap_idle_sessions_forever(
            settings.SESSION_REAPER_INTERVAL_SECONDS,
            settings.SESSION_IDLE_TIMEOUT_SECONDS
        ))
        logger.info(
            f"Session reaper running every {settings.SESSION_REAPER_INTERVAL_SECONDS}s "
            f"(idle timeout {settings.SESSION_IDLE_TIMEOUT_SECONDS}s)"
        )

    logger.info("Application startup complete")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down application")

    task = getattr(app.state, "reaper_task", None)
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    logger.info(f"Discarding {session_tracker.active_count()} unfinished reading sessions")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lesson_tracker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
