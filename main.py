import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from toolbox_app.config import settings
from toolbox_app.database.connection import engine, Base
from toolbox_app.errors import ToolboxError, StorageUnavailable
from toolbox_app.logging_config import setup_logging, get_logger
from toolbox_app.middleware import LoggingMiddleware
from toolbox_app.api.v1 import redirect, shortlinks, projects, tools, categories

# Import models to ensure they're registered with Base
from toolbox_app.models import ShortLink, ClickEvent, Project, Tool  # noqa: F401

setup_logging(settings.log_level, settings.log_file, settings.log_json)
logger = get_logger("app")

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the embedded analytics worker; on shutdown flush pending clicks and stop it."""
    from toolbox_app.analytics.worker import AnalyticsWorker
    from toolbox_app.dependencies import get_queue, get_analytics_sink, get_click_tracker

    worker_task = None
    if settings.analytics_worker_embedded:
        worker = AnalyticsWorker(queue=get_queue(), sink=get_analytics_sink())
        worker_task = asyncio.create_task(worker.start(), name="analytics-worker")

    yield

    await get_click_tracker().drain()

    if worker_task is not None:
        worker_task.cancel()
        try:
            await asyncio.wait_for(worker_task, timeout=5.0)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            logger.info("Analytics worker stopped")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="AI tool directory: affiliate short links, role-gated catalogue, analytics",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)


@app.exception_handler(ToolboxError)
async def toolbox_error_handler(request: Request, exc: ToolboxError):
    """Expected outcomes: fixed status, public message only"""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    error = StorageUnavailable()
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(shortlinks.router, prefix="/api/v1")
app.include_router(projects.router, prefix="/api/v1")
app.include_router(tools.router, prefix="/api/v1")
app.include_router(categories.router, prefix="/api/v1")
app.include_router(redirect.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
