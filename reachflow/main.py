"""
ReachFlow - FastAPI Application Entry Point.

Wires storage, channel adapters, the AI generator, the executor and the
job scheduler together, and exposes the run-control endpoints.
"""

from typing import Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from reachflow.config import Settings, settings as default_settings
from reachflow.api.routes import executions
from reachflow.channels import ChannelDispatcher, build_default_adapters
from reachflow.engine.executor import WorkflowExecutor
from reachflow.integrations.openrouter import AIGenerator, OpenRouterGenerator
from reachflow.queue.scheduler import JobScheduler
from reachflow.queue.store import InMemoryJobStore, JobStore, RedisJobStore
from reachflow.service import WorkflowRunService
from reachflow.storage.memory import InMemoryStorage


# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_job_store(settings: Settings) -> JobStore:
    """Job store selected by ``settings.JOB_STORE``."""
    if settings.JOB_STORE == "memory":
        logger.warning("Using the in-memory job store; queued runs will not survive a restart")
        return InMemoryJobStore()
    if settings.JOB_STORE != "redis":
        raise ValueError(f"Unknown job store '{settings.JOB_STORE}'")
    return RedisJobStore.from_url(settings.REDIS_URL, prefix=settings.JOB_STORE_PREFIX)


def create_app(
    storage: Optional[InMemoryStorage] = None,
    dispatcher: Optional[ChannelDispatcher] = None,
    generator: Optional[AIGenerator] = None,
    settings: Optional[Settings] = None,
    job_store: Optional[JobStore] = None,
) -> FastAPI:
    """
    Build the application.
    
    Any collaborator left out gets its production default: in-memory
    storage, the SendGrid/Twilio/LinkedIn/calendar adapters and
    OpenRouter generation, all configured from integration settings, and
    the job store named by ``JOB_STORE``.
    """
    settings = settings or default_settings
    if storage is None:
        storage = InMemoryStorage()
    if dispatcher is None:
        dispatcher = ChannelDispatcher(build_default_adapters(storage))
    if generator is None:
        generator = OpenRouterGenerator(storage, settings)
    if job_store is None:
        job_store = build_job_store(settings)
    
    executor = WorkflowExecutor(storage, dispatcher, generator, settings)
    scheduler = JobScheduler(executor, storage, settings, job_store=job_store)
    
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        await scheduler.start()
        
        yield
        
        logger.info("Shutting down...")
        await scheduler.close()
        await job_store.close()
    
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
## Workflow Execution API

Runs multi-channel outreach workflows for one lead at a time.

### Run control
1. Start a run: `POST /workflows/{workflow_id}/execute`
2. Follow it: `GET /workflows/executions/{execution_id}/status`
3. Pause / resume: `POST /workflows/executions/{execution_id}/pause|resume`
4. History: `GET /workflows/{workflow_id}/executions`
        """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    
    app.state.settings = settings
    app.state.storage = storage
    app.state.scheduler = scheduler
    app.state.job_store = job_store
    app.state.run_service = WorkflowRunService(storage, scheduler)
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.include_router(executions.router)
    
    # ============================================================
    # Root Endpoints
    # ============================================================
    
    @app.get("/", tags=["Root"])
    async def root():
        """API root - returns basic info and links."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "description": "Workflow execution engine for multi-channel outreach",
            "docs": "/docs",
            "endpoints": {
                "execute": "/workflows/{workflow_id}/execute",
                "executions": "/workflows/{workflow_id}/executions",
                "status": "/workflows/executions/{execution_id}/status",
                "pause": "/workflows/executions/{execution_id}/pause",
                "resume": "/workflows/executions/{execution_id}/resume",
            },
        }
    
    @app.get("/health", tags=["Root"])
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "scheduler_running": scheduler.is_running,
            "active_jobs": scheduler.active_count,
            "job_store": type(job_store).__name__,
            "executions_count": len(storage),
            "available_channels": await dispatcher.available_channels(),
        }
    
    # ============================================================
    # Error Handlers
    # ============================================================
    
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
            },
        )
    
    return app


app = create_app()
