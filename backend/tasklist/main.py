import logging
from contextlib import asynccontextmanager

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables
_ = load_dotenv(find_dotenv())

from tasklist.core.logging_config import setup_logging
from tasklist.exception_handlers import app_exception_handler, unhandled_exception_handler
from tasklist.exceptions import AppException
from tasklist.services.realtime import connection_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    setup_logging()
    logger.info("Task sync API starting")

    yield

    # Shutdown: detach every live sync session
    logger.info("Stopping live sync sessions...")
    await connection_manager.teardown_all()


app = FastAPI(
    title="Task List Sync API",
    description="Task CRUD and live task-list synchronization on Supabase",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Adjust this for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Import and register routers
from tasklist.api.routers import auth, debug, tasks, websocket
app.include_router(auth.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(debug.router, prefix="/api")
app.include_router(websocket.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Root health check endpoint."""
    return {"status": "healthy"}


@app.get("/api/health")
async def api_health_check():
    """API health check endpoint."""
    return {
        "status": "healthy",
        "service": "task-sync-api",
        "sync_sessions": connection_manager.get_total_connections(),
    }
