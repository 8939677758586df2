"""
FastAPI application for the GE Market backend.

Provides REST endpoints for:
- Items, prices and trade analytics
- Cost-efficient equipment and healing food rankings
- Pipeline run history and alerts

Run with:
    cd backend
    uvicorn gemarket.api.main:app --reload --port 8000
"""

from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .. import __version__, config
from ..database import DatabasePool
from ..scheduler import run_initial_sync, start_scheduler
from .deps import db_pool, get_pool
from .routes import consumables, items, optimal, runs


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes the database pool and schema on startup, starts the
    scheduler, and closes the pool on shutdown.
    """
    # Startup
    stop_scheduler = None
    try:
        db_pool.initialize()
        print("Database connection initialized")
        if config.RUN_INITIAL_SYNC:
            run_initial_sync(db_pool)
        stop_scheduler = start_scheduler(db_pool)
    except Exception as e:
        print(f"Warning: Could not initialize database: {e}")
        print("Some endpoints may not work without database connection")

    yield

    # Shutdown
    if stop_scheduler is not None:
        stop_scheduler.set()
    db_pool.close()
    print("Database connection closed")


app = FastAPI(
    title="GE Market API",
    description="Item prices, equipment and food efficiency rankings",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:5174",  # Vite fallback port
        "http://127.0.0.1:5173",
        "http://127.0.0.1:5174",
        "http://localhost:3000",  # Alternative dev port
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(items.router)
app.include_router(optimal.router)
app.include_router(consumables.router)
app.include_router(runs.router)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    database: str


@app.get("/api/health", response_model=HealthResponse, tags=["health"])
def health_check(pool: DatabasePool = Depends(get_pool)):
    """
    Health check endpoint.

    Returns:
        Health status including database connectivity
    """
    db_status = "unknown"

    try:
        with pool.cursor() as cursor:
            cursor.execute("SELECT 1")
            db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    return HealthResponse(
        status="ok",
        timestamp=datetime.utcnow(),
        database=db_status,
    )


@app.get("/", tags=["root"])
def root():
    """
    Root endpoint with API information.

    Returns:
        API welcome message and documentation link
    """
    return {
        "message": "GE Market API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/health",
    }
