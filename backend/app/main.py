"""
Outlet - private venting and escalation service

FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.core.config import get_settings
from backend.app.core.logging import setup_logging, get_logger
from backend.app.core.exceptions import register_exception_handlers
from backend.app.api import auth, health, outlet
from backend.app.middleware.trace import TracingMiddleware

settings = get_settings()

# Initialize logging
setup_logging(level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    if settings.auto_create_tables:
        from backend.app.core.database import create_all_tables
        await create_all_tables()
        logger.info("Database tables created")

    if settings.seed_default_users:
        from backend.app.core.database import get_db_context
        from backend.app.services.auth_service import seed_default_users
        async with get_db_context() as db:
            await seed_default_users(db, settings.default_org_id)

    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    from backend.app.core.database import engine
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Private venting sessions with staff escalation and an audit ledger",
    version=settings.app_version,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Add Middleware
app.add_middleware(TracingMiddleware)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    auth.router,
    prefix=f"{settings.api_prefix}/auth",
    tags=["Authentication"]
)
app.include_router(
    outlet.router,
    prefix=f"{settings.api_prefix}/outlet",
    tags=["Outlet Sessions"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Private venting and escalation service",
        "docs": "/docs",
    }
