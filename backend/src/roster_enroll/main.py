"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roster_enroll.config import settings
from roster_enroll.api.routes.enrollment import router as enrollment_router
from roster_enroll.api.routes.roster import router as roster_router
from roster_enroll.repositories.roster_repository import RosterRepository
from roster_enroll.services.directory_client import get_account_directory
from roster_enroll.services.enrollment_service import EnrollmentService

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# Database path - use settings or default to roster.duckdb in repo root
def get_database_path() -> Path:
    """Get the database path from settings or default location."""
    repo_root = Path(__file__).parent.parent.parent.parent
    if settings.database_path:
        db_path = Path(settings.database_path)
        if db_path.is_absolute():
            return db_path
        # Relative path - resolve from repo root
        return repo_root / settings.database_path
    return repo_root / "data" / "roster.duckdb"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup: Initialize repository, directory and enrollment service
    if not hasattr(app.state, "repository"):
        app.state.repository = RosterRepository(get_database_path(), create=settings.debug)
    if not hasattr(app.state, "directory"):
        app.state.directory = get_account_directory(
            app.state.repository,
            directory_url=settings.directory_url,
            api_key=settings.directory_api_key,
            timeout=settings.directory_timeout,
            use_local=settings.use_local_directory,
        )
    if not hasattr(app.state, "enrollment_service"):
        app.state.enrollment_service = EnrollmentService(app.state.repository, app.state.directory)
    yield
    # Shutdown: Close the directory HTTP client
    await app.state.directory.close()


app = FastAPI(
    title="Roster Enroll",
    description="Team roster enrollment with account linking",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "roster-enroll"}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Roster Enroll API",
        "version": "0.1.0",
        "docs": "/docs",
    }


# Register routers
app.include_router(enrollment_router)
app.include_router(roster_router)
