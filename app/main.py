"""FastAPI application entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import database
from app.routers import auth, cron, goals
from app.services.notifier import NotificationDispatcher, build_email_transport
from app.utils.logging import configure_logging

configure_logging(settings.log_level, settings.json_logs)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    await database.connect()
    yield
    # Shutdown
    await database.disconnect()


app = FastAPI(
    title="Goal Tracker API",
    description="Goals, daily check-in streaks and accountability partner nudges",
    version="0.1.0",
    lifespan=lifespan,
)

# Chosen once per process; sweeps never re-check the configuration
app.state.dispatcher = NotificationDispatcher(build_email_transport(settings))

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(goals.router)
app.include_router(cron.router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "message": "Goal Tracker API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
