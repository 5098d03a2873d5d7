"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from posecoach import __version__
from posecoach.config import get_settings
from posecoach.api import api_router
from posecoach.api.sessions import registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.app_name}")
    yield
    if len(registry):
        logger.info(f"Closing {len(registry)} open sessions")
    await registry.close_all()
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    description="""
    Pose Coach API

    Real-time exercise classification, rep counting and form feedback
    from streamed body-landmark frames.

    ## Key Features

    - **Exercise Classification**: Push-up, squat, crunch, plank and superman families
    - **Rep Counting**: Debounced up/down state machine, one rep per DOWN -> UP
    - **Form Analysis**: Per-metric scores with corrective messages
    - **Coaching Feedback**: Corrective, praise and count events per rep

    ## Frames

    Each frame carries 33 world and 33 image landmarks (MediaPipe order)
    with per-joint visibility. Push them over HTTP or the session stream.
    """,
    version=__version__,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": __version__
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "health": "/health"
    }
