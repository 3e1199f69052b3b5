"""
SpeechAI Brain - Language Learning Voice Assistant Server

The main FastAPI application entry point.
"""

# Load .env file FIRST, before any other imports
from pathlib import Path
from dotenv import load_dotenv
_env_root = Path(__file__).parent.parent
load_dotenv(_env_root / ".env")

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .api import router as api_router
from .api.errors import register_exception_handlers
from .config import settings
from .services.providers import close_providers
from .storage import StorageError, db_settings
from .storage.database import init_database, close_database

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("speechai.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Handles startup (database pool, migrations) and shutdown (cleanup).
    """
    # --- Startup ---
    logger.info("SpeechAI Brain starting up...")

    if db_settings.enabled:
        try:
            await init_database()
            logger.info("Database connection pool initialized")
        except StorageError as e:
            logger.error("Failed to initialize database: %s", e)
            # Requests touching storage will fail with DatabaseUnavailableError
    else:
        logger.info("Using %s document store", db_settings.backend)

    logger.info("SpeechAI Brain startup complete")

    yield

    # --- Shutdown ---
    logger.info("SpeechAI Brain shutting down...")
    await close_providers()
    if db_settings.enabled:
        await close_database()
    logger.info("SpeechAI Brain shutdown complete")


# Create the FastAPI application
app = FastAPI(
    title="SpeechAI Brain",
    description="Voice conversation and language-learning assistant backend.",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include API routers with /api prefix
app.include_router(api_router, prefix="/api")

# Serve stored prompt/answer audio
settings.audio.storage_dir.mkdir(parents=True, exist_ok=True)
app.mount(
    settings.audio.public_path,
    StaticFiles(directory=str(settings.audio.storage_dir)),
    name="audio",
)
