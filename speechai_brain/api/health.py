"""
Health check endpoints.
"""

from fastapi import APIRouter

from ..config import settings
from ..storage import db_settings, get_db_pool

router = APIRouter(tags=["Health"])


@router.get("/ping")
async def ping():
    """Simple endpoint to verify server is running."""
    return {"status": "ok", "message": "pong"}


@router.get("/health")
async def health():
    """Health check with storage and collaborator configuration."""
    database = {"backend": db_settings.backend}
    if db_settings.enabled:
        database["connected"] = await get_db_pool().ping()

    return {
        "status": "ok" if database.get("connected", True) else "degraded",
        "services": {
            "database": database,
            "llm": {"model": settings.llm.model, "configured": bool(settings.llm.resolved_api_key)},
            "stt": {"language": settings.stt.language_code, "configured": bool(settings.stt.resolved_api_key)},
            "tts": {"language": settings.tts.default_language, "configured": bool(settings.tts.resolved_api_key)},
        },
    }
