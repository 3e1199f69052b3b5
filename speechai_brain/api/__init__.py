"""
API routers for SpeechAI Brain.
"""

from fastapi import APIRouter

from .analysis import router as analysis_router
from .audio import router as audio_router
from .conversations import router as conversations_router
from .health import router as health_router
from .users import router as users_router

# Main router that aggregates all sub-routers
router = APIRouter()

router.include_router(health_router)
router.include_router(audio_router)
router.include_router(users_router)
router.include_router(conversations_router)
router.include_router(analysis_router)
