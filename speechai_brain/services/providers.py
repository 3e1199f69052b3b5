"""
Configured collaborator instances.

Each getter builds its service from ``settings`` on first use. The API
layer resolves collaborators through these getters, so tests can override
them with fakes.
"""

import logging
from typing import Optional

from ..config import settings
from .audio_storage import LocalAudioStorage
from .llm import OpenAIChatLLM
from .speech import GoogleSynthesizer, GoogleTranscriber

logger = logging.getLogger("speechai.providers")

_chat_llm: Optional[OpenAIChatLLM] = None
_transcriber: Optional[GoogleTranscriber] = None
_synthesizer: Optional[GoogleSynthesizer] = None
_audio_storage: Optional[LocalAudioStorage] = None


def get_chat_llm() -> OpenAIChatLLM:
    global _chat_llm
    if _chat_llm is None:
        cfg = settings.llm
        _chat_llm = OpenAIChatLLM(
            model=cfg.model,
            api_key=cfg.resolved_api_key,
            base_url=cfg.base_url,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            default_instructions=cfg.instructions,
        )
        logger.info("Chat backend: model=%s, base_url=%s", cfg.model, cfg.base_url)
    return _chat_llm


def get_transcriber() -> GoogleTranscriber:
    global _transcriber
    if _transcriber is None:
        cfg = settings.stt
        _transcriber = GoogleTranscriber(
            api_key=cfg.resolved_api_key,
            url=cfg.url,
            language_code=cfg.language_code,
            alternative_language_codes=cfg.alternative_language_codes,
            sample_rate_hz=cfg.sample_rate_hz,
        )
    return _transcriber


def get_synthesizer() -> GoogleSynthesizer:
    global _synthesizer
    if _synthesizer is None:
        cfg = settings.tts
        _synthesizer = GoogleSynthesizer(
            api_key=cfg.resolved_api_key,
            url=cfg.url,
            default_language=cfg.default_language,
            ssml_gender=cfg.ssml_gender,
        )
    return _synthesizer


def get_audio_storage() -> LocalAudioStorage:
    global _audio_storage
    if _audio_storage is None:
        _audio_storage = LocalAudioStorage(
            root=settings.audio.storage_dir,
            public_base_url=settings.public_base_url,
            public_path=settings.audio.public_path,
        )
    return _audio_storage


async def close_providers() -> None:
    """Close the HTTP clients of every created collaborator (call from app shutdown)."""
    global _chat_llm, _transcriber, _synthesizer
    for service in (_chat_llm, _transcriber, _synthesizer):
        if service is not None:
            await service.aclose()
    _chat_llm = _transcriber = _synthesizer = None
