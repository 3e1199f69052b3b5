"""
Centralized configuration management using Pydantic Settings.

Configuration is loaded from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_INSTRUCTIONS = (
    "You are an AI language tutor who helps people learn languages. "
    "Answer briefly and naturally, the way you would in a spoken conversation."
)


class LLMConfig(BaseSettings):
    """Chat-completion (OpenAI-compatible API) configuration."""

    model_config = SettingsConfigDict(env_prefix="SPEECHAI_LLM_", env_file=".env", extra="ignore")

    base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI-compatible API base URL")
    api_key: Optional[str] = Field(
        default=None,
        description="API key (or set OPENAI_API_KEY env var)",
    )
    model: str = Field(default="gpt-4o", description="Chat model name")
    temperature: float = Field(default=0.7, description="Sampling temperature")
    max_tokens: int = Field(default=512, description="Maximum tokens per reply")
    instructions: str = Field(
        default=DEFAULT_INSTRUCTIONS,
        description="Standing system instructions for spoken replies",
    )

    @property
    def resolved_api_key(self) -> str:
        return self.api_key or os.environ.get("OPENAI_API_KEY", "")


class STTConfig(BaseSettings):
    """Speech-to-text (Google Cloud Speech REST) configuration."""

    model_config = SettingsConfigDict(env_prefix="SPEECHAI_STT_", env_file=".env", extra="ignore")

    url: str = Field(
        default="https://speech.googleapis.com/v1/speech:recognize",
        description="Recognize endpoint",
    )
    api_key: Optional[str] = Field(default=None, description="API key (or set GOOGLE_API_KEY env var)")
    language_code: str = Field(default="sv-SE", description="Primary recognition language")
    alternative_language_codes: list[str] = Field(
        default=["en-US"],
        description="Additional language hints for recognition",
    )
    sample_rate_hz: int = Field(default=48000, description="Sample rate of the converted WAV")

    @property
    def resolved_api_key(self) -> str:
        return self.api_key or os.environ.get("GOOGLE_API_KEY", "")


class TTSConfig(BaseSettings):
    """Text-to-speech (Google Cloud Text-to-Speech REST) configuration."""

    model_config = SettingsConfigDict(env_prefix="SPEECHAI_TTS_", env_file=".env", extra="ignore")

    url: str = Field(
        default="https://texttospeech.googleapis.com/v1/text:synthesize",
        description="Synthesize endpoint",
    )
    api_key: Optional[str] = Field(default=None, description="API key (or set GOOGLE_API_KEY env var)")
    default_language: str = Field(default="sv-SE", description="Fallback voice language")
    ssml_gender: str = Field(default="NEUTRAL", description="Voice gender")

    @property
    def resolved_api_key(self) -> str:
        return self.api_key or os.environ.get("GOOGLE_API_KEY", "")


class AudioConfig(BaseSettings):
    """Audio transcoding and blob storage configuration."""

    model_config = SettingsConfigDict(env_prefix="SPEECHAI_AUDIO_", env_file=".env", extra="ignore")

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")
    storage_dir: Path = Field(default=Path("audio_store"), description="Directory for stored audio blobs")
    public_path: str = Field(default="/audio", description="URL path the blobs are served under")


class ConversationConfig(BaseSettings):
    """Turn orchestration configuration."""

    model_config = SettingsConfigDict(env_prefix="SPEECHAI_CONVERSATION_", env_file=".env", extra="ignore")

    dependency_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for any external call before failing the request",
    )
    tag_reply_language: bool = Field(
        default=True,
        description="Ask the model to prefix replies with a language code for speech synthesis",
    )
    end_acknowledgement: str = Field(
        default="Okay, the conversation has ended.",
        description="Spoken acknowledgement for the end-conversation command",
    )
    guest_prefix: str = Field(default="Guest", description="Prefix of assigned guest ids")

    @field_validator("dependency_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("dependency_timeout must be positive")
        return v


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SPEECHAI_",
        env_file=".env",
        extra="ignore",
    )

    # General
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Externally reachable base URL used for audio links",
    )

    # Nested configs
    llm: LLMConfig = Field(default_factory=LLMConfig)
    stt: STTConfig = Field(default_factory=STTConfig)
    tts: TTSConfig = Field(default_factory=TTSConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()


# Singleton settings instance
settings = Settings()
