"""
Protocol definitions for external collaborator services.

The orchestrator and the analysis aggregator depend only on these
interfaces, so the cloud adapters can be swapped or faked in tests.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable


@dataclass
class Message:
    """A chat message."""
    role: str  # "system", "user", "assistant"
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@runtime_checkable
class ChatLLM(Protocol):
    """Chat-completion service. Instructions are passed per call."""

    async def complete(self, prompt: str, instructions: Optional[str] = None) -> str:
        """Return the model's reply to *prompt* under *instructions*."""
        ...


@runtime_checkable
class Transcriber(Protocol):
    """Speech-to-text service."""

    async def transcribe(self, wav_bytes: bytes) -> str:
        """Return the transcription of a LINEAR16 WAV (may be empty)."""
        ...


@runtime_checkable
class SpeechSynthesizer(Protocol):
    """Text-to-speech service."""

    async def synthesize(self, text: str, language_code: Optional[str] = None) -> bytes:
        """Return MP3 audio speaking *text*."""
        ...


@runtime_checkable
class AudioStorage(Protocol):
    """Blob storage for prompt and answer audio."""

    async def save(self, path: str, data: bytes, content_type: str = "audio/mpeg") -> str:
        """Store *data* under *path* and return its public URL."""
        ...
