"""
Services for SpeechAI Brain.

This module provides:
- Protocol definitions for the external collaborators
- Cloud adapters (chat completion, speech-to-text, text-to-speech)
- Local audio blob storage
- Participant identity resolution and guest ids
- Conversation analysis
"""

from .exceptions import DependencyError, DependencyTimeout
from .protocols import (
    AudioStorage,
    ChatLLM,
    Message,
    SpeechSynthesizer,
    Transcriber,
)

__all__ = [
    # Protocols
    "AudioStorage",
    "ChatLLM",
    "Message",
    "SpeechSynthesizer",
    "Transcriber",
    # Errors
    "DependencyError",
    "DependencyTimeout",
]
