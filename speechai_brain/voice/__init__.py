"""
Voice turn handling for SpeechAI Brain.

- Wake-phrase segmentation of transcriptions
- ffmpeg transcoding of uploads
- Per-snippet turn orchestration
"""

from .audio import AudioConversionError, AudioTranscoder, TranscodedAudio
from .orchestrator import TurnOrchestrator, TurnResult, TurnState, get_turn_orchestrator
from .wake_phrase import Segmentation, WakePhraseSegmenter, is_end_command

__all__ = [
    "AudioConversionError",
    "AudioTranscoder",
    "TranscodedAudio",
    "TurnOrchestrator",
    "TurnResult",
    "TurnState",
    "get_turn_orchestrator",
    "Segmentation",
    "WakePhraseSegmenter",
    "is_end_command",
]
