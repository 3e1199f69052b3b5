"""
Google Cloud speech adapters (REST, API-key auth).

- ``GoogleTranscriber``: ``speech:recognize`` on LINEAR16 WAV audio.
- ``GoogleSynthesizer``: ``text:synthesize`` returning MP3 audio.
"""

import base64
import logging
from typing import Optional

from ..base import CloudService

logger = logging.getLogger("speechai.speech.google")


class GoogleTranscriber(CloudService):
    """Speech-to-text over the Cloud Speech REST API."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://speech.googleapis.com/v1/speech:recognize",
        language_code: str = "sv-SE",
        alternative_language_codes: Optional[list[str]] = None,
        sample_rate_hz: int = 48000,
        timeout: float = 60.0,
    ):
        super().__init__(name="stt", timeout=timeout)
        self.api_key = api_key
        self.url = url
        self.language_code = language_code
        self.alternative_language_codes = list(alternative_language_codes or [])
        self.sample_rate_hz = sample_rate_hz

    def _build_request(self, wav_bytes: bytes) -> dict:
        config = {
            "encoding": "LINEAR16",
            "sampleRateHertz": self.sample_rate_hz,
            "languageCode": self.language_code,
        }
        if self.alternative_language_codes:
            config["alternativeLanguageCodes"] = self.alternative_language_codes
        return {
            "config": config,
            "audio": {"content": base64.b64encode(wav_bytes).decode("ascii")},
        }

    async def transcribe(self, wav_bytes: bytes) -> str:
        """Transcribe a WAV file; results are joined line by line."""
        data = await self._post_json(self.url, self._build_request(wav_bytes), params={"key": self.api_key})
        lines = [
            result["alternatives"][0].get("transcript", "")
            for result in data.get("results", [])
            if result.get("alternatives")
        ]
        transcript = "\n".join(line.strip() for line in lines if line.strip())
        logger.info("Transcribed %d bytes -> %d chars", len(wav_bytes), len(transcript))
        return transcript


class GoogleSynthesizer(CloudService):
    """Text-to-speech over the Cloud Text-to-Speech REST API."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://texttospeech.googleapis.com/v1/text:synthesize",
        default_language: str = "sv-SE",
        ssml_gender: str = "NEUTRAL",
        timeout: float = 60.0,
    ):
        super().__init__(name="tts", timeout=timeout)
        self.api_key = api_key
        self.url = url
        self.default_language = default_language
        self.ssml_gender = ssml_gender

    async def synthesize(self, text: str, language_code: Optional[str] = None) -> bytes:
        payload = {
            "input": {"text": text},
            "voice": {
                "languageCode": language_code or self.default_language,
                "ssmlGender": self.ssml_gender,
            },
            "audioConfig": {"audioEncoding": "MP3"},
        }
        data = await self._post_json(self.url, payload, params={"key": self.api_key})
        audio = base64.b64decode(data.get("audioContent", ""))
        logger.info("Synthesized %d chars -> %d bytes", len(text), len(audio))
        return audio
