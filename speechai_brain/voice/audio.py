"""
Upload transcoding with ffmpeg.

Browser recordings arrive as WebM/Ogg/whatever the client produced. One
ffmpeg run turns them into a mono LINEAR16 WAV for recognition and an MP3
copy for storage. Temporary files live in a per-call directory that is
removed on every exit path.
"""

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("speechai.voice.audio")


class AudioConversionError(Exception):
    """ffmpeg could not convert the upload."""


@dataclass
class TranscodedAudio:
    wav: bytes
    mp3: bytes


class AudioTranscoder:
    """Runs ffmpeg as an async subprocess."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", sample_rate_hz: int = 48000):
        self.ffmpeg_path = ffmpeg_path
        self.sample_rate_hz = sample_rate_hz

    def _command(self, source: Path, wav: Path, mp3: Path) -> list[str]:
        return [
            self.ffmpeg_path, "-y", "-hide_banner", "-loglevel", "error",
            "-i", str(source),
            "-ac", "1", "-ar", str(self.sample_rate_hz), "-c:a", "pcm_s16le", str(wav),
            "-c:a", "libmp3lame", "-q:a", "4", str(mp3),
        ]

    async def transcode(self, data: bytes, suffix: str = ".webm") -> TranscodedAudio:
        """Convert an uploaded recording to WAV and MP3."""
        with tempfile.TemporaryDirectory(prefix="speechai-") as tmp:
            tmp_dir = Path(tmp)
            source = tmp_dir / f"upload{suffix or '.bin'}"
            wav = tmp_dir / "converted.wav"
            mp3 = tmp_dir / "converted.mp3"
            source.write_bytes(data)

            process = await asyncio.create_subprocess_exec(
                *self._command(source, wav, mp3),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await process.communicate()
            except asyncio.CancelledError:
                process.kill()
                await process.wait()
                raise
            if process.returncode != 0:
                detail = stderr.decode(errors="replace").strip()
                logger.error("ffmpeg exited with %d: %s", process.returncode, detail)
                raise AudioConversionError(f"ffmpeg exited with {process.returncode}")

            result = TranscodedAudio(wav=wav.read_bytes(), mp3=mp3.read_bytes())

        logger.debug("Transcoded %d bytes -> wav=%d, mp3=%d", len(data), len(result.wav), len(result.mp3))
        return result
