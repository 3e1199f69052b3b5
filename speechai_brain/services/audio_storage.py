"""
Local-directory blob storage for conversation audio.

Blobs are written under ``storage_dir`` and served by the app under
``public_path``; ``save`` returns the public URL.
"""

import asyncio
import logging
from pathlib import Path
from urllib.parse import quote

logger = logging.getLogger("speechai.audio_storage")


class LocalAudioStorage:
    """Stores audio blobs on the local filesystem."""

    def __init__(self, root: Path, public_base_url: str, public_path: str = "/audio"):
        self.root = Path(root)
        self.base_url = public_base_url.rstrip("/") + "/" + public_path.strip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise ValueError(f"Blob path escapes storage root: {path!r}")
        return target

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{quote(path)}"

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def save(self, path: str, data: bytes, content_type: str = "audio/mpeg") -> str:
        target = self._resolve(path)
        await asyncio.to_thread(self._write, target, data)
        logger.debug("Stored %d bytes (%s) at %s", len(data), content_type, target)
        return self.url_for(path)
