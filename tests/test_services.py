"""Tests for collaborator adapters and helpers.

Covers:
- call_dependency timeout/error mapping
- OpenAI-compatible chat payloads
- Google speech request/response handling
- local audio storage
- ffmpeg transcoder cleanup
- request parameter parsing
"""

import asyncio
import base64
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from speechai_brain.api.params import parse_date_range, parse_participants
from speechai_brain.services.audio_storage import LocalAudioStorage
from speechai_brain.services.base import call_dependency
from speechai_brain.services.exceptions import DependencyError, DependencyTimeout
from speechai_brain.services.llm import OpenAIChatLLM
from speechai_brain.services.speech import GoogleSynthesizer, GoogleTranscriber
from speechai_brain.storage.exceptions import NotFoundError, ValidationError
from speechai_brain.voice.audio import AudioConversionError, AudioTranscoder


# ---------------------------------------------------------------------------
# call_dependency
# ---------------------------------------------------------------------------


class TestCallDependency:
    @pytest.mark.asyncio
    async def test_returns_value(self):
        async def ok():
            return 42

        assert await call_dependency("x", ok(), 1.0) == 42

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(DependencyTimeout) as excinfo:
            await call_dependency("stt", asyncio.sleep(1), 0.01)
        assert excinfo.value.status_code == 504
        assert excinfo.value.service == "stt"

    @pytest.mark.asyncio
    async def test_wraps_failures(self):
        async def boom():
            raise ValueError("bad")

        with pytest.raises(DependencyError) as excinfo:
            await call_dependency("llm", boom(), 1.0)
        assert isinstance(excinfo.value.cause, ValueError)

    @pytest.mark.asyncio
    async def test_passthrough(self):
        async def missing():
            raise NotFoundError("gone")

        with pytest.raises(NotFoundError):
            await call_dependency("store", missing(), 1.0, passthrough=(NotFoundError,))


# ---------------------------------------------------------------------------
# Cloud adapters
# ---------------------------------------------------------------------------


class TestOpenAIChatLLM:
    @pytest.mark.asyncio
    async def test_per_call_instructions(self):
        llm = OpenAIChatLLM(api_key="k", default_instructions="default")
        llm._post_json = AsyncMock(return_value={"choices": [{"message": {"content": "  hi  "}}]})

        assert await llm.complete("question", instructions="special") == "hi"
        url, payload = llm._post_json.call_args.args
        assert url == "https://api.openai.com/v1/chat/completions"
        assert payload["model"] == "gpt-4o"
        assert payload["messages"] == [
            {"role": "system", "content": "special"},
            {"role": "user", "content": "question"},
        ]

    @pytest.mark.asyncio
    async def test_default_instructions(self):
        llm = OpenAIChatLLM(api_key="k", default_instructions="default")
        llm._post_json = AsyncMock(return_value={"choices": [{"message": {"content": None}}]})
        assert await llm.complete("q") == ""
        assert llm._post_json.call_args.args[1]["messages"][0]["content"] == "default"

    def test_auth_header(self):
        llm = OpenAIChatLLM(api_key="secret", base_url="http://local/v1/")
        assert llm.base_url == "http://local/v1"
        assert llm.client.headers["Authorization"] == "Bearer secret"


class TestGoogleSpeech:
    @pytest.mark.asyncio
    async def test_transcribe_request(self):
        stt = GoogleTranscriber(api_key="k", alternative_language_codes=["en-US"])
        stt._post_json = AsyncMock(
            return_value={
                "results": [
                    {"alternatives": [{"transcript": "hej "}]},
                    {"alternatives": []},
                    {"alternatives": [{"transcript": "hur mår du"}]},
                ]
            }
        )
        assert await stt.transcribe(b"RIFF") == "hej\nhur mår du"

        url, payload = stt._post_json.call_args.args
        assert stt._post_json.call_args.kwargs["params"] == {"key": "k"}
        assert payload["config"] == {
            "encoding": "LINEAR16",
            "sampleRateHertz": 48000,
            "languageCode": "sv-SE",
            "alternativeLanguageCodes": ["en-US"],
        }
        assert base64.b64decode(payload["audio"]["content"]) == b"RIFF"

    @pytest.mark.asyncio
    async def test_transcribe_no_results(self):
        stt = GoogleTranscriber(api_key="k")
        stt._post_json = AsyncMock(return_value={})
        assert await stt.transcribe(b"RIFF") == ""

    @pytest.mark.asyncio
    async def test_synthesize(self):
        tts = GoogleSynthesizer(api_key="k")
        tts._post_json = AsyncMock(return_value={"audioContent": base64.b64encode(b"MP3").decode()})
        assert await tts.synthesize("Hej", language_code="en-US") == b"MP3"
        payload = tts._post_json.call_args.args[1]
        assert payload["voice"] == {"languageCode": "en-US", "ssmlGender": "NEUTRAL"}
        assert payload["audioConfig"] == {"audioEncoding": "MP3"}

    @pytest.mark.asyncio
    async def test_synthesize_default_language(self):
        tts = GoogleSynthesizer(api_key="k", default_language="sv-SE")
        tts._post_json = AsyncMock(return_value={"audioContent": ""})
        await tts.synthesize("Hej")
        assert tts._post_json.call_args.args[1]["voice"]["languageCode"] == "sv-SE"


# ---------------------------------------------------------------------------
# Audio storage and transcoding
# ---------------------------------------------------------------------------


class TestLocalAudioStorage:
    @pytest.mark.asyncio
    async def test_save_returns_public_url(self, tmp_path):
        storage = LocalAudioStorage(tmp_path, "http://host:3000/", "/audio")
        url = await storage.save("u1/conversations/k1/prompt.mp3", b"data")
        assert url == "http://host:3000/audio/u1/conversations/k1/prompt.mp3"
        assert (tmp_path / "u1/conversations/k1/prompt.mp3").read_bytes() == b"data"

    @pytest.mark.asyncio
    async def test_rejects_escaping_paths(self, tmp_path):
        storage = LocalAudioStorage(tmp_path / "root", "http://host")
        with pytest.raises(ValueError):
            await storage.save("../outside.mp3", b"data")


class TestAudioTranscoder:
    @staticmethod
    def _process(returncode, outputs=True):
        async def communicate():
            return b"", b"ffmpeg said no"

        def factory(*cmd, **kwargs):
            if outputs:
                Path(cmd[cmd.index("pcm_s16le") + 1]).write_bytes(b"WAV")
                Path(cmd[-1]).write_bytes(b"MP3")
            process = MagicMock()
            process.returncode = returncode
            process.communicate = communicate
            factory.source = Path(cmd[cmd.index("-i") + 1])
            return process

        return AsyncMock(side_effect=factory)

    @pytest.mark.asyncio
    async def test_transcode(self):
        spawn = self._process(0)
        with patch("asyncio.create_subprocess_exec", spawn):
            result = await AudioTranscoder("ffmpeg", 16000).transcode(b"webm", ".webm")
        assert (result.wav, result.mp3) == (b"WAV", b"MP3")
        cmd = spawn.call_args.args
        assert cmd[0] == "ffmpeg"
        assert "16000" in cmd and "pcm_s16le" in cmd
        assert not spawn.side_effect.source.exists()

    @pytest.mark.asyncio
    async def test_failure_cleans_up(self):
        spawn = self._process(1, outputs=False)
        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(AudioConversionError):
                await AudioTranscoder().transcode(b"junk")
        assert not spawn.side_effect.source.parent.exists()

    @pytest.mark.asyncio
    async def test_cancellation_kills_and_reaps(self):
        process = MagicMock()
        process.communicate = AsyncMock(side_effect=asyncio.CancelledError)
        process.wait = AsyncMock(return_value=-9)
        spawn = AsyncMock(return_value=process)

        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(asyncio.CancelledError):
                await AudioTranscoder().transcode(b"webm")
        process.kill.assert_called_once_with()
        process.wait.assert_awaited_once_with()


# ---------------------------------------------------------------------------
# Request parameters
# ---------------------------------------------------------------------------


class TestParams:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, []),
            ("", []),
            ('["u1", "a@b.se"]', ["u1", "a@b.se"]),
            (["u1"], ["u1"]),
            ('"u1"', ["u1"]),
            ("u1", ["u1"]),
        ],
    )
    def test_participants(self, raw, expected):
        assert parse_participants(raw) == expected

    def test_participants_rejects_objects(self):
        with pytest.raises(ValidationError):
            parse_participants('{"id": 1}')

    def test_date_only_end_covers_day(self):
        start, end = parse_date_range("2024-03-01", "2024-03-02")
        assert start == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert end.date().isoformat() == "2024-03-02"
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_datetimes(self):
        start, end = parse_date_range("2024-03-01T10:00:00Z", "2024-03-01T12:00:00+02:00")
        assert start.tzinfo is not None
        assert end == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("start,end", [(None, "2024-01-01"), ("2024-01-01", ""), ("yesterday", "2024-01-01")])
    def test_invalid(self, start, end):
        with pytest.raises(ValidationError):
            parse_date_range(start, end)
