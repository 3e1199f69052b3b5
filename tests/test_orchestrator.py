"""Tests for TurnOrchestrator with fake collaborators and an in-memory store.

Covers:
- empty transcription, end command, logged-only and answered snippets
- target resolution (guest, single, multi-user)
- reply language tagging
- timeouts and collaborator failures
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from speechai_brain.services.exceptions import DependencyError, DependencyTimeout
from speechai_brain.services.identity import GuestIdProvider
from speechai_brain.storage.exceptions import ConversationNotFoundError
from speechai_brain.voice.audio import TranscodedAudio
from speechai_brain.voice.orchestrator import TurnOrchestrator, TurnState, parse_language_tag


def _fakes(transcript="", reply="sv-SE\nHej!"):
    transcriber = MagicMock()
    transcriber.transcribe = AsyncMock(return_value=transcript)
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=reply)
    synthesizer = MagicMock()
    synthesizer.synthesize = AsyncMock(return_value=b"MP3-REPLY")
    storage = MagicMock()
    storage.save = AsyncMock(side_effect=lambda path, data, content_type="audio/mpeg": f"http://test/audio/{path}")
    transcoder = MagicMock()
    transcoder.transcode = AsyncMock(return_value=TranscodedAudio(wav=b"WAV", mp3=b"MP3-PROMPT"))
    return transcriber, llm, synthesizer, storage, transcoder


@pytest.fixture
def build(conversations):
    def _build(transcript="", reply="sv-SE\nHej!", **kwargs):
        transcriber, llm, synthesizer, storage, transcoder = _fakes(transcript, reply)
        orchestrator = TurnOrchestrator(
            conversations=conversations,
            guest_ids=GuestIdProvider(conversations),
            transcriber=transcriber,
            llm=llm,
            synthesizer=synthesizer,
            storage=storage,
            transcoder=transcoder,
            instructions="Be a tutor.",
            timeout=kwargs.pop("timeout", 1.0),
            **kwargs,
        )
        return orchestrator
    return _build


# ---------------------------------------------------------------------------
# Language tags
# ---------------------------------------------------------------------------


class TestParseLanguageTag:
    def test_tagged(self):
        assert parse_language_tag("en-US\nHello there") == ("en-US", "Hello there")

    def test_markup_and_underscore(self):
        assert parse_language_tag("**sv_SE**\nHej") == ("sv-SE", "Hej")

    def test_untagged(self):
        assert parse_language_tag("Hej!\nHur mår du?") == (None, "Hej!\nHur mår du?")

    def test_tag_only(self):
        assert parse_language_tag("sv-SE") == (None, "sv-SE")

    @pytest.mark.parametrize("first_line", ["Ha-ha!", "So-so.", "Oh-oh", "sv-se", "EN-US"])
    def test_hyphenated_words_are_not_tags(self, first_line):
        reply = f"{first_line}\nThat is funny."
        assert parse_language_tag(reply) == (None, reply)

    def test_numeric_region(self):
        assert parse_language_tag("es-419\nHola") == ("es-419", "Hola")


# ---------------------------------------------------------------------------
# Snippet paths
# ---------------------------------------------------------------------------


class TestProcessAudio:
    @pytest.mark.asyncio
    async def test_empty_transcription_writes_nothing(self, build, store):
        orchestrator = build(transcript="   ")
        result = await orchestrator.process_audio(b"webm", ["u1"])
        assert result.audio == b""
        assert result.states == [TurnState.RECEIVED, TurnState.TRANSCRIBED, TurnState.RESPONDED]
        assert await store.scan("Conversations") == []
        orchestrator.storage.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_logged_only(self, build, conversations):
        orchestrator = build(transcript="we are just chatting")
        result = await orchestrator.process_audio(b"webm", ["u1"])

        assert result.audio == b""
        assert result.state is TurnState.RESPONDED
        assert TurnState.ANSWERING not in result.states
        orchestrator.llm.complete.assert_not_called()

        [conversation] = await conversations.get_user_conversations("u1")
        [turn] = conversation.turns
        assert turn.prompt_text == "we are just chatting"
        assert turn.answer_text == ""
        assert turn.answer_audio_url == ""
        assert turn.prompt_audio_url.startswith("http://test/audio/u1/conversations/")
        assert turn.prompt_audio_url.endswith("/prompt.mp3")

    @pytest.mark.asyncio
    async def test_logged_and_answered_are_two_turns(self, build, conversations):
        orchestrator = build(transcript="hello there hi speech ai please translate this", reply="en-US\nSure!")
        result = await orchestrator.process_audio(b"webm", ["u1"])

        assert result.audio == b"MP3-REPLY"
        assert result.reply_text == "Sure!"
        assert result.states == [
            TurnState.RECEIVED,
            TurnState.TRANSCRIBED,
            TurnState.SEGMENTED,
            TurnState.LOGGED_ONLY,
            TurnState.ANSWERING,
            TurnState.RESPONDED,
        ]
        orchestrator.llm.complete.assert_awaited_once()
        assert orchestrator.llm.complete.call_args.args[0] == "please translate this"
        orchestrator.synthesizer.synthesize.assert_awaited_once_with("Sure!", language_code="en-US")

        [conversation] = await conversations.get_user_conversations("u1")
        logged, answered = conversation.turns
        assert (logged.prompt_text, logged.answer_text) == ("hello there", "")
        assert (answered.prompt_text, answered.answer_text) == ("please translate this", "Sure!")
        assert answered.prompt_audio_url == logged.prompt_audio_url
        assert answered.answer_audio_url.endswith("/answer.mp3")

    @pytest.mark.asyncio
    async def test_wake_phrase_without_question(self, build, conversations):
        orchestrator = build(transcript="hi speech ai")
        result = await orchestrator.process_audio(b"webm", ["u1"])
        assert result.audio == b""
        orchestrator.llm.complete.assert_not_called()
        orchestrator.storage.save.assert_not_called()
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_user_conversations("u1")

    @pytest.mark.asyncio
    async def test_untagged_reply_uses_default_language(self, build):
        orchestrator = build(transcript="hi speech ai hur mår du", reply="Bra, tack!", default_language="sv-SE")
        await orchestrator.process_audio(b"webm", ["u1"])
        orchestrator.synthesizer.synthesize.assert_awaited_once_with("Bra, tack!", language_code="sv-SE")

    @pytest.mark.asyncio
    async def test_tagging_disabled(self, build):
        orchestrator = build(transcript="hi speech ai question", reply="en-US\nAnswer", tag_reply_language=False)
        result = await orchestrator.process_audio(b"webm", ["u1"])
        assert result.reply_text == "en-US\nAnswer"
        assert orchestrator.llm.complete.call_args.kwargs["instructions"] == "Be a tutor."

    @pytest.mark.asyncio
    async def test_instructions_ask_for_language_tag(self, build):
        orchestrator = build(transcript="hi speech ai question")
        await orchestrator.process_audio(b"webm", ["u1"])
        instructions = orchestrator.llm.complete.call_args.kwargs["instructions"]
        assert instructions.startswith("Be a tutor.")
        assert "language code" in instructions


class TestTargets:
    @pytest.mark.asyncio
    async def test_guest_when_no_participants(self, build, conversations):
        orchestrator = build(transcript="guest talking")
        await orchestrator.process_audio(b"webm", [])
        await orchestrator.process_audio(b"webm", [])
        [conversation] = await conversations.get_user_conversations("Guest-1")
        assert len(conversation.turns) == 2

    @pytest.mark.asyncio
    async def test_multi_user_path(self, build, conversations, store):
        orchestrator = build(transcript="group chat")
        result = await orchestrator.process_audio(b"webm", ["u2", "u1"])
        doc = await store.get(f"MultiUserConversations/{result.conversation_id}")
        assert doc["participants"] == {"u1": True, "u2": True}
        prompt_url = doc["turns"][0]["promptAudioUrl"]
        assert f"multiUserConversations/{result.conversation_id}/" in prompt_url
        assert prompt_url.endswith("_prompt.mp3")

    @pytest.mark.asyncio
    async def test_sequential_snippets_until_end_command(self, build, conversations):
        first = await build(transcript="first").process_audio(b"webm", ["u1"])
        second = await build(transcript="second").process_audio(b"webm", ["u1"])
        assert first.conversation_id == second.conversation_id

        ending = build(transcript="End conversation")
        ended = await ending.process_audio(b"webm", ["u1"])
        assert ended.audio == b"MP3-REPLY"
        assert TurnState.TERMINATING in ended.states
        assert ended.conversation_id == first.conversation_id
        ending.storage.save.assert_not_called()

        third = await build(transcript="third").process_audio(b"webm", ["u1"])
        assert third.conversation_id != first.conversation_id

    @pytest.mark.asyncio
    async def test_end_command_without_open_conversation(self, build):
        orchestrator = build(transcript="end conversation")
        result = await orchestrator.process_audio(b"webm", ["u9"])
        assert result.conversation_id is None
        assert result.audio == b"MP3-REPLY"


class TestFailures:
    @pytest.mark.asyncio
    async def test_stt_timeout(self, build, store):
        orchestrator = build(transcript="x", timeout=0.05)

        async def slow(_):
            await asyncio.sleep(1)
            return "late"

        orchestrator.transcriber.transcribe = AsyncMock(side_effect=slow)
        with pytest.raises(DependencyTimeout):
            await orchestrator.process_audio(b"webm", ["u1"])
        assert await store.scan("Conversations") == []

    @pytest.mark.asyncio
    async def test_tts_failure(self, build):
        orchestrator = build(transcript="hi speech ai question")
        orchestrator.synthesizer.synthesize = AsyncMock(side_effect=RuntimeError("tts down"))
        with pytest.raises(DependencyError) as excinfo:
            await orchestrator.process_audio(b"webm", ["u1"])
        assert excinfo.value.service == "tts"
        assert excinfo.value.status_code == 500

    @pytest.mark.asyncio
    async def test_hyphenated_reply_speaks_default_language(self, build, conversations):
        orchestrator = build(
            transcript="hi speech ai tell a joke",
            reply="Ha-ha!\nThat is funny.",
            default_language="sv-SE",
        )
        result = await orchestrator.process_audio(b"webm", ["u1"])
        orchestrator.synthesizer.synthesize.assert_awaited_once_with(
            "Ha-ha!\nThat is funny.", language_code="sv-SE"
        )
        [conversation] = await conversations.get_user_conversations("u1")
        assert conversation.turns[0].answer_text == result.reply_text

    @pytest.mark.asyncio
    async def test_multi_user_llm_failure_creates_no_conversation(self, build, store):
        orchestrator = build(transcript="hi speech ai what time is it")
        orchestrator.llm.complete = AsyncMock(side_effect=RuntimeError("llm down"))
        with pytest.raises(DependencyError):
            await orchestrator.process_audio(b"webm", ["u1", "u2"])
        assert await store.scan("MultiUserConversations") == []
        orchestrator.storage.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_multi_user_answer_only_uses_conversation_prefix(self, build, store):
        orchestrator = build(transcript="hi speech ai what time is it", reply="en-US\nNoon.")
        result = await orchestrator.process_audio(b"webm", ["u1", "u2"])
        doc = await store.get(f"MultiUserConversations/{result.conversation_id}")
        [turn] = doc["turns"]
        assert f"multiUserConversations/{result.conversation_id}/" in turn["promptAudioUrl"]
        assert turn["answerAudioUrl"].endswith("_answer.mp3")

    @pytest.mark.asyncio
    async def test_transcoding_failure(self, build):
        orchestrator = build(transcript="x")
        orchestrator.transcoder.transcode = AsyncMock(side_effect=OSError("no ffmpeg"))
        with pytest.raises(DependencyError):
            await orchestrator.process_audio(b"webm", ["u1"])
