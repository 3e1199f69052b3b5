"""
Turn orchestration for uploaded audio snippets.

One call handles one snippet:

    RECEIVED -> TRANSCRIBED -> TERMINATING                  (end command)
                            -> SEGMENTED -> LOGGED_ONLY      (no wake phrase)
                                         -> ANSWERING        (wake phrase + question)
             -> RESPONDED

Text before the wake phrase is logged as a turn without an answer; text
after it is sent to the chat model, answered with synthesized speech and
logged as a second turn. Every collaborator call is bounded by a timeout.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional
from uuid import uuid4

from ..services.base import call_dependency
from ..services.identity import GuestIdProvider
from ..services.protocols import AudioStorage, ChatLLM, SpeechSynthesizer, Transcriber
from ..storage.exceptions import StorageError
from ..storage.models import ConversationTarget, Turn
from ..storage.repositories.conversation import ConversationRepository
from .audio import AudioTranscoder
from .wake_phrase import WakePhraseSegmenter

logger = logging.getLogger("speechai.voice.orchestrator")

LANGUAGE_TAG_INSTRUCTIONS = (
    "Start your reply with the BCP-47 language code of the language you answer in "
    "(for example sv-SE or en-US) alone on the first line, then the reply itself."
)

# Lowercase language subtag plus uppercase or numeric region ("sv-SE", "es-419")
LANGUAGE_TAG = re.compile(r"^\W*([a-z]{2,3})[-_]([A-Z]{2}|\d{3})\W*$")


class TurnState(Enum):
    RECEIVED = "received"
    TRANSCRIBED = "transcribed"
    TERMINATING = "terminating"
    SEGMENTED = "segmented"
    LOGGED_ONLY = "logged_only"
    ANSWERING = "answering"
    RESPONDED = "responded"


@dataclass
class TurnResult:
    """Outcome of one snippet."""

    audio: bytes = b""
    transcription: str = ""
    reply_text: str = ""
    conversation_id: Optional[str] = None
    states: list[TurnState] = field(default_factory=lambda: [TurnState.RECEIVED])

    @property
    def state(self) -> TurnState:
        return self.states[-1]

    def advance(self, state: TurnState) -> None:
        logger.debug("Turn state: %s -> %s", self.state.name, state.name)
        self.states.append(state)


def parse_language_tag(reply: str) -> tuple[Optional[str], str]:
    """
    Split a leading language-code line off a reply.

    Returns:
        (language code or None, remaining reply text)
    """
    first, _, rest = reply.strip().partition("\n")
    match = LANGUAGE_TAG.match(first.strip())
    if match and rest.strip():
        return f"{match.group(1)}-{match.group(2)}", rest.strip()
    return None, reply.strip()


class TurnOrchestrator:
    """Coordinates transcription, segmentation, storage and replies."""

    def __init__(
        self,
        conversations: ConversationRepository,
        guest_ids: GuestIdProvider,
        transcriber: Transcriber,
        llm: ChatLLM,
        synthesizer: SpeechSynthesizer,
        storage: AudioStorage,
        transcoder: AudioTranscoder,
        segmenter: Optional[WakePhraseSegmenter] = None,
        instructions: Optional[str] = None,
        timeout: float = 30.0,
        tag_reply_language: bool = True,
        default_language: str = "sv-SE",
        end_acknowledgement: str = "Okay, the conversation has ended.",
    ):
        self.conversations = conversations
        self.guest_ids = guest_ids
        self.transcriber = transcriber
        self.llm = llm
        self.synthesizer = synthesizer
        self.storage = storage
        self.transcoder = transcoder
        self.segmenter = segmenter or WakePhraseSegmenter()
        self.instructions = instructions
        self.timeout = timeout
        self.tag_reply_language = tag_reply_language
        self.default_language = default_language
        self.end_acknowledgement = end_acknowledgement

    async def _call(self, name: str, awaitable):
        return await call_dependency(name, awaitable, self.timeout)

    async def _store(self, name: str, awaitable):
        return await call_dependency(name, awaitable, self.timeout, passthrough=(StorageError,))

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------

    async def resolve_target(self, user_ids: Iterable[str]) -> ConversationTarget:
        """0 ids -> process guest, 1 id -> single-user, more -> multi-user."""
        ids = list(user_ids)
        if not ids:
            ids = [await self._store("guest id", self.guest_ids.get_guest_id())]
        return ConversationTarget.for_ids(ids)

    async def end_conversation(self, user_ids: Iterable[str]) -> Optional[str]:
        """End the open conversation of the resolved target, if any."""
        target = await self.resolve_target(user_ids)
        return await self._store("end conversation", self.conversations.end(target))

    # ------------------------------------------------------------------
    # Audio paths
    # ------------------------------------------------------------------

    async def _blob_prefix(self, target: ConversationTarget, turn_key: str) -> str:
        if target.is_multi_user:
            ref = await self._store("open conversation", self.conversations.open_or_create(target))
            return f"multiUserConversations/{ref.conversation_id}/{turn_key}_"
        return f"{target.owner_id}/conversations/{turn_key}/"

    async def _upload_prompt(self, target: ConversationTarget, turn_key: str, mp3: bytes) -> tuple[str, str]:
        prefix = await self._blob_prefix(target, turn_key)
        url = await self._call("audio storage", self.storage.save(f"{prefix}prompt.mp3", mp3))
        return prefix, url

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    def _reply_instructions(self) -> Optional[str]:
        if not self.tag_reply_language:
            return self.instructions
        if self.instructions:
            return f"{self.instructions}\n\n{LANGUAGE_TAG_INSTRUCTIONS}"
        return LANGUAGE_TAG_INSTRUCTIONS

    async def _answer(self, question: str) -> tuple[str, bytes]:
        reply = await self._call("llm", self.llm.complete(question, instructions=self._reply_instructions()))
        language = None
        if self.tag_reply_language:
            language, reply = parse_language_tag(reply)
        language = language or self.default_language
        logger.info("Answering in %s (%d chars)", language, len(reply))
        audio = await self._call("tts", self.synthesizer.synthesize(reply, language_code=language))
        return reply, audio

    # ------------------------------------------------------------------
    # Snippets
    # ------------------------------------------------------------------

    async def process_audio(
        self,
        data: bytes,
        user_ids: Iterable[str] = (),
        suffix: str = ".webm",
    ) -> TurnResult:
        """
        Handle one uploaded snippet.

        Args:
            data: Uploaded recording
            user_ids: Resolved participant user ids (empty for the guest)
            suffix: File suffix of the upload, passed to ffmpeg

        Returns:
            TurnResult whose ``audio`` is the spoken reply (possibly empty)
        """
        user_ids = list(user_ids)
        result = TurnResult()

        converted = await self._call("ffmpeg", self.transcoder.transcode(data, suffix))
        result.transcription = (await self._call("stt", self.transcriber.transcribe(converted.wav))).strip()
        result.advance(TurnState.TRANSCRIBED)

        if not result.transcription:
            logger.info("Empty transcription; nothing to store")
            result.advance(TurnState.RESPONDED)
            return result

        segmentation = self.segmenter.segment(result.transcription)

        if segmentation.is_end_command:
            result.advance(TurnState.TERMINATING)
            result.audio = await self._call("tts", self.synthesizer.synthesize(self.end_acknowledgement))
            result.conversation_id = await self.end_conversation(user_ids)
            result.advance(TurnState.RESPONDED)
            return result

        result.advance(TurnState.SEGMENTED)
        if not segmentation.logged_segment and not segmentation.should_answer:
            logger.info("Wake phrase without a question; nothing to store")
            result.advance(TurnState.RESPONDED)
            return result

        target = await self.resolve_target(user_ids)
        turn_key = uuid4().hex
        prefix = prompt_url = None

        # The multi-user blob prefix opens the conversation, so it is only
        # resolved once a turn is about to be written.
        if segmentation.logged_segment:
            prefix, prompt_url = await self._upload_prompt(target, turn_key, converted.mp3)
            result.conversation_id = await self._store(
                "save turn",
                self.conversations.save_turn(
                    target, Turn(prompt_text=segmentation.logged_segment, prompt_audio_url=prompt_url)
                ),
            )
        result.advance(TurnState.LOGGED_ONLY)

        if not segmentation.should_answer:
            result.advance(TurnState.RESPONDED)
            return result

        result.advance(TurnState.ANSWERING)
        result.reply_text, result.audio = await self._answer(segmentation.answer_segment)
        if prefix is None:
            prefix, prompt_url = await self._upload_prompt(target, turn_key, converted.mp3)
        answer_url = await self._call(
            "audio storage", self.storage.save(f"{prefix}answer.mp3", result.audio)
        )
        result.conversation_id = await self._store(
            "save turn",
            self.conversations.save_turn(
                target,
                Turn(
                    prompt_text=segmentation.answer_segment,
                    answer_text=result.reply_text,
                    prompt_audio_url=prompt_url,
                    answer_audio_url=answer_url,
                ),
            ),
        )
        result.advance(TurnState.RESPONDED)
        return result


# Global instance
_turn_orchestrator: Optional[TurnOrchestrator] = None


def get_turn_orchestrator() -> TurnOrchestrator:
    """Get the global turn orchestrator built from settings."""
    global _turn_orchestrator
    if _turn_orchestrator is None:
        from ..config import settings
        from ..services.identity import get_guest_id_provider
        from ..services.providers import (
            get_audio_storage,
            get_chat_llm,
            get_synthesizer,
            get_transcriber,
        )
        from ..storage.repositories.conversation import get_conversation_repo

        _turn_orchestrator = TurnOrchestrator(
            conversations=get_conversation_repo(),
            guest_ids=get_guest_id_provider(),
            transcriber=get_transcriber(),
            llm=get_chat_llm(),
            synthesizer=get_synthesizer(),
            storage=get_audio_storage(),
            transcoder=AudioTranscoder(settings.audio.ffmpeg_path, settings.stt.sample_rate_hz),
            instructions=settings.llm.instructions,
            timeout=settings.conversation.dependency_timeout,
            tag_reply_language=settings.conversation.tag_reply_language,
            default_language=settings.tts.default_language,
            end_acknowledgement=settings.conversation.end_acknowledgement,
        )
    return _turn_orchestrator
