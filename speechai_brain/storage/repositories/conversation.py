"""
Conversation repository.

Single-user conversations live under ``Conversations/{userId}/{conversationId}``,
multi-user conversations under ``MultiUserConversations/{conversationId}`` with a
``participants`` membership map. Both keep the whole turn list in one document,
so every append is a read-modify-write of the full record.

Invariants:
- At most one open (``ended = false``) conversation per user, and per exact
  participant set. Lookups pick the most recently created open record.
- Turns are append-only; ending only sets ``ended``/``endedAt``.
- Turns with a blank prompt are never written.

Writes for the same owner (user id or participant set) run under a per-key
lock, so concurrent snippets of one conversation append in sequence instead
of overwriting each other.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..documents import Document, DocumentStore, get_document_store, join_path
from ..exceptions import ConversationNotFoundError, ValidationError
from ..locks import KeyedLock
from ..models import AudioReference, Conversation, ConversationTarget, Turn, utcnow

logger = logging.getLogger("speechai.storage.conversation")

SINGLE_USER = "Conversations"
MULTI_USER = "MultiUserConversations"
COUNTERS = "Counters"
GUEST_COUNTER = "guest"


@dataclass(frozen=True)
class ConversationRef:
    """A concrete conversation record of a target."""

    target: ConversationTarget
    conversation_id: str

    @property
    def path(self) -> str:
        if self.target.is_multi_user:
            return join_path(MULTI_USER, self.conversation_id)
        return join_path(SINGLE_USER, self.target.owner_id, self.conversation_id)


def _is_open(doc: Document) -> bool:
    return not doc.get("ended", False)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class ConversationRepository:
    """Repository for single-user and multi-user conversations."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        locks: Optional[KeyedLock] = None,
        guest_prefix: str = "Guest",
    ):
        self._store = store
        self._locks = locks or KeyedLock()
        self.guest_prefix = guest_prefix
        self._guest_pattern = re.compile(rf"^{re.escape(guest_prefix)}-(\d+)$")

    @property
    def store(self) -> DocumentStore:
        return self._store or get_document_store()

    def _hold(self, target: ConversationTarget):
        namespace = "multi" if target.is_multi_user else "single"
        return self._locks.hold(namespace, target.key)

    # ------------------------------------------------------------------
    # Open-conversation lookup
    # ------------------------------------------------------------------

    async def _find_open(self, target: ConversationTarget) -> Optional[tuple[str, Document]]:
        """Most recently created open conversation of *target*, if any."""
        if target.is_multi_user:
            candidates = [
                (cid, doc)
                for cid, doc in await self.store.children(MULTI_USER)
                if _is_open(doc) and frozenset(doc.get("participants") or {}) == target.participants
            ]
        else:
            candidates = [
                (cid, doc)
                for cid, doc in await self.store.children(join_path(SINGLE_USER, target.owner_id))
                if _is_open(doc)
            ]
        return candidates[-1] if candidates else None

    def _new_conversation(self, target: ConversationTarget) -> Conversation:
        if target.is_multi_user:
            return Conversation(id=self.store.new_key(), participants=sorted(target.participants))
        return Conversation(id=self.store.new_key(), user_id=target.owner_id)

    async def _open_or_create(self, target: ConversationTarget) -> ConversationRef:
        found = await self._find_open(target)
        if found:
            return ConversationRef(target, found[0])

        conversation = self._new_conversation(target)
        ref = ConversationRef(target, conversation.id)
        await self.store.set(ref.path, conversation.to_document())
        logger.info("Started conversation %s for %s", conversation.id, target.key)
        return ref

    async def open_or_create(self, target: ConversationTarget) -> ConversationRef:
        """Return the open conversation of *target*, creating one if none is open."""
        async with self._hold(target):
            return await self._open_or_create(target)

    async def open_or_create_conversation(self, user_id: str) -> str:
        """Open single-user conversation id for *user_id* (created if needed)."""
        ref = await self.open_or_create(ConversationTarget.for_ids([user_id]))
        return ref.conversation_id

    async def open_or_create_multi_user_conversation(self, participant_ids: Iterable[str]) -> str:
        """Open multi-user conversation id for the exact participant set (created if needed)."""
        target = ConversationTarget.for_ids(participant_ids)
        if not target.is_multi_user:
            raise ValidationError("A multi-user conversation needs at least two participants.")
        ref = await self.open_or_create(target)
        return ref.conversation_id

    # ------------------------------------------------------------------
    # Appending turns
    # ------------------------------------------------------------------

    async def _append(self, ref: ConversationRef, turn: Turn) -> None:
        doc = await self.store.get(ref.path)
        if doc is None:
            raise ConversationNotFoundError(f"Conversation not found: {ref.conversation_id}")
        doc.setdefault("turns", []).append(turn.to_dict())
        await self.store.set(ref.path, doc)

    async def append_turn(self, ref: ConversationRef, turn: Turn) -> bool:
        """
        Append *turn* to the conversation *ref* points at.

        Returns:
            False (and writes nothing) when the prompt is blank, True otherwise.
        """
        if turn.is_blank:
            logger.debug("Skipping blank turn for conversation %s", ref.conversation_id)
            return False
        async with self._hold(ref.target):
            await self._append(ref, turn)
        logger.debug("Appended turn to conversation %s", ref.conversation_id)
        return True

    async def save_turn(self, target: ConversationTarget, turn: Turn) -> Optional[str]:
        """
        Append *turn* to the open conversation of *target*, starting one if needed.

        The lookup and the append happen under the same lock.

        Returns:
            The conversation id, or None when the prompt is blank.
        """
        if turn.is_blank:
            logger.debug("Skipping blank turn for %s", target.key)
            return None
        async with self._hold(target):
            ref = await self._open_or_create(target)
            await self._append(ref, turn)
        return ref.conversation_id

    # ------------------------------------------------------------------
    # Ending
    # ------------------------------------------------------------------

    async def end(self, target: ConversationTarget) -> Optional[str]:
        """
        Mark the open conversation of *target* as ended.

        Returns:
            The ended conversation id, or None when nothing was open.
        """
        async with self._hold(target):
            found = await self._find_open(target)
            if not found:
                logger.warning("No open conversation to end for %s", target.key)
                return None
            ref = ConversationRef(target, found[0])
            await self.store.update(ref.path, {"ended": True, "endedAt": utcnow().isoformat()})
        logger.info("Ended conversation %s for %s", ref.conversation_id, target.key)
        return ref.conversation_id

    async def end_conversation(self, user_id: str) -> Optional[str]:
        return await self.end(ConversationTarget.for_ids([user_id]))

    async def end_multi_user_conversation(self, participant_ids: Iterable[str]) -> Optional[str]:
        return await self.end(ConversationTarget.for_ids(participant_ids))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _single_user_conversations(self, user_id: Optional[str] = None) -> list[Conversation]:
        if user_id is not None:
            return [
                Conversation.from_document(cid, doc, user_id=user_id)
                for cid, doc in await self.store.children(join_path(SINGLE_USER, user_id))
            ]
        conversations = []
        for path, doc in await self.store.scan(SINGLE_USER):
            parts = path.split("/")
            if len(parts) == 3:
                conversations.append(Conversation.from_document(parts[2], doc, user_id=parts[1]))
        return conversations

    async def _multi_user_conversations(self, user_id: Optional[str] = None) -> list[Conversation]:
        return [
            Conversation.from_document(cid, doc)
            for cid, doc in await self.store.children(MULTI_USER)
            if user_id is None or user_id in (doc.get("participants") or {})
        ]

    @staticmethod
    def _visible(conversations: list[Conversation]) -> list[Conversation]:
        filtered = [c.without_blank_turns() for c in conversations]
        return sorted(filtered, key=lambda c: c.started_at)

    async def get_conversation(self, ref: ConversationRef) -> Conversation:
        doc = await self.store.get(ref.path)
        if doc is None:
            raise ConversationNotFoundError(f"Conversation not found: {ref.conversation_id}")
        user_id = None if ref.target.is_multi_user else ref.target.owner_id
        return Conversation.from_document(ref.conversation_id, doc, user_id=user_id)

    async def get_user_conversations(self, user_id: str) -> list[Conversation]:
        """
        Single-user and multi-user conversations of *user_id*, oldest first.

        Raises:
            ConversationNotFoundError: the user has no conversations
        """
        conversations = await self._single_user_conversations(user_id)
        conversations += await self._multi_user_conversations(user_id)
        if not conversations:
            raise ConversationNotFoundError(f"No conversations found for user {user_id}.")
        return self._visible(conversations)

    async def get_all_conversations(self) -> list[Conversation]:
        conversations = await self._single_user_conversations()
        conversations += await self._multi_user_conversations()
        if not conversations:
            raise ConversationNotFoundError("No conversations found in the database.")
        return self._visible(conversations)

    async def get_conversations_by_date_range(
        self,
        user_id: Optional[str],
        start: datetime,
        end: datetime,
    ) -> list[Conversation]:
        """
        Conversations started within [start, end] (inclusive).

        With *user_id* None every conversation in both namespaces is considered.
        Naive datetimes are taken as UTC.
        """
        start, end = _as_utc(start), _as_utc(end)
        if start > end:
            raise ValidationError("startDate must not be after endDate.")

        conversations = await self._single_user_conversations(user_id)
        conversations += await self._multi_user_conversations(user_id)
        in_range = [c for c in conversations if start <= c.started_at <= end]
        if not in_range:
            raise ConversationNotFoundError("No conversations found in the given date range.")
        return self._visible(in_range)

    async def get_audio_references(
        self,
        user_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> list[AudioReference]:
        """
        Audio links of stored turns.

        Modes:
            neither      - every conversation in both namespaces
            user only    - the user's single-user conversations
            user + id    - that single-user conversation
            id only      - the multi-user conversation with that id, else a
                           single-user conversation with that id
        """
        if user_id and conversation_id:
            doc = await self.store.get(join_path(SINGLE_USER, user_id, conversation_id))
            conversations = [Conversation.from_document(conversation_id, doc, user_id)] if doc else []
        elif user_id:
            conversations = await self._single_user_conversations(user_id)
        elif conversation_id:
            doc = await self.store.get(join_path(MULTI_USER, conversation_id))
            if doc is not None:
                conversations = [Conversation.from_document(conversation_id, doc)]
            else:
                conversations = [
                    c for c in await self._single_user_conversations() if c.id == conversation_id
                ]
        else:
            conversations = await self._single_user_conversations()
            conversations += await self._multi_user_conversations()

        return [
            AudioReference(turn.prompt_audio_url, turn.answer_audio_url)
            for conversation in conversations
            for turn in conversation.turns
            if not turn.is_blank
        ]

    # ------------------------------------------------------------------
    # Guest ids
    # ------------------------------------------------------------------

    async def _highest_guest_number(self) -> int:
        highest = 0
        for path, _ in await self.store.scan(SINGLE_USER):
            match = self._guest_pattern.match(path.split("/")[1])
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    async def next_guest_number(self) -> int:
        """
        Atomically advance the guest counter.

        The counter record is seeded from the highest guest id already present
        under the single-user namespace the first time it is used.
        """
        counter_path = join_path(COUNTERS, GUEST_COUNTER)
        seed = 0
        if await self.store.get(counter_path) is None:
            seed = await self._highest_guest_number()
        return await self.store.increment(counter_path, "value", seed=seed)

    async def next_guest_id(self) -> str:
        """Assign the next ``{prefix}-<n>`` guest id."""
        guest_id = f"{self.guest_prefix}-{await self.next_guest_number()}"
        logger.info("Assigned guest id %s", guest_id)
        return guest_id


# Global repository instance
_conversation_repo: Optional[ConversationRepository] = None


def get_conversation_repo() -> ConversationRepository:
    """Get the global conversation repository."""
    global _conversation_repo
    if _conversation_repo is None:
        from ...config import settings

        _conversation_repo = ConversationRepository(guest_prefix=settings.conversation.guest_prefix)
    return _conversation_repo
