"""
Data models for SpeechAI Brain storage.

These are plain dataclasses, not ORM models. Each one converts to the JSON
document persisted under its path and to the dict returned by the API.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class User:
    """A registered user."""

    id: str
    email: str
    password_hash: str
    is_admin: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "passwordHash": self.password_hash,
            "isAdmin": self.is_admin,
            "createdAt": _format_timestamp(self.created_at),
        }

    @classmethod
    def from_document(cls, user_id: str, doc: dict[str, Any]) -> "User":
        return cls(
            id=user_id,
            email=doc.get("email", ""),
            password_hash=doc.get("passwordHash", ""),
            is_admin=bool(doc.get("isAdmin", False)),
            created_at=_parse_timestamp(doc.get("createdAt")) or utcnow(),
        )

    def to_dict(self) -> dict[str, Any]:
        # Never expose the password hash
        return {
            "userId": self.id,
            "Email": self.email,
            "Admin": self.is_admin,
        }


@dataclass
class Turn:
    """One logged prompt/answer pair within a conversation."""

    prompt_text: str
    answer_text: str = ""
    prompt_audio_url: str = ""
    answer_audio_url: str = ""

    @property
    def is_blank(self) -> bool:
        return not self.prompt_text or not self.prompt_text.strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "promptText": self.prompt_text,
            "answerText": self.answer_text,
            "promptAudioUrl": self.prompt_audio_url,
            "answerAudioUrl": self.answer_audio_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Turn":
        return cls(
            prompt_text=data.get("promptText") or "",
            answer_text=data.get("answerText") or "",
            prompt_audio_url=data.get("promptAudioUrl") or "",
            answer_audio_url=data.get("answerAudioUrl") or "",
        )


@dataclass
class Conversation:
    """
    A single-user or multi-user conversation.

    Single-user conversations carry ``user_id``; multi-user conversations
    carry ``participants`` instead.
    """

    id: str
    turns: list[Turn] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    ended: bool = False
    ended_at: Optional[datetime] = None
    user_id: Optional[str] = None
    participants: list[str] = field(default_factory=list)

    @property
    def is_multi_user(self) -> bool:
        return self.user_id is None

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "turns": [turn.to_dict() for turn in self.turns],
            "startedAt": _format_timestamp(self.started_at),
            "ended": self.ended,
            "endedAt": _format_timestamp(self.ended_at),
        }
        if self.is_multi_user:
            doc["participants"] = {participant: True for participant in self.participants}
        return doc

    @classmethod
    def from_document(
        cls,
        conversation_id: str,
        doc: dict[str, Any],
        user_id: Optional[str] = None,
    ) -> "Conversation":
        return cls(
            id=conversation_id,
            turns=[Turn.from_dict(t) for t in doc.get("turns") or []],
            started_at=_parse_timestamp(doc.get("startedAt")) or utcnow(),
            ended=bool(doc.get("ended", False)),
            ended_at=_parse_timestamp(doc.get("endedAt")),
            user_id=user_id,
            participants=sorted(doc.get("participants") or {}) if user_id is None else [],
        )

    def without_blank_turns(self) -> "Conversation":
        """Copy with empty-prompt turns dropped (read-side filter)."""
        return Conversation(
            id=self.id,
            turns=[turn for turn in self.turns if not turn.is_blank],
            started_at=self.started_at,
            ended=self.ended,
            ended_at=self.ended_at,
            user_id=self.user_id,
            participants=list(self.participants),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "conversationId": self.id,
            "turns": [turn.to_dict() for turn in self.turns],
            "startedAt": _format_timestamp(self.started_at),
            "ended": self.ended,
            "endedAt": _format_timestamp(self.ended_at),
        }
        if self.is_multi_user:
            data["participants"] = list(self.participants)
        else:
            data["userId"] = self.user_id
        return data


@dataclass(frozen=True)
class ConversationTarget:
    """
    Which conversation thread a snippet belongs to.

    One participant selects the single-user path, more than one the
    multi-user path keyed by the exact participant set.
    """

    participants: frozenset[str]

    @classmethod
    def for_ids(cls, user_ids: Iterable[str]) -> "ConversationTarget":
        ids = frozenset(user_ids)
        if not ids:
            raise ValueError("A conversation target needs at least one participant")
        return cls(participants=ids)

    @property
    def is_multi_user(self) -> bool:
        return len(self.participants) > 1

    @property
    def owner_id(self) -> str:
        """The single owner (single-user path only)."""
        if self.is_multi_user:
            raise ValueError("Multi-user targets have no single owner")
        return next(iter(self.participants))

    @property
    def key(self) -> str:
        """Order-independent key for the participant set."""
        return ",".join(sorted(self.participants))


@dataclass
class AudioReference:
    """Audio links of one stored turn."""

    prompt_audio_url: str
    answer_audio_url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "promptAudioUrl": self.prompt_audio_url,
            "answerAudioUrl": self.answer_audio_url,
        }
