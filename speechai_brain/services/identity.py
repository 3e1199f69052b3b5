"""
Participant identity resolution.

Caller-supplied identifiers are classified once into a ``Participant``
(raw user id, email, or unrecognized). Emails are looked up in the user
index; anything that cannot be resolved is dropped with a warning. An empty
result means the caller is the process guest.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..storage.exceptions import NotFoundError
from ..storage.repositories.conversation import ConversationRepository, get_conversation_repo
from ..storage.repositories.user import UserRepository, get_user_repo, is_valid_email

logger = logging.getLogger("speechai.identity")


class ParticipantKind(Enum):
    RAW_ID = "raw_id"
    EMAIL = "email"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Participant:
    kind: ParticipantKind
    value: str


def classify(identifier) -> Participant:
    """Classify one caller-supplied identifier."""
    if not isinstance(identifier, str):
        return Participant(ParticipantKind.UNRECOGNIZED, str(identifier))
    value = identifier.strip()
    if is_valid_email(value):
        return Participant(ParticipantKind.EMAIL, value)
    if value and "@" not in value and not any(c.isspace() for c in value) and "/" not in value:
        return Participant(ParticipantKind.RAW_ID, value)
    return Participant(ParticipantKind.UNRECOGNIZED, value)


class IdentityResolver:
    """Maps participant identifiers to canonical user ids."""

    def __init__(self, users: Optional[UserRepository] = None):
        self._users = users

    @property
    def users(self) -> UserRepository:
        return self._users or get_user_repo()

    async def _resolve_one(self, participant: Participant) -> Optional[str]:
        if participant.kind is ParticipantKind.RAW_ID:
            return participant.value
        if participant.kind is ParticipantKind.EMAIL:
            try:
                return await self.users.get_user_id_by_email(participant.value)
            except NotFoundError:
                logger.warning("No user registered with email %s; dropping participant", participant.value)
                return None
        logger.warning("Unrecognized participant identifier %r; dropping", participant.value)
        return None

    async def resolve(self, identifiers: Iterable) -> list[str]:
        """
        Resolve identifiers to user ids.

        Returns:
            De-duplicated user ids in first-seen order (possibly empty).
        """
        resolved: list[str] = []
        for identifier in identifiers or []:
            user_id = await self._resolve_one(classify(identifier))
            if user_id and user_id not in resolved:
                resolved.append(user_id)
        return resolved


class GuestIdProvider:
    """
    Hands out this process's guest id.

    The id is assigned once from the store counter and cached; concurrent
    first callers share the same assignment.
    """

    def __init__(self, conversations: Optional[ConversationRepository] = None):
        self._conversations = conversations
        self._guest_id: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def conversations(self) -> ConversationRepository:
        return self._conversations or get_conversation_repo()

    async def get_guest_id(self) -> str:
        if self._guest_id is not None:
            return self._guest_id
        async with self._lock:
            if self._guest_id is None:
                self._guest_id = await self.conversations.next_guest_id()
        return self._guest_id

    def reset(self) -> None:
        """Forget the cached id (the next call assigns a new one)."""
        self._guest_id = None


# Global instances
_identity_resolver: Optional[IdentityResolver] = None
_guest_id_provider: Optional[GuestIdProvider] = None


def get_identity_resolver() -> IdentityResolver:
    """Get the global identity resolver."""
    global _identity_resolver
    if _identity_resolver is None:
        _identity_resolver = IdentityResolver()
    return _identity_resolver


def get_guest_id_provider() -> GuestIdProvider:
    """Get the global guest id provider."""
    global _guest_id_provider
    if _guest_id_provider is None:
        _guest_id_provider = GuestIdProvider()
    return _guest_id_provider
