"""Tests for participant classification, resolution and guest ids."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from speechai_brain.services.identity import (
    GuestIdProvider,
    IdentityResolver,
    ParticipantKind,
    classify,
)


class TestClassify:
    @pytest.mark.parametrize(
        "value,kind",
        [
            ("-NxAbc123", ParticipantKind.RAW_ID),
            ("Guest-3", ParticipantKind.RAW_ID),
            ("anna@example.se", ParticipantKind.EMAIL),
            (" anna@example.se ", ParticipantKind.EMAIL),
            ("", ParticipantKind.UNRECOGNIZED),
            ("two words", ParticipantKind.UNRECOGNIZED),
            ("broken@", ParticipantKind.UNRECOGNIZED),
            ("a/b", ParticipantKind.UNRECOGNIZED),
            (42, ParticipantKind.UNRECOGNIZED),
        ],
    )
    def test_kinds(self, value, kind):
        assert classify(value).kind is kind


class TestIdentityResolver:
    @pytest.mark.asyncio
    async def test_raw_ids_and_emails(self, users):
        anna = await users.register_user("anna@example.se", "pw")
        resolver = IdentityResolver(users)
        assert await resolver.resolve(["u1", "anna@example.se"]) == ["u1", anna.id]

    @pytest.mark.asyncio
    async def test_dedupes_in_first_seen_order(self, users):
        anna = await users.register_user("anna@example.se", "pw")
        resolver = IdentityResolver(users)
        resolved = await resolver.resolve([anna.id, "u2", "ANNA@example.se", "u2"])
        assert resolved == [anna.id, "u2"]

    @pytest.mark.asyncio
    async def test_drops_unresolvable(self, users, caplog):
        resolver = IdentityResolver(users)
        with caplog.at_level("WARNING", logger="speechai.identity"):
            resolved = await resolver.resolve(["ghost@example.se", "two words", "u1"])
        assert resolved == ["u1"]
        assert "ghost@example.se" in caplog.text

    @pytest.mark.asyncio
    async def test_empty(self, users):
        resolver = IdentityResolver(users)
        assert await resolver.resolve([]) == []
        assert await resolver.resolve(None) == []


class TestGuestIdProvider:
    @pytest.mark.asyncio
    async def test_stable_within_process(self, conversations):
        provider = GuestIdProvider(conversations)
        first = await provider.get_guest_id()
        assert first == "Guest-1"
        assert await provider.get_guest_id() == first

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_assign_once(self):
        repo = MagicMock()
        repo.next_guest_id = AsyncMock(return_value="Guest-7")
        provider = GuestIdProvider(repo)
        ids = await asyncio.gather(*(provider.get_guest_id() for _ in range(5)))
        assert set(ids) == {"Guest-7"}
        repo.next_guest_id.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_new_process_gets_next_id(self, conversations):
        assert await GuestIdProvider(conversations).get_guest_id() == "Guest-1"
        assert await GuestIdProvider(conversations).get_guest_id() == "Guest-2"
