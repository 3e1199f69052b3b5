"""Shared fixtures: in-memory storage and fresh repositories per test."""

import os
import tempfile

# Settings are read at import time; keep tests off PostgreSQL and the repo tree
os.environ.setdefault("SPEECHAI_DB_BACKEND", "memory")
os.environ.setdefault("SPEECHAI_AUDIO_STORAGE_DIR", tempfile.mkdtemp(prefix="speechai-test-audio-"))

import bcrypt
import pytest

from speechai_brain.storage.documents import InMemoryDocumentStore, set_document_store
from speechai_brain.storage.locks import KeyedLock
from speechai_brain.storage.repositories.conversation import ConversationRepository
from speechai_brain.storage.repositories.user import UserRepository

_real_gensalt = bcrypt.gensalt


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheap bcrypt rounds so password tests stay fast."""
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=4, prefix=b"2b": _real_gensalt(rounds, prefix))


@pytest.fixture
def store():
    store = InMemoryDocumentStore()
    set_document_store(store)
    yield store
    set_document_store(None)


@pytest.fixture
def conversations(store):
    return ConversationRepository(store=store, locks=KeyedLock())


@pytest.fixture
def users(store):
    return UserRepository(store=store, locks=KeyedLock())
