"""
FastAPI dependencies for service injection.

Endpoints receive repositories and services through these functions, so
tests can swap them with ``app.dependency_overrides``.
"""

from ..services.analysis import AnalysisAggregator, get_analysis_aggregator
from ..services.identity import (
    GuestIdProvider,
    IdentityResolver,
    get_guest_id_provider,
    get_identity_resolver,
)
from ..storage.repositories.conversation import ConversationRepository, get_conversation_repo
from ..storage.repositories.user import UserRepository, get_user_repo
from ..voice.orchestrator import TurnOrchestrator, get_turn_orchestrator


def get_users() -> UserRepository:
    return get_user_repo()


def get_conversations() -> ConversationRepository:
    return get_conversation_repo()


def get_identity() -> IdentityResolver:
    return get_identity_resolver()


def get_guest_ids() -> GuestIdProvider:
    return get_guest_id_provider()


def get_orchestrator() -> TurnOrchestrator:
    """FastAPI dependency that provides the configured turn orchestrator."""
    return get_turn_orchestrator()


def get_analysis() -> AnalysisAggregator:
    """FastAPI dependency that provides the configured analysis aggregator."""
    return get_analysis_aggregator()
