"""
Repository classes for document store access.

Repositories provide a clean interface for data access,
hiding the document layout and write serialization.
"""

from .conversation import ConversationRef, ConversationRepository, get_conversation_repo
from .user import UserRepository, get_user_repo

__all__ = [
    "ConversationRef",
    "ConversationRepository",
    "get_conversation_repo",
    "UserRepository",
    "get_user_repo",
]
