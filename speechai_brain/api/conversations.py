"""
Conversation history REST API.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..services.identity import GuestIdProvider
from ..storage.repositories.conversation import ConversationRepository
from .dependencies import get_conversations, get_guest_ids
from .params import parse_date_range

logger = logging.getLogger("speechai.api.conversations")

router = APIRouter(tags=["conversations"])


class DateRangeQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")


@router.get("/get-user-conversations")
@router.get("/get-user-conversations/{user_id}")
async def get_user_conversations(
    user_id: Optional[str] = None,
    conversations: ConversationRepository = Depends(get_conversations),
    guest_ids: GuestIdProvider = Depends(get_guest_ids),
):
    """Conversations of a user; without an id, of this process's guest."""
    if not user_id:
        user_id = await guest_ids.get_guest_id()
    found = await conversations.get_user_conversations(user_id)
    return [conversation.to_dict() for conversation in found]


@router.get("/get-all-conversations")
async def get_all_conversations(conversations: ConversationRepository = Depends(get_conversations)):
    return [conversation.to_dict() for conversation in await conversations.get_all_conversations()]


@router.post("/get-conversations")
async def get_conversations_by_date_range(
    body: DateRangeQuery,
    conversations: ConversationRepository = Depends(get_conversations),
):
    """Conversations started within [startDate, endDate], for one user or everyone."""
    start, end = parse_date_range(body.start_date, body.end_date)
    found = await conversations.get_conversations_by_date_range(body.user_id or None, start, end)
    return [conversation.to_dict() for conversation in found]
