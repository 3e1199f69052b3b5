"""
Language analysis REST API.

Each endpoint folds the selected conversations into one corpus of the
user's speech and returns the five-section critique.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..services.analysis import AnalysisAggregator
from ..storage.repositories.conversation import ConversationRepository
from .dependencies import get_analysis, get_conversations
from .params import parse_date_range

logger = logging.getLogger("speechai.api.analysis")

router = APIRouter(tags=["analysis"])


@router.get("/analysis")
async def analyze_all(
    conversations: ConversationRepository = Depends(get_conversations),
    analysis: AnalysisAggregator = Depends(get_analysis),
):
    result = await analysis.analyze_conversations(await conversations.get_all_conversations())
    return result.to_dict()


@router.get("/analysis-by-id/{user_id}")
async def analyze_user(
    user_id: str,
    conversations: ConversationRepository = Depends(get_conversations),
    analysis: AnalysisAggregator = Depends(get_analysis),
):
    result = await analysis.analyze_conversations(await conversations.get_user_conversations(user_id))
    return result.to_dict()


@router.get("/analysis-by-id-and-range/{user_id}")
async def analyze_user_range(
    user_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    conversations: ConversationRepository = Depends(get_conversations),
    analysis: AnalysisAggregator = Depends(get_analysis),
):
    start, end = parse_date_range(start_date, end_date)
    found = await conversations.get_conversations_by_date_range(user_id, start, end)
    logger.info("Analyzing %d conversations of %s", len(found), user_id)
    result = await analysis.analyze_conversations(found)
    return result.to_dict()
