"""
Audio snippet REST API.

Clients upload recorded snippets here and receive the spoken reply (an
empty body when nothing is answered).
"""

import json
import logging
from pathlib import PurePath
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse, Response

from ..services.identity import IdentityResolver
from ..storage.exceptions import ValidationError
from ..storage.repositories.conversation import ConversationRepository
from ..voice.orchestrator import TurnOrchestrator
from .dependencies import get_conversations, get_identity, get_orchestrator
from .params import parse_participants

logger = logging.getLogger("speechai.api.audio")

router = APIRouter(tags=["audio"])


@router.post("/process-audio")
async def process_audio(
    audio: UploadFile = File(...),
    participants: Optional[str] = Form(None),
    identity: IdentityResolver = Depends(get_identity),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    """Transcribe a snippet, log it and answer when the wake phrase is used."""
    user_ids = await identity.resolve(parse_participants(participants))
    data = await audio.read()
    suffix = PurePath(audio.filename or "").suffix or ".webm"
    logger.info("Received %d bytes (%s) for %s", len(data), suffix, user_ids or "guest")

    result = await orchestrator.process_audio(data, user_ids, suffix=suffix)
    logger.info(
        "Snippet handled: %s, conversation=%s",
        " -> ".join(state.name for state in result.states),
        result.conversation_id,
    )
    return Response(content=result.audio, media_type="audio/mpeg")


@router.post("/end-conversation", response_class=PlainTextResponse)
async def end_conversation(
    request: Request,
    identity: IdentityResolver = Depends(get_identity),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
):
    """End the open conversation of the participants (form or JSON body)."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise ValidationError("Request body is not valid JSON.") from None
        raw = body.get("participants") if isinstance(body, dict) else body
    else:
        form = await request.form()
        raw = form.get("participants")

    user_ids = await identity.resolve(parse_participants(raw))
    conversation_id = await orchestrator.end_conversation(user_ids)
    if conversation_id is None:
        return "No open conversation to end."
    return "Conversation ended successfully."


@router.get("/get-audio-files")
async def get_audio_files(
    user_id: Optional[str] = Query(None, alias="userId"),
    conversation_id: Optional[str] = Query(None, alias="conversationId"),
    conversations: ConversationRepository = Depends(get_conversations),
):
    """Audio links of stored turns, narrowed by user and/or conversation."""
    references = await conversations.get_audio_references(
        user_id=user_id or None,
        conversation_id=conversation_id or None,
    )
    return [reference.to_dict() for reference in references]
