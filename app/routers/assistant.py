"""
Chat assistant endpoint.

POST /chat: answer one message; the client replays recent history.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.dependencies.auth import get_current_user_id
from app.dependencies.services import get_assistant_service
from app.models.schemas import ChatRequest, ChatResponse
from app.services.assistant_service import AssistantService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/chat", response_model=ChatResponse, response_model_by_alias=True)
async def chat(
    request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    assistant: AssistantService = Depends(get_assistant_service),
) -> ChatResponse:
    """
    Chat with the study-document assistant.

    Always answers 200: model and catalog failures come back as an
    apology in ``reply`` with ``intent`` unset.
    """
    return await assistant.chat(request.message, user_id, request.history or [])
