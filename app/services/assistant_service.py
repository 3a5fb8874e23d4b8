"""
Chat assistant orchestration.

One call = one pass through
RECEIVED → ANALYZING → [BUILDING_CONTEXT] → COMPOSING → DONE.
Nothing is kept between calls; the client replays history each time.

Public API
----------
AssistantService.chat(message, user_id, history) -> ChatResponse
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from app.models.schemas import ChatResponse
from app.services.context_builder import ContextBuilder
from app.services.conversation import ConversationHistory
from app.services.gemini_client import InvalidAPIKeyError, QuotaExceededError
from app.services.intent_analyzer import IntentAnalyzer
from app.services.response_composer import ResponseComposer

logger = logging.getLogger(__name__)

MSG_QUOTA = "⚠️ Hệ thống đang quá tải. Vui lòng thử lại sau vài phút."
MSG_CONFIG = "⚠️ Lỗi cấu hình hệ thống. Vui lòng liên hệ quản trị viên."
MSG_FALLBACK = "⚠️ Xin lỗi, đã có lỗi xảy ra. Vui lòng thử lại hoặc liên hệ hỗ trợ."


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_message_for(exc: BaseException) -> str:
    """User-facing apology for a failed chat turn."""
    cause = getattr(exc, "last_error", None) or exc
    if isinstance(cause, QuotaExceededError):
        return MSG_QUOTA
    if isinstance(cause, InvalidAPIKeyError):
        return MSG_CONFIG
    return MSG_FALLBACK


class AssistantService:
    """Sequences analysis, context building and composition for one message."""

    def __init__(
        self,
        analyzer: IntentAnalyzer,
        context_builder: ContextBuilder,
        composer: ResponseComposer,
    ) -> None:
        self.analyzer = analyzer
        self.context_builder = context_builder
        self.composer = composer

    async def chat(
        self,
        message: str,
        user_id: str,
        history: Optional[Iterable[Any]] = None,
    ) -> ChatResponse:
        """
        Answer one chat message.

        Never raises: any failure becomes a fixed apology with a timestamp
        and no intent.
        """
        t0 = time.monotonic()
        logger.info("Processing chat from user %s: %s...", user_id, message[:50])

        try:
            conversation = (
                history if isinstance(history, ConversationHistory)
                else ConversationHistory(history)
            )

            logger.debug("chat: ANALYZING (history=%d)", len(conversation))
            analysis = await self.analyzer.analyze(message, conversation)

            context = ""
            if analysis.needs_context:
                logger.debug("chat: BUILDING_CONTEXT for %s", analysis.intent.value)
                context = await self.context_builder.build(analysis, user_id, conversation)

            logger.debug("chat: COMPOSING")
            reply = await self.composer.compose(message, context, conversation, analysis.intent)

            response = ChatResponse(
                reply=reply,
                timestamp=_now_iso(),
                intent=analysis.intent.value,
                suggested_actions=self.composer.suggested_actions(analysis.intent),
            )
            logger.info(
                "Chat completed in %.0f ms (intent=%s, context=%d chars)",
                (time.monotonic() - t0) * 1000,
                analysis.intent.value,
                len(context),
            )
            return response

        except Exception as exc:
            logger.error("Chat error: %s", exc, exc_info=True)
            return ChatResponse(reply=error_message_for(exc), timestamp=_now_iso())
