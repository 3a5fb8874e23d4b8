"""
Reply composition for the chat assistant.

The composer walks an ordered list of strategies and returns the first
successful reply:

1. ChatSessionStrategy:  model conversation seeded with the replayed
   history; retried with a short fixed backoff.
2. SingleShotStrategy:   one plain completion of the same composed text.
3. RawContextStrategy:   SEARCH only: hand back the document list itself.

If every strategy fails a CompositionError is raised, carrying the last
model error.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from app.config import settings
from app.models.schemas import ChatIntent
from app.services.conversation import ConversationHistory
from app.services.gemini_client import GeminiClient, GenerativeAIError

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """\
Bạn là trợ lý AI thông minh của ứng dụng quản lý tài liệu học tập dành cho sinh viên \
Đại học Bách Khoa - Đại học Quốc gia TP.HCM.

🎯 **Nhiệm vụ của bạn:**
- Tìm kiếm và gợi ý tài liệu học tập phù hợp
- Tóm tắt và giải thích nội dung tài liệu
- Trả lời câu hỏi về môn học và kiến thức

📋 **Nguyên tắc trả lời:**
1. **Ngôn ngữ:** Trả lời bằng tiếng Việt, rõ ràng, dễ hiểu
2. **Thái độ:** Thân thiện, nhiệt tình và hữu ích như một người bạn học
3. **Format:** Sử dụng markdown để trình bày đẹp mắt
4. **Độ chính xác:** Chỉ cung cấp thông tin từ context được cung cấp
5. **Tương tác:** Luôn đề xuất hành động tiếp theo
6. **Trích dẫn:** Khi đề cập tài liệu, luôn bao gồm ID để dễ truy cập

💡 **Lưu ý quan trọng:**
- Nếu không chắc chắn, hãy thừa nhận và gợi ý cách tìm hiểu thêm
- Nếu hỏi về tài liệu không có trong hệ thống, hãy lịch sự thông báo người dùng
- Nếu hỏi về các khái niệm chung, hãy trả lời chi tiết và dễ hiểu
- Nếu yêu cầu tóm tắt tài liệu, hãy cung cấp điểm chính và ý nghĩa
- Nếu yêu cầu tìm kiếm, hãy liệt kê các tài liệu phù hợp với thông tin chi tiết
- Khuyến khích sinh viên tự học và tìm hiểu sâu hơn
- Hỗ trợ cả tiếng Việt có dấu và không dấu"""


SUGGESTED_ACTIONS: Dict[ChatIntent, List[str]] = {
    ChatIntent.SEARCH: ["Xem chi tiết tài liệu", "Tìm kiếm khác", "Gợi ý cho tôi"],
    ChatIntent.RECOMMEND: ["Xem chi tiết", "Tìm thêm", "Theo dõi môn học"],
    ChatIntent.SUMMARIZE: ["Hỏi thêm chi tiết", "Tải xuống", "Tìm tài liệu tương tự"],
    ChatIntent.DOCUMENT_QUESTION: ["Hỏi thêm", "Tóm tắt tài liệu", "Tải xuống"],
    ChatIntent.GENERAL: ["Tìm kiếm", "Gợi ý", "Hỏi về môn học"],
}


class CompositionError(GenerativeAIError):
    """Every composition strategy failed."""

    def __init__(self, last_error: Optional[Exception]) -> None:
        super().__init__(f"Failed to generate AI response: {last_error}")
        self.last_error = last_error


# ---------------------------------------------------------------------------
# Strategy plumbing
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class CompositionRequest:
    message: str
    context: str
    history: ConversationHistory
    intent: ChatIntent
    system_prompt: str = SYSTEM_PROMPT

    def composed_text(self) -> str:
        context_part = f"Context:\n{self.context}\n\n" if self.context else ""
        return f"{self.system_prompt}\n\n{context_part}User Question: {self.message}"


@dataclasses.dataclass(frozen=True)
class StrategyResult:
    text: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.text is not None

    @classmethod
    def success(cls, text: str) -> "StrategyResult":
        return cls(text=text)

    @classmethod
    def failure(cls, error: Optional[Exception] = None) -> "StrategyResult":
        return cls(error=error)


class ChatSessionStrategy:
    """Conversation call seeded with history, retried on model errors."""

    name = "chat_session"

    def __init__(
        self,
        llm: GeminiClient,
        attempts: Optional[int] = None,
        backoff: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.llm = llm
        self.attempts = attempts or settings.COMPOSER_RETRY_ATTEMPTS
        self.backoff = settings.COMPOSER_RETRY_BACKOFF if backoff is None else backoff
        self._sleep = sleep

    async def run(self, request: CompositionRequest) -> StrategyResult:
        session = self.llm.start_chat(request.history.as_model_turns())
        composed = request.composed_text()

        last_error: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                return StrategyResult.success(await session.send(composed))
            except GenerativeAIError as exc:
                last_error = exc
                logger.warning("Gemini chat attempt %d failed: %s", attempt, exc)
                if attempt < self.attempts:
                    await self._sleep(self.backoff)
        return StrategyResult.failure(last_error)


class SingleShotStrategy:
    """One stateless completion of the same composed text."""

    name = "single_shot"

    def __init__(self, llm: GeminiClient) -> None:
        self.llm = llm

    async def run(self, request: CompositionRequest) -> StrategyResult:
        try:
            return StrategyResult.success(await self.llm.complete(request.composed_text()))
        except GenerativeAIError as exc:
            logger.warning("Gemini single-shot completion failed: %s", exc)
            return StrategyResult.failure(exc)


class RawContextStrategy:
    """Last resort for searches: the formatted document list is itself an answer."""

    name = "raw_context"

    async def run(self, request: CompositionRequest) -> StrategyResult:
        if request.intent == ChatIntent.SEARCH and request.context:
            return StrategyResult.success(request.context)
        return StrategyResult.failure()


# ---------------------------------------------------------------------------
# Composer
# ---------------------------------------------------------------------------

class ResponseComposer:
    """Runs the strategy chain and supplies the per-intent follow-up actions."""

    def __init__(self, llm: GeminiClient, strategies: Optional[Sequence] = None) -> None:
        self.strategies = list(strategies) if strategies is not None else [
            ChatSessionStrategy(llm),
            SingleShotStrategy(llm),
            RawContextStrategy(),
        ]

    async def compose(
        self,
        message: str,
        context: str,
        history: ConversationHistory,
        intent: ChatIntent,
    ) -> str:
        request = CompositionRequest(
            message=message,
            context=context or "",
            history=history,
            intent=intent,
        )

        last_error: Optional[Exception] = None
        for strategy in self.strategies:
            result = await strategy.run(request)
            if result.ok:
                if strategy is not self.strategies[0]:
                    logger.info("compose: reply produced by fallback strategy %s", strategy.name)
                return result.text
            last_error = result.error or last_error

        logger.error("compose: all %d strategies failed", len(self.strategies))
        raise CompositionError(last_error)

    @staticmethod
    def suggested_actions(intent: ChatIntent) -> List[str]:
        return list(SUGGESTED_ACTIONS.get(intent, []))
