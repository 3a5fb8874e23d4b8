"""Tests for the reply strategy chain."""
import pytest

from app.models.schemas import ChatIntent
from app.services.conversation import ConversationHistory
from app.services.gemini_client import GenerativeAIError, QuotaExceededError
from app.services.response_composer import (
    SUGGESTED_ACTIONS,
    SYSTEM_PROMPT,
    ChatSessionStrategy,
    CompositionError,
    CompositionRequest,
    RawContextStrategy,
    ResponseComposer,
    SingleShotStrategy,
)
from tests.fakes import FakeLLM

SEARCH_CONTEXT = 'Không tìm thấy tài liệu nào với từ khóa: "giai", "tich"'


def _composer(llm, sleeps=None):
    async def record_sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    return ResponseComposer(
        llm,
        strategies=[
            ChatSessionStrategy(llm, attempts=2, backoff=0.6, sleep=record_sleep),
            SingleShotStrategy(llm),
            RawContextStrategy(),
        ],
    )


def test_composed_text_layout():
    request = CompositionRequest(
        message="Tóm tắt giúp mình",
        context="Nội dung tài liệu",
        history=ConversationHistory.empty(),
        intent=ChatIntent.SUMMARIZE,
    )
    assert request.composed_text() == (
        f"{SYSTEM_PROMPT}\n\nContext:\nNội dung tài liệu\n\nUser Question: Tóm tắt giúp mình"
    )


def test_composed_text_without_context():
    request = CompositionRequest(
        message="xin chào",
        context="",
        history=ConversationHistory.empty(),
        intent=ChatIntent.GENERAL,
    )
    assert "Context:" not in request.composed_text()
    assert request.composed_text().endswith("User Question: xin chào")


@pytest.mark.asyncio
async def test_chat_session_reply_with_history():
    llm = FakeLLM(chat_replies=["Chào bạn!"])
    history = ConversationHistory([
        {"role": "student", "content": "hi"},
        {"role": "admin", "content": "hello"},
    ])

    reply = await _composer(llm).compose("xin chào", "", history, ChatIntent.GENERAL)

    assert reply == "Chào bạn!"
    assert llm.chat_histories == [history.as_model_turns()]
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_chat_session_retries_once_after_backoff():
    llm = FakeLLM(chat_replies=[GenerativeAIError("503"), "Thử lại thành công"])
    sleeps = []

    reply = await _composer(llm, sleeps).compose(
        "xin chào", "", ConversationHistory.empty(), ChatIntent.GENERAL
    )

    assert reply == "Thử lại thành công"
    assert sleeps == [0.6]
    assert len(llm.chat_messages) == 2


@pytest.mark.asyncio
async def test_single_shot_after_chat_failures():
    llm = FakeLLM(complete_replies=["Trả lời một lần"])
    sleeps = []

    reply = await _composer(llm, sleeps).compose(
        "xin chào", "", ConversationHistory.empty(), ChatIntent.GENERAL
    )

    assert reply == "Trả lời một lần"
    assert len(llm.chat_messages) == 2
    assert sleeps == [0.6]
    assert llm.prompts[0].endswith("User Question: xin chào")


@pytest.mark.asyncio
async def test_search_degrades_to_raw_context():
    llm = FakeLLM()
    reply = await _composer(llm).compose(
        "tìm tài liệu về giải tích", SEARCH_CONTEXT, ConversationHistory.empty(), ChatIntent.SEARCH
    )
    assert reply == SEARCH_CONTEXT


@pytest.mark.asyncio
async def test_non_search_failure_raises_with_last_error():
    quota = QuotaExceededError("quota")
    llm = FakeLLM(default_error=quota)

    with pytest.raises(CompositionError) as excinfo:
        await _composer(llm).compose(
            "tóm tắt", "Nội dung", ConversationHistory.empty(), ChatIntent.SUMMARIZE
        )

    assert excinfo.value.last_error is quota


@pytest.mark.asyncio
async def test_empty_search_context_is_not_a_reply():
    llm = FakeLLM()
    with pytest.raises(CompositionError):
        await _composer(llm).compose("tìm", "", ConversationHistory.empty(), ChatIntent.SEARCH)


def test_suggested_actions_per_intent():
    assert ResponseComposer.suggested_actions(ChatIntent.SEARCH) == [
        "Xem chi tiết tài liệu", "Tìm kiếm khác", "Gợi ý cho tôi",
    ]
    for intent in ChatIntent:
        assert ResponseComposer.suggested_actions(intent) == SUGGESTED_ACTIONS[intent]


def test_suggested_actions_are_copies():
    actions = ResponseComposer.suggested_actions(ChatIntent.GENERAL)
    actions.append("x")
    assert "x" not in SUGGESTED_ACTIONS[ChatIntent.GENERAL]
