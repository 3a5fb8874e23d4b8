"""Tests for catalog context assembly."""
import pytest

from app.models.schemas import ChatIntent
from app.services.context_builder import (
    EXTRACTION_FAILED_PLACEHOLDER,
    MSG_DOCUMENT_NOT_FOUND,
    MSG_GENERIC_ERROR,
    MSG_NEED_DOCUMENT_ID,
    MSG_NEED_KEYWORDS,
    MSG_NO_RECOMMENDATIONS,
    MSG_NO_SUBSCRIPTIONS,
    MSG_USER_NOT_FOUND,
    UNSUPPORTED_FILE_PLACEHOLDER,
    ContextBuilder,
    format_document_list,
)
from app.services.conversation import ConversationHistory
from app.services.intent_analyzer import IntentAnalysis, classify_locally
from tests.fakes import FakeCatalog, FakeStorage, SpyExtractor, make_document

USER_ID = "11111111-2222-3333-4444-555555555555"


def _builder(catalog, files=None):
    extractor = SpyExtractor(FakeStorage(files))
    return ContextBuilder(catalog, extractor), extractor


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_search_without_keywords_asks_for_more():
    builder, _ = _builder(FakeCatalog())
    context = await builder.build(IntentAnalysis(intent=ChatIntent.SEARCH), USER_ID)
    assert context == MSG_NEED_KEYWORDS


@pytest.mark.asyncio
async def test_search_no_matches_names_keywords():
    builder, _ = _builder(FakeCatalog())
    analysis = IntentAnalysis(intent=ChatIntent.SEARCH, keywords=("giai", "tich"), needs_context=True)
    context = await builder.build(analysis, USER_ID)
    assert context == 'Không tìm thấy tài liệu nào với từ khóa: "giai", "tich"'


@pytest.mark.asyncio
async def test_search_lists_matches():
    doc = make_document("Giáo trình Giải tích 1", description="Chương 1 đến 5", download_count=42)
    catalog = FakeCatalog([doc])
    builder, _ = _builder(catalog)

    analysis = IntentAnalysis(intent=ChatIntent.SEARCH, keywords=("giai tich",), needs_context=True)
    context = await builder.build(analysis, USER_ID)

    assert context.startswith('Kết quả tìm kiếm với từ khóa: "giai tich" (1 tài liệu)')
    assert "1. **Giáo trình Giải tích 1**" in context
    assert f"ID: `{doc.id}`" in context
    assert "Lượt tải: 42" in context
    assert catalog.search_calls == [(["giai tich"], 10)]


def test_document_list_caps_at_ten():
    docs = [make_document(f"Tài liệu {i}") for i in range(12)]
    text = format_document_list("Kết quả", docs)
    assert "(10 tài liệu)" in text
    assert "10. **Tài liệu 9**" in text
    assert "Tài liệu 10" not in text


# ---------------------------------------------------------------------------
# Recommend
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_recommend_without_subscriptions():
    catalog = FakeCatalog(subscriptions={USER_ID: ([], [])})
    builder, _ = _builder(catalog)
    context = await builder.build(IntentAnalysis(intent=ChatIntent.RECOMMEND), USER_ID)
    assert context == MSG_NO_SUBSCRIPTIONS
    assert catalog.recommend_calls == []


@pytest.mark.asyncio
async def test_recommend_with_subscriptions_but_no_documents():
    catalog = FakeCatalog(subscriptions={USER_ID: (["s1"], [])})
    builder, _ = _builder(catalog)
    context = await builder.build(IntentAnalysis(intent=ChatIntent.RECOMMEND), USER_ID)
    assert context == MSG_NO_RECOMMENDATIONS


@pytest.mark.asyncio
async def test_recommend_lists_documents():
    doc = make_document("Đề thi Vật lý 1")
    catalog = FakeCatalog(subscriptions={USER_ID: ([], ["f1"])}, recommendations=[doc])
    builder, _ = _builder(catalog)
    context = await builder.build(IntentAnalysis(intent=ChatIntent.RECOMMEND), USER_ID)
    assert context.startswith("Gợi ý dành cho bạn (1 tài liệu)")
    assert "Đề thi Vật lý 1" in context


@pytest.mark.asyncio
async def test_recommend_unknown_user():
    builder, _ = _builder(FakeCatalog())
    context = await builder.build(IntentAnalysis(intent=ChatIntent.RECOMMEND), USER_ID)
    assert context == MSG_USER_NOT_FOUND


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_summarize_includes_metadata_and_text():
    doc = make_document("Bài giảng Xác suất", file_key="docs/xstk.txt")
    builder, extractor = _builder(
        FakeCatalog([doc]), {"docs/xstk.txt": "Chương 1:\n\nBiến cố   ngẫu nhiên".encode()}
    )
    analysis = IntentAnalysis(intent=ChatIntent.SUMMARIZE, document_id=str(doc.id), needs_context=True)

    context = await builder.build(analysis, USER_ID)

    assert "- **Tiêu đề:** Bài giảng Xác suất" in context
    assert "- **Môn học:** Giải tích 1" in context
    assert "Chương 1: Biến cố ngẫu nhiên" in context
    assert extractor.extracted == ["docs/xstk.txt"]


@pytest.mark.asyncio
async def test_unsupported_file_is_never_extracted():
    doc = make_document("Slide Hệ điều hành", file_key="slides/os.pptx")
    builder, extractor = _builder(FakeCatalog([doc]))
    analysis = IntentAnalysis(intent=ChatIntent.SUMMARIZE, document_id=str(doc.id), needs_context=True)

    context = await builder.build(analysis, USER_ID)

    assert UNSUPPORTED_FILE_PLACEHOLDER in context
    assert "Slide Hệ điều hành" in context
    assert extractor.extracted == []


@pytest.mark.asyncio
async def test_extraction_failure_uses_placeholder():
    doc = make_document("Tài liệu mất file", file_key="missing/file.pdf")
    builder, _ = _builder(FakeCatalog([doc]))
    analysis = IntentAnalysis(intent=ChatIntent.DOCUMENT_QUESTION, document_id=str(doc.id))

    context = await builder.build(analysis, USER_ID)

    assert EXTRACTION_FAILED_PLACEHOLDER in context
    assert "Tài liệu mất file" in context


@pytest.mark.asyncio
async def test_unknown_document():
    builder, _ = _builder(FakeCatalog())
    analysis = IntentAnalysis(
        intent=ChatIntent.SUMMARIZE, document_id="6f1c2b9e-8d4a-4c3b-9e2f-1a2b3c4d5e6f"
    )
    assert await builder.build(analysis, USER_ID) == MSG_DOCUMENT_NOT_FOUND


@pytest.mark.asyncio
async def test_document_request_without_reference():
    builder, _ = _builder(FakeCatalog())
    context = await builder.build(IntentAnalysis(intent=ChatIntent.SUMMARIZE), USER_ID)
    assert context == MSG_NEED_DOCUMENT_ID


@pytest.mark.asyncio
async def test_list_position_resolved_from_previous_search():
    first = make_document("Giải tích 1 - Chương 1", file_key="a.txt")
    second = make_document("Giải tích 1 - Chương 2", file_key="b.txt")
    catalog = FakeCatalog([first, second])
    builder, _ = _builder(catalog, {"a.txt": b"noi dung a", "b.txt": b"noi dung b"})
    history = ConversationHistory([
        {"role": "student", "content": "tìm tài liệu về giải tích"},
        {"role": "admin", "content": "Đây là 2 tài liệu..."},
    ])
    analysis = IntentAnalysis(intent=ChatIntent.SUMMARIZE, list_position=2, needs_context=True)

    context = await builder.build(analysis, USER_ID, history)

    assert catalog.search_calls[-1][0] == ["giai", "tich"]
    assert catalog.lookups == [str(second.id)]
    assert "noi dung b" in context


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message, position",
    [
        ("summarize the first one", 1),
        ("tóm tắt cuốn đầu tiên giúp mình", 1),
        ("explain the second one", 2),
        ("tóm tắt quyển thứ 2", 2),
        ("summarize #2", 2),
    ],
)
async def test_ordinal_reference_reuses_previous_search(message, position):
    docs = [
        make_document("Giải tích 1 - Chương 1", file_key="a.txt"),
        make_document("Giải tích 1 - Chương 2", file_key="b.txt"),
    ]
    catalog = FakeCatalog(docs)
    builder, _ = _builder(catalog, {"a.txt": b"noi dung a", "b.txt": b"noi dung b"})
    history = ConversationHistory([
        {"role": "student", "content": "tìm tài liệu về giải tích"},
        {"role": "admin", "content": "1. Giải tích 1 - Chương 1\n2. Giải tích 1 - Chương 2"},
    ])

    analysis = classify_locally(message)
    assert analysis.keywords == ()
    assert analysis.list_position == position

    await builder.build(analysis, USER_ID, history)

    assert catalog.search_calls[-1][0] == ["giai", "tich"]
    assert catalog.lookups == [str(docs[position - 1].id)]


@pytest.mark.asyncio
async def test_list_position_out_of_range():
    catalog = FakeCatalog([make_document("Chỉ một tài liệu")])
    builder, _ = _builder(catalog)
    analysis = IntentAnalysis(
        intent=ChatIntent.SUMMARIZE, keywords=("giai tich",), list_position=5
    )
    context = await builder.build(analysis, USER_ID)
    assert "không có tài liệu thứ 5" in context
    assert catalog.lookups == []


# ---------------------------------------------------------------------------
# General / failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_general_intent_has_no_context():
    builder, _ = _builder(FakeCatalog())
    assert await builder.build(IntentAnalysis(), USER_ID) == ""


@pytest.mark.asyncio
async def test_unexpected_catalog_error_becomes_message():
    class BrokenCatalog(FakeCatalog):
        async def search_by_keywords(self, keywords, limit=10):
            raise RuntimeError("connection reset")

    builder, _ = _builder(BrokenCatalog())
    analysis = IntentAnalysis(intent=ChatIntent.SEARCH, keywords=("giai",))
    assert await builder.build(analysis, USER_ID) == MSG_GENERIC_ERROR
