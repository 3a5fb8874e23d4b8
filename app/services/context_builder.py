"""
Context assembly for the chat assistant.

Given an IntentAnalysis, pulls the relevant slice of the catalog (a
document list, or one document's metadata plus extracted text) and
renders it as the Vietnamese text block placed in front of the model.

``ContextBuilder.build`` never raises: lookup failures become short
explanatory strings, so the composer always has something to forward.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from app.config import settings
from app.models.database_models import Document
from app.models.schemas import ChatIntent
from app.services.catalog import DocumentCatalog
from app.services.conversation import ConversationHistory
from app.services.exceptions import DocumentNotFoundError, UserNotFoundError
from app.services.intent_analyzer import IntentAnalysis, extract_search_keywords
from app.services.text_extraction import TextExtractionService

logger = logging.getLogger(__name__)

MAX_LISTED_DOCUMENTS = 10

MSG_NEED_KEYWORDS = "Vui lòng cung cấp từ khóa tìm kiếm cụ thể hơn."
MSG_NO_SUBSCRIPTIONS = (
    "Bạn chưa theo dõi môn học hoặc khoa nào. Hãy theo dõi để nhận gợi ý phù hợp!"
)
MSG_NO_RECOMMENDATIONS = "Chưa có tài liệu nào phù hợp."
MSG_NEED_DOCUMENT_ID = (
    'Vui lòng cung cấp ID tài liệu (ví dụ: "Tóm tắt tài liệu abc-123-xyz")'
)
MSG_NEED_LIST_SOURCE = (
    "Vui lòng cho biết bạn muốn xem tài liệu nào (ID tài liệu hoặc từ khóa tìm kiếm)."
)
MSG_DOCUMENT_NOT_FOUND = "Không tìm thấy tài liệu được yêu cầu."
MSG_USER_NOT_FOUND = "Không tìm thấy thông tin người dùng."
MSG_GENERIC_ERROR = "Đã xảy ra lỗi khi xử lý yêu cầu."

UNSUPPORTED_FILE_PLACEHOLDER = "[File không hỗ trợ đọc tự động]"
EXTRACTION_FAILED_PLACEHOLDER = "[Không thể đọc nội dung file]"


def _quoted(keywords: Sequence[str]) -> str:
    return '"' + '", "'.join(keywords) + '"'


def format_document_list(title: str, documents: Sequence[Document]) -> str:
    """Numbered Markdown list of documents, at most MAX_LISTED_DOCUMENTS entries."""
    shown = list(documents)[:MAX_LISTED_DOCUMENTS]
    entries = []
    for idx, doc in enumerate(shown, 1):
        description = (doc.description or "")[:100] or "Không có"
        entries.append(
            f"{idx}. **{doc.title}**\n"
            f"   - ID: `{doc.id}`\n"
            f"   - Môn: {doc.subject.name if doc.subject else 'N/A'}\n"
            f"   - Loại: {doc.document_type.name if doc.document_type else 'N/A'}\n"
            f"   - Lượt tải: {doc.download_count or 0}\n"
            f"   - Mô tả: {description}..."
        )
    return f"{title} ({len(shown)} tài liệu):\n\n" + "\n\n".join(entries)


def format_document_detail(doc: Document, content: str) -> str:
    return (
        " **Thông tin tài liệu:**\n"
        f"- **Tiêu đề:** {doc.title}\n"
        f"- **ID:** `{doc.id}`\n"
        f"- **Môn học:** {doc.subject.name if doc.subject else 'N/A'}\n"
        f"- **Khoa:** {doc.faculty.name if doc.faculty else 'N/A'}\n"
        f"- **Loại:** {doc.document_type.name if doc.document_type else 'N/A'}\n"
        f"- **Lượt tải:** {doc.download_count or 0}\n"
        f"- **Mô tả:** {doc.description or 'Không có'}\n"
        "\n"
        " **Nội dung:**\n"
        f"{content}"
    ).strip()


class ContextBuilder:
    """Turns a classified message into catalog context text."""

    def __init__(
        self,
        catalog: DocumentCatalog,
        extractor: TextExtractionService,
        search_limit: Optional[int] = None,
    ) -> None:
        self.catalog = catalog
        self.extractor = extractor
        self.search_limit = search_limit or settings.SEARCH_RESULT_LIMIT

    async def build(
        self,
        analysis: IntentAnalysis,
        user_id: str,
        history: Optional[ConversationHistory] = None,
    ) -> str:
        history = history or ConversationHistory.empty()
        try:
            if analysis.intent == ChatIntent.SEARCH:
                return await self._search_context(list(analysis.keywords))
            if analysis.intent == ChatIntent.RECOMMEND:
                return await self._recommend_context(user_id)
            if analysis.intent in (ChatIntent.SUMMARIZE, ChatIntent.DOCUMENT_QUESTION):
                return await self._document_context(analysis, history)
            return ""
        except DocumentNotFoundError as exc:
            logger.info("build: %s", exc)
            return MSG_DOCUMENT_NOT_FOUND
        except UserNotFoundError as exc:
            logger.warning("build: %s", exc)
            return MSG_USER_NOT_FOUND
        except Exception as exc:
            logger.error("Error building %s context: %s", analysis.intent.value, exc, exc_info=True)
            return MSG_GENERIC_ERROR

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _search_context(self, keywords: List[str]) -> str:
        if not keywords:
            return MSG_NEED_KEYWORDS

        documents = await self.catalog.search_by_keywords(keywords, self.search_limit)
        if not documents:
            return f"Không tìm thấy tài liệu nào với từ khóa: {_quoted(keywords)}"

        return format_document_list(
            f"Kết quả tìm kiếm với từ khóa: {_quoted(keywords)}", documents
        )

    async def _recommend_context(self, user_id: str) -> str:
        subject_ids, faculty_ids = await self.catalog.get_user_subscriptions(user_id)
        if not subject_ids and not faculty_ids:
            return MSG_NO_SUBSCRIPTIONS

        documents = await self.catalog.recommend_by_subscriptions(
            subject_ids, faculty_ids, self.search_limit
        )
        if not documents:
            return MSG_NO_RECOMMENDATIONS

        return format_document_list("Gợi ý dành cho bạn", documents)

    async def _document_context(
        self,
        analysis: IntentAnalysis,
        history: ConversationHistory,
    ) -> str:
        document_id, problem = await self._resolve_document_id(analysis, history)
        if document_id is None:
            return problem

        doc = await self.catalog.get_by_id_with_relations(document_id)

        if not self.extractor.is_supported(doc.file_key):
            content = UNSUPPORTED_FILE_PLACEHOLDER
        else:
            try:
                content = await self.extractor.extract_text(doc.file_key)
            except Exception as exc:
                logger.error("Failed to extract content of %s: %s", doc.file_key, exc)
                content = EXTRACTION_FAILED_PLACEHOLDER

        return format_document_detail(doc, content)

    async def _resolve_document_id(
        self,
        analysis: IntentAnalysis,
        history: ConversationHistory,
    ) -> Tuple[Optional[str], str]:
        """
        Return ``(document_id, "")`` or ``(None, message_for_the_user)``.

        A list position ("the first one") is resolved by re-running the
        keyword search the user most likely saw; the catalog may have
        changed since, in which case a different document can come back.
        """
        if analysis.document_id:
            return analysis.document_id, ""

        position = analysis.list_position
        if position is None:
            return None, MSG_NEED_DOCUMENT_ID

        keywords = list(analysis.keywords) or extract_search_keywords(
            history.latest_student_message() or ""
        )
        if not keywords:
            return None, MSG_NEED_LIST_SOURCE

        documents = await self.catalog.search_by_keywords(keywords, self.search_limit)
        if position > len(documents):
            return None, (
                f"Danh sách với từ khóa {_quoted(keywords)} chỉ có {len(documents)} "
                f"tài liệu, không có tài liệu thứ {position}."
            )

        chosen = documents[position - 1]
        logger.info("Resolved list position %d → document %s", position, chosen.id)
        return str(chosen.id), ""
