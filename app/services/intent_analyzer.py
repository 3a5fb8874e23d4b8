"""
Intent analysis for the chat assistant.

The model is asked for a small JSON classification of the user's message.
Its reply goes through ``parse_analysis_result`` which returns a tagged
result (ParsedAnalysis | UnparseableAnalysis); the unparseable branch, and
any model failure, falls back to ``classify_locally``, a deterministic
regex/keyword classifier.  Either way the caller receives a fully
populated IntentAnalysis.

Public API
----------
IntentAnalyzer.analyze(message, history) -> IntentAnalysis
parse_analysis_result(response_text)     -> ParsedAnalysis | UnparseableAnalysis
classify_locally(message)                -> IntentAnalysis
extract_search_keywords(message)         -> List[str]
"""
from __future__ import annotations

import dataclasses
import logging
import re
import unicodedata
from typing import Any, List, Optional, Tuple, Union

from app.config import settings
from app.models.schemas import ChatIntent
from app.services.conversation import ConversationHistory
from app.services.gemini_client import GeminiClient, GenerativeAIError
from app.utils.helpers import (
    extract_uuid,
    is_uuid,
    normalize_no_accent,
    parse_json_robust,
    unique_preserving_order,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class IntentAnalysis:
    """Classification of one chat message; every field has a usable default."""

    intent: ChatIntent = ChatIntent.GENERAL
    keywords: Tuple[str, ...] = ()
    document_id: Optional[str] = None
    list_position: Optional[int] = None   # 1-based index into a previous result list
    needs_context: bool = False


@dataclasses.dataclass(frozen=True)
class ParsedAnalysis:
    fields: IntentAnalysis


@dataclasses.dataclass(frozen=True)
class UnparseableAnalysis:
    reason: str


AnalysisParseResult = Union[ParsedAnalysis, UnparseableAnalysis]


# ---------------------------------------------------------------------------
# Prompt template
# ---------------------------------------------------------------------------

_ANALYSIS_PROMPT = """\
You classify messages sent to the study-document assistant of a Vietnamese \
university. Messages may be in Vietnamese (with or without diacritics) or English.

Recent conversation:
{history}

Current message:
{message}

Return a JSON object with these fields:
1. intent: one of
   "search"            — the user wants to find documents
   "recommend"         — the user wants suggestions based on what they follow
   "summarize"         — the user wants a summary of one specific document
   "document_question" — the user asks about the content of one specific document
   "general"           — anything else (greetings, general knowledge, study advice)
2. keywords: the subject-matter search terms only (no filler words such as \
"tìm", "tài liệu", "cho tôi"), e.g. ["giải tích"]
3. document_id: the document UUID the user refers to, or null
4. list_position: if the user refers to an item of a list shown earlier \
("cái đầu tiên", "tài liệu thứ 2", "the third one"), its 1-based position, else null
5. needs_context: true if answering requires looking up the document catalog

Respond ONLY with valid JSON. No explanation, no markdown:
{{"intent": "search", "keywords": ["..."], "document_id": null, "list_position": null, "needs_context": true}}\
"""


# ---------------------------------------------------------------------------
# Local heuristics
# ---------------------------------------------------------------------------

# Matched against accent-stripped text, so "tom tat" and "tóm tắt" behave alike.
# Order matters: the first matching intent wins.
_INTENT_PATTERNS: Tuple[Tuple[ChatIntent, "re.Pattern[str]"], ...] = (
    (ChatIntent.SUMMARIZE, re.compile(r"\b(tom\s+tat|tong\s+hop|summary|summari[sz]e|tldr)\b")),
    (ChatIntent.SEARCH, re.compile(r"\b(tim\s+kiem|search|find|co\s+tai\s+lieu)\b")),
    (ChatIntent.RECOMMEND, re.compile(r"\b(goi\s+y|de\s+xuat|recommend\w*|suggest\w*)\b")),
    (
        ChatIntent.DOCUMENT_QUESTION,
        re.compile(r"\b(giai\s+thich|la\s+gi|nhu\s+the\s+nao|tai\s+sao|explain|what\s+is|why|how)\b"),
    ),
)

# Multi-word filler removed before tokenising, longest first.
_STOP_PHRASES = tuple(sorted(
    {
        "tim kiem", "tai lieu", "vui long", "tom tat", "tong hop", "goi y",
        "de xuat", "giai thich", "la gi", "nhu the nao", "tai sao", "cho toi",
        "giup toi", "dau tien", "thu nhat", "thu hai", "thu ba", "mon hoc",
    },
    key=len,
    reverse=True,
))

_STOPWORDS = frozenset({
    # Vietnamese, accent-stripped
    "tim", "co", "ve", "cua", "cho", "toi", "minh", "duoc", "khong", "la", "va",
    "hoac", "voi", "tu", "den", "trong", "ngoai", "tren", "duoi", "giup", "hay",
    "xin", "nhe", "nha", "bai", "mon", "hoc", "cai", "nay", "do", "kia", "nao",
    "gi", "thu", "so", "mot", "cac", "nhung", "ban", "oi", "em", "anh", "chi",
    "cuon", "quyen",
    # English
    "search", "find", "document", "documents", "file", "files", "about", "the",
    "for", "me", "please", "summary", "summarize", "summarise", "recommend",
    "suggest", "what", "is", "of", "on", "and", "or", "any", "some", "explain",
    "one", "ones", "item", "it", "this", "that",
})

_ORDINALS: Tuple[Tuple["re.Pattern[str]", int], ...] = (
    (re.compile(r"\b(dau\s+tien|thu\s+nhat|first|1st)\b"), 1),
    (re.compile(r"\b(thu\s+hai|second|2nd)\b"), 2),
    (re.compile(r"\b(thu\s+ba|third|3rd)\b"), 3),
)
_NUMBERED_POSITION = re.compile(r"\b(?:thu|so|number|no)\s+(\d{1,2})\b")
_HASH_POSITION = re.compile(r"#\s*(\d{1,2})\b")
# Whole list references ("đầu tiên", "thứ 2", "3rd"), dropped from keywords.
_POSITION_REFERENCE = re.compile(
    r"\b(?:(?:thu|so|number|no)\s+\d{1,2}|dau\s+tien|thu\s+nhat|thu\s+hai|thu\s+ba"
    r"|first|second|third|1st|2nd|3rd)\b"
)

# Accent folding merges tìm (find) with tím (purple) and tim (heart), so the
# bare verb counts only in its accented form or in a message typed without
# diacritics.
_SEARCH_VERB = re.compile(r"\btìm\b")
_PLAIN_SEARCH_VERB = re.compile(r"\btim\b")


def extract_search_keywords(message: str) -> List[str]:
    """
    Accent-stripped content words of *message*.

    "Tìm tài liệu về Giải Tích" -> ["giai", "tich"]
    """
    text = normalize_no_accent(_HASH_POSITION.sub(" ", message or ""))
    text = _POSITION_REFERENCE.sub(" ", text)
    for phrase in _STOP_PHRASES:
        text = re.sub(rf"\b{phrase}\b", " ", text)

    words = [w for w in text.split() if len(w) >= 2 and w not in _STOPWORDS]
    # UUID fragments survive punctuation stripping as hex chunks
    uuid_in_message = extract_uuid(message)
    if uuid_in_message:
        fragments = set(uuid_in_message.lower().split("-"))
        words = [w for w in words if w not in fragments]
    return unique_preserving_order(words)


def detect_intent(message: str) -> ChatIntent:
    text = normalize_no_accent(message)
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(text):
            return intent
        if intent == ChatIntent.SEARCH and _mentions_search_verb(message):
            return intent
    return ChatIntent.GENERAL


def _mentions_search_verb(message: str) -> bool:
    raw = unicodedata.normalize("NFC", (message or "").lower())
    if _SEARCH_VERB.search(raw):
        return True
    return raw.isascii() and _PLAIN_SEARCH_VERB.search(raw) is not None


def extract_list_position(message: str) -> Optional[int]:
    """1-based position the message points at ("cái thứ 2", "the first one"), if any."""
    hashed = _HASH_POSITION.search(message or "")
    if hashed:
        return int(hashed.group(1)) or None

    text = normalize_no_accent(message)
    numbered = _NUMBERED_POSITION.search(text)
    if numbered:
        return int(numbered.group(1)) or None
    for pattern, position in _ORDINALS:
        if pattern.search(text):
            return position
    return None


def classify_locally(message: str) -> IntentAnalysis:
    """Deterministic fallback classifier; never calls the model."""
    intent = detect_intent(message)
    document_id = extract_uuid(message)
    list_position = extract_list_position(message)

    if intent == ChatIntent.GENERAL:
        needs_context = False
    elif intent == ChatIntent.DOCUMENT_QUESTION:
        # without a document reference it is a general knowledge question
        needs_context = bool(document_id or list_position)
    else:
        needs_context = True

    return IntentAnalysis(
        intent=intent,
        keywords=tuple(extract_search_keywords(message)),
        document_id=document_id,
        list_position=list_position,
        needs_context=needs_context,
    )


# ---------------------------------------------------------------------------
# Model reply parsing
# ---------------------------------------------------------------------------

def parse_analysis_result(response_text: str) -> AnalysisParseResult:
    """Turn the model's reply into ParsedAnalysis, or say why it cannot."""
    ok, data = parse_json_robust(response_text or "")
    if not ok:
        return UnparseableAnalysis("no JSON object in model reply")
    if not isinstance(data, dict):
        return UnparseableAnalysis(f"expected a JSON object, got {type(data).__name__}")

    intent = _coerce_intent(data.get("intent"))
    if intent is None:
        return UnparseableAnalysis(f"unknown intent {data.get('intent')!r}")

    keywords = _coerce_keywords(data.get("keywords"))
    document_id = data.get("document_id")
    document_id = document_id.strip() if is_uuid(document_id) else None

    needs_context = data.get("needs_context")
    if not isinstance(needs_context, bool):
        needs_context = intent != ChatIntent.GENERAL

    return ParsedAnalysis(
        IntentAnalysis(
            intent=intent,
            keywords=tuple(keywords),
            document_id=document_id,
            list_position=_coerce_position(data.get("list_position")),
            needs_context=needs_context,
        )
    )


def _coerce_intent(value: Any) -> Optional[ChatIntent]:
    if not isinstance(value, str):
        return None
    try:
        return ChatIntent(value.strip().lower())
    except ValueError:
        return None


def _coerce_keywords(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    normalised = [normalize_no_accent(str(v)) for v in value if v is not None]
    return unique_preserving_order([k for k in normalised if len(k) >= 2])


def _coerce_position(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        position = int(value)
    except (TypeError, ValueError):
        return None
    return position if position >= 1 else None


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class IntentAnalyzer:
    """Model-first intent classification with a local fallback."""

    ANALYSIS_PROMPT = _ANALYSIS_PROMPT

    def __init__(self, llm: GeminiClient) -> None:
        self.llm = llm

    async def analyze(
        self,
        message: str,
        history: Optional[ConversationHistory] = None,
    ) -> IntentAnalysis:
        history = history or ConversationHistory.empty()
        prompt = self.ANALYSIS_PROMPT.format(
            history=history.recent(settings.ANALYZER_HISTORY_LIMIT).as_transcript() or "(none)",
            message=message,
        )

        try:
            response_text = await self.llm.complete(prompt)
        except GenerativeAIError as exc:
            logger.warning("analyze: model unavailable (%s), using local classifier", exc)
            return classify_locally(message)

        result = parse_analysis_result(response_text)
        if isinstance(result, UnparseableAnalysis):
            logger.warning(
                "analyze: %s, using local classifier. Preview: %s",
                result.reason,
                (response_text or "")[:200],
            )
            return classify_locally(message)

        analysis = self._reconcile(result.fields, message)
        logger.info(
            "analyze: intent=%s keywords=%s document_id=%s position=%s",
            analysis.intent.value,
            list(analysis.keywords),
            analysis.document_id,
            analysis.list_position,
        )
        return analysis

    @staticmethod
    def _reconcile(analysis: IntentAnalysis, message: str) -> IntentAnalysis:
        """Fill gaps in the model's answer with what the raw message plainly says."""
        updates = {}

        # A UUID typed by the user beats whatever the model inferred
        literal_id = extract_uuid(message)
        if literal_id:
            updates["document_id"] = literal_id

        if not analysis.keywords and analysis.intent == ChatIntent.SEARCH:
            updates["keywords"] = tuple(extract_search_keywords(message))

        if (
            analysis.list_position is None
            and analysis.intent in (ChatIntent.SUMMARIZE, ChatIntent.DOCUMENT_QUESTION)
        ):
            position = extract_list_position(message)
            if position is not None:
                updates["list_position"] = position

        return dataclasses.replace(analysis, **updates) if updates else analysis
