"""
Common utility functions and helpers.
"""
from typing import Any, List, Optional, Tuple
import json
import re
import unicodedata


_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def normalize_no_accent(text: str) -> str:
    """
    Lowercase, strip Vietnamese diacritics and punctuation, squeeze spaces.

    "Tìm tài liệu Giải Tích 1!" -> "tim tai lieu giai tich 1"

    Args:
        text: Raw text string

    Returns:
        Normalized text
    """
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    # "đ" has no combining form
    text = text.replace("đ", "d")
    text = re.sub(r"[^\w\s]", " ", text)
    text = re.sub(r"_", " ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def collapse_whitespace(text: str) -> str:
    """Replace every whitespace run (newlines included) with one space."""
    return re.sub(r"\s+", " ", text).strip()


def extract_uuid(text: str) -> Optional[str]:
    """Return the first UUID-shaped substring of *text*, as written."""
    match = _UUID_RE.search(text or "")
    return match.group(0) if match else None


def is_uuid(value: Any) -> bool:
    """True if *value* is a full UUID string."""
    return isinstance(value, str) and _UUID_RE.fullmatch(value.strip()) is not None


# ---------------------------------------------------------------------------
# Tolerant JSON parsing for model output
# ---------------------------------------------------------------------------

def parse_json_robust(response: str) -> Tuple[bool, Any]:
    """
    Try multiple strategies to parse JSON from potentially messy LLM output.

    Handles:
    - Markdown code fences (```json … ```, ``` … ```)
    - Trailing commas before ] or }
    - Python-style True / False / None
    - Surrounding prose: takes the first balanced {...} block

    Returns ``(success, parsed_value)``.
    """
    if not response:
        return False, None

    text = response.strip()

    ok, val = _try_json(text)
    if ok:
        return True, val

    stripped = _strip_code_fences(text)
    if stripped != text:
        ok, val = _try_json(stripped)
        if ok:
            return True, val
        text = stripped

    fixed = _fix_json_issues(text)
    ok, val = _try_json(fixed)
    if ok:
        return True, val

    fragment = _extract_json_structure(text, "{", "}")
    if fragment:
        ok, val = _try_json(fragment)
        if ok:
            return True, val
        ok, val = _try_json(_fix_json_issues(fragment))
        if ok:
            return True, val

    return False, None


def _try_json(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def _strip_code_fences(text: str) -> str:
    """Remove ```json / ``` delimiters that LLMs often wrap output in."""
    text = re.sub(r"^```(?:json|javascript|text)?\s*\n?", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


def _fix_json_issues(text: str) -> str:
    """Repair the most common JSON mangling patterns from LLMs."""
    text = re.sub(r",(\s*[}\]])", r"\1", text)
    text = re.sub(r"\bTrue\b", "true", text)
    text = re.sub(r"\bFalse\b", "false", text)
    text = re.sub(r"\bNone\b", "null", text)
    return text.strip()


def _extract_json_structure(text: str, open_b: str, close_b: str) -> str:
    """
    Find the first complete balanced open_b … close_b structure in *text*.
    Returns the matched fragment, or empty string if not found.
    """
    start = text.find(open_b)
    if start == -1:
        return ""

    depth = 0
    in_string = False
    escape_next = False

    for i, ch in enumerate(text[start:], start=start):
        if escape_next:
            escape_next = False
            continue
        if ch == "\\" and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == open_b:
            depth += 1
        elif ch == close_b:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return ""


def unique_preserving_order(items: List[str]) -> List[str]:
    """Drop duplicates, keeping the first occurrence."""
    seen = set()
    out: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out
