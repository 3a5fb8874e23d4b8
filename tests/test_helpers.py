"""Tests for text normalisation and tolerant JSON parsing."""
from app.utils.helpers import (
    collapse_whitespace,
    extract_uuid,
    is_uuid,
    normalize_no_accent,
    parse_json_robust,
    unique_preserving_order,
)

DOC_ID = "3F2504E0-4F89-11D3-9A0C-0305E82C3301"


def test_normalize_strips_diacritics_and_punctuation():
    assert normalize_no_accent("Tìm tài liệu Giải Tích 1!") == "tim tai lieu giai tich 1"


def test_normalize_maps_d_stroke():
    assert normalize_no_accent("Đại học Bách Khoa") == "dai hoc bach khoa"


def test_normalize_accented_and_plain_agree():
    assert normalize_no_accent("xác suất thống kê") == normalize_no_accent("xac suat thong ke")


def test_collapse_whitespace():
    assert collapse_whitespace("  a\n\n b\t c  ") == "a b c"


def test_extract_uuid_keeps_literal_text():
    assert extract_uuid(f"tóm tắt tài liệu {DOC_ID} giúp mình") == DOC_ID
    assert extract_uuid("không có id") is None


def test_is_uuid():
    assert is_uuid(DOC_ID.lower())
    assert not is_uuid("abc-123-xyz")
    assert not is_uuid(None)


def test_parse_json_plain():
    ok, data = parse_json_robust('{"intent": "search"}')
    assert ok
    assert data == {"intent": "search"}


def test_parse_json_code_fence_and_trailing_comma():
    ok, data = parse_json_robust('```json\n{"keywords": ["giai tich",],}\n```')
    assert ok
    assert data == {"keywords": ["giai tich"]}


def test_parse_json_embedded_in_prose_with_python_literals():
    ok, data = parse_json_robust('Sure! {"needs_context": True, "document_id": None} hope it helps')
    assert ok
    assert data == {"needs_context": True, "document_id": None}


def test_parse_json_gives_up_on_prose():
    assert parse_json_robust("I think the user wants to search.") == (False, None)
    assert parse_json_robust("") == (False, None)


def test_unique_preserving_order():
    assert unique_preserving_order(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
