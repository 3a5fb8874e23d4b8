"""Tests for authentication boundaries.

Verifies that user-scoped endpoints require X-User-Id and reject blank ids.
"""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_chat_requires_auth_header(client: AsyncClient):
    """POST /api/ai/chat without X-User-Id should return 422 (missing required header)."""
    resp = await client.post("/api/ai/chat", json={"message": "xin chào"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_blank_user_id_is_unauthorized(client: AsyncClient):
    resp = await client.post(
        "/api/ai/chat",
        json={"message": "xin chào"},
        headers={"X-User-Id": "   "},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_public_endpoints_need_no_header(client: AsyncClient):
    resp = await client.get("/api/documents/suggestions")
    assert resp.status_code == 200
