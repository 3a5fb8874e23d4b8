"""
Gemini text-generation client over the REST ``generateContent`` endpoint.

Public API
----------
GeminiClient.complete(prompt)             -> str
GeminiClient.start_chat(history)          -> GeminiChatSession
GeminiChatSession.send(message)           -> str

Unlike the extraction services that return "" on failure, every error here
is raised as a GenerativeAIError so callers can decide how to degrade.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class GenerativeAIError(RuntimeError):
    """The model call failed or returned nothing usable."""


class QuotaExceededError(GenerativeAIError):
    """API quota exceeded (HTTP 429 / RESOURCE_EXHAUSTED)."""


class InvalidAPIKeyError(GenerativeAIError):
    """Missing or rejected API key."""


class GeminiClient:
    """Stateless Gemini caller; one short-lived httpx client per request."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout = httpx.Timeout(float(timeout or settings.GEMINI_TIMEOUT), connect=10.0)
        self.temperature = settings.GEMINI_TEMPERATURE
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, prompt: str) -> str:
        """Single-turn completion."""
        return await self.generate([_turn("user", prompt)])

    def start_chat(self, history: Optional[List[Dict[str, Any]]] = None) -> "GeminiChatSession":
        """
        Open a conversation seeded with *history*.

        History items use the model's own shape:
        ``{"role": "user" | "model", "parts": [{"text": ...}]}``.
        """
        return GeminiChatSession(self, list(history or []))

    async def generate(self, contents: List[Dict[str, Any]]) -> str:
        """POST *contents* to generateContent and return the joined reply text."""
        if not self.api_key:
            raise InvalidAPIKeyError("GEMINI_API_KEY is not configured")

        payload = {
            "contents": contents,
            "generationConfig": {"temperature": self.temperature},
        }
        url = f"{self.base_url}/models/{self.model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    headers={"x-goog-api-key": self.api_key},
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            logger.error("Gemini request timed out after %.0f s", self.timeout.read)
            raise GenerativeAIError("Gemini request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Gemini connection error: %s", exc)
            raise GenerativeAIError(f"Gemini connection error: {exc}") from exc

        if resp.status_code != 200:
            self._raise_for_status(resp)

        try:
            text = _reply_text(resp.json())
        except (ValueError, AttributeError, TypeError) as exc:
            raise GenerativeAIError(f"Malformed Gemini response: {exc}") from exc
        if not text:
            raise GenerativeAIError("Empty response from Gemini")
        return text

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        body = resp.text[:300]
        logger.error("Gemini returned HTTP %d: %s", resp.status_code, body)
        if resp.status_code == 429 or "RESOURCE_EXHAUSTED" in body:
            raise QuotaExceededError("API quota exceeded")
        if resp.status_code in (401, 403) or "API key" in body:
            raise InvalidAPIKeyError("Invalid API key")
        raise GenerativeAIError(f"Gemini HTTP {resp.status_code}")


class GeminiChatSession:
    """Conversation handle: remembers turns for as long as it lives."""

    def __init__(self, client: GeminiClient, history: List[Dict[str, Any]]) -> None:
        self._client = client
        self.history = history

    async def send(self, message: str) -> str:
        contents = self.history + [_turn("user", message)]
        reply = await self._client.generate(contents)
        self.history = contents + [_turn("model", reply)]
        return reply


def _turn(role: str, text: str) -> Dict[str, Any]:
    return {"role": role, "parts": [{"text": text}]}


def _reply_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts).strip()
