"""
Service providers for FastAPI routes.

Each request gets its own catalog bound to the request's DB session and
its own model client; object storage is one shared instance.  Tests
replace these through ``app.dependency_overrides``.
"""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.assistant_service import AssistantService
from app.services.catalog import DocumentCatalog
from app.services.context_builder import ContextBuilder
from app.services.gemini_client import GeminiClient
from app.services.intent_analyzer import IntentAnalyzer
from app.services.response_composer import ResponseComposer
from app.services.storage import ObjectStorageService, object_storage
from app.services.text_extraction import TextExtractionService


def get_catalog(db: AsyncSession = Depends(get_db)) -> DocumentCatalog:
    return DocumentCatalog(db)


def get_gemini_client() -> GeminiClient:
    return GeminiClient()


def get_storage() -> ObjectStorageService:
    return object_storage


def get_assistant_service(
    catalog: DocumentCatalog = Depends(get_catalog),
    llm: GeminiClient = Depends(get_gemini_client),
    storage: ObjectStorageService = Depends(get_storage),
) -> AssistantService:
    return AssistantService(
        analyzer=IntentAnalyzer(llm),
        context_builder=ContextBuilder(catalog, TextExtractionService(storage)),
        composer=ResponseComposer(llm),
    )
