"""
Read-only document catalog endpoints.

GET /search       accent-insensitive keyword search.
GET /recommended  documents from the caller's followed subjects/faculties.
GET /suggestions  most downloaded active documents.
GET /{id}         document metadata with relations.
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.config import settings
from app.dependencies.auth import get_current_user_id
from app.dependencies.services import get_catalog
from app.models.schemas import DocumentDetail, DocumentSearchResponse, DocumentSummary
from app.services.catalog import DocumentCatalog
from app.services.exceptions import DocumentNotFoundError, UserNotFoundError
from app.services.intent_analyzer import extract_search_keywords

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/search", response_model=DocumentSearchResponse)
async def search_documents(
    keyword: str = Query(..., min_length=1, max_length=200),
    limit: int = Query(settings.SEARCH_RESULT_LIMIT, ge=1, le=50),
    catalog: DocumentCatalog = Depends(get_catalog),
) -> DocumentSearchResponse:
    """
    Search active documents by free-text keywords.

    The query goes through the same filler-word removal as the chat
    assistant; if nothing is left the raw words are used as-is.
    """
    keywords = extract_search_keywords(keyword) or keyword.split()
    documents = await catalog.search_by_keywords(keywords, limit)
    return DocumentSearchResponse(
        keywords=keywords,
        results=[DocumentSummary.from_document(d) for d in documents],
        total_results=len(documents),
    )


@router.get("/recommended", response_model=List[DocumentSummary])
async def recommended_documents(
    limit: int = Query(settings.SEARCH_RESULT_LIMIT, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    catalog: DocumentCatalog = Depends(get_catalog),
) -> List[DocumentSummary]:
    """Documents from the subjects and faculties the caller follows."""
    try:
        subject_ids, faculty_ids = await catalog.get_user_subscriptions(user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    documents = await catalog.recommend_by_subscriptions(subject_ids, faculty_ids, limit)
    return [DocumentSummary.from_document(d) for d in documents]


@router.get("/suggestions", response_model=List[DocumentSummary])
async def suggested_documents(
    limit: int = Query(settings.SEARCH_RESULT_LIMIT, ge=1, le=50),
    catalog: DocumentCatalog = Depends(get_catalog),
) -> List[DocumentSummary]:
    documents = await catalog.list_popular(limit)
    return [DocumentSummary.from_document(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentDetail)
async def get_document(
    document_id: str,
    catalog: DocumentCatalog = Depends(get_catalog),
) -> DocumentDetail:
    try:
        doc = await catalog.get_by_id_with_relations(document_id)
    except DocumentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document {document_id} not found.",
        )
    return DocumentDetail.from_document(doc)
