"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum
import uuid


class ChatIntent(str, Enum):
    """What the user wants from the assistant in one chat turn."""

    SEARCH = "search"
    RECOMMEND = "recommend"
    SUMMARIZE = "summarize"
    DOCUMENT_QUESTION = "document_question"
    GENERAL = "general"


class HistoryRole(str, Enum):
    """Speaker of a replayed history entry (values match UserRole)."""

    ADMIN = "admin"
    STUDENT = "student"


# Chat Schemas
class ChatHistoryItem(BaseModel):
    """One replayed conversation turn."""

    role: HistoryRole
    content: str = Field(..., max_length=2000)


class ChatRequest(BaseModel):
    """Schema for POST /api/ai/chat."""

    message: str = Field(..., min_length=1, max_length=2000)
    history: Optional[List[ChatHistoryItem]] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Tin nhắn không được để trống")
        return value


class ChatResponse(BaseModel):
    """Schema for the assistant's reply."""

    reply: str
    timestamp: str
    intent: Optional[str] = None
    suggested_actions: Optional[List[str]] = Field(None, alias="suggestedActions")

    model_config = ConfigDict(populate_by_name=True)


# Document Schemas
class DocumentSummary(BaseModel):
    """Catalog entry as returned by the document endpoints."""

    id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: str
    download_count: int = 0
    upload_date: Optional[datetime] = None
    subject_name: Optional[str] = None
    faculty_name: Optional[str] = None
    document_type_name: Optional[str] = None

    @classmethod
    def from_document(cls, doc) -> "DocumentSummary":
        return cls(
            id=doc.id,
            title=doc.title,
            description=doc.description,
            status=getattr(doc.status, "value", doc.status),
            download_count=doc.download_count or 0,
            upload_date=doc.upload_date,
            subject_name=doc.subject.name if doc.subject else None,
            faculty_name=doc.faculty.name if doc.faculty else None,
            document_type_name=doc.document_type.name if doc.document_type else None,
        )


class DocumentDetail(DocumentSummary):
    """Single document with uploader information."""

    file_key: str
    uploader_name: Optional[str] = None

    @classmethod
    def from_document(cls, doc) -> "DocumentDetail":
        base = DocumentSummary.from_document(doc).model_dump()
        return cls(
            **base,
            file_key=doc.file_key,
            uploader_name=doc.uploader.name if doc.uploader else None,
        )


class DocumentSearchResponse(BaseModel):
    """Schema for keyword search results."""

    keywords: List[str]
    results: List[DocumentSummary]
    total_results: int


# Health Check Schema
class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    gemini: str
    timestamp: datetime
