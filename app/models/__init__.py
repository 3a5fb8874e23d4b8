"""Database and schema models for BKDocs."""
from app.models.database_models import (
    User,
    Subject,
    Faculty,
    DocumentType,
    Document,
    Status,
    UserRole,
)
from app.models.schemas import (
    ChatIntent,
    ChatHistoryItem,
    ChatRequest,
    ChatResponse,
    DocumentSummary,
    DocumentDetail,
    DocumentSearchResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Subject",
    "Faculty",
    "DocumentType",
    "Document",
    "Status",
    "UserRole",
    # Pydantic schemas
    "ChatIntent",
    "ChatHistoryItem",
    "ChatRequest",
    "ChatResponse",
    "DocumentSummary",
    "DocumentDetail",
    "DocumentSearchResponse",
    "HealthCheckResponse",
]
