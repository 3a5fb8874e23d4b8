"""
Read-only queries over the document catalog.

Public API
----------
DocumentCatalog.search_by_keywords(keywords, limit)                       -> List[Document]
DocumentCatalog.recommend_by_subscriptions(subject_ids, faculty_ids, limit) -> List[Document]
DocumentCatalog.get_by_id_with_relations(document_id)                     -> Document
DocumentCatalog.get_user_subscriptions(user_id)                            -> (subject_ids, faculty_ids)
DocumentCatalog.list_popular(limit)                                        -> List[Document]

Only documents with status ``active`` are ever returned by the list
queries.  Nothing here writes to the database.
"""
from __future__ import annotations

import functools
import logging
import operator
import uuid
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import String, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.database_models import Document, Faculty, Status, Subject, User
from app.services.exceptions import DocumentNotFoundError, UserNotFoundError
from app.utils.helpers import normalize_no_accent, unique_preserving_order

logger = logging.getLogger(__name__)


def _folded(column):
    """Lower-cased, accent-stripped SQL view of a text column."""
    return func.unaccent(func.lower(column), type_=String)


def _as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def _as_uuid_list(values: Optional[Iterable]) -> List[uuid.UUID]:
    return [u for u in (_as_uuid(v) for v in (values or [])) if u is not None]


class DocumentCatalog:
    """Catalog accessor bound to one request's database session."""

    SEARCHABLE_COLUMNS = (Document.title, Document.description, Subject.name, Faculty.name)

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_by_keywords(
        self,
        keywords: Sequence[str],
        limit: int = 10,
    ) -> List[Document]:
        """
        Active documents whose title, description, subject or faculty
        contains any keyword (case- and accent-insensitive).

        Ranked by how many of those four fields matched, then by
        download count.  An empty keyword list returns ``[]`` without
        touching the database.
        """
        terms = unique_preserving_order(
            [t for t in (normalize_no_accent(k) for k in keywords or []) if t]
        )
        if not terms:
            return []

        stmt = self.build_search_query(terms, limit)
        result = await self.db.execute(stmt)
        documents = list(result.scalars().unique().all())

        logger.info(
            "search_by_keywords: %s → %d documents (limit=%d)",
            terms,
            len(documents),
            limit,
        )
        return documents

    def build_search_query(self, terms: Sequence[str], limit: int):
        """SELECT for :meth:`search_by_keywords`; *terms* are already normalised."""
        field_matches = [
            or_(*[_folded(col).contains(term, autoescape=True) for term in terms])
            for col in self.SEARCHABLE_COLUMNS
        ]
        relevance = functools.reduce(
            operator.add,
            [case((match, 1), else_=0) for match in field_matches],
        )

        return (
            select(Document)
            .outerjoin(Subject, Document.subject_id == Subject.id)
            .outerjoin(Faculty, Document.faculty_id == Faculty.id)
            .where(Document.status == Status.ACTIVE, or_(*field_matches))
            .options(
                selectinload(Document.subject),
                selectinload(Document.faculty),
                selectinload(Document.document_type),
            )
            .order_by(relevance.desc(), Document.download_count.desc())
            .limit(limit)
        )

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    async def recommend_by_subscriptions(
        self,
        subject_ids: Optional[Iterable] = None,
        faculty_ids: Optional[Iterable] = None,
        limit: int = 10,
    ) -> List[Document]:
        """Most-downloaded active documents in any of the given subjects/faculties."""
        subjects = _as_uuid_list(subject_ids)
        faculties = _as_uuid_list(faculty_ids)

        conditions = []
        if subjects:
            conditions.append(Document.subject_id.in_(subjects))
        if faculties:
            conditions.append(Document.faculty_id.in_(faculties))
        if not conditions:
            return []

        stmt = (
            select(Document)
            .where(Document.status == Status.ACTIVE, or_(*conditions))
            .options(
                selectinload(Document.subject),
                selectinload(Document.faculty),
                selectinload(Document.document_type),
            )
            .order_by(Document.download_count.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        documents = list(result.scalars().all())

        logger.info(
            "recommend_by_subscriptions: %d subjects, %d faculties → %d documents",
            len(subjects),
            len(faculties),
            len(documents),
        )
        return documents

    async def list_popular(self, limit: int = 10) -> List[Document]:
        """Most-downloaded active documents across the whole catalog."""
        stmt = (
            select(Document)
            .where(Document.status == Status.ACTIVE)
            .options(
                selectinload(Document.subject),
                selectinload(Document.faculty),
                selectinload(Document.document_type),
            )
            .order_by(Document.download_count.desc(), Document.upload_date.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Single lookups
    # ------------------------------------------------------------------

    async def get_by_id_with_relations(self, document_id) -> Document:
        """
        Load one document with subject, faculty, type and uploader.

        Raises:
            DocumentNotFoundError: no document has this id (or the id is
                not a UUID at all).
        """
        doc_uuid = _as_uuid(document_id)
        if doc_uuid is None:
            raise DocumentNotFoundError(str(document_id))

        result = await self.db.execute(
            select(Document)
            .where(Document.id == doc_uuid)
            .options(
                selectinload(Document.subject),
                selectinload(Document.faculty),
                selectinload(Document.document_type),
                selectinload(Document.uploader),
            )
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    async def get_user_subscriptions(
        self, user_id
    ) -> Tuple[List[uuid.UUID], List[uuid.UUID]]:
        """Return ``(subject_ids, faculty_ids)`` the user follows."""
        user_uuid = _as_uuid(user_id)
        if user_uuid is None:
            raise UserNotFoundError(str(user_id))

        result = await self.db.execute(
            select(User)
            .where(User.id == user_uuid)
            .options(
                selectinload(User.subscribed_subjects),
                selectinload(User.subscribed_faculties),
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(str(user_id))

        return (
            [s.id for s in user.subscribed_subjects],
            [f.id for f in user.subscribed_faculties],
        )
