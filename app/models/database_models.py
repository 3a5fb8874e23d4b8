"""
SQLAlchemy ORM models for the BKDocs catalog.
Only the records the catalog and assistant read are mapped here.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Table,
    Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid

from app.database import Base


# Enums
class Status(str, enum.Enum):
    """Moderation status of an uploaded document."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserRole(str, enum.Enum):
    """Account roles; also the two speaker roles of a chat history."""

    STUDENT = "student"
    ADMIN = "admin"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# Association tables
subject_subscriptions = Table(
    "subject_subscriptions",
    Base.metadata,
    Column("users_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("subjects_id", Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)

faculty_subscriptions = Table(
    "faculty_subscriptions",
    Base.metadata,
    Column("users_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("faculties_id", Uuid, ForeignKey("faculties.id", ondelete="CASCADE"), primary_key=True),
)


# Models
class User(Base):
    """Platform account (student or admin)."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    role = Column(
        SQLEnum(UserRole, name="users_role_enum", values_callable=_enum_values),
        nullable=False,
        default=UserRole.STUDENT,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    documents = relationship("Document", back_populates="uploader")
    subscribed_subjects = relationship(
        "Subject", secondary=subject_subscriptions, back_populates="subscribers"
    )
    subscribed_faculties = relationship(
        "Faculty", secondary=faculty_subscriptions, back_populates="subscribers"
    )


class Subject(Base):
    """Course a document belongs to."""

    __tablename__ = "subjects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    documents = relationship("Document", back_populates="subject")
    subscribers = relationship(
        "User", secondary=subject_subscriptions, back_populates="subscribed_subjects"
    )


class Faculty(Base):
    """University faculty."""

    __tablename__ = "faculties"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    documents = relationship("Document", back_populates="faculty")
    subscribers = relationship(
        "User", secondary=faculty_subscriptions, back_populates="subscribed_faculties"
    )


class DocumentType(Base):
    """Kind of document (lecture notes, exam, slides, ...)."""

    __tablename__ = "document_types"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)

    documents = relationship("Document", back_populates="document_type")


class Document(Base):
    """Shared study document; the file itself lives in object storage."""

    __tablename__ = "documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    file_key = Column(String(512), nullable=False)
    thumbnail_key = Column(String(512), nullable=True)
    download_count = Column(Integer, nullable=False, default=0)
    status = Column(
        SQLEnum(Status, name="documents_status_enum", values_callable=_enum_values),
        nullable=False,
        default=Status.PENDING,
        index=True,
    )
    upload_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    uploader_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    subject_id = Column(Uuid, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True)
    faculty_id = Column(Uuid, ForeignKey("faculties.id", ondelete="SET NULL"), nullable=True, index=True)
    document_type_id = Column(
        Uuid, ForeignKey("document_types.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    uploader = relationship("User", back_populates="documents")
    subject = relationship("Subject", back_populates="documents")
    faculty = relationship("Faculty", back_populates="documents")
    document_type = relationship("DocumentType", back_populates="documents")
