"""
CV document models - uploaded resumes, their processing state and AI outputs.
"""
import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from ..database import Base


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CvStatus(str, enum.Enum):
    """Lifecycle of a CV document through the processing pipeline."""
    UPLOADED = "UPLOADED"
    TEXT_EXTRACTED = "TEXT_EXTRACTED"
    AI_DONE = "AI_DONE"
    FAILED = "FAILED"


class FailReason(str, enum.Enum):
    S3_UPLOAD_FAILED = "S3_UPLOAD_FAILED"
    PDF_PARSE_FAILED = "PDF_PARSE_FAILED"
    PDF_TEXT_EMPTY = "PDF_TEXT_EMPTY"
    AI_QUOTA_EXCEEDED = "AI_QUOTA_EXCEEDED"
    AI_RATE_LIMITED = "AI_RATE_LIMITED"
    AI_AUTH_FAILED = "AI_AUTH_FAILED"
    AI_TIMEOUT = "AI_TIMEOUT"
    AI_FAILED = "AI_FAILED"
    DB_FAILED = "DB_FAILED"
    UNKNOWN = "UNKNOWN"


class AiOutputType(str, enum.Enum):
    CV_PROFILE = "CV_PROFILE"
    SUMMARY = "SUMMARY"
    MATCH = "MATCH"


class CvDocument(Base):
    """
    One uploaded resume. Created by the upload layer with status UPLOADED,
    then owned by the pipeline while a run holds its lease.
    """
    __tablename__ = "cv_documents"

    id = Column(String(32), primary_key=True, default=new_id)
    application_id = Column(String(32), ForeignKey("job_applications.id", ondelete="SET NULL"), nullable=True, index=True)

    storage_key = Column(String(500), nullable=False)
    filename = Column(String(255), nullable=True)
    extracted_text = Column(Text, nullable=True)

    status = Column(SQLEnum(CvStatus), default=CvStatus.UPLOADED, nullable=False)
    # error_message and fail_reason are always written together
    error_message = Column(Text, nullable=True)
    fail_reason = Column(SQLEnum(FailReason), nullable=True)

    # Lease held by the run currently processing this document
    locked_until = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    application = relationship("JobApplication", back_populates="cv_documents")
    outputs = relationship("AiOutput", back_populates="cv_document", cascade="all, delete-orphan")


class AiOutput(Base):
    """Append-only record of one generative (or fallback) result."""
    __tablename__ = "ai_outputs"

    id = Column(String(32), primary_key=True, default=new_id)
    cv_document_id = Column(String(32), ForeignKey("cv_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(AiOutputType), nullable=False)
    output_json = Column(JSON, nullable=False)
    model_meta = Column(JSON, nullable=False)  # {"provider": "gemini" | "fallback", "model": ...}
    created_at = Column(DateTime(timezone=True), default=utcnow)

    cv_document = relationship("CvDocument", back_populates="outputs")
