"""
CV Processing Job Model - the queue the worker pulls pipeline runs from.
"""
from enum import Enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from ..database import Base
from .cv import new_id, utcnow


class ProcessingJobStatus(str, Enum):
    """Status of a queued pipeline run."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CvProcessingJob(Base):
    """
    One delivery of {cv_document_id} to the worker.
    Failed runs are re-queued until max_attempts is reached.
    """
    __tablename__ = "cv_processing_jobs"

    id = Column(String(32), primary_key=True, default=new_id)
    cv_document_id = Column(String(32), ForeignKey("cv_documents.id", ondelete="CASCADE"), nullable=False, index=True)

    # Status tracking
    status = Column(
        SQLEnum(ProcessingJobStatus),
        default=ProcessingJobStatus.PENDING,
        nullable=False,
        index=True,
    )
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, default=3, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
