"""
Response schemas for the CV processing endpoints
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel

from ..models.processing_job import ProcessingJobStatus


class ProcessingJobResponse(BaseModel):
    id: str
    status: ProcessingJobStatus
    attempts: int
    max_attempts: int
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EnqueueResponse(BaseModel):
    cv_document_id: str
    job: ProcessingJobResponse
    message: str


class OutputSummary(BaseModel):
    type: str
    provider: Optional[str] = None
    model: Optional[str] = None
    created_at: Optional[datetime] = None


class CvStatusResponse(BaseModel):
    cv_document_id: str
    status: str
    fail_reason: Optional[str] = None
    error_message: Optional[str] = None
    can_retry: bool = False
    latest_job: Optional[ProcessingJobResponse] = None
    outputs: List[OutputSummary] = []


class DownloadUrlResponse(BaseModel):
    url: str
    filename: str
    expires_in: int
