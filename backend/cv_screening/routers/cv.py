"""
CV Router - enqueue processing, check status, retry failed runs, download links
"""
import re
from datetime import timezone
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import get_settings
from ..database import get_db
from ..models import (
    AiOutput, CvDocument, CvProcessingJob, CvStatus, JobApplication, ProcessingJobStatus,
)
from ..models.cv import utcnow
from ..schemas.cv import (
    CvStatusResponse, DownloadUrlResponse, EnqueueResponse,
    OutputSummary, ProcessingJobResponse,
)
from ..services.errors import StorageError
from ..services.queue import enqueue
from ..services.storage import StorageGateway, build_storage

router = APIRouter(prefix="/api/cv", tags=["CV Processing"])

settings = get_settings()

DOWNLOAD_URL_TTL = 3600  # 1 hour


@lru_cache()
def get_storage() -> StorageGateway:
    return build_storage(settings)


async def _get_cv_or_404(db: AsyncSession, cv_document_id: str) -> CvDocument:
    cv = await db.get(CvDocument, cv_document_id)
    if not cv:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="CV document not found"
        )
    return cv


async def _latest_job(db: AsyncSession, cv_document_id: str):
    result = await db.execute(
        select(CvProcessingJob)
        .where(CvProcessingJob.cv_document_id == cv_document_id)
        .order_by(CvProcessingJob.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _can_retry(cv: CvDocument, latest_job) -> bool:
    """FAILED documents, or documents a dead run left mid-pipeline with nothing queued."""
    if cv.status == CvStatus.FAILED:
        return True
    if cv.status == CvStatus.AI_DONE or latest_job is None:
        return False
    if latest_job.status in (ProcessingJobStatus.PENDING, ProcessingJobStatus.PROCESSING):
        return False

    locked_until = cv.locked_until
    if locked_until is None:
        return True
    # SQLite hands back naive datetimes
    if locked_until.tzinfo is None:
        locked_until = locked_until.replace(tzinfo=timezone.utc)
    return locked_until <= utcnow()


@router.post("/{cv_document_id}/process", response_model=EnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def process_cv(cv_document_id: str, db: AsyncSession = Depends(get_db)):
    """Queue a CV document for background processing."""
    await _get_cv_or_404(db, cv_document_id)
    job = await enqueue(db, cv_document_id, max_attempts=settings.job_max_attempts)
    return EnqueueResponse(
        cv_document_id=cv_document_id,
        job=ProcessingJobResponse.model_validate(job),
        message="CV queued for processing - check status in a few seconds."
    )


@router.get("/{cv_document_id}/status", response_model=CvStatusResponse)
async def get_cv_status(cv_document_id: str, db: AsyncSession = Depends(get_db)):
    """Processing status, failure reason and provenance of stored outputs."""
    cv = await _get_cv_or_404(db, cv_document_id)

    latest_job = await _latest_job(db, cv_document_id)

    output_result = await db.execute(
        select(AiOutput)
        .where(AiOutput.cv_document_id == cv_document_id)
        .order_by(AiOutput.created_at)
    )
    outputs = [
        OutputSummary(
            type=output.type.value,
            provider=(output.model_meta or {}).get("provider"),
            model=(output.model_meta or {}).get("model"),
            created_at=output.created_at,
        )
        for output in output_result.scalars().all()
    ]

    return CvStatusResponse(
        cv_document_id=cv.id,
        status=cv.status.value,
        fail_reason=cv.fail_reason.value if cv.fail_reason else None,
        error_message=cv.error_message,
        can_retry=_can_retry(cv, latest_job),
        latest_job=ProcessingJobResponse.model_validate(latest_job) if latest_job else None,
        outputs=outputs,
    )


@router.post("/{cv_document_id}/retry", response_model=EnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry_cv(cv_document_id: str, db: AsyncSession = Depends(get_db)):
    """Re-queue a CV whose last run failed or stalled. The file is re-read from storage."""
    cv = await _get_cv_or_404(db, cv_document_id)
    if not _can_retry(cv, await _latest_job(db, cv_document_id)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only failed or stalled CV documents can be retried"
        )

    job = await enqueue(db, cv_document_id, max_attempts=settings.job_max_attempts)
    return EnqueueResponse(
        cv_document_id=cv_document_id,
        job=ProcessingJobResponse.model_validate(job),
        message="CV processing retry started"
    )


@router.get("/{cv_document_id}/download-url", response_model=DownloadUrlResponse)
async def get_download_url(
    cv_document_id: str,
    db: AsyncSession = Depends(get_db),
    storage: StorageGateway = Depends(get_storage)
):
    """Short-lived download link with a friendly filename."""
    result = await db.execute(
        select(CvDocument)
        .where(CvDocument.id == cv_document_id)
        .options(selectinload(CvDocument.application).selectinload(JobApplication.candidate))
    )
    cv = result.scalar_one_or_none()
    if not cv:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="CV document not found"
        )

    try:
        url = await storage.get_presigned_download_url(cv.storage_key, DOWNLOAD_URL_TTL)
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )

    candidate_name = "candidate"
    if cv.application and cv.application.candidate:
        candidate_name = re.sub(r"[^a-zA-Z0-9]", "_", cv.application.candidate.full_name).lower()
    uploaded = cv.created_at.strftime("%Y-%m-%d") if cv.created_at else "unknown"

    return DownloadUrlResponse(
        url=url,
        filename=f"cv_{candidate_name}_{uploaded}.pdf",
        expires_in=DOWNLOAD_URL_TTL,
    )
