"""
CV persistence store used by the pipeline.

Every method opens its own session and commits before returning, so each
pipeline stage keeps its progress even when a later stage fails.
SQLAlchemy errors surface as DatabaseError.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlalchemy.dialects import postgresql, sqlite

from ..models import (
    AiOutput, AiOutputType, CvDocument, CvStatus, FailReason,
    JobApplication, JobCandidateMatch,
)
from ..models.cv import new_id, utcnow
from ..schemas.matching import JobDetails
from .errors import DatabaseError, NotFoundError
from .jobs import job_details


@dataclass
class MatchContext:
    job_id: str
    candidate_profile_id: str
    job: JobDetails


class CvRepository:

    def __init__(self, session_maker):
        self.session_maker = session_maker

    @asynccontextmanager
    async def session(self):
        async with self.session_maker() as db:
            try:
                yield db
            except SQLAlchemyError as e:
                await db.rollback()
                raise DatabaseError(f"Database error: {e}") from e

    async def claim(self, cv_document_id: str, lease_seconds: int) -> bool:
        """
        Take the processing lease on a CV document and reset it for a new run.

        Returns False when another run still holds the lease.

        Raises:
            NotFoundError if the document does not exist
        """
        now = utcnow()
        async with self.session() as db:
            result = await db.execute(
                update(CvDocument)
                .where(
                    CvDocument.id == cv_document_id,
                    or_(CvDocument.locked_until.is_(None), CvDocument.locked_until < now),
                )
                .values(
                    locked_until=now + timedelta(seconds=lease_seconds),
                    status=CvStatus.UPLOADED,
                    error_message=None,
                    fail_reason=None,
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if result.rowcount == 1:
                return True

            exists = await db.scalar(select(CvDocument.id).where(CvDocument.id == cv_document_id))
            if exists is None:
                raise NotFoundError(f"CV document not found: {cv_document_id}")
            return False

    async def release(self, cv_document_id: str) -> None:
        async with self.session() as db:
            await db.execute(
                update(CvDocument)
                .where(CvDocument.id == cv_document_id)
                .values(locked_until=None)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

    async def get(self, cv_document_id: str) -> CvDocument:
        async with self.session() as db:
            cv = await db.get(CvDocument, cv_document_id)
            if cv is None:
                raise NotFoundError(f"CV document not found: {cv_document_id}")
            return cv

    async def _set(self, cv_document_id: str, **values) -> None:
        async with self.session() as db:
            await db.execute(
                update(CvDocument)
                .where(CvDocument.id == cv_document_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

    async def mark_text_extracted(self, cv_document_id: str, text: str) -> None:
        await self._set(cv_document_id, extracted_text=text, status=CvStatus.TEXT_EXTRACTED)

    async def mark_failed(self, cv_document_id: str, reason: FailReason, message: str) -> None:
        await self._set(
            cv_document_id,
            status=CvStatus.FAILED,
            error_message=message,
            fail_reason=reason,
        )

    async def mark_done(self, cv_document_id: str) -> None:
        await self._set(
            cv_document_id,
            status=CvStatus.AI_DONE,
            error_message=None,
            fail_reason=None,
        )

    async def add_output(self, cv_document_id: str, output_type: AiOutputType,
                         output_json: dict, model_meta: dict) -> AiOutput:
        async with self.session() as db:
            output = AiOutput(
                cv_document_id=cv_document_id,
                type=output_type,
                output_json=output_json,
                model_meta=model_meta,
            )
            db.add(output)
            await db.commit()
            return output

    async def get_match_context(self, cv_document_id: str) -> MatchContext:
        """Job and candidate the CV was submitted for."""
        async with self.session() as db:
            result = await db.execute(
                select(CvDocument)
                .where(CvDocument.id == cv_document_id)
                .options(selectinload(CvDocument.application).selectinload(JobApplication.job))
            )
            cv = result.scalar_one_or_none()

        if cv is None:
            raise NotFoundError(f"CV document not found: {cv_document_id}")
        if cv.application is None:
            raise NotFoundError(f"CV document {cv_document_id} is not linked to an application")
        if cv.application.job is None:
            raise NotFoundError(f"Job not found for application {cv.application.id}")

        return MatchContext(
            job_id=cv.application.job_id,
            candidate_profile_id=cv.application.candidate_profile_id,
            job=job_details(cv.application.job),
        )

    async def upsert_match(self, job_id: str, candidate_profile_id: str, score: int,
                           matched_skills: List[str], missing_skills: List[str],
                           explanation: Optional[str]) -> None:
        """Create or replace the single match row for (job, candidate)."""
        values = {
            "score": score,
            "matched_skills": matched_skills,
            "missing_skills": missing_skills,
            "explanation": explanation,
            "updated_at": utcnow(),
        }
        async with self.session() as db:
            dialect = db.get_bind().dialect.name
            if dialect in ("postgresql", "sqlite"):
                insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                stmt = insert(JobCandidateMatch).values(
                    id=new_id(),
                    job_id=job_id,
                    candidate_profile_id=candidate_profile_id,
                    **values,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["job_id", "candidate_profile_id"],
                    set_=values,
                )
                await db.execute(stmt)
            else:
                existing = await db.scalar(
                    select(JobCandidateMatch).where(
                        JobCandidateMatch.job_id == job_id,
                        JobCandidateMatch.candidate_profile_id == candidate_profile_id,
                    )
                )
                if existing is None:
                    db.add(JobCandidateMatch(
                        job_id=job_id,
                        candidate_profile_id=candidate_profile_id,
                        **values,
                    ))
                else:
                    for key, value in values.items():
                        setattr(existing, key, value)
            await db.commit()
