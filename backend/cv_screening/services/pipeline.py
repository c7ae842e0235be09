"""
CV processing pipeline.

Drives one CV document through extraction, profile parsing, summarizing and
skill matching:

    UPLOADED -> TEXT_EXTRACTED -> AI_DONE
    UPLOADED | TEXT_EXTRACTED -> FAILED

AI stages degrade to deterministic fallbacks and never fail a run. Storage,
extraction, database and missing-job failures are classified, persisted on the
document and re-raised to the queue.
"""
import asyncio
import logging
from typing import Optional

from ..config import Settings, get_settings
from ..models import AiOutputType, FailReason
from .cv_parser import GeminiProfileParser, KeywordProfileParser
from .errors import EmptyTextError, classify_fail_reason, describe_error
from .fallback import Outcome, PROVIDER_FALLBACK, with_fallback
from .matcher import ExactSkillMatcher, GeminiSkillMatcher, basic_match
from .pdf import extract_text
from .repository import CvRepository
from .storage import StorageGateway
from .summarizer import DEGRADED_RELEVANCE, GeminiSummarizer, GenericSummarizer, generic_summary

logger = logging.getLogger(__name__)

EMPTY_TEXT_MESSAGE = (
    "PDF contains no extractable text. This may be a scanned/image-based PDF that requires OCR."
)


class CvPipeline:
    """
    Orchestrates one pipeline run per CV document.

    Collaborators are injected so the worker (or a test) owns their lifecycle.
    ``gemini`` may be None, in which case every AI stage uses its fallback.
    """

    def __init__(self, session_maker, storage: StorageGateway, gemini=None,
                 settings: Optional[Settings] = None, sleep=asyncio.sleep):
        self.settings = settings or get_settings()
        self.repo = CvRepository(session_maker)
        self.storage = storage
        self.gemini = gemini

        self.profile_parser = None
        self.summarizer = None
        self.matcher = None
        if gemini is not None:
            self.profile_parser = GeminiProfileParser(
                gemini,
                attempts=self.settings.ai_parse_attempts,
                retry_delay_ms=self.settings.ai_retry_delay_ms,
                sleep=sleep,
            )
            self.summarizer = GeminiSummarizer(gemini)
            self.matcher = GeminiSkillMatcher(gemini)

        self.profile_fallback = KeywordProfileParser()
        self.summary_fallback = GenericSummarizer()
        self.match_fallback = ExactSkillMatcher()

    async def handle(self, payload: dict) -> dict:
        """Queue job handler for payloads of the form {"cv_document_id": ...}."""
        return await self.run(payload["cv_document_id"])

    async def run(self, cv_document_id: str) -> dict:
        if not await self.repo.claim(cv_document_id, self.settings.lease_seconds):
            logger.warning(f"[PIPELINE] CV {cv_document_id} is already being processed, skipping duplicate run")
            return {"ok": True, "skipped": True}

        logger.info(f"[PIPELINE] Processing CV: {cv_document_id}")
        try:
            result = await self._process(cv_document_id)
            logger.info(f"[PIPELINE] CV {cv_document_id} done: score={result['score']}, fallback={result['fallback']}")
            return result
        except Exception as e:
            fail_reason = classify_fail_reason(e)
            error_message = describe_error(e)
            logger.error(f"[PIPELINE] CV processing failed for {cv_document_id} ({fail_reason.value}): {error_message}")

            # Empty-text failures were already persisted with their own message
            if not isinstance(e, EmptyTextError):
                try:
                    await self.repo.mark_failed(cv_document_id, fail_reason, error_message)
                except Exception:
                    logger.exception(f"[PIPELINE] Could not persist failure for {cv_document_id}")
            raise
        finally:
            try:
                await self.repo.release(cv_document_id)
            except Exception:
                logger.exception(f"[PIPELINE] Could not release lease for {cv_document_id}")

    async def _process(self, cv_document_id: str) -> dict:
        # 1. Download and extract text
        cv = await self.repo.get(cv_document_id)
        pdf_bytes = await self.storage.get_object(cv.storage_key)
        text = await extract_text(pdf_bytes, self.settings.max_extracted_chars)

        if len(text.strip()) < self.settings.min_text_length:
            await self.repo.mark_failed(cv_document_id, FailReason.PDF_TEXT_EMPTY, EMPTY_TEXT_MESSAGE)
            raise EmptyTextError(EMPTY_TEXT_MESSAGE)

        await self.repo.mark_text_extracted(cv_document_id, text)

        # 2. Structured profile (AI, else keyword fallback)
        parsed = await with_fallback(self.profile_parser, self.profile_fallback, text, stage="profile parsing")
        profile = parsed.value
        await self.repo.add_output(
            cv_document_id, AiOutputType.CV_PROFILE, profile.to_json(), parsed.model_meta()
        )

        # 3. Job the CV was submitted for
        context = await self.repo.get_match_context(cv_document_id)

        # 4. Job-tailored summary
        if parsed.degraded:
            summary = Outcome(
                generic_summary(profile, DEGRADED_RELEVANCE),
                PROVIDER_FALLBACK,
                reason="PROFILE_FALLBACK",
            )
        else:
            summary = await with_fallback(
                self.summarizer, self.summary_fallback, profile, context.job, stage="summary"
            )
        await self.repo.add_output(
            cv_document_id,
            AiOutputType.SUMMARY,
            summary.value.model_dump(mode="json", by_alias=True),
            summary.model_meta(),
        )

        # 5. Skill matching, then upsert the match row
        candidate_skills = list(profile.skills.technical)
        required_skills = context.job.required_skills
        if not required_skills:
            matched = Outcome(
                basic_match(candidate_skills, required_skills),
                PROVIDER_FALLBACK,
                reason="NO_REQUIRED_SKILLS",
            )
        else:
            matched = await with_fallback(
                self.matcher, self.match_fallback, candidate_skills, required_skills, stage="skill matching"
            )
        result = matched.value
        await self.repo.add_output(
            cv_document_id,
            AiOutputType.MATCH,
            result.model_dump(mode="json", by_alias=True),
            matched.model_meta(),
        )
        await self.repo.upsert_match(
            job_id=context.job_id,
            candidate_profile_id=context.candidate_profile_id,
            score=result.overall_match_score,
            matched_skills=result.matched_skills,
            missing_skills=result.missing_skills,
            explanation=result.match_explanation or None,
        )

        # 6. Done
        await self.repo.mark_done(cv_document_id)
        return {
            "ok": True,
            "fallback": parsed.degraded,
            "score": result.overall_match_score,
        }
