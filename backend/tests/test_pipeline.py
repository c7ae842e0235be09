from datetime import timedelta

import pytest
from sqlalchemy import select, update

from cv_screening.models import (
    AiOutput, AiOutputType, CvDocument, CvStatus, FailReason, Job, JobCandidateMatch,
)
from cv_screening.models.cv import utcnow
from cv_screening.services.errors import EmptyTextError, NotFoundError, PdfParseError, StorageError
from cv_screening.services.pipeline import EMPTY_TEXT_MESSAGE, CvPipeline
from tests.fakes import FakeGemini

CV_TEXT = "I have 5 years experience in React, Node.js and PostgreSQL"

AI_PROFILE = {
    "personalInfo": {"fullName": "Jane Doe"},
    "professionalSummary": "Full-stack engineer.",
    "skills": {"technical": ["react", "node.js", "postgresql", "docker", "aws", "python"]},
    "experience": {"totalYears": 5, "roles": []},
}

AI_MATCH = {
    "exactMatches": ["React"],
    "similarMatches": [{"candidateSkill": "node.js", "jobSkill": "Express", "reasoning": "Same runtime"}],
    "missingCritical": ["Kubernetes"],
    "additionalStrengths": ["aws"],
    "overallMatchScore": 66.6,
    "matchExplanation": "Good fit.",
}


async def load(session_maker, cv_id):
    async with session_maker() as db:
        cv = await db.get(CvDocument, cv_id)
        outputs = (await db.execute(
            select(AiOutput).where(AiOutput.cv_document_id == cv_id).order_by(AiOutput.created_at)
        )).scalars().all()
        matches = (await db.execute(select(JobCandidateMatch))).scalars().all()
    return cv, list(outputs), list(matches)


def output_of(outputs, output_type):
    found = [o for o in outputs if o.type == output_type]
    assert len(found) == 1
    return found[0]


async def test_fallback_run_without_gemini(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["react", "docker"]})
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    result = await pipeline.run(cv_id)

    assert result == {"ok": True, "fallback": True, "score": 50}

    cv, outputs, matches = await load(session_maker, cv_id)
    assert cv.status == CvStatus.AI_DONE
    assert cv.fail_reason is None
    assert cv.error_message is None
    assert cv.locked_until is None
    assert "React" in cv.extracted_text

    profile = output_of(outputs, AiOutputType.CV_PROFILE)
    assert {"react", "node.js", "postgresql"} <= set(profile.output_json["skills"]["technical"])
    assert profile.output_json["experience"]["totalYears"] == 5
    assert profile.model_meta == {"provider": "fallback", "model": None, "reason": "AI_UNAVAILABLE"}

    summary = output_of(outputs, AiOutputType.SUMMARY)
    assert summary.output_json["relevanceScore"] == 30
    assert summary.model_meta["reason"] == "PROFILE_FALLBACK"

    match_output = output_of(outputs, AiOutputType.MATCH)
    assert match_output.output_json["overallMatchScore"] == 50

    assert len(matches) == 1
    assert matches[0].score == 50
    assert matches[0].matched_skills == ["react"]
    assert matches[0].missing_skills == ["docker"]


async def test_gemini_run_records_provenance(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["React", "Express", "Kubernetes"]})
    gemini = FakeGemini(
        profile=AI_PROFILE,
        summary={"contextualSummary": "Strong match.", "keyHighlights": ["React"], "relevanceScore": 88},
        match=AI_MATCH,
    )
    pipeline = CvPipeline(session_maker, storage, gemini=gemini, settings=settings)

    result = await pipeline.run(cv_id)

    assert result == {"ok": True, "fallback": False, "score": 67}
    assert gemini.calls == ["profile", "summary", "match"]

    cv, outputs, matches = await load(session_maker, cv_id)
    assert cv.status == CvStatus.AI_DONE
    for output in outputs:
        assert output.model_meta == {"provider": "gemini", "model": "gemini-test"}
    assert output_of(outputs, AiOutputType.SUMMARY).output_json["relevanceScore"] == 88
    assert matches[0].matched_skills == ["react", "express"]
    assert matches[0].missing_skills == ["kubernetes"]
    assert matches[0].explanation == "Good fit."


async def test_empty_text_fails_without_outputs(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf("Hi"), requirements={"requiredSkills": ["react"]})
    gemini = FakeGemini(profile=AI_PROFILE)
    pipeline = CvPipeline(session_maker, storage, gemini=gemini, settings=settings)

    with pytest.raises(EmptyTextError):
        await pipeline.run(cv_id)

    cv, outputs, matches = await load(session_maker, cv_id)
    assert cv.status == CvStatus.FAILED
    assert cv.fail_reason == FailReason.PDF_TEXT_EMPTY
    assert cv.error_message == EMPTY_TEXT_MESSAGE
    assert cv.locked_until is None
    assert outputs == []
    assert matches == []
    assert gemini.calls == []


async def test_profile_parser_tries_twice_then_degrades(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["react", "docker"]})
    gemini = FakeGemini(match=AI_MATCH)
    pipeline = CvPipeline(session_maker, storage, gemini=gemini, settings=settings)

    result = await pipeline.run(cv_id)

    assert gemini.count("profile") == 2
    # Summary is not attempted once the profile itself is a fallback
    assert gemini.count("summary") == 0
    assert result["fallback"] is True

    cv, outputs, _ = await load(session_maker, cv_id)
    assert cv.status == CvStatus.AI_DONE
    assert cv.fail_reason is None
    profile = output_of(outputs, AiOutputType.CV_PROFILE)
    assert profile.model_meta["provider"] == "fallback"
    assert profile.model_meta["reason"] == "AI_FAILED"
    assert output_of(outputs, AiOutputType.SUMMARY).output_json["relevanceScore"] == 30


async def test_summary_failure_uses_neutral_summary(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["react"]})
    gemini = FakeGemini(profile=AI_PROFILE, match=AI_MATCH)
    pipeline = CvPipeline(session_maker, storage, gemini=gemini, settings=settings)

    await pipeline.run(cv_id)

    cv, outputs, _ = await load(session_maker, cv_id)
    assert cv.status == CvStatus.AI_DONE
    summary = output_of(outputs, AiOutputType.SUMMARY)
    assert summary.output_json["relevanceScore"] == 50
    assert summary.output_json["keyHighlights"] == ["react", "node.js", "postgresql", "docker", "aws"]
    assert summary.output_json["contextualSummary"] == "Full-stack engineer."
    assert summary.model_meta == {"provider": "fallback", "model": None, "reason": "AI_FAILED"}


async def test_no_required_skills_scores_zero_without_ai_match(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"skills": "not-a-list"})
    gemini = FakeGemini(profile=AI_PROFILE, match=AI_MATCH)
    pipeline = CvPipeline(session_maker, storage, gemini=gemini, settings=settings)

    result = await pipeline.run(cv_id)

    assert result["score"] == 0
    assert gemini.count("match") == 0
    _, outputs, matches = await load(session_maker, cv_id)
    assert output_of(outputs, AiOutputType.MATCH).model_meta["reason"] == "NO_REQUIRED_SKILLS"
    assert matches[0].score == 0
    assert matches[0].missing_skills == []


async def test_rerun_replaces_the_single_match_row(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["react", "docker"]})
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    first = await pipeline.run(cv_id)

    async with session_maker() as db:
        await db.execute(update(Job).values(requirements={"requiredSkills": ["react"]}))
        await db.commit()

    second = await pipeline.run(cv_id)

    assert first["score"] == 50
    assert second["score"] == 100
    _, outputs, matches = await load(session_maker, cv_id)
    assert len(matches) == 1
    assert matches[0].score == 100
    assert matches[0].missing_skills == []
    # Outputs are append-only: one of each type per run
    assert len(outputs) == 6


async def test_missing_storage_object_fails_run(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["react"]})
    storage.objects.clear()
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    with pytest.raises(StorageError):
        await pipeline.run(cv_id)

    cv, outputs, _ = await load(session_maker, cv_id)
    assert cv.status == CvStatus.FAILED
    assert cv.fail_reason == FailReason.S3_UPLOAD_FAILED
    assert "NoSuchKey" in cv.error_message
    assert outputs == []


async def test_malformed_pdf_fails_run(session_maker, storage, settings, seed):
    cv_id = await seed(b"definitely not a pdf", requirements={"requiredSkills": ["react"]})
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    with pytest.raises(PdfParseError):
        await pipeline.run(cv_id)

    cv, _, _ = await load(session_maker, cv_id)
    assert cv.status == CvStatus.FAILED
    assert cv.fail_reason == FailReason.PDF_PARSE_FAILED


async def test_missing_application_keeps_completed_stages(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), with_application=False)
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    with pytest.raises(NotFoundError):
        await pipeline.run(cv_id)

    cv, outputs, matches = await load(session_maker, cv_id)
    assert cv.status == CvStatus.FAILED
    assert cv.fail_reason == FailReason.UNKNOWN
    assert "not linked to an application" in cv.error_message
    assert cv.extracted_text
    assert [o.type for o in outputs] == [AiOutputType.CV_PROFILE]
    assert matches == []


async def test_retry_after_failure_clears_error_fields(session_maker, storage, settings, seed, make_pdf):
    pdf = make_pdf(CV_TEXT)
    cv_id = await seed(pdf, requirements={"requiredSkills": ["react"]})
    async with session_maker() as db:
        key = (await db.get(CvDocument, cv_id)).storage_key
    storage.objects.clear()
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    with pytest.raises(StorageError):
        await pipeline.run(cv_id)

    storage.objects[key] = pdf
    result = await pipeline.run(cv_id)

    assert result["ok"] is True
    cv, _, _ = await load(session_maker, cv_id)
    assert cv.status == CvStatus.AI_DONE
    assert cv.fail_reason is None
    assert cv.error_message is None


async def test_duplicate_delivery_is_skipped_while_lease_is_held(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["react"]})
    async with session_maker() as db:
        await db.execute(
            update(CvDocument)
            .where(CvDocument.id == cv_id)
            .values(locked_until=utcnow() + timedelta(minutes=5))
        )
        await db.commit()
    gemini = FakeGemini(profile=AI_PROFILE)
    pipeline = CvPipeline(session_maker, storage, gemini=gemini, settings=settings)

    result = await pipeline.handle({"cv_document_id": cv_id})

    assert result == {"ok": True, "skipped": True}
    assert gemini.calls == []
    cv, outputs, _ = await load(session_maker, cv_id)
    assert cv.status == CvStatus.UPLOADED
    assert cv.locked_until is not None
    assert outputs == []


async def test_expired_lease_is_taken_over(session_maker, storage, settings, seed, make_pdf):
    cv_id = await seed(make_pdf(CV_TEXT), requirements={"requiredSkills": ["react"]})
    async with session_maker() as db:
        await db.execute(
            update(CvDocument)
            .where(CvDocument.id == cv_id)
            .values(locked_until=utcnow() - timedelta(seconds=1))
        )
        await db.commit()
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    result = await pipeline.run(cv_id)

    assert result["ok"] is True
    assert "skipped" not in result


async def test_unknown_document_raises_not_found(session_maker, storage, settings):
    pipeline = CvPipeline(session_maker, storage, gemini=None, settings=settings)

    with pytest.raises(NotFoundError):
        await pipeline.run("does-not-exist")
