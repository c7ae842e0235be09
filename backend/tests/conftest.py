"""
Shared fixtures: in-memory database, fake storage and a seeded application.
"""
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from cv_screening.config import Settings
from cv_screening.database import build_session_maker, init_db
from cv_screening.models import CandidateProfile, CvDocument, Job, JobApplication
from tests.fakes import FakeStorage, build_pdf


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        gemini_api_key="",
        ai_parse_attempts=2,
        ai_retry_delay_ms=0,
        min_text_length=10,
        max_extracted_chars=50000,
        lease_seconds=600,
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def seed(session_maker, storage):
    """Create job, candidate, application and an uploaded CV; returns the CV id."""

    async def _seed(pdf_bytes, requirements=None, with_application=True,
                    title="Backend Engineer", department=None, description="Build APIs"):
        key = await storage.put_object(pdf_bytes, "application/pdf")
        async with session_maker() as db:
            application_id = None
            if with_application:
                job = Job(title=title, department=department, description=description,
                          requirements=requirements)
                candidate = CandidateProfile(full_name="Jane Doe", email="jane@example.com")
                db.add_all([job, candidate])
                await db.flush()
                application = JobApplication(job_id=job.id, candidate_profile_id=candidate.id)
                db.add(application)
                await db.flush()
                application_id = application.id

            cv = CvDocument(application_id=application_id, storage_key=key, filename="cv.pdf")
            db.add(cv)
            await db.commit()
            return cv.id

    return _seed
