from unittest.mock import MagicMock

from cv_screening.config import Settings
from cv_screening.services.gemini import GeminiClient, build_gemini_client
from cv_screening.services.storage import LocalStorage, SupabaseStorage, build_storage
from cv_screening.worker import build_worker


def test_build_worker_without_gemini_key(tmp_path):
    settings = Settings(gemini_api_key="", uploads_dir=str(tmp_path), worker_concurrency=2,
                        worker_poll_interval=0.5, stuck_job_timeout=60)

    worker = build_worker(settings, session_maker=MagicMock())

    assert worker.concurrency == 2
    assert worker.poll_interval == 0.5
    assert worker.stuck_timeout == 60
    pipeline = worker.handler.__self__
    assert pipeline.gemini is None
    assert isinstance(pipeline.storage, LocalStorage)


def test_build_gemini_client_from_settings():
    assert build_gemini_client(Settings(gemini_api_key="")) is None

    client = build_gemini_client(Settings(gemini_api_key="test-key", gemini_model="gemini-test"))

    assert isinstance(client, GeminiClient)
    assert client.model == "gemini-test"


def test_build_storage_selects_backend(tmp_path):
    assert isinstance(build_storage(Settings(storage_backend="local", uploads_dir=str(tmp_path))), LocalStorage)

    storage = build_storage(Settings(
        storage_backend="supabase",
        supabase_url="https://project.supabase.co",
        supabase_service_role_key="service-key",
    ))
    assert isinstance(storage, SupabaseStorage)
    assert storage.bucket == "cv-documents"
