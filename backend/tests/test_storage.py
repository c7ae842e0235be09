import json
import re

import httpx
import pytest

from cv_screening.services.errors import StorageError
from cv_screening.services.storage import LocalStorage, StorageGateway, SupabaseStorage, new_storage_key


def test_new_storage_key_shape():
    assert re.fullmatch(r"cvs/\d{4}-\d{2}-\d{2}/[0-9a-f-]{36}", new_storage_key())


async def test_local_storage_round_trip(tmp_path):
    storage = LocalStorage(str(tmp_path))

    key = await storage.put_object(b"%PDF-1.4", "application/pdf")

    assert await storage.get_object(key) == b"%PDF-1.4"
    assert await storage.get_presigned_download_url(key) == f"/uploads/{key}"


async def test_local_storage_missing_object(tmp_path):
    storage = LocalStorage(str(tmp_path))

    with pytest.raises(StorageError):
        await storage.get_object("cvs/2026-01-01/missing")
    with pytest.raises(StorageError):
        await storage.get_presigned_download_url("cvs/2026-01-01/missing")


async def test_local_storage_rejects_path_traversal(tmp_path):
    storage = LocalStorage(str(tmp_path / "uploads"))

    with pytest.raises(StorageError, match="Invalid storage key"):
        await storage.get_object("../secrets.txt")


def _supabase(handler):
    return SupabaseStorage(
        "https://project.supabase.co/",
        "service-key",
        "cv-documents",
        transport=httpx.MockTransport(handler),
    )


async def test_supabase_get_object_sends_service_key():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, content=b"%PDF-1.7")

    data = await _supabase(handler).get_object("cvs/2026-10-18/abc")

    assert data == b"%PDF-1.7"
    assert seen["url"] == "https://project.supabase.co/storage/v1/object/cv-documents/cvs/2026-10-18/abc"
    assert seen["auth"] == "Bearer service-key"


@pytest.mark.parametrize("response", [
    httpx.Response(404, text='{"error": "not_found"}'),
    httpx.Response(200, content=b""),
])
async def test_supabase_get_object_failures(response):
    with pytest.raises(StorageError):
        await _supabase(lambda request: response).get_object("cvs/x")


async def test_supabase_transport_error_becomes_storage_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StorageError, match="Storage download failed"):
        await _supabase(handler).get_object("cvs/x")


async def test_supabase_put_object_returns_new_key():
    def handler(request):
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/pdf"
        return httpx.Response(200, json={"Key": "cv-documents/..."})

    key = await _supabase(handler).put_object(b"%PDF", "application/pdf")
    assert key.startswith("cvs/")


async def test_supabase_presigned_url():
    def handler(request):
        assert request.url.path == "/storage/v1/object/sign/cv-documents/cvs/x"
        assert json.loads(request.content) == {"expiresIn": 3600}
        return httpx.Response(200, json={"signedURL": "/object/sign/cv-documents/cvs/x?token=t"})

    url = await _supabase(handler).get_presigned_download_url("cvs/x")

    assert url == "https://project.supabase.co/storage/v1/object/sign/cv-documents/cvs/x?token=t"


async def test_supabase_presigned_url_failure():
    with pytest.raises(StorageError):
        await _supabase(lambda request: httpx.Response(400, json={"error": "bad"})).get_presigned_download_url("cvs/x")


def test_supabase_requires_configuration():
    with pytest.raises(StorageError):
        SupabaseStorage("", "", "cv-documents")


def test_incomplete_gateway_cannot_be_built():
    class ReadOnlyStorage(StorageGateway):
        async def get_object(self, key):
            return b""

    with pytest.raises(TypeError):
        ReadOnlyStorage()
