import json

import httpx
import pytest

from admission_portal.client.bundle import (
    DocumentBundleRequest,
    check_bundle_preconditions,
    fallback_filename,
    filename_from_disposition,
)
from admission_portal.client.errors import GenerationPreconditionError
from admission_portal.client.http import decode_error_body
from admission_portal.client.notifications import Notifier
from conftest import mock_api

APPLICATION = {
    "id": "c0ffee00-0000-0000-0000-000000000001",
    "applicationId": "APP2024000100",
    "documents": [
        {"id": "d1", "documentType": "marksheet_10th", "status": "APPROVED"},
        {"id": "d2", "documentType": "photo", "status": "APPROVED"},
        {"id": "d3", "documentType": "aadhar_card", "status": "PENDING"},
    ],
}


def test_filename_from_disposition() -> None:
    assert filename_from_disposition('attachment; filename="bundle.pdf"') == "bundle.pdf"
    assert filename_from_disposition('attachment; filename="../../evil.zip"') == "evil.zip"
    assert filename_from_disposition("attachment") is None
    assert filename_from_disposition(None) is None


def test_fallback_filename() -> None:
    assert fallback_filename("APP2024000100", "pdf") == "application_APP2024000100_pdf.pdf"
    assert fallback_filename("APP2024000100", "zip") == "application_APP2024000100_zip.zip"


def test_preconditions() -> None:
    check_bundle_preconditions(APPLICATION, ["d1", "d2"])
    with pytest.raises(GenerationPreconditionError, match="aadhar_card"):
        check_bundle_preconditions(APPLICATION, ["d1", "d3"])
    with pytest.raises(GenerationPreconditionError, match="not found"):
        check_bundle_preconditions(APPLICATION, ["d9"])
    with pytest.raises(GenerationPreconditionError):
        check_bundle_preconditions(APPLICATION, [])


def test_decode_error_body() -> None:
    assert decode_error_body(b'{"detail": "Nope"}') == {"detail": "Nope"}
    assert decode_error_body(b"%PDF-1.4 binary") is None
    assert decode_error_body(b"\xff\xfe") is None
    assert decode_error_body(b"") is None


@pytest.mark.asyncio
async def test_unapproved_document_sends_no_request(tmp_path) -> None:
    requests = []
    api = mock_api(lambda request: requests.append(request) or httpx.Response(200))
    notifier = Notifier()

    bundle = DocumentBundleRequest(api, notifier, download_dir=tmp_path)
    assert await bundle.generate(APPLICATION, "pdf", ["d3"]) is None
    assert requests == []
    assert "aadhar_card" in notifier.errors()[0]


@pytest.mark.asyncio
async def test_inline_bundle_is_saved_under_server_filename(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/applications/APP2024000100/combined-pdf"
        assert json.loads(request.content) == {"selectedDocuments": ["d1", "d2"]}
        return httpx.Response(
            200,
            content=b"%PDF-1.4 fake",
            headers={
                "content-type": "application/pdf",
                "content-disposition": 'attachment; filename="application_APP2024000100_combined.pdf"',
            },
        )

    notifier = Notifier()
    bundle = DocumentBundleRequest(mock_api(handler), notifier, download_dir=tmp_path)
    path = await bundle.generate(APPLICATION, "pdf", ["d1", "d2"])

    assert path == tmp_path / "application_APP2024000100_combined.pdf"
    assert path.read_bytes() == b"%PDF-1.4 fake"
    assert notifier.last.message == "PDF generated successfully"


@pytest.mark.asyncio
async def test_inline_bundle_without_disposition_uses_fallback(tmp_path) -> None:
    api = mock_api(lambda request: httpx.Response(200, content=b"PK", headers={"content-type": "application/zip"}))
    path = await DocumentBundleRequest(api, Notifier(), download_dir=tmp_path).generate(APPLICATION, "zip", ["d1"])
    assert path.name == "application_APP2024000100_zip.zip"


@pytest.mark.asyncio
async def test_hosted_bundle_is_downloaded(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(
                200,
                json={
                    "url": "https://cdn.example/bundles/x/abc.zip",
                    "fileName": "application_APP2024000100_documents.zip",
                    "storageType": "remote",
                },
            )
        assert str(request.url) == "https://cdn.example/bundles/x/abc.zip"
        return httpx.Response(200, content=b"PK zip bytes")

    bundle = DocumentBundleRequest(mock_api(handler), Notifier(), download_dir=tmp_path)
    path = await bundle.generate(APPLICATION, "zip", ["d1"])
    assert path.name == "application_APP2024000100_documents.zip"
    assert path.read_bytes() == b"PK zip bytes"


@pytest.mark.asyncio
async def test_hosted_download_failure_opens_url(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"url": "https://cdn.example/bundles/x/abc.pdf"})
        raise httpx.ConnectError("blocked", request=request)

    opened = []
    notifier = Notifier()
    bundle = DocumentBundleRequest(mock_api(handler), notifier, download_dir=tmp_path, opener=opened.append)

    assert await bundle.generate(APPLICATION, "pdf", ["d1"]) is None
    assert opened == ["https://cdn.example/bundles/x/abc.pdf"]
    assert notifier.errors() == ["File generated but download failed. Opening it directly instead."]
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_server_error_is_decoded_from_bytes(tmp_path) -> None:
    api = mock_api(
        lambda request: httpx.Response(
            400,
            content=b'{"detail": "Document photo is not approved"}',
            headers={"content-type": "application/json"},
        )
    )
    notifier = Notifier()
    assert await DocumentBundleRequest(api, notifier, download_dir=tmp_path).generate(APPLICATION, "pdf", ["d2"]) is None
    assert notifier.errors() == ["Failed to generate PDF: Document photo is not approved"]
