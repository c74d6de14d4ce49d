import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.api.v1.contact import recaptcha
from admission_portal.api.v1.contact import service as contact_service
from admission_portal.api.v1.contact.rate_limit import SlidingWindowRateLimiter
from admission_portal.core.config import settings
from admission_portal.core.models import ContactSubmission

VALID_FORM = {
    "name": "Priya Nayak",
    "email": "priya@mail.in",
    "phone": "9876543210",
    "subject": "Admission query",
    "message": "When does the BBA admission window close?",
}


@pytest.mark.asyncio
async def test_submit_contact_with_attachment(client: AsyncClient, db_session: AsyncSession) -> None:
    response = await client.post(
        "/api/v1/contact/submit",
        data={**VALID_FORM, "website": ""},
        files=[("documents", ("marks.pdf", b"%PDF-1.4", "application/pdf"))],
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["documentsCount"] == 1

    stored = (await db_session.execute(select(ContactSubmission))).scalars().all()
    assert len(stored) == 1
    assert stored[0].attachments[0]["fileName"] == "marks.pdf"
    assert stored[0].recaptcha_verified is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value",
    [
        ("phone", "5876543210"),
        ("phone", "98765432"),
        ("name", "R2-D2"),
        ("subject", "Hi"),
        ("message", "too short"),
        ("message", "x" * 5001),
    ],
)
async def test_contact_field_validation(client: AsyncClient, field: str, value: str) -> None:
    response = await client.post("/api/v1/contact/submit", data={**VALID_FORM, field: value})
    assert response.status_code == 422
    assert any(field in err["loc"] for err in response.json()["detail"])


@pytest.mark.asyncio
async def test_message_boundaries_are_trimmed(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/contact/submit", data={**VALID_FORM, "message": "  " + "m" * 10 + "  "}
    )
    assert response.status_code == 200
    response = await client.post("/api/v1/contact/submit", data={**VALID_FORM, "message": "m" * 5000})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_contact_rejects_bad_attachments(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/contact/submit",
        data=VALID_FORM,
        files=[("documents", ("run.exe", b"MZ", "application/octet-stream"))],
    )
    assert response.status_code == 400

    too_many = [("documents", (f"f{i}.txt", b"x", "text/plain")) for i in range(6)]
    response = await client.post("/api/v1/contact/submit", data=VALID_FORM, files=too_many)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_honeypot_submission_is_not_stored(client: AsyncClient, db_session: AsyncSession) -> None:
    response = await client.post("/api/v1/contact/submit", data={**VALID_FORM, "website": "http://spam.example"})
    assert response.status_code == 200
    assert response.json()["success"] is True
    stored = (await db_session.execute(select(ContactSubmission))).scalars().all()
    assert stored == []


@pytest.mark.asyncio
async def test_contact_rate_limit(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr(contact_service, "rate_limiter", SlidingWindowRateLimiter(limit=2, window=600))
    for _ in range(2):
        assert (await client.post("/api/v1/contact/submit", data=VALID_FORM)).status_code == 200

    response = await client.post("/api/v1/contact/submit", data=VALID_FORM)
    assert response.status_code == 429
    assert 0 < int(response.headers["Retry-After"]) <= 600


@pytest.mark.asyncio
async def test_recaptcha_verified_when_configured(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "recaptcha_secret_key", "secret")

    async def fake_verify(token, remote_ip=None):
        return token == "good-token"

    monkeypatch.setattr(contact_service, "verify_recaptcha", fake_verify)

    bad = await client.post("/api/v1/contact/submit", data={**VALID_FORM, "recaptcha_token": "bad"})
    assert bad.status_code == 400

    good = await client.post("/api/v1/contact/submit", data={**VALID_FORM, "recaptcha_token": "good-token"})
    assert good.status_code == 200
    stored = (await db_session.execute(select(ContactSubmission))).scalars().all()
    assert [s.recaptcha_verified for s in stored] == [True]


@pytest.mark.asyncio
async def test_verify_recaptcha_checks_score(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert b"response=tok" in request.content
        return httpx.Response(200, json={"success": True, "score": 0.2})

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    monkeypatch.setattr(settings, "recaptcha_secret_key", "secret")
    monkeypatch.setattr(
        recaptcha.httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs)
    )
    assert await recaptcha.verify_recaptcha("tok") is False


@pytest.mark.asyncio
async def test_verify_recaptcha_unreachable_returns_none(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("siteverify unreachable", request=request)

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    monkeypatch.setattr(settings, "recaptcha_secret_key", "secret")
    monkeypatch.setattr(
        recaptcha.httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs)
    )
    assert await recaptcha.verify_recaptcha("tok") is None


@pytest.mark.asyncio
async def test_recaptcha_outage_accepts_submission_unverified(
    client: AsyncClient, db_session: AsyncSession, monkeypatch
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("siteverify unreachable", request=request)

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    monkeypatch.setattr(settings, "recaptcha_secret_key", "secret")
    monkeypatch.setattr(
        recaptcha.httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs)
    )

    response = await client.post("/api/v1/contact/submit", data={**VALID_FORM, "recaptcha_token": "tok"})
    assert response.status_code == 200
    stored = (await db_session.execute(select(ContactSubmission))).scalars().all()
    assert [s.recaptcha_verified for s in stored] == [False]
