from datetime import date, datetime

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admission_portal.auth.models import User
from admission_portal.core.academic_session import format_session
from admission_portal.core.models import StudentApplication
from conftest import auth_headers, make_application


def _doc(document_type: str, status: str = "PENDING", name: str = "file.pdf") -> dict:
    return {
        "document_type": document_type,
        "file_name": name,
        "file_path": f"applications/test/{name}",
        "mime_type": "application/pdf",
        "status": status,
    }


async def _seed(db: AsyncSession, agent: User, staff: User) -> None:
    await make_application(
        db, agent, application_id="APP2024000001", full_name="Ravi Kumar",
        course="BBA", category="General", primary_phone="9876543210", city="Cuttack",
    )
    await make_application(
        db, agent, application_id="APP2024000002", full_name="anita das",
        status="APPROVED", course="MBA", category="OBC", city="Puri",
    )
    await make_application(
        db, staff, application_id="APP2024000003", full_name="Binod Sahu",
        status="REJECTED", course="BBA", category="General", email="binod@mail.in",
    )
    # Previous session
    await make_application(
        db, agent, application_id="APP2023000004", full_name="Old Record",
        registration_date=date(2023, 8, 1),
    )
    # No registration date: falls back to created_at
    await make_application(
        db, agent, application_id="APP2024000005", full_name="Zara Patel",
        registration_date=None, created_at=datetime(2024, 2, 10, 9, 30),
    )


@pytest.mark.asyncio
async def test_create_draft_application(client: AsyncClient, agent: User) -> None:
    payload = {
        "personalDetails": {"fullName": "Sita Mohanty", "gender": "Female", "aadharNumber": "123412341234"},
        "contactDetails": {
            "email": "sita@mail.in",
            "primaryPhone": "9876500001",
            "permanentAddress": {"city": "Bhubaneswar", "pincode": "751001"},
        },
        "courseDetails": {"selectedCourse": "B.Sc Nursing", "institutionName": "City College"},
        "guardianDetails": {"name": "Hari Mohanty", "relationship": "Father"},
    }
    response = await client.post("/api/v1/students", json=payload, headers=auth_headers(agent))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["applicationId"].startswith("APP")
    assert data["submitterRole"] == "agent"
    assert data["personalDetails"]["fullName"] == "Sita Mohanty"
    assert data["contactDetails"]["permanentAddress"]["pincode"] == "751001"
    assert data["courseDetails"]["selectedCourse"] == "B.Sc Nursing"
    assert data["reviewInfo"] is None
    assert data["documentCounts"] == {"total": 0, "approved": 0, "rejected": 0, "pending": 0}
    assert data["overallDocumentReviewStatus"] == "NOT_VERIFIED"

    # Registered today, so listed under the session starting this calendar year
    listed = await client.get(
        "/api/v1/students", params={"session": format_session(date.today().year)}, headers=auth_headers(agent)
    )
    assert [s["applicationId"] for s in listed.json()["students"]] == [data["applicationId"]]


@pytest.mark.asyncio
async def test_create_rejects_bad_phone(client: AsyncClient, agent: User) -> None:
    payload = {
        "personalDetails": {"fullName": "Sita Mohanty"},
        "contactDetails": {"primaryPhone": "5876543210"},
    }
    response = await client.post("/api/v1/students", json=payload, headers=auth_headers(agent))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_requires_session(client: AsyncClient, staff: User) -> None:
    response = await client.get("/api/v1/students", headers=auth_headers(staff))
    assert response.status_code == 400
    assert "Session" in response.json()["detail"]

    response = await client.get("/api/v1/students", params={"session": "2024"}, headers=auth_headers(staff))
    assert response.status_code == 400

    response = await client.get("/api/v1/students", params={"session": "2024-99"}, headers=auth_headers(staff))
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid session format: '2024-99'"


@pytest.mark.asyncio
async def test_list_is_scoped_to_session(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await _seed(db_session, agent, staff)

    response = await client.get("/api/v1/students", params={"session": "2024-25"}, headers=auth_headers(staff))
    assert response.status_code == 200
    ids = {s["applicationId"] for s in response.json()["students"]}
    assert ids == {"APP2024000001", "APP2024000002", "APP2024000003", "APP2024000005"}

    response = await client.get("/api/v1/students", params={"session": "23-24"}, headers=auth_headers(staff))
    assert [s["applicationId"] for s in response.json()["students"]] == ["APP2023000004"]


@pytest.mark.asyncio
async def test_pagination_totals_are_consistent(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await _seed(db_session, agent, staff)
    params = {"session": "2024-25", "limit": 3, "sortBy": "applicationId", "sortOrder": "asc"}

    first = (await client.get("/api/v1/students", params={**params, "page": 1}, headers=auth_headers(staff))).json()
    second = (await client.get("/api/v1/students", params={**params, "page": 2}, headers=auth_headers(staff))).json()

    assert first["pagination"] == {"currentPage": 1, "totalPages": 2, "totalItems": 4, "itemsPerPage": 3}
    assert second["pagination"]["currentPage"] == 2
    assert len(first["students"]) == 3
    assert [s["applicationId"] for s in second["students"]] == ["APP2024000005"]


@pytest.mark.asyncio
async def test_filters_search_and_sort(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await _seed(db_session, agent, staff)
    headers = auth_headers(staff)

    response = await client.get(
        "/api/v1/students",
        params={"session": "2024-25", "course": "BBA", "status": "all", "sortBy": "personalDetails.fullName", "sortOrder": "asc"},
        headers=headers,
    )
    assert [s["personalDetails"]["fullName"] for s in response.json()["students"]] == ["Binod Sahu", "Ravi Kumar"]

    response = await client.get(
        "/api/v1/students", params={"session": "2024-25", "status": "APPROVED"}, headers=headers
    )
    assert [s["applicationId"] for s in response.json()["students"]] == ["APP2024000002"]

    # Case-insensitive substring over name, phone, email and application id
    for term, expected in [("ANITA", "APP2024000002"), ("98765", "APP2024000001"), ("binod@", "APP2024000003")]:
        response = await client.get(
            "/api/v1/students", params={"session": "2024-25", "search": term}, headers=headers
        )
        assert [s["applicationId"] for s in response.json()["students"]] == [expected]


@pytest.mark.asyncio
async def test_filter_facets_and_submitters(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await _seed(db_session, agent, staff)
    response = await client.get(
        "/api/v1/students", params={"session": "2024-25", "course": "MBA"}, headers=auth_headers(staff)
    )
    filters = response.json()["filters"]
    # Facets ignore the other active filters
    assert filters["courses"] == ["BBA", "MBA"]
    assert filters["categories"] == ["General", "OBC"]
    assert "REJECTED" in filters["statuses"]
    submitters = {s["name"]: s["count"] for s in filters["submitters"]}
    assert submitters == {"Field Agent": 3, "Review Staff": 1}

    # submitterRole accepts a submitter id as well as a role
    by_id = await client.get(
        "/api/v1/students",
        params={"session": "2024-25", "submitterRole": str(staff.id)},
        headers=auth_headers(staff),
    )
    assert [s["applicationId"] for s in by_id.json()["students"]] == ["APP2024000003"]
    by_role = await client.get(
        "/api/v1/students", params={"session": "2024-25", "submitterRole": "agent"}, headers=auth_headers(staff)
    )
    assert by_role.json()["pagination"]["totalItems"] == 3


@pytest.mark.asyncio
async def test_list_rejects_unknown_sort_and_large_limit(client: AsyncClient, staff: User) -> None:
    headers = auth_headers(staff)
    response = await client.get(
        "/api/v1/students", params={"session": "2024-25", "sortBy": "password"}, headers=headers
    )
    assert response.status_code == 400
    response = await client.get("/api/v1/students", params={"session": "2024-25", "limit": 1001}, headers=headers)
    assert response.status_code == 400
    response = await client.get("/api/v1/students", params={"session": "2024-25", "limit": 1000}, headers=headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_agents_only_see_their_own_records(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await _seed(db_session, agent, staff)
    response = await client.get("/api/v1/students", params={"session": "2024-25"}, headers=auth_headers(agent))
    ids = {s["applicationId"] for s in response.json()["students"]}
    assert "APP2024000003" not in ids
    assert len(ids) == 3

    hidden = await client.get("/api/v1/students/APP2024000003", headers=auth_headers(agent))
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_reject_requires_reason_and_message(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await make_application(db_session, agent, application_id="APP2024000010", full_name="Ravi Kumar")
    headers = auth_headers(staff)

    for body in (
        {"status": "REJECTED"},
        {"status": "REJECTED", "rejectionReason": "NAME_MISMATCH", "rejectionMessage": "   "},
        {"status": "REJECTED", "rejectionReason": "NOT_A_REASON", "rejectionMessage": "Bad"},
    ):
        response = await client.put("/api/v1/students/APP2024000010/status", json=body, headers=headers)
        assert response.status_code == 422

    record = await client.get("/api/v1/students/APP2024000010", headers=headers)
    assert record.json()["status"] == "SUBMITTED"


@pytest.mark.asyncio
async def test_reject_then_approve_clears_rejection(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await make_application(db_session, agent, application_id="APP2024000011", full_name="Ravi Kumar")
    headers = auth_headers(staff)

    response = await client.put(
        "/api/v1/students/APP2024000011/status",
        json={
            "status": "REJECTED",
            "rejectionReason": "NAME_MISMATCH",
            "rejectionMessage": "Name on marksheet differs",
            "rejectionDetails": [
                {"issue": "Spelling", "documentType": "marksheet_10th", "priority": "High"}
            ],
        },
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "REJECTED"
    assert data["reviewInfo"]["rejectionReason"] == "NAME_MISMATCH"
    assert data["reviewInfo"]["rejectionDetails"][0]["priority"] == "High"

    # REJECTED cannot jump straight to APPROVED
    response = await client.put(
        "/api/v1/students/APP2024000011/status", json={"status": "APPROVED"}, headers=headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_approve_clears_prior_rejection_and_is_idempotent(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await make_application(
        db_session, agent, application_id="APP2024000012", full_name="Ravi Kumar",
        status="UNDER_REVIEW", rejection_reason="NAME_MISMATCH", rejection_message="old",
    )
    headers = auth_headers(staff)

    first = await client.put(
        "/api/v1/students/APP2024000012/status", json={"status": "APPROVED", "notes": "ok"}, headers=headers
    )
    assert first.status_code == 200
    assert first.json()["reviewInfo"]["rejectionReason"] is None
    assert first.json()["reviewInfo"]["remarks"] == "ok"

    again = await client.put(
        "/api/v1/students/APP2024000012/status", json={"status": "APPROVED"}, headers=headers
    )
    assert again.status_code == 200
    assert again.json()["status"] == "APPROVED"
    assert again.json()["updatedAt"] == first.json()["updatedAt"]

    history = await client.get("/api/v1/students/APP2024000012/history", headers=headers)
    assert [e["action"] for e in history.json()] == ["APPROVE"]


@pytest.mark.asyncio
async def test_resubmit_clears_review_and_resets_documents(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    await make_application(
        db_session, agent, application_id="APP2024000013", full_name="Ravi Kumar",
        documents=[_doc("aadhar_card", "APPROVED", "a.pdf"), _doc("marksheet_10th", "REJECTED", "m.pdf")],
    )
    staff_headers = auth_headers(staff)
    await client.put(
        "/api/v1/students/APP2024000013/status",
        json={"status": "REJECTED", "rejectionReason": "DOCUMENT_BLURRY", "rejectionMessage": "Re-scan marksheet"},
        headers=staff_headers,
    )

    response = await client.post(
        "/api/v1/students/APP2024000013/resubmit",
        json={"reason": "Uploaded clearer scan"},
        headers=auth_headers(agent),
    )
    assert response.status_code == 200

    fetched = (await client.get("/api/v1/students/APP2024000013", headers=staff_headers)).json()
    assert fetched["status"] == "SUBMITTED"
    assert fetched["reviewInfo"] is None
    assert fetched["resubmissionCount"] == 1
    assert {d["status"] for d in fetched["documents"]} == {"PENDING"}
    assert fetched["documentCounts"]["pending"] == 2

    history = await client.get("/api/v1/students/APP2024000013/history", headers=staff_headers)
    actions = [e["action"] for e in history.json()]
    assert actions == ["REJECT", "RESUBMIT"]


@pytest.mark.asyncio
async def test_resubmit_only_from_rejected(
    client: AsyncClient, db_session: AsyncSession, agent: User
) -> None:
    await make_application(db_session, agent, application_id="APP2024000014", full_name="Ravi Kumar")
    response = await client.post("/api/v1/students/APP2024000014/resubmit", headers=auth_headers(agent))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_edit_and_submit_draft(client: AsyncClient, agent: User, staff: User) -> None:
    created = await client.post(
        "/api/v1/students",
        json={"personalDetails": {"fullName": "Sita Mohanty"}},
        headers=auth_headers(agent),
    )
    student_id = created.json()["id"]

    edited = await client.put(
        f"/api/v1/students/{student_id}",
        json={"courseDetails": {"selectedCourse": "BBA"}},
        headers=auth_headers(agent),
    )
    assert edited.status_code == 200
    assert edited.json()["courseDetails"]["selectedCourse"] == "BBA"

    submitted = await client.post(f"/api/v1/students/{student_id}/submit", headers=auth_headers(agent))
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "SUBMITTED"
    assert submitted.json()["submittedAt"] is not None

    locked = await client.put(
        f"/api/v1/students/{student_id}",
        json={"courseDetails": {"selectedCourse": "MBA"}},
        headers=auth_headers(agent),
    )
    assert locked.status_code == 400


@pytest.mark.asyncio
async def test_document_upload_and_review(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User
) -> None:
    created = await client.post(
        "/api/v1/students",
        json={"personalDetails": {"fullName": "Sita Mohanty"}},
        headers=auth_headers(agent),
    )
    student_id = created.json()["id"]

    bad = await client.post(
        f"/api/v1/students/{student_id}/documents",
        data={"documentType": "photo"},
        files={"file": ("photo.exe", b"MZ", "application/octet-stream")},
        headers=auth_headers(agent),
    )
    assert bad.status_code == 400

    uploaded = await client.post(
        f"/api/v1/students/{student_id}/documents",
        data={"documentType": "aadhar_card"},
        files={"file": ("aadhar.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=auth_headers(agent),
    )
    assert uploaded.status_code == 201
    doc = uploaded.json()["documents"][0]
    assert doc["status"] == "PENDING"
    assert doc["url"].startswith("http://test/api/v1/files/applications/")

    reviewed = await client.put(
        f"/api/v1/students/{student_id}/documents/{doc['id']}/status",
        json={"status": "APPROVED"},
        headers=auth_headers(staff),
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["documentCounts"] == {"total": 1, "approved": 1, "rejected": 0, "pending": 0}
    assert reviewed.json()["overallDocumentReviewStatus"] == "ALL_APPROVED"

    download = await client.get(
        doc["url"].replace("http://test", ""), headers=auth_headers(staff)
    )
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 test"


@pytest.mark.asyncio
async def test_bulk_delete_super_admin_only(
    client: AsyncClient, db_session: AsyncSession, agent: User, staff: User, super_admin: User
) -> None:
    first = await make_application(db_session, agent, application_id="APP2024000020", full_name="A One")
    second = await make_application(db_session, agent, application_id="APP2024000021", full_name="B Two")
    body = {"studentIds": [str(first.id), str(second.id), "not-a-uuid", "00000000-0000-0000-0000-000000000000"]}

    forbidden = await client.request("DELETE", "/api/v1/students/bulk", json=body, headers=auth_headers(staff))
    assert forbidden.status_code == 403

    response = await client.request("DELETE", "/api/v1/students/bulk", json=body, headers=auth_headers(super_admin))
    assert response.status_code == 200
    data = response.json()
    assert data["deletedCount"] == 2
    assert set(data["invalidIds"]) == {"not-a-uuid", "00000000-0000-0000-0000-000000000000"}

    remaining = await db_session.execute(
        select(StudentApplication.id).where(StudentApplication.application_id.in_(["APP2024000020", "APP2024000021"]))
    )
    assert remaining.all() == []


@pytest.mark.asyncio
async def test_rejection_reasons_taxonomy(client: AsyncClient, staff: User) -> None:
    response = await client.get("/api/v1/students/rejection-reasons", headers=auth_headers(staff))
    assert response.status_code == 200
    ids = {r["id"] for group in response.json().values() for r in group["reasons"]}
    assert {"MISSING_DOCUMENT", "NAME_MISMATCH", "FRAUD_DETECTED"} <= ids
