"""
Integration tests for document upload and review.
"""

from pathlib import Path

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select

from backend.app.api.v1.endpoints import documents as documents_endpoint
from backend.app.core.config import settings
from backend.app.main import app
from backend.app.models.driver import Driver

API = settings.api_prefix

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


async def upload(client, token, driver_id, doc_type="license", content=PNG_BYTES, mime="image/png", **form):
    data = {"type": doc_type}
    data.update(form)
    return await client.post(
        f"{API}/documents/{driver_id}",
        files={"file": (f"{doc_type}.png", content, mime)},
        data=data,
        headers=auth_header(token),
    )


@pytest.mark.asyncio
async def test_upload_stores_file_and_record(client, driver, sales_user, sales_token):
    response = await upload(client, sales_token, driver["id"], document_number="DL-001", expiry_date="2030-01-31")

    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["type"] == "license"
    assert data["status"] == "pending"
    assert data["mime_type"] == "image/png"
    assert data["size"] == len(PNG_BYTES)
    assert data["original_name"] == "license.png"
    assert data["document_number"] == "DL-001"
    assert data["expiry_date"] == "2030-01-31"
    assert data["is_expired"] is False
    assert data["uploaded_by_id"] == sales_user.id

    stored = Path(settings.upload_dir) / str(driver["id"]) / data["filename"]
    assert stored.read_bytes() == PNG_BYTES
    assert data["filename"].startswith("license-")
    assert data["filename"].endswith(".png")


@pytest.mark.asyncio
async def test_upload_rejects_disallowed_mime_type(client, driver, sales_token):
    response = await upload(client, sales_token, driver["id"], content=b"MZ...", mime="application/x-msdownload")
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid file type. Only JPEG, PNG, WebP, and PDF are allowed."


@pytest.mark.asyncio
async def test_upload_rejects_oversized_file(client, driver, sales_token, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_size", 16)

    response = await upload(client, sales_token, driver["id"])
    assert response.status_code == 400
    assert response.json()["message"].startswith("File size too large.")

    driver_dir = Path(settings.upload_dir) / str(driver["id"])
    assert list(driver_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_requires_file(client, driver, sales_token):
    response = await client.post(
        f"{API}/documents/{driver['id']}",
        data={"type": "license"},
        headers=auth_header(sales_token),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Please upload a file"


@pytest.mark.asyncio
async def test_upload_rejects_unknown_type(client, driver, sales_token):
    response = await upload(client, sales_token, driver["id"], doc_type="passport")
    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid document type")


@pytest.mark.asyncio
async def test_upload_ownership_and_missing_driver(client, driver, other_sales_token, sales_token):
    forbidden = await upload(client, other_sales_token, driver["id"])
    assert forbidden.status_code == 403

    missing = await upload(client, sales_token, 9999)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Driver not found"


@pytest.mark.asyncio
async def test_required_documents_mark_driver_complete(client, db_session, driver, sales_token):
    for doc_type in ("license", "insurance", "vehicle_registration"):
        assert (await upload(client, sales_token, driver["id"], doc_type=doc_type)).status_code == 201

    detail = await client.get(f"{API}/drivers/{driver['id']}", headers=auth_header(sales_token))
    assert detail.json()["data"]["driver"]["documents_complete"] is False
    assert len(detail.json()["data"]["documents"]) == 3

    assert (await upload(client, sales_token, driver["id"], doc_type="photo")).status_code == 201

    result = await db_session.execute(select(Driver).where(Driver.id == driver["id"]))
    assert result.scalar_one().documents_complete is True


@pytest.mark.asyncio
async def test_approving_all_documents_moves_driver_to_under_review(client, driver, sales_token, ops_token):
    doc_ids = []
    for doc_type in ("license", "insurance"):
        response = await upload(client, sales_token, driver["id"], doc_type=doc_type)
        doc_ids.append(response.json()["data"]["id"])

    first = await client.put(
        f"{API}/documents/{doc_ids[0]}/status",
        json={"status": "approved"},
        headers=auth_header(ops_token),
    )
    assert first.status_code == 200
    detail = await client.get(f"{API}/drivers/{driver['id']}", headers=auth_header(ops_token))
    assert detail.json()["data"]["driver"]["status"] == "pending"

    await client.put(
        f"{API}/documents/{doc_ids[1]}/status",
        json={"status": "approved"},
        headers=auth_header(ops_token),
    )
    detail = await client.get(f"{API}/drivers/{driver['id']}", headers=auth_header(ops_token))
    assert detail.json()["data"]["driver"]["status"] == "under_review"
    assert all(doc["status"] == "approved" for doc in detail.json()["data"]["documents"])


@pytest.mark.asyncio
async def test_auto_advance_skips_drivers_no_longer_pending(client, driver, sales_token, ops_token):
    doc = (await upload(client, sales_token, driver["id"])).json()["data"]
    await client.put(
        f"{API}/drivers/{driver['id']}/status",
        json={"status": "rejected", "rejection_reason": "Fraud check"},
        headers=auth_header(ops_token),
    )

    await client.put(f"{API}/documents/{doc['id']}/status", json={"status": "approved"}, headers=auth_header(ops_token))

    detail = await client.get(f"{API}/drivers/{driver['id']}", headers=auth_header(ops_token))
    assert detail.json()["data"]["driver"]["status"] == "rejected"


@pytest.mark.asyncio
async def test_reject_document_requires_reason(client, driver, sales_token, ops_token):
    doc = (await upload(client, sales_token, driver["id"])).json()["data"]

    response = await client.put(
        f"{API}/documents/{doc['id']}/status",
        json={"status": "rejected"},
        headers=auth_header(ops_token),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Rejection reason is required"

    rejected = await client.put(
        f"{API}/documents/{doc['id']}/status",
        json={"status": "rejected", "rejection_reason": "Blurry scan"},
        headers=auth_header(ops_token),
    )
    assert rejected.status_code == 200
    assert rejected.json()["data"]["rejection_reason"] == "Blurry scan"


@pytest.mark.asyncio
async def test_document_status_must_be_approved_or_rejected(client, driver, sales_token, ops_token):
    doc = (await upload(client, sales_token, driver["id"])).json()["data"]
    response = await client.put(
        f"{API}/documents/{doc['id']}/status",
        json={"status": "pending"},
        headers=auth_header(ops_token),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Status must be approved or rejected"


@pytest.mark.asyncio
async def test_review_queue_with_counts(client, driver, sales_token, ops_token):
    license_doc = (await upload(client, sales_token, driver["id"], doc_type="license")).json()["data"]
    await upload(client, sales_token, driver["id"], doc_type="insurance")
    await client.put(
        f"{API}/documents/{license_doc['id']}/status",
        json={"status": "approved"},
        headers=auth_header(ops_token),
    )

    response = await client.get(f"{API}/documents/queue", headers=auth_header(ops_token))
    assert response.status_code == 200
    body = response.json()
    assert body["counts"] == {"pending": 1, "approved": 1, "rejected": 0}
    assert [doc["type"] for doc in body["data"]] == ["insurance"]
    assert body["data"][0]["driver"]["id"] == driver["id"]
    assert body["data"][0]["driver"]["plate_number"] == "AA-12345"
    assert body["pagination"]["total"] == 1

    everything = await client.get(f"{API}/documents/queue", params={"status": "all"}, headers=auth_header(ops_token))
    assert everything.json()["pagination"]["total"] == 2

    forbidden = await client.get(f"{API}/documents/queue", headers=auth_header(sales_token))
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_fetch_document_file(client, driver, sales_token, other_sales_token, ops_token):
    doc = (await upload(client, sales_token, driver["id"])).json()["data"]

    response = await client.get(f"{API}/documents/{doc['id']}/file", headers=auth_header(ops_token))
    assert response.status_code == 200
    assert response.content == PNG_BYTES
    assert response.headers["content-type"] == "image/png"

    forbidden = await client.get(f"{API}/documents/{doc['id']}/file", headers=auth_header(other_sales_token))
    assert forbidden.status_code == 403

    (Path(settings.upload_dir) / str(driver["id"]) / doc["filename"]).unlink()
    missing = await client.get(f"{API}/documents/{doc['id']}/file", headers=auth_header(ops_token))
    assert missing.status_code == 404
    assert missing.json()["message"] == "File not found"


@pytest.mark.asyncio
async def test_admin_deletes_document(client, driver, sales_token, ops_token, admin_token):
    doc = (await upload(client, sales_token, driver["id"])).json()["data"]
    stored = Path(settings.upload_dir) / str(driver["id"]) / doc["filename"]
    assert stored.exists()

    forbidden = await client.delete(f"{API}/documents/{doc['id']}", headers=auth_header(ops_token))
    assert forbidden.status_code == 403

    response = await client.delete(f"{API}/documents/{doc['id']}", headers=auth_header(admin_token))
    assert response.status_code == 200
    assert not stored.exists()

    missing = await client.get(f"{API}/documents/{doc['id']}/file", headers=auth_header(admin_token))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_deleting_driver_removes_documents(client, driver, sales_token, admin_token):
    doc = (await upload(client, sales_token, driver["id"])).json()["data"]
    stored = Path(settings.upload_dir) / str(driver["id"]) / doc["filename"]

    response = await client.delete(f"{API}/drivers/{driver['id']}", headers=auth_header(admin_token))
    assert response.status_code == 200
    assert not stored.exists()

    missing = await client.get(f"{API}/documents/{doc['id']}/file", headers=auth_header(admin_token))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_fetch_file_with_non_latin_name(client, driver, sales_token, ops_token):
    response = await client.post(
        f"{API}/documents/{driver['id']}",
        files={"file": ("ፎቶ.png", PNG_BYTES, "image/png")},
        data={"type": "license"},
        headers=auth_header(sales_token),
    )
    assert response.status_code == 201, response.text
    doc = response.json()["data"]

    file_response = await client.get(f"{API}/documents/{doc['id']}/file", headers=auth_header(ops_token))
    assert file_response.status_code == 200
    assert file_response.content == PNG_BYTES
    disposition = file_response.headers["content-disposition"]
    assert disposition.startswith("inline;")
    assert "filename*=utf-8''" in disposition


@pytest.mark.asyncio
async def test_failed_save_removes_uploaded_file(driver, sales_token, mocker):
    mocker.patch.object(
        documents_endpoint, "refresh_documents_complete",
        mocker.AsyncMock(side_effect=RuntimeError("database unavailable")),
    )

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await upload(ac, sales_token, driver["id"])

    assert response.status_code == 500
    driver_dir = Path(settings.upload_dir) / str(driver["id"])
    assert list(driver_dir.iterdir()) == []
