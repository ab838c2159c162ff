"""HTTP tests for the staff admin area."""

import json
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

BASE = "/api/admin"
TABLE = "onboarding_submissions"


async def _submission(store, status="submitted", created_at=None, **fields) -> str:
    record = {
        "status": status,
        "current_step": 9,
        "first_name": "Jane",
        "last_name": "Doe",
        "personal_email": "jane@example.com",
        "employee_role": "ROOF_PRO",
        **fields,
    }
    if created_at is not None:
        record["created_at"] = created_at
    return await store.create(TABLE, record)


@pytest.mark.api
@pytest.mark.asyncio
class TestSubmissionReview:

    async def test_list_newest_first_with_status_filter(
        self, client: AsyncClient, store, auth_headers,
    ):
        start = datetime(2026, 3, 1, 9, 0)
        older = await _submission(store, status="draft", created_at=start)
        newer = await _submission(store, status="submitted", created_at=start + timedelta(hours=1))

        resp = await client.get(f"{BASE}/submissions", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        assert [s["id"] for s in body["items"]] == [newer, older]
        assert body["items"][0]["total_steps"] == 9

        filtered = await client.get(
            f"{BASE}/submissions", params={"status": "draft"}, headers=auth_headers,
        )
        assert [s["id"] for s in filtered.json()["items"]] == [older]

    async def test_recruiters_can_read(self, client: AsyncClient, store, recruiter_headers):
        await _submission(store)
        resp = await client.get(f"{BASE}/submissions", headers=recruiter_headers)
        assert resp.status_code == 200

    async def test_requires_staff_login(self, client: AsyncClient):
        resp = await client.get(f"{BASE}/submissions")
        assert resp.status_code == 401

    async def test_detail_is_masked_with_signed_documents(
        self, client: AsyncClient, store, storage, auth_headers,
    ):
        path = "abc/drivers_license-1234.png"
        await storage.upload("employee-documents", path, b"license-bytes")
        submission_id = await _submission(
            store,
            collect_payroll_documents=True,
            drivers_license_url=path,
            bank_account_number="123456789",
            password_hash="$2b$04$hash",
            current_step=11,
        )

        resp = await client.get(f"{BASE}/submissions/{submission_id}", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_steps"] == 11
        assert body["progress_percent"] == 100
        assert "documents" in body["steps"]
        assert body["data"]["bank_account_number"] == "****6789"
        assert "password_hash" not in body["data"]

        [document] = body["documents"]
        assert document["field"] == "drivers_license_url"
        assert document["path"] == path
        fetched = await client.get(document["url"])
        assert fetched.status_code == 200
        assert fetched.content == b"license-bytes"

    async def test_unknown_submission(self, client: AsyncClient, auth_headers):
        resp = await client.get(f"{BASE}/submissions/nope", headers=auth_headers)
        assert resp.status_code == 404

    async def test_complete_submitted_onboarding(self, client: AsyncClient, store, auth_headers):
        submission_id = await _submission(store)

        resp = await client.post(
            f"{BASE}/submissions/{submission_id}/complete", headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"
        assert resp.json()["completed_at"]

        again = await client.post(
            f"{BASE}/submissions/{submission_id}/complete", headers=auth_headers,
        )
        assert again.status_code == 409

        activity = await client.get(
            f"{BASE}/submissions/{submission_id}/activity", headers=auth_headers,
        )
        assert [a["action"] for a in activity.json()] == ["completed"]
        assert activity.json()[0]["actor_name"] == "Ada Admin"

    async def test_draft_cannot_be_completed(self, client: AsyncClient, store, auth_headers):
        submission_id = await _submission(store, status="in_progress")
        resp = await client.post(
            f"{BASE}/submissions/{submission_id}/complete", headers=auth_headers,
        )
        assert resp.status_code == 409

    async def test_recruiter_cannot_complete(self, client: AsyncClient, store, recruiter_headers):
        submission_id = await _submission(store)
        resp = await client.post(
            f"{BASE}/submissions/{submission_id}/complete", headers=recruiter_headers,
        )
        assert resp.status_code == 403


@pytest.mark.api
@pytest.mark.asyncio
class TestTaskAssignment:

    async def test_assign_task_notifies_subscribers(
        self, client: AsyncClient, store, org, auth_headers, http_transport,
    ):
        await store.create("webhook_endpoints", {
            "name": "tasks", "url": "https://hooks.example.com/tasks",
            "events": ["task.assigned"], "is_active": True,
        })
        submission_id = await _submission(store, manager_id=org["manager_id"])

        resp = await client.post(
            f"{BASE}/submissions/{submission_id}/tasks",
            json={"task_id": org["task_id"]},
            headers=auth_headers,
        )
        assert resp.status_code == 201, resp.text
        assert resp.json()["task_id"] == org["task_id"]

        [request] = http_transport.requests
        body = json.loads(request.content)
        assert body["event"] == "task.assigned"
        assert body["data"]["task_title"] == "Shadow a roof inspection"
        assert body["data"]["assigned_by"] == "Ada Admin"

        rows = await store.query("task_assignments", {"onboarding_submission_id": submission_id})
        assert len(rows) == 1

        duplicate = await client.post(
            f"{BASE}/submissions/{submission_id}/tasks",
            json={"task_id": org["task_id"]},
            headers=auth_headers,
        )
        assert duplicate.status_code == 409

    async def test_unknown_task(self, client: AsyncClient, store, auth_headers):
        submission_id = await _submission(store)
        resp = await client.post(
            f"{BASE}/submissions/{submission_id}/tasks",
            json={"task_id": "missing"},
            headers=auth_headers,
        )
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestWebhookEndpoints:

    async def test_crud(self, client: AsyncClient, auth_headers):
        created = await client.post(
            f"{BASE}/webhooks",
            headers=auth_headers,
            json={
                "name": "HR system",
                "url": "https://hr.example.com/hooks/onboarding",
                "events": ["onboarding.completed", "onboarding.started"],
                "headers": {"X-Api-Key": "k"},
            },
        )
        assert created.status_code == 201, created.text
        webhook = created.json()
        assert webhook["is_active"] is True

        listed = await client.get(f"{BASE}/webhooks", headers=auth_headers)
        assert [w["id"] for w in listed.json()] == [webhook["id"]]

        updated = await client.patch(
            f"{BASE}/webhooks/{webhook['id']}",
            headers=auth_headers,
            json={"is_active": False},
        )
        assert updated.status_code == 200
        assert updated.json()["is_active"] is False
        assert updated.json()["name"] == "HR system"

        deleted = await client.delete(f"{BASE}/webhooks/{webhook['id']}", headers=auth_headers)
        assert deleted.status_code == 204
        assert (await client.get(f"{BASE}/webhooks", headers=auth_headers)).json() == []

    async def test_rejects_unknown_event_and_bad_url(self, client: AsyncClient, auth_headers):
        bad_event = await client.post(
            f"{BASE}/webhooks",
            headers=auth_headers,
            json={"name": "x", "url": "https://x.example.com", "events": ["lot.created"]},
        )
        assert bad_event.status_code == 422

        bad_url = await client.post(
            f"{BASE}/webhooks",
            headers=auth_headers,
            json={"name": "x", "url": "not a url"},
        )
        assert bad_url.status_code == 422

    async def test_send_test_event(self, client: AsyncClient, auth_headers, http_transport):
        created = await client.post(
            f"{BASE}/webhooks",
            headers=auth_headers,
            json={"name": "down", "url": "https://down.example.com/hook"},
        )
        http_transport.fail_hosts.add("down.example.com")

        resp = await client.post(
            f"{BASE}/webhooks/{created.json()['id']}/test", headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert resp.json()["status_code"] == 500
        assert b"webhook.test" in http_transport.requests[0].content

    async def test_admin_only(self, client: AsyncClient, recruiter_headers):
        resp = await client.get(f"{BASE}/webhooks", headers=recruiter_headers)
        assert resp.status_code == 403
