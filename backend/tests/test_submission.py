"""Tests for final submission: preconditions, effect ordering, warnings."""

import json

import pytest

from app.middleware.exceptions import SubmissionValidationError
from app.services.credentials import CredentialIssuanceError
from app.services.notifications import DeliveryResult
from app.services.submission import FinalSubmissionHandler, check_ready

TABLE = "onboarding_submissions"


async def _complete_record(store, step_data, **overrides) -> dict:
    """A record that has been through every default step and sits on review."""
    record = {"status": "in_progress", "current_step": 9}
    for key in ("basic_info", "address", "sizing", "team", "w9", "tasks"):
        record.update(step_data[key])
    record["cell_phone"] = "5551234567"
    record.update(overrides)
    submission_id = await store.create(TABLE, record)
    return await store.get(TABLE, submission_id)


class FailingIssuer:
    async def issue(self, submission_id, record):
        raise CredentialIssuanceError("email registry unavailable")


class CrashingNotifier:
    async def notify(self, event_type, payload):
        raise RuntimeError("boom")


class PartialNotifier:
    def __init__(self):
        self.events = []

    async def notify(self, event_type, payload):
        self.events.append((event_type, payload))
        return [
            DeliveryResult(target="https://hooks.example.com/a", channel="webhook", success=True),
            DeliveryResult(target="manager@example.com", channel="email", success=False, error="503"),
        ]


@pytest.mark.unit
class TestCheckReady:

    def test_w9_unset_names_w9_step(self, step_data):
        record = {"current_step": 9}
        for key in ("basic_info", "address", "sizing", "team", "tasks"):
            record.update(step_data[key])
        record["w9_completed"] = False
        with pytest.raises(SubmissionValidationError) as exc_info:
            check_ready(record)
        assert list(exc_info.value.failing_steps) == ["w9"]
        assert "w9" in exc_info.value.message

    def test_must_reach_last_step(self, step_data):
        record = {"current_step": 5}
        for key in ("basic_info", "address", "sizing", "team", "w9", "tasks"):
            record.update(step_data[key])
        with pytest.raises(SubmissionValidationError) as exc_info:
            check_ready(record)
        assert list(exc_info.value.failing_steps) == ["review"]

    def test_separate_shipping_requires_shipping_fields(self, step_data):
        record = {"current_step": 10}
        for key in ("basic_info", "address", "sizing", "team", "w9", "tasks"):
            record.update(step_data[key])
        record["same_as_mailing"] = False
        with pytest.raises(SubmissionValidationError) as exc_info:
            check_ready(record)
        assert "shipping_address" in exc_info.value.failing_steps


@pytest.mark.unit
@pytest.mark.asyncio
class TestFinalSubmission:

    async def test_jane_doe_submits_with_credentials(self, submit_handler, store, step_data, org):
        record = await _complete_record(store, step_data)

        outcome = await submit_handler.submit(record)

        assert outcome.status == "submitted"
        assert outcome.credentials is not None
        assert outcome.generated_email == "jane.doe@triguardroofing.com"
        assert outcome.username == "jane.doe"
        assert outcome.warnings == []

        stored = await store.get(TABLE, record["id"])
        assert stored["status"] == "submitted"
        assert stored["submitted_at"] is not None
        assert stored["current_step"] == 9
        assert stored["generated_email"] == outcome.generated_email
        assert stored["password_hash"] and stored["password_hash"] != outcome.credentials.password

    async def test_invalid_record_is_left_unchanged(self, submit_handler, store, step_data):
        record = await _complete_record(store, step_data, w9_completed=False)
        with pytest.raises(SubmissionValidationError):
            await submit_handler.submit(record)
        stored = await store.get(TABLE, record["id"])
        assert stored["status"] == "in_progress"
        assert stored["submitted_at"] is None

    async def test_completion_event_payload(self, store, step_data, credentials, http_transport, notifier, org):
        await store.create("webhook_endpoints", {
            "name": "hr", "url": "https://hooks.example.com/hr",
            "events": ["onboarding.completed"], "headers": {"X-Secret": "s3cret"},
            "is_active": True,
        })
        handler = FinalSubmissionHandler(store, credentials, notifier)
        record = await _complete_record(store, step_data)

        await handler.submit(record)

        [request] = http_transport.requests
        assert request.headers["X-Secret"] == "s3cret"
        assert request.headers["User-Agent"] == "TriGuard-Webhook/1.0"
        body = json.loads(request.content)
        assert body["event"] == "onboarding.completed"
        assert body["source"] == "triguard-onboarding"
        assert body["data"]["first_name"] == "Jane"
        assert body["data"]["generated_email"] == "jane.doe@triguardroofing.com"
        assert body["data"]["manager_id"] == org["manager_id"]
        assert body["data"]["submitted_at"]

    async def test_credential_failure_is_a_warning(self, store, step_data):
        handler = FinalSubmissionHandler(store, FailingIssuer(), PartialNotifier())
        record = await _complete_record(store, step_data)

        outcome = await handler.submit(record)

        assert outcome.status == "submitted"
        assert outcome.credentials is None
        assert any("company email" in w for w in outcome.warnings)
        assert (await store.get(TABLE, record["id"]))["status"] == "submitted"

    async def test_notification_crash_does_not_undo_submit(self, store, step_data, credentials):
        handler = FinalSubmissionHandler(store, credentials, CrashingNotifier())
        record = await _complete_record(store, step_data)

        outcome = await handler.submit(record)

        assert outcome.status == "submitted"
        assert outcome.warnings == ["Notifications could not be sent; they may be delayed."]

    async def test_failed_delivery_is_logged(self, store, step_data, credentials):
        notifier = PartialNotifier()
        handler = FinalSubmissionHandler(store, credentials, notifier)
        record = await _complete_record(store, step_data)

        outcome = await handler.submit(record)

        assert outcome.warnings == ["Some notifications may be delayed."]
        entries = await store.query("activity_logs", {"entity_id": record["id"]})
        failed = [e for e in entries if e["action"] == "notification_failed"]
        assert failed[0]["details"] == {"failed": ["manager@example.com"]}

    async def test_second_submit_fires_nothing(self, store, step_data, credentials):
        notifier = PartialNotifier()
        handler = FinalSubmissionHandler(store, credentials, notifier)
        record = await _complete_record(store, step_data)
        await handler.submit(record)

        again = await handler.submit(await store.get(TABLE, record["id"]))

        assert again.already_submitted
        assert again.credentials is None
        assert len(notifier.events) == 1
