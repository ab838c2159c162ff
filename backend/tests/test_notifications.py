"""Tests for the notification fan-out (webhooks + Resend emails)."""

import json

import pytest

from app.config import settings
from app.services.notifications import build_event, manager_email_html, onboarding_team_email_html


async def _endpoint(store, url, events, **extra):
    return await store.create("webhook_endpoints", {
        "name": url, "url": url, "events": events, "is_active": True, **extra,
    })


@pytest.mark.unit
class TestPayloads:

    def test_build_event_envelope(self):
        body = build_event("onboarding.started", {"submission_id": "abc"})
        assert body["event"] == "onboarding.started"
        assert body["source"] == "triguard-onboarding"
        assert body["data"] == {"submission_id": "abc"}
        assert body["timestamp"].endswith("Z")

    def test_manager_email_escapes_applicant_input(self):
        html = manager_email_html({"first_name": "<b>Jane</b>", "last_name": "Doe"})
        assert "<b>Jane</b>" not in html
        assert "&lt;b&gt;Jane&lt;/b&gt;" in html
        assert "&amp;lt;" not in html

    def test_team_email_formats_phone_and_fills_gaps(self):
        html = onboarding_team_email_html(
            {"first_name": "Jane", "last_name": "Doe", "cell_phone": "5551234567"}, None,
        )
        assert "(555) 123-4567" in html
        assert "<li><strong>Manager:</strong> Not provided</li>" in html
        assert "<li><strong>W9 Completed:</strong> No</li>" in html


@pytest.mark.unit
@pytest.mark.asyncio
class TestWebhookDelivery:

    async def test_only_subscribed_active_endpoints(self, notifier, store, http_transport):
        await _endpoint(store, "https://a.example.com/hook", ["onboarding.completed"])
        await _endpoint(store, "https://b.example.com/hook", ["onboarding.started"])
        await _endpoint(store, "https://c.example.com/hook", ["onboarding.completed"], is_active=False)

        results = await notifier.notify("onboarding.completed", {"submission_id": "abc"})

        assert [r.target for r in results] == ["https://a.example.com/hook"]
        assert all(r.success for r in results)
        assert [str(r.url) for r in http_transport.requests] == ["https://a.example.com/hook"]

    async def test_failed_endpoint_reported_not_raised(self, notifier, store, http_transport):
        await _endpoint(store, "https://ok.example.com/hook", ["onboarding.completed"])
        await _endpoint(store, "https://down.example.com/hook", ["onboarding.completed"])
        http_transport.fail_hosts.add("down.example.com")

        results = await notifier.notify("onboarding.completed", {"submission_id": "abc"})

        by_target = {r.target: r for r in results}
        assert by_target["https://ok.example.com/hook"].success
        failed = by_target["https://down.example.com/hook"]
        assert not failed.success
        assert failed.status_code == 500

    async def test_send_test_ignores_subscriptions(self, notifier, store, http_transport):
        endpoint_id = await _endpoint(store, "https://a.example.com/hook", ["onboarding.started"])
        endpoint = await store.get("webhook_endpoints", endpoint_id)

        result = await notifier.send_test(endpoint)

        assert result.success
        body = json.loads(http_transport.requests[0].content)
        assert body["event"] == "webhook.test"
        assert body["data"]["endpoint_id"] == endpoint_id


@pytest.mark.unit
@pytest.mark.asyncio
class TestCompletionEmails:

    async def test_emails_manager_and_onboarding_team(
        self, notifier, store, http_transport, org, monkeypatch,
    ):
        monkeypatch.setattr(settings, "resend_api_key", "re_test")

        results = await notifier.notify("onboarding.completed", {
            "submission_id": "abc",
            "first_name": "Jane",
            "last_name": "Doe",
            "manager_id": org["manager_id"],
        })

        assert [r.channel for r in results] == ["email", "email"]
        sent = [json.loads(r.content) for r in http_transport.requests]
        assert sent[0]["to"] == ["maria.lopez@example.com"]
        assert sent[0]["subject"] == "New Employee Onboarding Completed - Jane Doe"
        assert sent[1]["to"] == [settings.onboarding_team_email]
        assert http_transport.requests[0].headers["Authorization"] == "Bearer re_test"
        assert str(http_transport.requests[0].url) == settings.resend_api_url

    async def test_inactive_manager_is_skipped(
        self, notifier, store, http_transport, org, monkeypatch,
    ):
        monkeypatch.setattr(settings, "resend_api_key", "re_test")
        await store.update("managers", org["manager_id"], {"is_active": False})

        results = await notifier.notify("onboarding.completed", {
            "submission_id": "abc", "first_name": "Jane", "last_name": "Doe",
            "manager_id": org["manager_id"],
        })

        assert [r.target for r in results] == [settings.onboarding_team_email]

    async def test_no_api_key_sends_no_email(self, notifier, http_transport, org):
        results = await notifier.notify("onboarding.completed", {"manager_id": org["manager_id"]})
        assert results == []
        assert http_transport.requests == []

    async def test_emails_only_for_completion(self, notifier, http_transport, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_test")
        assert await notifier.notify("onboarding.started", {"submission_id": "abc"}) == []
        assert http_transport.requests == []
