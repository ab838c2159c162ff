"""Outbound notifications for onboarding events.

`notify(event_type, payload)` fans out to:

  - every active webhook endpoint subscribed to the event, as a JSON POST
    `{event, timestamp, data, source}` with the endpoint's custom headers;
  - for `onboarding.completed`, emails to the applicant's manager and to
    the onboarding team through the Resend HTTP API.

Delivery is best effort.  Every failure is logged and reported in the
returned DeliveryResult list; nothing here raises into the pipeline.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from app.config import settings
from app.schemas.validators import format_phone
from app.services.store import DataStore, RecordRejectedError, StoreUnavailableError
from app.utils.clock import utcnow

logger = logging.getLogger("triguard.notifications")

SOURCE = "triguard-onboarding"
USER_AGENT = "TriGuard-Webhook/1.0"

COMPLETED_EVENT = "onboarding.completed"


@dataclass
class DeliveryResult:
    target: str
    channel: str  # "webhook" | "email"
    success: bool
    status_code: int | None = None
    error: str | None = None


def build_event(event_type: str, payload: Mapping[str, Any]) -> dict:
    return {
        "event": event_type,
        "timestamp": utcnow().isoformat() + "Z",
        "data": dict(payload),
        "source": SOURCE,
    }


def _full_name(data: Mapping[str, Any]) -> str:
    return f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()


def _row(label: str, value: Any) -> str:
    shown = html.escape(str(value)) if value not in (None, "") else "Not provided"
    return f"<li><strong>{label}:</strong> {shown}</li>"


def manager_email_html(data: Mapping[str, Any]) -> str:
    full_name = _full_name(data)
    name = html.escape(full_name)
    rows = "".join([
        _row("Name", full_name),
        _row("Generated Email", data.get("generated_email")),
        _row("Gender", data.get("gender")),
        _row("Shirt Size", data.get("shirt_size")),
        _row("Coat Size", data.get("coat_size")),
        _row("Pant Size", data.get("pant_size")),
        _row("Shoe Size", data.get("shoe_size")),
        _row("Hat Size", data.get("hat_size")),
    ])
    return (
        "<h1>New Employee Onboarding Completed</h1>"
        f"<p><strong>{name}</strong> has completed their onboarding process "
        "and is ready to begin training.</p>"
        f"<ul>{rows}</ul>"
        f"<p>Please reach out to {name} to schedule their training.</p>"
    )


def onboarding_team_email_html(data: Mapping[str, Any], manager_email: str | None) -> str:
    full_name = _full_name(data)
    name = html.escape(full_name)
    address = ", ".join(
        str(part) for part in (
            data.get("street_address"), data.get("city"),
            f"{data.get('state') or ''} {data.get('zip_code') or ''}".strip(),
        ) if part
    )
    rows = "".join([
        _row("Name", full_name),
        _row("Generated Email", data.get("generated_email")),
        _row("Phone", format_phone(data.get("cell_phone"))),
        _row("Manager", manager_email),
        _row("Address", address),
        _row("W9 Completed", "Yes" if data.get("w9_completed") else "No"),
        _row("Submitted", data.get("submitted_at")),
    ])
    return (
        "<h1>Onboarding Form Submitted</h1>"
        "<p>A new onboarding form has been submitted:</p>"
        f"<ul>{rows}</ul>"
        "<p>Please review the submission and prepare necessary materials for the new hire.</p>"
    )


class NotificationFanout:
    def __init__(
        self,
        store: DataStore,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ):
        self.store = store
        self._transport = transport
        self._timeout = timeout or settings.webhook_timeout_seconds

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def notify(self, event_type: str, payload: Mapping[str, Any]) -> list[DeliveryResult]:
        results: list[DeliveryResult] = []
        async with self._client() as client:
            results.extend(await self._deliver_webhooks(client, event_type, payload))
            if event_type == COMPLETED_EVENT:
                results.extend(await self._send_completion_emails(client, payload))

        failed = [r for r in results if not r.success]
        if failed:
            logger.warning(
                "%s: %d of %d deliveries failed", event_type, len(failed), len(results),
            )
        return results

    async def send_test(self, endpoint: Mapping[str, Any]) -> DeliveryResult:
        """Deliver a `webhook.test` event to one endpoint regardless of its subscriptions."""
        body = build_event("webhook.test", {
            "message": "Test webhook from TriGuard onboarding",
            "endpoint_id": endpoint.get("id"),
        })
        async with self._client() as client:
            return await self._post_webhook(client, endpoint, body)

    # ── Webhooks ───────────────────────────────────────────────

    async def _deliver_webhooks(
        self, client: httpx.AsyncClient, event_type: str, payload: Mapping[str, Any],
    ) -> list[DeliveryResult]:
        try:
            endpoints = await self.store.query("webhook_endpoints", {"is_active": True})
        except (StoreUnavailableError, RecordRejectedError) as exc:
            logger.error("Could not load webhook endpoints for %s: %s", event_type, exc)
            return [DeliveryResult(target="webhook_endpoints", channel="webhook",
                                   success=False, error=str(exc))]

        body = build_event(event_type, payload)
        results = []
        for endpoint in endpoints:
            if event_type not in (endpoint.get("events") or []):
                continue
            results.append(await self._post_webhook(client, endpoint, body))
        return results

    async def _post_webhook(
        self, client: httpx.AsyncClient, endpoint: Mapping[str, Any], body: dict,
    ) -> DeliveryResult:
        url = endpoint["url"]
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            **(endpoint.get("headers") or {}),
        }
        try:
            resp = await client.post(url, json=body, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("Webhook %s returned %s", url, exc.response.status_code)
            return DeliveryResult(
                target=url, channel="webhook", success=False,
                status_code=exc.response.status_code, error=exc.response.text[:500],
            )
        except httpx.HTTPError as exc:
            logger.warning("Webhook %s failed: %s", url, exc)
            return DeliveryResult(target=url, channel="webhook", success=False, error=str(exc))

        logger.info("Delivered %s to %s", body["event"], url)
        return DeliveryResult(target=url, channel="webhook", success=True, status_code=resp.status_code)

    # ── Emails ─────────────────────────────────────────────────

    async def _manager_email(self, manager_id: str | None) -> str | None:
        if not manager_id:
            return None
        try:
            manager = await self.store.get("managers", manager_id)
        except StoreUnavailableError as exc:
            logger.error("Could not load manager %s: %s", manager_id, exc)
            return None
        if not manager or not manager.get("is_active", True):
            return None
        return manager.get("email")

    async def _send_completion_emails(
        self, client: httpx.AsyncClient, payload: Mapping[str, Any],
    ) -> list[DeliveryResult]:
        if not settings.resend_api_key:
            logger.info("RESEND_API_KEY not set; skipping completion emails")
            return []

        name = _full_name(payload)
        manager_email = await self._manager_email(payload.get("manager_id"))

        messages = []
        if manager_email:
            messages.append((
                manager_email,
                f"New Employee Onboarding Completed - {name}",
                manager_email_html(payload),
            ))
        else:
            logger.warning("No active manager email for submission %s", payload.get("submission_id"))
        messages.append((
            settings.onboarding_team_email,
            f"Onboarding Form Submitted - {name}",
            onboarding_team_email_html(payload, manager_email),
        ))

        return [await self._send_email(client, to, subject, body) for to, subject, body in messages]

    async def _send_email(
        self, client: httpx.AsyncClient, to: str, subject: str, body: str,
    ) -> DeliveryResult:
        try:
            resp = await client.post(
                settings.resend_api_url,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
                json={
                    "from": settings.resend_from_address,
                    "to": [to],
                    "subject": subject,
                    "html": body,
                },
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning("Email to %s rejected: %s", to, exc.response.status_code)
            return DeliveryResult(
                target=to, channel="email", success=False,
                status_code=exc.response.status_code, error=exc.response.text[:500],
            )
        except httpx.HTTPError as exc:
            logger.warning("Email to %s failed: %s", to, exc)
            return DeliveryResult(target=to, channel="email", success=False, error=str(exc))

        return DeliveryResult(target=to, channel="email", success=True, status_code=resp.status_code)
