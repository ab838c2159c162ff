"""Final submission: the one transition from in-progress data to `submitted`.

Preconditions are checked against the final record (persisted data
merged with the last step's buffered data): every applicable step
validates and `current_step` sits on the last step.

Effects, in order, each attempted even if a later one fails:

  1. status `submitted`, `submitted_at`, `current_step = len(steps)`,
     committed on its own;
  2. company credentials issued if the record has none;
  3. `onboarding.completed` sent to the notification fan-out.

Failures of (2) or (3) are logged and reported as warnings; they never
undo (1).  Submitting an already-submitted record returns the stored
outcome and fires nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from app.middleware.exceptions import DraftSaveError, SubmissionValidationError
from app.models.onboarding_submission import SubmissionStatus
from app.schemas.onboarding import FieldError
from app.services import step_registry
from app.services.credentials import CredentialIssuanceError, CredentialIssuer, IssuedCredentials
from app.services.drafts import CLOSED_STATUSES, TABLE, Notifier, applicant_payload
from app.services.store import DataStore, StoreUnavailableError
from app.utils.activity import record_activity
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

COMPLETION_FIELDS = (
    "employee_role", "gender",
    "street_address", "city", "state", "zip_code",
    "shirt_size", "coat_size", "pant_size", "shoe_size", "hat_size",
    "team_id", "manager_id", "recruiter_id", "w9_completed",
)


@dataclass
class SubmissionOutcome:
    submission_id: str
    status: str
    submitted_at: datetime | None
    already_submitted: bool = False
    credentials: IssuedCredentials | None = None
    generated_email: str | None = None
    username: str | None = None
    warnings: list[str] = field(default_factory=list)


def completion_payload(record: Mapping[str, Any]) -> dict:
    payload = applicant_payload(record)
    payload.update({name: record.get(name) for name in COMPLETION_FIELDS})
    submitted_at = record.get("submitted_at")
    payload["submitted_at"] = submitted_at.isoformat() if submitted_at else None
    return payload


def check_ready(record: Mapping[str, Any]) -> None:
    """Raise SubmissionValidationError unless the record can be submitted."""
    failing = step_registry.validate_record(record)
    total = len(step_registry.steps_for(record))
    if (record.get("current_step") or 0) < total and "review" not in failing:
        failing["review"] = [FieldError(
            step="review",
            field="current_step",
            message=f"Reach the final step ({total}) before submitting",
        )]
    if failing:
        raise SubmissionValidationError(failing)


class FinalSubmissionHandler:
    def __init__(
        self,
        store: DataStore,
        credentials: CredentialIssuer,
        notifier: Notifier | None = None,
    ):
        self.store = store
        self.credentials = credentials
        self.notifier = notifier

    async def submit(self, record: Mapping[str, Any]) -> SubmissionOutcome:
        """Finalize `record`, which must already include the last buffered step."""
        submission_id = record["id"]

        if record.get("status") in CLOSED_STATUSES:
            logger.info("Submission %s already %s; nothing to do", submission_id, record["status"])
            return SubmissionOutcome(
                submission_id=submission_id,
                status=record["status"],
                submitted_at=record.get("submitted_at"),
                already_submitted=True,
                generated_email=record.get("generated_email"),
                username=record.get("username"),
            )

        check_ready(record)

        # 1. Durable status flip
        now = utcnow()
        total = len(step_registry.steps_for(record))
        try:
            updated = await self.store.update(TABLE, submission_id, {
                "status": SubmissionStatus.SUBMITTED.value,
                "submitted_at": now,
                "current_step": total,
                "updated_at": now,
            })
        except StoreUnavailableError as exc:
            raise DraftSaveError("Your submission could not be saved. Please try again.") from exc
        final = {**record, **(updated or {})}
        logger.info("Submission %s marked submitted", submission_id)
        await record_activity(
            self.store,
            action="submitted",
            entity_id=submission_id,
            summary=f"{final.get('first_name')} {final.get('last_name')} submitted onboarding",
        )

        outcome = SubmissionOutcome(
            submission_id=submission_id,
            status=SubmissionStatus.SUBMITTED.value,
            submitted_at=now,
            generated_email=final.get("generated_email"),
            username=final.get("username"),
        )

        # 2. Credentials
        try:
            issued = await self.credentials.issue(submission_id, final)
        except CredentialIssuanceError as exc:
            logger.error("Credential issuance failed for %s: %s", submission_id, exc)
            outcome.warnings.append(
                "Your company email could not be created yet; the onboarding team will follow up."
            )
        else:
            if issued is not None:
                outcome.credentials = issued
                outcome.generated_email = issued.email
                outcome.username = issued.username
                final["generated_email"] = issued.email
                final["username"] = issued.username

        # 3. Notification
        if self.notifier is not None:
            try:
                results = await self.notifier.notify("onboarding.completed", completion_payload(final))
            except Exception:
                logger.exception("Notification fan-out crashed for %s", submission_id)
                results = None
                outcome.warnings.append("Notifications could not be sent; they may be delayed.")
            if results and any(not r.success for r in results):
                outcome.warnings.append("Some notifications may be delayed.")
                await record_activity(
                    self.store,
                    action="notification_failed",
                    entity_id=submission_id,
                    details={"failed": [r.target for r in results if not r.success]},
                )

        return outcome
