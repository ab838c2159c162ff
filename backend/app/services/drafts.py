"""Draft persistence for onboarding submissions.

One row per applicant.  The first save creates it as `draft`; every
later save is a field-scoped partial update that writes only the
columns owned by the step being saved, plus `current_step` and
`updated_at`.  Saving step K never touches the columns of any other
step (the address step's shipping reset is the one exception: while
`same_as_mailing` is set the shipping columns are stored as NULL).
A step that the record's own answers skip is refused, not stored.

Backend failures and timeouts are raised as DraftSaveError so the
caller can offer a retry; nothing advances on a failed save.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from app.middleware.exceptions import (
    DraftSaveError,
    ResourceNotFoundError,
    StepValidationError,
    WizardClosedError,
)
from app.models.onboarding_submission import SubmissionStatus
from app.schemas.onboarding import FieldError
from app.services import step_registry
from app.services.store import DataStore, RecordRejectedError, StoreUnavailableError
from app.utils.activity import record_activity
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

TABLE = "onboarding_submissions"

CLOSED_STATUSES = (SubmissionStatus.SUBMITTED.value, SubmissionStatus.COMPLETED.value)


class Notifier(Protocol):
    async def notify(self, event_type: str, payload: dict) -> list: ...


def applicant_payload(record: Mapping[str, Any]) -> dict:
    """Identity and contact fields sent along with every onboarding event."""
    return {
        "submission_id": record.get("id"),
        "first_name": record.get("first_name"),
        "last_name": record.get("last_name"),
        "personal_email": record.get("personal_email"),
        "cell_phone": record.get("cell_phone"),
        "generated_email": record.get("generated_email"),
        "status": record.get("status"),
        "current_step": record.get("current_step"),
    }


@dataclass(frozen=True)
class SavedDraft:
    submission_id: str
    created: bool
    # current_step moved past its stored value
    advanced: bool


class DraftPersistenceService:
    def __init__(self, store: DataStore, notifier: Notifier | None = None):
        self.store = store
        self.notifier = notifier

    async def load(self, submission_id: str) -> dict:
        """Fetch a submission or raise ResourceNotFoundError."""
        try:
            record = await self.store.get(TABLE, submission_id)
        except StoreUnavailableError as exc:
            raise DraftSaveError("Your saved progress could not be loaded. Please try again.") from exc
        if record is None:
            raise ResourceNotFoundError("Onboarding submission", submission_id)
        return record

    async def find_by_client_token(self, client_token: str) -> dict | None:
        """The submission a client-generated start token already created, if any."""
        try:
            found = await self.store.query(TABLE, {"client_token": client_token}, limit=1)
        except StoreUnavailableError as exc:
            raise DraftSaveError("Your saved progress could not be loaded. Please try again.") from exc
        return found[0] if found else None

    async def save_draft(
        self,
        submission_id: str | None,
        step_key: str,
        step_data: Mapping[str, Any] | None,
        current_step: int,
        *,
        complete: bool = False,
        initial: Mapping[str, Any] | None = None,
    ) -> str:
        """Persist one step's data and return the submission id.

        `complete=True` validates against the step's completion schema
        (the Next path); the default draft path only coerces types.
        `initial` seeds create-only columns such as
        `collect_payroll_documents` and is ignored on update.
        """
        saved = await self.save_step(
            submission_id, step_key, step_data, current_step,
            complete=complete, initial=initial,
        )
        return saved.submission_id

    async def save_step(
        self,
        submission_id: str | None,
        step_key: str,
        step_data: Mapping[str, Any] | None,
        current_step: int,
        *,
        complete: bool = False,
        initial: Mapping[str, Any] | None = None,
    ) -> SavedDraft:
        """Like save_draft, but also reports whether the resume point moved."""
        values, errors = step_registry.clean(step_key, step_data, complete=complete)
        if errors:
            raise StepValidationError(step_key, errors)

        now = utcnow()
        if submission_id is None:
            initial = initial or {}
            self._ensure_applies(step_key, {**values, **initial})
            values.update(step_registry.derived_values(step_key, values))
            created_id = await self._create(step_key, values, current_step, initial, now)
            return SavedDraft(created_id, created=True, advanced=True)

        existing = await self.load(submission_id)
        if existing["status"] in CLOSED_STATUSES:
            raise WizardClosedError()
        self._ensure_applies(step_key, existing)
        values.update(step_registry.derived_values(step_key, values, existing))

        previous = existing.get("current_step") or 1
        reached = max(previous, current_step)
        fields = {**values, "current_step": reached, "updated_at": now}
        if existing["status"] == SubmissionStatus.DRAFT.value and reached > 1:
            fields["status"] = SubmissionStatus.IN_PROGRESS.value

        try:
            updated = await self.store.update(TABLE, submission_id, fields)
        except StoreUnavailableError as exc:
            raise DraftSaveError() from exc
        except RecordRejectedError as exc:
            logger.error("Step %s for submission %s was rejected: %s", step_key, submission_id, exc)
            raise DraftSaveError() from exc
        if updated is None:
            raise ResourceNotFoundError("Onboarding submission", submission_id)

        logger.debug(
            "Saved step %s for submission %s (current_step=%d)",
            step_key, submission_id, reached,
        )
        return SavedDraft(submission_id, created=False, advanced=reached > previous)

    async def autosave(
        self,
        submission_id: str | None,
        step_key: str,
        step_data: Mapping[str, Any] | None,
        *,
        initial: Mapping[str, Any] | None = None,
    ) -> str:
        """Periodic save of buffered edits; never moves the resume pointer."""
        return await self.save_draft(
            submission_id, step_key, step_data, current_step=1, initial=initial,
        )

    @staticmethod
    def _ensure_applies(step_key: str, record: Mapping[str, Any]) -> None:
        # A step the record skips (shipping while same_as_mailing, payroll) is never written
        if step_registry.position_of(record, step_key) is None:
            raise StepValidationError(step_key, [FieldError(
                step=step_key,
                field="__all__",
                message="This step does not apply to this submission",
            )])

    async def _create(
        self,
        step_key: str,
        values: dict,
        current_step: int,
        initial: Mapping[str, Any],
        now,
    ) -> str:
        record = {
            **values,
            "status": SubmissionStatus.DRAFT.value,
            "current_step": max(1, current_step),
            "collect_payroll_documents": bool(initial.get("collect_payroll_documents", False)),
            "client_token": initial.get("client_token"),
            "created_at": now,
            "updated_at": now,
        }
        try:
            submission_id = await self.store.create(TABLE, record)
        except StoreUnavailableError as exc:
            raise DraftSaveError() from exc
        except RecordRejectedError as exc:
            logger.error("New draft from step %s was rejected: %s", step_key, exc)
            raise DraftSaveError() from exc

        logger.info("Created onboarding draft %s from step %s", submission_id, step_key)
        await record_activity(
            self.store,
            action="draft_created",
            entity_id=submission_id,
            summary=f"Onboarding started at step '{step_key}'",
        )
        if self.notifier is not None:
            await self.notifier.notify(
                "onboarding.started",
                applicant_payload({**record, "id": submission_id}),
            )
        return submission_id
