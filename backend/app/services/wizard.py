"""Wizard state machine for the onboarding flow.

States are the 1-indexed positions of `step_registry.steps_for(record)`
plus a terminal Submitted state.  A WizardSession carries everything the
machine needs between calls (submission id, position, buffered edits,
in-flight flag), so several sessions can run side by side in one
process; over HTTP the client sends the id and position back on every
request and the session is rebuilt.

Transitions:

  next(data)     validate the current step, persist it, then advance
  back(data)     move to the previous step; keeps edits, writes nothing
  jump_to(n)     only when every step before n is valid and persisted
  submit(data)   only from the last step; hands off to the
                 FinalSubmissionHandler and closes the session

Every write is awaited before the position moves, so a failed save
leaves the session on the step it was on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from app.middleware.exceptions import (
    StepValidationError,
    TransitionError,
    TransitionInProgressError,
    WizardClosedError,
)
from app.services import step_registry
from app.services.credentials import CredentialIssuanceError, CredentialIssuer, IssuedCredentials
from app.services.drafts import CLOSED_STATUSES, DraftPersistenceService, Notifier, applicant_payload
from app.services.step_registry import StepDefinition
from app.services.store import RecordRejectedError, StoreUnavailableError
from app.services.submission import FinalSubmissionHandler, SubmissionOutcome
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class WizardSession:
    submission_id: str | None = None
    step_index: int = 1
    buffered: dict[str, dict] = field(default_factory=dict)
    saving: bool = False
    submitted: bool = False
    collect_payroll_documents: bool = False
    client_token: str | None = None
    outcome: SubmissionOutcome | None = None


class WizardStateMachine:
    def __init__(
        self,
        session: WizardSession,
        drafts: DraftPersistenceService,
        credentials: CredentialIssuer,
        submit_handler: FinalSubmissionHandler,
        notifier: Notifier | None = None,
        record: Mapping[str, Any] | None = None,
    ):
        self.session = session
        self.drafts = drafts
        self.credentials = credentials
        self.submit_handler = submit_handler
        self.notifier = notifier
        self.record: dict | None = dict(record) if record is not None else None
        # Plaintext from the transition that issued credentials, if any
        self.issued: IssuedCredentials | None = None
        self.warnings: list[str] = []

    @classmethod
    async def resume(
        cls,
        submission_id: str,
        *,
        drafts: DraftPersistenceService,
        credentials: CredentialIssuer,
        submit_handler: FinalSubmissionHandler,
        notifier: Notifier | None = None,
        step_index: int | None = None,
    ) -> "WizardStateMachine":
        """Rebuild a session from the stored record.

        Without `step_index` the session lands on the stored resume
        point, clamped to the step count for this record.
        """
        record = await drafts.load(submission_id)
        total = len(step_registry.steps_for(record))
        stored = record.get("current_step") or 1
        # A client-held position can go back but never past the resume point
        index = stored if step_index is None else min(step_index, stored)
        session = WizardSession(
            submission_id=submission_id,
            step_index=max(1, min(index, total)),
            submitted=record.get("status") in CLOSED_STATUSES,
            collect_payroll_documents=bool(record.get("collect_payroll_documents")),
        )
        return cls(
            session, drafts, credentials, submit_handler,
            notifier=notifier, record=record,
        )

    # ── State ──────────────────────────────────────────────────

    def context(self) -> dict:
        if self.record is not None:
            return self.record
        return {"collect_payroll_documents": self.session.collect_payroll_documents}

    @property
    def steps(self) -> list[StepDefinition]:
        return step_registry.steps_for(self.context())

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def current(self) -> StepDefinition:
        return step_registry.step_at(self.context(), self.session.step_index)

    @property
    def is_last_step(self) -> bool:
        return self.session.step_index >= self.total_steps

    def buffer(self, step_data: Mapping[str, Any] | None) -> None:
        """Hold unsaved edits for the current step."""
        if step_data:
            self.session.buffered.setdefault(self.current.key, {}).update(step_data)

    def step_data(self, step_key: str) -> dict:
        """Persisted values for a step overlaid with the session's unsaved edits."""
        data = step_registry.step_payload(self.record, step_key)
        data.update(self.session.buffered.get(step_key, {}))
        return data

    def _ensure_open(self) -> None:
        if self.session.submitted:
            raise WizardClosedError()

    def _ensure_idle(self) -> None:
        if self.session.saving:
            raise TransitionInProgressError()

    # ── Transitions ────────────────────────────────────────────

    async def next(self, step_data: Mapping[str, Any] | None = None) -> StepDefinition:
        self._ensure_open()
        self._ensure_idle()

        step = self.current
        self.buffer(step_data)
        data = self.step_data(step.key)

        result = step_registry.validate(step.key, data)
        if not result.ok:
            raise StepValidationError(step.key, result.errors)
        if self.is_last_step:
            raise TransitionError("This is the final step; submit the form instead")

        self.session.saving = True
        try:
            saved = await self.drafts.save_step(
                self.session.submission_id,
                step.key,
                data,
                current_step=self.session.step_index + 1,
                complete=True,
                initial={
                    "collect_payroll_documents": self.session.collect_payroll_documents,
                    "client_token": self.session.client_token,
                },
            )
            self.session.submission_id = saved.submission_id
            self.record = await self.drafts.load(saved.submission_id)
        finally:
            self.session.saving = False

        self.session.buffered.pop(step.key, None)

        if step.key == "basic_info":
            await self._try_issue_credentials()
        elif step.key == "tasks":
            await self._record_task_acknowledgments()

        # The sequence is recomputed from the saved record; a step that
        # just became required (shipping) is the one we land on.
        position = step_registry.position_of(self.record, step.key) or self.session.step_index
        self.session.step_index = min(position + 1, self.total_steps)

        # A replayed Next leaves current_step where it was and stays silent
        if saved.advanced and not saved.created and self.notifier is not None:
            await self.notifier.notify("onboarding.step_completed", {
                **applicant_payload(self.record),
                "step": step.key,
            })
        return self.current

    async def back(self, step_data: Mapping[str, Any] | None = None) -> StepDefinition:
        self._ensure_open()
        self._ensure_idle()
        self.buffer(step_data)
        self.session.step_index = max(1, self.session.step_index - 1)
        return self.current

    async def jump_to(self, target: int) -> StepDefinition:
        self._ensure_open()
        self._ensure_idle()

        steps = self.steps
        if not 1 <= target <= len(steps):
            raise TransitionError(f"Step {target} does not exist")
        if target > 1:
            reached = (self.record or {}).get("current_step") or 1
            if self.record is None or target > reached:
                raise TransitionError(f"Step {target} has not been reached yet")
            for step in steps[:target - 1]:
                payload = step_registry.step_payload(self.record, step.key)
                if not step_registry.validate(step.key, payload).ok:
                    raise TransitionError(f"Complete '{step.title}' before jumping ahead")

        self.session.step_index = target
        return self.current

    async def submit(self, step_data: Mapping[str, Any] | None = None) -> SubmissionOutcome:
        if self.session.submitted:
            if self.session.outcome is not None:
                return self.session.outcome
            if self.record is not None:
                return await self.submit_handler.submit(self.record)
            raise WizardClosedError()
        self._ensure_idle()

        if self.session.submission_id is None or self.record is None:
            raise TransitionError("Nothing has been saved yet")
        if not self.is_last_step:
            raise TransitionError("Submit is only available on the final step")

        step = self.current
        self.buffer(step_data)

        self.session.saving = True
        try:
            if self.session.buffered.get(step.key):
                await self.drafts.save_draft(
                    self.session.submission_id,
                    step.key,
                    self.step_data(step.key),
                    current_step=self.session.step_index,
                    complete=True,
                )
                self.session.buffered.pop(step.key, None)
                self.record = await self.drafts.load(self.session.submission_id)
            outcome = await self.submit_handler.submit(self.record)
        finally:
            self.session.saving = False

        self.session.submitted = True
        self.session.outcome = outcome
        self.record = await self.drafts.load(self.session.submission_id)
        return outcome

    # ── Side effects ───────────────────────────────────────────

    async def _try_issue_credentials(self) -> None:
        try:
            issued = await self.credentials.issue(self.session.submission_id, self.record)
        except CredentialIssuanceError as exc:
            logger.warning(
                "Credential issuance deferred for %s: %s", self.session.submission_id, exc,
            )
            self.warnings.append("Your company email will be created when you submit.")
            return
        if issued is not None:
            self.issued = issued
            self.record = await self.drafts.load(self.session.submission_id)

    async def _record_task_acknowledgments(self) -> None:
        task_ids = self.record.get("acknowledged_task_ids") or []
        if not task_ids:
            return
        store = self.drafts.store
        try:
            existing = await store.query(
                "task_assignments", {"onboarding_submission_id": self.session.submission_id},
            )
            known = {row["task_id"] for row in existing}
            now = utcnow()
            for task_id in task_ids:
                if task_id in known:
                    continue
                await store.create("task_assignments", {
                    "task_id": task_id,
                    "onboarding_submission_id": self.session.submission_id,
                    "acknowledged_at": now,
                })
        except (StoreUnavailableError, RecordRejectedError) as exc:
            logger.warning(
                "Task acknowledgments not recorded for %s: %s", self.session.submission_id, exc,
            )
