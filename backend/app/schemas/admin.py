"""Pydantic schemas for the staff admin area: submission review, activity log, webhooks."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, field_validator

from app.schemas.onboarding import RequiredStr
from app.schemas.validators import validate_url


# ── Submissions ───────────────────────────────────────────────

class SubmissionSummary(BaseModel):
    id: str
    status: str
    first_name: str | None = None
    last_name: str | None = None
    personal_email: str | None = None
    employee_role: str | None = None
    generated_email: str | None = None
    current_step: int
    total_steps: int
    created_at: datetime
    submitted_at: datetime | None = None
    completed_at: datetime | None = None


class SubmissionListResponse(BaseModel):
    items: list[SubmissionSummary]
    total: int


class DocumentLink(BaseModel):
    field: str
    path: str
    url: str


class SubmissionDetail(BaseModel):
    id: str
    status: str
    current_step: int
    total_steps: int
    progress_percent: int
    steps: list[str]
    # Masked record: no password hash, bank account reduced to its last 4
    data: dict
    documents: list[DocumentLink] = []


# ── Activity Log ──────────────────────────────────────────────

class ActivityEntry(BaseModel):
    id: str
    actor_id: str
    actor_name: str
    action: str
    entity_type: str
    entity_id: str | None = None
    summary: str | None = None
    details: dict | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Tasks ─────────────────────────────────────────────────────

class TaskAssignRequest(BaseModel):
    task_id: str


class TaskAssignmentOut(BaseModel):
    id: str
    task_id: str
    onboarding_submission_id: str
    acknowledged_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Webhooks ──────────────────────────────────────────────────

WebhookEvent = Literal[
    "onboarding.started",
    "onboarding.step_completed",
    "onboarding.completed",
    "task.assigned",
]


class WebhookCreate(BaseModel):
    name: RequiredStr
    url: str
    events: list[WebhookEvent] = ["onboarding.completed"]
    headers: dict[str, str] | None = None
    is_active: bool = True

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        return validate_url(v)


class WebhookUpdate(BaseModel):
    name: str | None = None
    url: str | None = None
    events: list[WebhookEvent] | None = None
    headers: dict[str, str] | None = None
    is_active: bool | None = None

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str | None) -> str | None:
        return validate_url(v) if v is not None else v


class WebhookOut(BaseModel):
    id: str
    name: str
    url: str
    events: list[str]
    headers: dict | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WebhookTestResult(BaseModel):
    success: bool
    status_code: int | None = None
    error: str | None = None
