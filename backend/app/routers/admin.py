"""Staff admin area: submission review, activity log, webhook endpoints.

Endpoints:
  GET    /api/admin/submissions                    → list (status filter, paging)
  GET    /api/admin/submissions/{id}               → masked detail + signed document URLs
  POST   /api/admin/submissions/{id}/complete      → submitted → completed
  GET    /api/admin/submissions/{id}/activity      → audit trail for one submission
  POST   /api/admin/submissions/{id}/tasks         → assign a task to the new hire
  GET    /api/admin/webhooks                       → list endpoints
  POST   /api/admin/webhooks                       → create endpoint
  PATCH  /api/admin/webhooks/{id}                  → update endpoint
  DELETE /api/admin/webhooks/{id}                  → delete endpoint
  POST   /api/admin/webhooks/{id}/test             → send a webhook.test event

Submission reads are open to every staff role; webhook configuration
and completing a submission are admin only.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import require_role
from app.config import settings
from app.database import get_db
from app.models.activity_log import ActivityLog
from app.models.onboarding_submission import OnboardingSubmission, SubmissionStatus
from app.models.organization import Task, TaskAssignment
from app.models.staff_user import StaffRole, StaffUser
from app.models.webhook_endpoint import WebhookEndpoint
from app.schemas.admin import (
    ActivityEntry,
    DocumentLink,
    SubmissionDetail,
    SubmissionListResponse,
    SubmissionSummary,
    TaskAssignmentOut,
    TaskAssignRequest,
    WebhookCreate,
    WebhookOut,
    WebhookTestResult,
    WebhookUpdate,
)
from app.services import step_registry
from app.services.drafts import applicant_payload
from app.services.notifications import NotificationFanout
from app.services.pipeline import get_notifier, get_storage
from app.services.storage import LocalFileStorage
from app.services.store import as_dict
from app.utils.activity import log_activity
from app.utils.clock import utcnow
from app.utils.masking import submission_view

logger = logging.getLogger(__name__)

router = APIRouter()

ANY_STAFF = (StaffRole.ADMIN, StaffRole.MANAGER, StaffRole.RECRUITER)

DOCUMENT_FIELDS = ("drivers_license_url", "social_security_card_url", "direct_deposit_form_url")


# ── Helpers ──────────────────────────────────────────────────

async def _get_submission(db: AsyncSession, submission_id: str) -> OnboardingSubmission:
    submission = await db.get(OnboardingSubmission, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    return submission


async def _get_webhook(db: AsyncSession, webhook_id: str) -> WebhookEndpoint:
    endpoint = await db.get(WebhookEndpoint, webhook_id)
    if not endpoint:
        raise HTTPException(status_code=404, detail="Webhook endpoint not found")
    return endpoint


def _summary(submission: OnboardingSubmission) -> SubmissionSummary:
    record = as_dict(submission)
    return SubmissionSummary(
        id=submission.id,
        status=submission.status,
        first_name=submission.first_name,
        last_name=submission.last_name,
        personal_email=submission.personal_email,
        employee_role=submission.employee_role,
        generated_email=submission.generated_email,
        current_step=submission.current_step,
        total_steps=len(step_registry.steps_for(record)),
        created_at=submission.created_at,
        submitted_at=submission.submitted_at,
        completed_at=submission.completed_at,
    )


def _full_name(submission: OnboardingSubmission) -> str:
    return f"{submission.first_name or ''} {submission.last_name or ''}".strip() or submission.id


# ══════════════════════════════════════════════════════════════
# SUBMISSIONS
# ══════════════════════════════════════════════════════════════

@router.get("/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: StaffUser = Depends(require_role(*ANY_STAFF)),
):
    """Newest first. `status` narrows to one of draft/in_progress/submitted/completed."""
    stmt = select(OnboardingSubmission)
    count_stmt = select(func.count()).select_from(OnboardingSubmission)
    if status_filter:
        stmt = stmt.where(OnboardingSubmission.status == status_filter)
        count_stmt = count_stmt.where(OnboardingSubmission.status == status_filter)

    total = (await db.execute(count_stmt)).scalar() or 0
    result = await db.execute(
        stmt.order_by(OnboardingSubmission.created_at.desc()).offset(offset).limit(limit)
    )
    return SubmissionListResponse(
        items=[_summary(s) for s in result.scalars().all()],
        total=total,
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionDetail)
async def get_submission(
    submission_id: str,
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_storage),
    _user: StaffUser = Depends(require_role(*ANY_STAFF)),
):
    submission = await _get_submission(db, submission_id)
    record = as_dict(submission)
    steps = step_registry.steps_for(record)
    total = len(steps)

    # Private documents are only ever handed out as short-lived links
    documents = [
        DocumentLink(
            field=field,
            path=record[field],
            url=storage.get_signed_url(
                "employee-documents", record[field], settings.signed_url_ttl_seconds,
            ),
        )
        for field in DOCUMENT_FIELDS
        if record.get(field)
    ]

    return SubmissionDetail(
        id=submission.id,
        status=submission.status,
        current_step=submission.current_step,
        total_steps=total,
        progress_percent=round(min(submission.current_step, total) * 100 / total),
        steps=[s.key for s in steps],
        data=submission_view(record),
        documents=documents,
    )


@router.post("/submissions/{submission_id}/complete", response_model=SubmissionSummary)
async def complete_submission(
    submission_id: str,
    db: AsyncSession = Depends(get_db),
    user: StaffUser = Depends(require_role(StaffRole.ADMIN)),
):
    """Mark a submitted onboarding as reviewed and done."""
    submission = await _get_submission(db, submission_id)
    if submission.status != SubmissionStatus.SUBMITTED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Only submitted onboardings can be completed (status is '{submission.status}')",
        )

    now = utcnow()
    submission.status = SubmissionStatus.COMPLETED.value
    submission.completed_at = now
    submission.updated_at = now

    await log_activity(
        db, user,
        action="completed",
        entity_type="onboarding_submission",
        entity_id=submission.id,
        summary=f"Marked {_full_name(submission)} as completed",
    )
    await db.flush()
    logger.info("Submission %s completed by %s", submission.id, user.email)
    return _summary(submission)


@router.get("/submissions/{submission_id}/activity", response_model=list[ActivityEntry])
async def submission_activity(
    submission_id: str,
    db: AsyncSession = Depends(get_db),
    _user: StaffUser = Depends(require_role(*ANY_STAFF)),
):
    await _get_submission(db, submission_id)
    result = await db.execute(
        select(ActivityLog)
        .where(ActivityLog.entity_id == submission_id)
        .order_by(ActivityLog.created_at)
    )
    return result.scalars().all()


@router.post(
    "/submissions/{submission_id}/tasks",
    response_model=TaskAssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def assign_task(
    submission_id: str,
    body: TaskAssignRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationFanout = Depends(get_notifier),
    user: StaffUser = Depends(require_role(StaffRole.ADMIN, StaffRole.MANAGER)),
):
    submission = await _get_submission(db, submission_id)
    task = await db.get(Task, body.task_id)
    if not task or not task.is_active:
        raise HTTPException(status_code=404, detail="Task not found")

    existing = await db.execute(
        select(TaskAssignment).where(
            TaskAssignment.onboarding_submission_id == submission_id,
            TaskAssignment.task_id == task.id,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Task is already assigned")

    assignment = TaskAssignment(task_id=task.id, onboarding_submission_id=submission_id)
    db.add(assignment)
    await log_activity(
        db, user,
        action="task_assigned",
        entity_type="onboarding_submission",
        entity_id=submission_id,
        summary=f"Assigned '{task.title}' to {_full_name(submission)}",
        details={"task_id": task.id},
    )
    await db.flush()
    await db.refresh(assignment)
    # Subscribers may read the assignment back as soon as they are told about it
    await db.commit()

    await notifier.notify("task.assigned", {
        **applicant_payload(as_dict(submission)),
        "task_id": task.id,
        "task_title": task.title,
        "assigned_by": user.full_name,
    })
    return assignment


# ══════════════════════════════════════════════════════════════
# WEBHOOKS
# ══════════════════════════════════════════════════════════════

@router.get("/webhooks", response_model=list[WebhookOut])
async def list_webhooks(
    db: AsyncSession = Depends(get_db),
    _user: StaffUser = Depends(require_role(StaffRole.ADMIN)),
):
    result = await db.execute(select(WebhookEndpoint).order_by(WebhookEndpoint.created_at))
    return result.scalars().all()


@router.post("/webhooks", response_model=WebhookOut, status_code=status.HTTP_201_CREATED)
async def create_webhook(
    body: WebhookCreate,
    db: AsyncSession = Depends(get_db),
    user: StaffUser = Depends(require_role(StaffRole.ADMIN)),
):
    endpoint = WebhookEndpoint(**body.model_dump())
    db.add(endpoint)
    await db.flush()
    await log_activity(
        db, user,
        action="webhook_created",
        entity_type="webhook_endpoint",
        entity_id=endpoint.id,
        summary=f"Added webhook '{endpoint.name}'",
        details={"events": endpoint.events},
    )
    await db.refresh(endpoint)
    return endpoint


@router.patch("/webhooks/{webhook_id}", response_model=WebhookOut)
async def update_webhook(
    webhook_id: str,
    body: WebhookUpdate,
    db: AsyncSession = Depends(get_db),
    user: StaffUser = Depends(require_role(StaffRole.ADMIN)),
):
    endpoint = await _get_webhook(db, webhook_id)
    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(endpoint, key, value)
    endpoint.updated_at = utcnow()

    await log_activity(
        db, user,
        action="webhook_updated",
        entity_type="webhook_endpoint",
        entity_id=endpoint.id,
        summary=f"Updated webhook '{endpoint.name}'",
        details={"fields": sorted(updates)},
    )
    await db.flush()
    await db.refresh(endpoint)
    return endpoint


@router.delete("/webhooks/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_webhook(
    webhook_id: str,
    db: AsyncSession = Depends(get_db),
    user: StaffUser = Depends(require_role(StaffRole.ADMIN)),
):
    endpoint = await _get_webhook(db, webhook_id)
    await log_activity(
        db, user,
        action="webhook_deleted",
        entity_type="webhook_endpoint",
        entity_id=endpoint.id,
        summary=f"Removed webhook '{endpoint.name}'",
    )
    await db.delete(endpoint)


@router.post("/webhooks/{webhook_id}/test", response_model=WebhookTestResult)
async def test_webhook(
    webhook_id: str,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationFanout = Depends(get_notifier),
    _user: StaffUser = Depends(require_role(StaffRole.ADMIN)),
):
    endpoint = await _get_webhook(db, webhook_id)
    result = await notifier.send_test(as_dict(endpoint))
    return WebhookTestResult(
        success=result.success,
        status_code=result.status_code,
        error=result.error,
    )
