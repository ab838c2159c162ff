"""Lightweight helpers for recording activity log entries.

Staff routes use `log_activity`, which adds the row to the request's DB
session so it commits with the enclosing transaction:

    await log_activity(
        db, user, action="completed", entity_type="onboarding_submission",
        entity_id=submission.id, summary="Marked Jane Doe as completed",
    )

The wizard pipeline has no request session; it writes through the data
store with `record_activity`.  An audit write that fails is logged and
dropped, never surfaced to the applicant.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_log import ActivityLog
from app.models.staff_user import StaffUser
from app.services.store import DataStore, RecordRejectedError, StoreUnavailableError

logger = logging.getLogger(__name__)

APPLICANT_ACTOR = "applicant"


async def log_activity(
    db: AsyncSession,
    user: StaffUser,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    entry = ActivityLog(
        actor_id=user.id,
        actor_name=user.full_name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        summary=summary,
        details=details,
    )
    db.add(entry)


async def record_activity(
    store: DataStore,
    *,
    action: str,
    entity_id: str | None,
    summary: str | None = None,
    details: dict | None = None,
    actor_id: str = APPLICANT_ACTOR,
    actor_name: str = "Applicant",
    entity_type: str = "onboarding_submission",
) -> None:
    try:
        await store.create(
            "activity_logs",
            {
                "actor_id": actor_id,
                "actor_name": actor_name,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "summary": summary,
                "details": details,
            },
        )
    except (StoreUnavailableError, RecordRejectedError) as exc:
        logger.warning("Activity log write failed (%s on %s): %s", action, entity_id, exc)
