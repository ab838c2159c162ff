"""OnboardingSubmission: the single aggregate root for the wizard.

One row per applicant, created as a `draft` on the first step save and
filled in step by step.  Every wizard step owns a fixed group of columns
(see `app.services.step_registry`); draft saves only ever touch the
columns of the step being saved.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.utils.clock import utcnow


class SubmissionStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    COMPLETED = "completed"  # set by an admin after review


class OnboardingSubmission(Base):
    __tablename__ = "onboarding_submissions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    status: Mapped[str] = mapped_column(
        String(20), default=SubmissionStatus.DRAFT.value, nullable=False, index=True
    )
    # 1-indexed position in the step sequence for this record
    current_step: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    collect_payroll_documents: Mapped[bool] = mapped_column(Boolean, default=False)
    # Client-generated key of the request that created the draft; a retried
    # first step finds the row by it instead of creating another
    client_token: Mapped[str | None] = mapped_column(String(64), unique=True)

    # ── Basic information ──────────────────────────────────────
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    nickname: Mapped[str | None] = mapped_column(String(30))
    gender: Mapped[str | None] = mapped_column(String(10))
    employee_role: Mapped[str | None] = mapped_column(String(50))
    personal_email: Mapped[str | None] = mapped_column(String(255), index=True)
    cell_phone: Mapped[str | None] = mapped_column(String(20))

    # ── Mailing address ────────────────────────────────────────
    street_address: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str | None] = mapped_column(String(100))
    state: Mapped[str | None] = mapped_column(String(2))
    zip_code: Mapped[str | None] = mapped_column(String(10))
    same_as_mailing: Mapped[bool] = mapped_column(Boolean, default=True)

    # ── Shipping address (NULL while same_as_mailing) ──────────
    shipping_street_address: Mapped[str | None] = mapped_column(String(255))
    shipping_city: Mapped[str | None] = mapped_column(String(100))
    shipping_state: Mapped[str | None] = mapped_column(String(2))
    shipping_zip_code: Mapped[str | None] = mapped_column(String(10))

    # ── Gear sizing ────────────────────────────────────────────
    shirt_size: Mapped[str | None] = mapped_column(String(5))
    coat_size: Mapped[str | None] = mapped_column(String(5))
    pant_size: Mapped[str | None] = mapped_column(String(5))
    shoe_size: Mapped[str | None] = mapped_column(String(5))
    hat_size: Mapped[str | None] = mapped_column(String(5))

    # ── Badge photo (self-contained data URL) ──────────────────
    badge_photo_url: Mapped[str | None] = mapped_column(Text)

    # ── Team assignment ────────────────────────────────────────
    team_id: Mapped[str | None] = mapped_column(String(36), index=True)
    manager_id: Mapped[str | None] = mapped_column(String(36), index=True)
    recruiter_id: Mapped[str | None] = mapped_column(String(36), index=True)

    # ── W-9 ────────────────────────────────────────────────────
    w9_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    w9_submitted_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Identity documents (private bucket paths) ──────────────
    drivers_license_url: Mapped[str | None] = mapped_column(String(500))
    social_security_card_url: Mapped[str | None] = mapped_column(String(500))
    documents_uploaded_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Direct deposit ─────────────────────────────────────────
    bank_routing_number: Mapped[str | None] = mapped_column(String(9))
    bank_account_number: Mapped[str | None] = mapped_column(String(17))
    account_type: Mapped[str | None] = mapped_column(String(10))
    direct_deposit_form_url: Mapped[str | None] = mapped_column(String(500))
    direct_deposit_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    direct_deposit_completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Voice pitch ────────────────────────────────────────────
    voice_recording_url: Mapped[str | None] = mapped_column(String(500))
    voice_recording_completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Task acknowledgment ────────────────────────────────────
    acknowledged_task_ids: Mapped[list | None] = mapped_column(JSON, default=None)
    tasks_acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Issued credentials (plaintext password is never stored) ─
    generated_email: Mapped[str | None] = mapped_column(String(255), unique=True)
    username: Mapped[str | None] = mapped_column(String(100))
    password_hash: Mapped[str | None] = mapped_column(String(255))
    credentials_issued_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Timestamps ─────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
