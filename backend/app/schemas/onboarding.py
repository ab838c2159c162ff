"""Pydantic schemas for the onboarding wizard steps.

Every `<Step>Data` schema uses Optional fields so a draft (partial) save
works.  The `<Step>Complete` variants are what the step registry uses to
validate a step before the wizard moves past it.

Each step reads and writes a flat key/value bag; no schema refers to
another step's fields.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, StringConstraints, field_validator

from app.schemas.validators import (
    normalize_phone,
    sanitize_string,
    validate_account_number,
    validate_email,
    validate_nickname,
    validate_routing_number,
    validate_shoe_size,
    validate_state,
    validate_us_phone,
    validate_zip,
)

RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

SizeType = Literal["xs", "s", "m", "l", "xl", "xxl", "xxxl"]
GenderType = Literal["male", "female"]
AccountType = Literal["checking", "savings"]
EmployeeRole = Literal[
    "ROOF_PRO",
    "ROOF_HAWK",
    "CSR",
    "APPOINTMENT_SETTER",
    "MANAGER",
    "REGIONAL_MANAGER",
    "ROOFER",
]


# ── Validation results ──────────────────────────────────────

class FieldError(BaseModel):
    step: str
    field: str
    message: str


class ValidationResult(BaseModel):
    step: str
    errors: list[FieldError] = []

    @property
    def ok(self) -> bool:
        return not self.errors


# ── Step: Basic information ─────────────────────────────────

class BasicInfoData(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    nickname: str | None = None
    employee_role: EmployeeRole | None = None
    personal_email: str | None = None
    cell_phone: str | None = None

    @field_validator("cell_phone")
    @classmethod
    def _digits_only(cls, v: str | None) -> str | None:
        return normalize_phone(v) if v else v


class BasicInfoComplete(BasicInfoData):
    """Name, personal email and a 10-digit cell phone are required."""
    first_name: RequiredStr
    last_name: RequiredStr
    personal_email: RequiredStr
    cell_phone: RequiredStr

    @field_validator("first_name", "last_name")
    @classmethod
    def _clean_name(cls, v: str) -> str:
        return sanitize_string(v, max_length=100)

    @field_validator("nickname")
    @classmethod
    def _clean_nickname(cls, v: str | None) -> str | None:
        return validate_nickname(v) if v else v

    @field_validator("personal_email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("cell_phone")
    @classmethod
    def _check_phone(cls, v: str) -> str:
        return validate_us_phone(v)


# ── Step: Mailing address ───────────────────────────────────

class AddressData(BaseModel):
    street_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    same_as_mailing: bool | None = None


class AddressComplete(AddressData):
    street_address: RequiredStr
    city: RequiredStr
    state: RequiredStr
    zip_code: RequiredStr
    same_as_mailing: bool

    @field_validator("state")
    @classmethod
    def _check_state(cls, v: str) -> str:
        return validate_state(v)

    @field_validator("zip_code")
    @classmethod
    def _check_zip(cls, v: str) -> str:
        return validate_zip(v)


# ── Step: Shipping address (only when different from mailing) ─

class ShippingAddressData(BaseModel):
    shipping_street_address: str | None = None
    shipping_city: str | None = None
    shipping_state: str | None = None
    shipping_zip_code: str | None = None


class ShippingAddressComplete(ShippingAddressData):
    shipping_street_address: RequiredStr
    shipping_city: RequiredStr
    shipping_state: RequiredStr
    shipping_zip_code: RequiredStr

    @field_validator("shipping_state")
    @classmethod
    def _check_state(cls, v: str) -> str:
        return validate_state(v)

    @field_validator("shipping_zip_code")
    @classmethod
    def _check_zip(cls, v: str) -> str:
        return validate_zip(v)


# ── Step: Gear sizing ───────────────────────────────────────

class SizingData(BaseModel):
    gender: str | None = None
    shirt_size: str | None = None
    coat_size: str | None = None
    pant_size: str | None = None
    shoe_size: str | None = None
    hat_size: str | None = None

    @field_validator("shirt_size", "coat_size", "pant_size", "hat_size", "gender", mode="before")
    @classmethod
    def _lower(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("shoe_size", mode="before")
    @classmethod
    def _shoe_as_text(cls, v):
        if isinstance(v, (int, float)):
            return f"{v:g}"
        return v


class SizingComplete(SizingData):
    gender: GenderType
    shirt_size: SizeType
    coat_size: SizeType
    pant_size: SizeType
    shoe_size: RequiredStr
    hat_size: SizeType

    @field_validator("shoe_size")
    @classmethod
    def _check_shoe(cls, v: str) -> str:
        return validate_shoe_size(v)


# ── Step: Badge photo (optional) ────────────────────────────

class BadgePhotoData(BaseModel):
    badge_photo_url: str | None = None


class BadgePhotoComplete(BadgePhotoData):
    @field_validator("badge_photo_url")
    @classmethod
    def _self_contained(cls, v: str | None) -> str | None:
        if v and not v.startswith("data:image/"):
            raise ValueError("Badge photo must be an exported image")
        return v


# ── Step: Team assignment ───────────────────────────────────

class TeamData(BaseModel):
    team_id: str | None = None
    manager_id: str | None = None
    recruiter_id: str | None = None


class TeamComplete(TeamData):
    team_id: RequiredStr
    manager_id: RequiredStr
    recruiter_id: RequiredStr


# ── Step: W-9 ───────────────────────────────────────────────

class W9Data(BaseModel):
    w9_completed: bool | None = None


class W9Complete(W9Data):
    w9_completed: bool

    @field_validator("w9_completed")
    @classmethod
    def _must_confirm(cls, v: bool) -> bool:
        if not v:
            raise ValueError("Confirm that you have completed and saved your W-9 form")
        return v


# ── Step: Identity documents (payroll onboarding only) ──────

class DocumentsData(BaseModel):
    drivers_license_url: str | None = None
    social_security_card_url: str | None = None


class DocumentsComplete(DocumentsData):
    drivers_license_url: RequiredStr
    social_security_card_url: RequiredStr


# ── Step: Direct deposit (payroll onboarding only) ──────────

class DirectDepositData(BaseModel):
    bank_routing_number: str | None = None
    bank_account_number: str | None = None
    account_type: str | None = None
    direct_deposit_form_url: str | None = None
    direct_deposit_confirmed: bool | None = None


class DirectDepositComplete(DirectDepositData):
    bank_routing_number: RequiredStr
    bank_account_number: RequiredStr
    account_type: AccountType
    direct_deposit_confirmed: bool

    @field_validator("bank_routing_number")
    @classmethod
    def _check_routing(cls, v: str) -> str:
        return validate_routing_number(v)

    @field_validator("bank_account_number")
    @classmethod
    def _check_account(cls, v: str) -> str:
        return validate_account_number(v)

    @field_validator("direct_deposit_confirmed")
    @classmethod
    def _must_confirm(cls, v: bool) -> bool:
        if not v:
            raise ValueError("Confirm your direct deposit details")
        return v


# ── Step: Voice pitch (optional but encouraged) ─────────────

class VoicePitchData(BaseModel):
    voice_recording_url: str | None = None


class VoicePitchComplete(VoicePitchData):
    pass


# ── Step: Task acknowledgment ───────────────────────────────

class TasksData(BaseModel):
    acknowledged_task_ids: list[str] | None = None


class TasksComplete(TasksData):
    pass


# ── Step: Review & submit ───────────────────────────────────

class ReviewData(BaseModel):
    pass


class ReviewComplete(ReviewData):
    pass


# ── Wizard requests / responses ─────────────────────────────

class StepInfo(BaseModel):
    index: int
    key: str
    title: str
    description: str


class WizardStartRequest(BaseModel):
    collect_payroll_documents: bool | None = None


class StepTransitionRequest(BaseModel):
    """Client-held session state plus the buffered data for the current step."""
    step_index: int = 1
    data: dict = {}
    # Only read when the first save creates the submission
    collect_payroll_documents: bool | None = None
    # Client-generated key that makes a retried first step resume the same draft
    client_token: Annotated[str, StringConstraints(strip_whitespace=True, min_length=8, max_length=64)] | None = None


class AutosaveRequest(BaseModel):
    step_key: str
    data: dict = {}


class JumpRequest(BaseModel):
    step_index: int
    target_index: int


class WizardProgress(BaseModel):
    submission_id: str | None
    status: str
    step_index: int
    step_key: str
    current_step: int
    total_steps: int
    steps: list[StepInfo]
    data: dict = {}
    # Whole record (masked) on the review step
    summary: dict | None = None
    generated_email: str | None = None
    # Shown exactly once, on the transition that issued credentials
    temporary_password: str | None = None
    warnings: list[str] = []


class SubmitResponse(BaseModel):
    submission_id: str
    status: str
    submitted_at: datetime | None
    already_submitted: bool = False
    generated_email: str | None = None
    username: str | None = None
    # Shown exactly once, at the moment credentials are issued
    temporary_password: str | None = None
    warnings: list[str] = []


class QualityIssue(BaseModel):
    type: Literal["too_dark", "too_bright", "dark_pixels", "low_resolution"]
    severity: Literal["low", "medium", "high"]
    message: str
    suggestion: str


class BadgePhotoResponse(BaseModel):
    badge_photo_url: str
    width: int
    height: int
    quality_issues: list[QualityIssue] = []


class UploadResponse(BaseModel):
    field: str
    path: str
    url: str


class OptionItem(BaseModel):
    id: str
    name: str
    team_id: str | None = None


class OnboardingOptions(BaseModel):
    teams: list[OptionItem]
    managers: list[OptionItem]
    recruiters: list[OptionItem]


class TaskItem(BaseModel):
    id: str
    title: str
    description: str | None = None
    manager_name: str | None = None
