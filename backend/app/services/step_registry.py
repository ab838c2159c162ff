"""Step registry: the canonical, ordered list of onboarding wizard steps.

Each StepDefinition carries:
  - the draft schema (all-optional) and the completion schema,
  - the fields that must be present to complete it,
  - a pure `required` predicate over the submission record that decides
    whether the step is part of the sequence for that applicant,
  - an optional `derive` hook that stamps step-owned timestamps on save.

Fixed order:
  basic_info → address → [shipping_address] → sizing → badge_photo → team
  → w9 → [documents] → [direct_deposit] → voice_pitch → tasks → review

Bracketed steps are conditional.  With the defaults (`same_as_mailing`
true, no payroll documents) the sequence is nine steps long.

The registry is checked once at import; a definition that names a field
its schema doesn't have raises StepConfigurationError immediately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ValidationError

from app.schemas.onboarding import (
    AddressComplete,
    AddressData,
    BadgePhotoComplete,
    BadgePhotoData,
    BasicInfoComplete,
    BasicInfoData,
    DirectDepositComplete,
    DirectDepositData,
    DocumentsComplete,
    DocumentsData,
    FieldError,
    ReviewComplete,
    ReviewData,
    ShippingAddressComplete,
    ShippingAddressData,
    SizingComplete,
    SizingData,
    StepInfo,
    TasksComplete,
    TasksData,
    TeamComplete,
    TeamData,
    ValidationResult,
    VoicePitchComplete,
    VoicePitchData,
    W9Complete,
    W9Data,
)
from app.utils.clock import utcnow

SHIPPING_FIELDS = (
    "shipping_street_address",
    "shipping_city",
    "shipping_state",
    "shipping_zip_code",
)

REQUIRED_MESSAGE = "This field is required"

# Boolean columns stored NOT NULL; a draft `null` for these means "unchanged"
NON_NULLABLE_FIELDS = frozenset({"same_as_mailing", "w9_completed", "direct_deposit_confirmed"})


class UnknownStepError(KeyError):
    """A step key that isn't in the registry (programming error)."""


class StepConfigurationError(RuntimeError):
    """A StepDefinition that doesn't match its own schema."""


def _always(record: Mapping[str, Any]) -> bool:
    return True


def _ships_elsewhere(record: Mapping[str, Any]) -> bool:
    # A record that hasn't answered yet defaults to "same as mailing"
    return record.get("same_as_mailing") is False


def _collects_payroll(record: Mapping[str, Any]) -> bool:
    return bool(record.get("collect_payroll_documents"))


# ── Derived fields ──────────────────────────────────────────

def _derive_address(data: dict) -> dict:
    # Shipping is not stored independently while it mirrors mailing
    if data.get("same_as_mailing"):
        return {name: None for name in SHIPPING_FIELDS}
    return {}


def _derive_w9(data: dict) -> dict:
    if "w9_completed" not in data:
        return {}
    return {"w9_submitted_at": utcnow() if data["w9_completed"] else None}


def _derive_documents(data: dict) -> dict:
    if data.get("drivers_license_url") and data.get("social_security_card_url"):
        return {"documents_uploaded_at": utcnow()}
    return {}


def _derive_direct_deposit(data: dict) -> dict:
    if data.get("direct_deposit_confirmed"):
        return {"direct_deposit_completed_at": utcnow()}
    return {}


def _derive_voice(data: dict) -> dict:
    if data.get("voice_recording_url"):
        return {"voice_recording_completed_at": utcnow()}
    return {}


def _derive_tasks(data: dict) -> dict:
    if data.get("acknowledged_task_ids"):
        return {"tasks_acknowledged_at": utcnow()}
    return {}


# ── Definitions ─────────────────────────────────────────────

@dataclass(frozen=True)
class StepDefinition:
    order: int
    key: str
    title: str
    description: str
    data_schema: type[BaseModel]
    complete_schema: type[BaseModel]
    required_fields: tuple[str, ...] = ()
    required: Callable[[Mapping[str, Any]], bool] = _always
    derive: Callable[[dict], dict] | None = None
    derived_fields: tuple[str, ...] = field(default=())

    @property
    def fields(self) -> tuple[str, ...]:
        """Columns this step reads and writes on the submission."""
        return tuple(self.data_schema.model_fields)

    @property
    def owned_fields(self) -> tuple[str, ...]:
        return self.fields + self.derived_fields

    def info(self, index: int) -> StepInfo:
        return StepInfo(index=index, key=self.key, title=self.title, description=self.description)


STEP_DEFINITIONS: tuple[StepDefinition, ...] = (
    StepDefinition(
        order=1,
        key="basic_info",
        title="Basic Information",
        description="Name and contact details",
        data_schema=BasicInfoData,
        complete_schema=BasicInfoComplete,
        required_fields=("first_name", "last_name", "personal_email", "cell_phone"),
    ),
    StepDefinition(
        order=2,
        key="address",
        title="Address Information",
        description="Mailing address",
        data_schema=AddressData,
        complete_schema=AddressComplete,
        required_fields=("street_address", "city", "state", "zip_code", "same_as_mailing"),
        derive=_derive_address,
        derived_fields=SHIPPING_FIELDS,
    ),
    StepDefinition(
        order=3,
        key="shipping_address",
        title="Shipping Address",
        description="Where we ship your gear",
        data_schema=ShippingAddressData,
        complete_schema=ShippingAddressComplete,
        required_fields=SHIPPING_FIELDS,
        required=_ships_elsewhere,
    ),
    StepDefinition(
        order=4,
        key="sizing",
        title="Gear Sizing",
        description="Uniform and equipment sizes",
        data_schema=SizingData,
        complete_schema=SizingComplete,
        required_fields=("gender", "shirt_size", "coat_size", "pant_size", "shoe_size", "hat_size"),
    ),
    StepDefinition(
        order=5,
        key="badge_photo",
        title="Badge Photo",
        description="Upload and edit your badge photo",
        data_schema=BadgePhotoData,
        complete_schema=BadgePhotoComplete,
    ),
    StepDefinition(
        order=6,
        key="team",
        title="Team Assignment",
        description="Select team, manager, and recruiter",
        data_schema=TeamData,
        complete_schema=TeamComplete,
        required_fields=("team_id", "manager_id", "recruiter_id"),
    ),
    StepDefinition(
        order=7,
        key="w9",
        title="W-9 Form",
        description="Complete tax documentation",
        data_schema=W9Data,
        complete_schema=W9Complete,
        required_fields=("w9_completed",),
        derive=_derive_w9,
        derived_fields=("w9_submitted_at",),
    ),
    StepDefinition(
        order=8,
        key="documents",
        title="Document Upload",
        description="Upload required identification documents",
        data_schema=DocumentsData,
        complete_schema=DocumentsComplete,
        required_fields=("drivers_license_url", "social_security_card_url"),
        required=_collects_payroll,
        derive=_derive_documents,
        derived_fields=("documents_uploaded_at",),
    ),
    StepDefinition(
        order=9,
        key="direct_deposit",
        title="Direct Deposit",
        description="Set up your direct deposit information",
        data_schema=DirectDepositData,
        complete_schema=DirectDepositComplete,
        required_fields=(
            "bank_routing_number",
            "bank_account_number",
            "account_type",
            "direct_deposit_confirmed",
        ),
        required=_collects_payroll,
        derive=_derive_direct_deposit,
        derived_fields=("direct_deposit_completed_at",),
    ),
    StepDefinition(
        order=10,
        key="voice_pitch",
        title="Voice Pitch",
        description="Record your pitch to join our team",
        data_schema=VoicePitchData,
        complete_schema=VoicePitchComplete,
        derive=_derive_voice,
        derived_fields=("voice_recording_completed_at",),
    ),
    StepDefinition(
        order=11,
        key="tasks",
        title="Task Acknowledgment",
        description="Review and acknowledge your tasks",
        data_schema=TasksData,
        complete_schema=TasksComplete,
        derive=_derive_tasks,
        derived_fields=("tasks_acknowledged_at",),
    ),
    StepDefinition(
        order=12,
        key="review",
        title="Review & Submit",
        description="Review and submit your application",
        data_schema=ReviewData,
        complete_schema=ReviewComplete,
    ),
)


def _check_registry(definitions: tuple[StepDefinition, ...]) -> dict[str, StepDefinition]:
    by_key: dict[str, StepDefinition] = {}
    for step in definitions:
        if step.key in by_key:
            raise StepConfigurationError(f"Duplicate step key: {step.key}")
        unknown = [f for f in step.required_fields if f not in step.complete_schema.model_fields]
        if unknown:
            raise StepConfigurationError(
                f"Step '{step.key}' requires fields missing from its schema: {', '.join(unknown)}"
            )
        if set(step.complete_schema.model_fields) != set(step.data_schema.model_fields):
            raise StepConfigurationError(
                f"Step '{step.key}' draft and completion schemas disagree on fields"
            )
        by_key[step.key] = step
    orders = [s.order for s in definitions]
    if orders != sorted(orders):
        raise StepConfigurationError("Step definitions must be listed in order")
    return by_key


_BY_KEY: dict[str, StepDefinition] = _check_registry(STEP_DEFINITIONS)


# ── Public API ──────────────────────────────────────────────

def get_step(step_key: str) -> StepDefinition:
    try:
        return _BY_KEY[step_key]
    except KeyError:
        raise UnknownStepError(step_key) from None


def steps_for(record: Mapping[str, Any] | None) -> list[StepDefinition]:
    """The ordered steps that apply to this submission."""
    record = record or {}
    return [step for step in STEP_DEFINITIONS if step.required(record)]


def step_at(record: Mapping[str, Any] | None, index: int) -> StepDefinition:
    """1-indexed position lookup, clamped to the sequence."""
    steps = steps_for(record)
    index = max(1, min(index, len(steps)))
    return steps[index - 1]


def position_of(record: Mapping[str, Any] | None, step_key: str) -> int | None:
    for i, step in enumerate(steps_for(record), start=1):
        if step.key == step_key:
            return i
    return None


def step_payload(record: Mapping[str, Any] | None, step_key: str) -> dict:
    """Extract one step's flat key/value bag from a submission record."""
    step = get_step(step_key)
    record = record or {}
    return {name: record.get(name) for name in step.fields}


def _to_field_errors(step_key: str, exc: ValidationError) -> list[FieldError]:
    errors = []
    for err in exc.errors():
        field_name = ".".join(str(loc) for loc in err["loc"]) or "__all__"
        if err["type"] == "missing" or err.get("input") in (None, ""):
            message = REQUIRED_MESSAGE
        else:
            message = err["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
        errors.append(FieldError(step=step_key, field=field_name, message=message))
    return errors


def validate(step_key: str, step_data: Mapping[str, Any] | None) -> ValidationResult:
    """Validate a step's data for completion.

    Expected bad input never raises; an unknown step key does.
    """
    step = get_step(step_key)
    data = {k: v for k, v in (step_data or {}).items() if k in step.fields}
    try:
        step.complete_schema.model_validate(data)
    except ValidationError as exc:
        return ValidationResult(step=step_key, errors=_to_field_errors(step_key, exc))
    return ValidationResult(step=step_key)


def clean(step_key: str, step_data: Mapping[str, Any] | None, *, complete: bool) -> tuple[dict, list[FieldError]]:
    """Parse step data into the columns it writes.

    `complete=False` is the draft path: types are coerced but nothing is
    required.  Only keys the client actually sent are returned, so a
    partial autosave never blanks a field it didn't mention.
    """
    step = get_step(step_key)
    schema = step.complete_schema if complete else step.data_schema
    data = {k: v for k, v in (step_data or {}).items() if k in step.fields}
    try:
        parsed = schema.model_validate(data)
    except ValidationError as exc:
        return {}, _to_field_errors(step_key, exc)
    values = parsed.model_dump(exclude_unset=True)
    return {
        k: v for k, v in values.items()
        if k in step.fields and not (v is None and k in NON_NULLABLE_FIELDS)
    }, []


def derived_values(step_key: str, cleaned: dict, existing: Mapping[str, Any] | None = None) -> dict:
    """Columns the step stamps on save, given the record being updated.

    A completion timestamp that is already set is kept unless one of the
    step's own values changes, so re-saving identical data leaves it alone.
    """
    step = get_step(step_key)
    if not step.derive:
        return {}
    derived = step.derive(cleaned)
    if existing is None:
        return derived
    unchanged = all(existing.get(k) == v for k, v in cleaned.items())
    return {
        k: v for k, v in derived.items()
        if not (unchanged and v is not None and existing.get(k) is not None)
    }


def validate_record(record: Mapping[str, Any]) -> dict[str, list[FieldError]]:
    """Validate every applicable step against a full record.

    Returns {step_key: errors} for the failing steps only.
    """
    failing: dict[str, list[FieldError]] = {}
    for step in steps_for(record):
        result = validate(step.key, step_payload(record, step.key))
        if not result.ok:
            failing[step.key] = result.errors
    return failing


def describe(record: Mapping[str, Any] | None) -> list[StepInfo]:
    return [step.info(i) for i, step in enumerate(steps_for(record), start=1)]
