"""Onboarding wizard: the applicant-facing, unauthenticated API.

Endpoints:
  GET   /api/onboarding/steps            → step list for a hypothetical record
  GET   /api/onboarding/options          → teams, managers, recruiters
  POST  /api/onboarding/                 → initial progress (nothing saved yet)
  POST  /api/onboarding/next             → save step 1 and create the draft
  GET   /api/onboarding/{id}             → resume: progress + saved data
  POST  /api/onboarding/{id}/next        → validate, save, advance
  POST  /api/onboarding/{id}/back        → previous step, no write
  POST  /api/onboarding/{id}/jump        → go to an already-completed step
  PATCH /api/onboarding/{id}/draft       → autosave buffered edits
  POST  /api/onboarding/{id}/submit      → final submission
  POST  /api/onboarding/{id}/badge-photo → upload + adjust + export badge photo
  POST  /api/onboarding/{id}/documents/{kind} → private document upload
  POST  /api/onboarding/{id}/voice-pitch → voice recording upload
  GET   /api/onboarding/{id}/tasks       → tasks for the chosen manager/team

The submission id is the applicant's only key; the client holds it along
with the step position and sends both back on every call.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from app.config import settings
from app.middleware.exceptions import DraftSaveError, WizardClosedError
from app.schemas.onboarding import (
    AutosaveRequest,
    BadgePhotoResponse,
    JumpRequest,
    OnboardingOptions,
    StepInfo,
    StepTransitionRequest,
    SubmitResponse,
    TaskItem,
    UploadResponse,
    WizardProgress,
    WizardStartRequest,
)
from app.services import badge_photo, step_registry
from app.services.lookups import load_options, tasks_for
from app.services.pipeline import OnboardingServices, get_services, get_storage
from app.services.storage import LocalFileStorage, StorageError
from app.services.store import StoreUnavailableError
from app.services.submission import SubmissionOutcome
from app.services.wizard import WizardSession, WizardStateMachine
from app.utils.masking import mask_account_number, submission_view

logger = logging.getLogger(__name__)

router = APIRouter()

DOCUMENT_KINDS = {
    "drivers_license": ("documents", "drivers_license_url"),
    "social_security_card": ("documents", "social_security_card_url"),
    "direct_deposit_form": ("direct_deposit", "direct_deposit_form_url"),
}
DOCUMENT_TYPES = {"image/jpeg", "image/png", "image/webp", "application/pdf"}
AUDIO_TYPES = {"audio/webm", "audio/ogg", "audio/mpeg", "audio/mp4", "audio/wav", "audio/x-wav"}
MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
MAX_AUDIO_BYTES = 25 * 1024 * 1024


# ── Helpers ──────────────────────────────────────────────────

def _progress(machine: WizardStateMachine) -> WizardProgress:
    step = machine.current
    record = machine.record or {}
    data = machine.step_data(step.key)
    if "bank_account_number" in data:
        data["bank_account_number"] = mask_account_number(data["bank_account_number"])

    return WizardProgress(
        submission_id=machine.session.submission_id,
        status=record.get("status", "draft"),
        step_index=machine.session.step_index,
        step_key=step.key,
        current_step=record.get("current_step", 1),
        total_steps=machine.total_steps,
        steps=step_registry.describe(machine.context()),
        data=data,
        summary=submission_view(record) if step.key == "review" and record else None,
        generated_email=record.get("generated_email"),
        temporary_password=machine.issued.password if machine.issued else None,
        warnings=machine.warnings,
    )


def _submit_response(outcome: SubmissionOutcome) -> SubmitResponse:
    return SubmitResponse(
        submission_id=outcome.submission_id,
        status=outcome.status,
        submitted_at=outcome.submitted_at,
        already_submitted=outcome.already_submitted,
        generated_email=outcome.generated_email,
        username=outcome.username,
        temporary_password=outcome.credentials.password if outcome.credentials else None,
        warnings=outcome.warnings,
    )


def _new_machine(
    services: OnboardingServices,
    collect_payroll_documents: bool | None,
    client_token: str | None = None,
) -> WizardStateMachine:
    if collect_payroll_documents is None:
        collect_payroll_documents = settings.collect_payroll_documents_default
    session = WizardSession(
        collect_payroll_documents=collect_payroll_documents,
        client_token=client_token,
    )
    return WizardStateMachine(
        session,
        services.drafts,
        services.credentials,
        services.submit_handler,
        notifier=services.notifier,
    )


async def _read_upload(file: UploadFile, allowed: set[str], max_bytes: int) -> bytes:
    if (file.content_type or "").lower() not in allowed:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file type: {file.content_type}",
        )
    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The uploaded file is empty")
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File must be {max_bytes // (1024 * 1024)}MB or smaller",
        )
    return data


async def _open_submission(services: OnboardingServices, submission_id: str) -> dict:
    record = await services.drafts.load(submission_id)
    if record["status"] in ("submitted", "completed"):
        raise WizardClosedError()
    return record


def _extension(filename: str | None, default: str) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
        if ext.isalnum() and len(ext) <= 5:
            return ext
    return default


# ── Step metadata ───────────────────────────────────────────

@router.get("/steps", response_model=list[StepInfo])
async def list_steps(same_as_mailing: bool = True, collect_payroll_documents: bool = False):
    """The step sequence an applicant with these answers would see."""
    return step_registry.describe({
        "same_as_mailing": same_as_mailing,
        "collect_payroll_documents": collect_payroll_documents,
    })


@router.get("/options", response_model=OnboardingOptions)
async def get_options(services: OnboardingServices = Depends(get_services)):
    try:
        return await load_options(services.store)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail="Options are temporarily unavailable") from exc


# ── Session start ────────────────────────────────────────────

@router.post("/", response_model=WizardProgress)
async def start_wizard(
    body: WizardStartRequest,
    services: OnboardingServices = Depends(get_services),
):
    """Initial progress for a new applicant. Nothing is stored until step 1 is saved."""
    return _progress(_new_machine(services, body.collect_payroll_documents))


@router.post("/next", response_model=WizardProgress, status_code=status.HTTP_201_CREATED)
async def first_step(
    body: StepTransitionRequest,
    services: OnboardingServices = Depends(get_services),
):
    """Save the first step for a new applicant; the response carries the new id.

    A retry carrying the same `client_token` replays step 1 on the draft
    the first attempt created instead of starting another one.
    """
    existing = None
    if body.client_token:
        existing = await services.drafts.find_by_client_token(body.client_token)
    if existing is not None:
        logger.info("Replaying first step for %s", existing["id"])
        machine = await services.resume(existing["id"], 1)
    else:
        machine = _new_machine(services, body.collect_payroll_documents, body.client_token)
    await machine.next(body.data)
    return _progress(machine)


# ── Resume + navigation ─────────────────────────────────────

@router.get("/{submission_id}", response_model=WizardProgress)
async def resume_wizard(
    submission_id: str,
    services: OnboardingServices = Depends(get_services),
):
    machine = await services.resume(submission_id)
    return _progress(machine)


@router.post("/{submission_id}/next", response_model=WizardProgress)
async def next_step(
    submission_id: str,
    body: StepTransitionRequest,
    services: OnboardingServices = Depends(get_services),
):
    machine = await services.resume(submission_id, body.step_index)
    await machine.next(body.data)
    return _progress(machine)


@router.post("/{submission_id}/back", response_model=WizardProgress)
async def previous_step(
    submission_id: str,
    body: StepTransitionRequest,
    services: OnboardingServices = Depends(get_services),
):
    machine = await services.resume(submission_id, body.step_index)
    # Back never writes; unsaved edits stay with the client
    await machine.back(body.data)
    return _progress(machine)


@router.post("/{submission_id}/jump", response_model=WizardProgress)
async def jump_to_step(
    submission_id: str,
    body: JumpRequest,
    services: OnboardingServices = Depends(get_services),
):
    machine = await services.resume(submission_id, body.step_index)
    await machine.jump_to(body.target_index)
    return _progress(machine)


@router.patch("/{submission_id}/draft", response_model=WizardProgress)
async def autosave_draft(
    submission_id: str,
    body: AutosaveRequest,
    services: OnboardingServices = Depends(get_services),
):
    """Store buffered edits without validation or advancing."""
    try:
        step_registry.get_step(body.step_key)
    except step_registry.UnknownStepError:
        raise HTTPException(status_code=422, detail=f"Unknown step: {body.step_key}")

    await _open_submission(services, submission_id)
    await services.drafts.autosave(submission_id, body.step_key, body.data)
    machine = await services.resume(submission_id)
    return _progress(machine)


@router.post("/{submission_id}/submit", response_model=SubmitResponse)
async def submit_wizard(
    submission_id: str,
    body: StepTransitionRequest | None = None,
    services: OnboardingServices = Depends(get_services),
):
    step_index = body.step_index if body else None
    machine = await services.resume(submission_id, step_index)
    outcome = await machine.submit(body.data if body else None)
    return _submit_response(outcome)


# ── Uploads ──────────────────────────────────────────────────

@router.post("/{submission_id}/badge-photo", response_model=BadgePhotoResponse)
async def upload_badge_photo(
    submission_id: str,
    file: UploadFile = File(...),
    brightness: float = Form(100),
    contrast: float = Form(100),
    rotation_degrees: float = Form(0),
    crop_left: int | None = Form(None),
    crop_top: int | None = Form(None),
    crop_right: int | None = Form(None),
    crop_bottom: int | None = Form(None),
    badge_card: bool = Form(False),
    services: OnboardingServices = Depends(get_services),
):
    """Process the photo and store the exported image on the submission."""
    record = await _open_submission(services, submission_id)

    image = badge_photo.load_image(await file.read(), file.content_type)
    crop = None
    if None not in (crop_left, crop_top, crop_right, crop_bottom):
        crop = (crop_left, crop_top, crop_right, crop_bottom)
    adjusted = badge_photo.apply_adjustment(image, badge_photo.BadgeAdjustment(
        brightness=brightness,
        contrast=contrast,
        rotation_degrees=rotation_degrees,
        crop=crop,
    ))
    issues = badge_photo.analyze_quality(adjusted)

    card = None
    if badge_card:
        card = {
            "full_name": f"{record.get('first_name') or ''} {record.get('last_name') or ''}",
            "email": record.get("generated_email"),
        }
    data_url = badge_photo.export_final(adjusted, badge_card=card)

    await services.drafts.autosave(submission_id, "badge_photo", {"badge_photo_url": data_url})
    logger.info("Badge photo stored for %s (%d quality issues)", submission_id, len(issues))
    return BadgePhotoResponse(
        badge_photo_url=data_url,
        width=adjusted.width,
        height=adjusted.height,
        quality_issues=issues,
    )


@router.post("/{submission_id}/documents/{kind}", response_model=UploadResponse)
async def upload_document(
    submission_id: str,
    kind: str,
    file: UploadFile = File(...),
    services: OnboardingServices = Depends(get_services),
    storage: LocalFileStorage = Depends(get_storage),
):
    """Store an identity or payroll document in the private bucket."""
    if kind not in DOCUMENT_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown document type: {kind}")
    record = await _open_submission(services, submission_id)
    step_key, field = DOCUMENT_KINDS[kind]
    if step_registry.position_of(record, step_key) is None:
        raise HTTPException(status_code=422, detail="Payroll documents are not collected for this submission")

    data = await _read_upload(file, DOCUMENT_TYPES, MAX_DOCUMENT_BYTES)
    path = f"{submission_id}/{kind}-{uuid.uuid4().hex[:8]}.{_extension(file.filename, 'bin')}"
    try:
        url = await storage.upload("employee-documents", path, data)
    except StorageError as exc:
        raise DraftSaveError("The document could not be stored. Please try again.") from exc

    # The record keeps the object path; URLs are signed on every read
    await services.drafts.autosave(submission_id, step_key, {field: path})
    return UploadResponse(field=field, path=path, url=url)


@router.post("/{submission_id}/voice-pitch", response_model=UploadResponse)
async def upload_voice_pitch(
    submission_id: str,
    file: UploadFile = File(...),
    services: OnboardingServices = Depends(get_services),
    storage: LocalFileStorage = Depends(get_storage),
):
    await _open_submission(services, submission_id)

    data = await _read_upload(file, AUDIO_TYPES, MAX_AUDIO_BYTES)
    path = f"{submission_id}/pitch-{uuid.uuid4().hex[:8]}.{_extension(file.filename, 'webm')}"
    try:
        url = await storage.upload("voice-recordings", path, data)
    except StorageError as exc:
        raise DraftSaveError("The recording could not be stored. Please try again.") from exc

    await services.drafts.autosave(submission_id, "voice_pitch", {"voice_recording_url": url})
    return UploadResponse(field="voice_recording_url", path=path, url=url)


# ── Tasks ────────────────────────────────────────────────────

@router.get("/{submission_id}/tasks", response_model=list[TaskItem])
async def list_tasks(
    submission_id: str,
    services: OnboardingServices = Depends(get_services),
):
    record = await services.drafts.load(submission_id)
    try:
        return await tasks_for(services.store, record.get("manager_id"), record.get("team_id"))
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail="Tasks are temporarily unavailable") from exc
