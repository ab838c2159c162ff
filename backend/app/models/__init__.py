"""Aggregate model imports for Alembic auto-detection."""

from app.models.onboarding_submission import OnboardingSubmission, SubmissionStatus  # noqa: F401
from app.models.email_address import EmailAddress  # noqa: F401
from app.models.organization import Manager, Recruiter, Task, TaskAssignment, Team  # noqa: F401
from app.models.webhook_endpoint import WebhookEndpoint  # noqa: F401
from app.models.staff_user import StaffRole, StaffUser  # noqa: F401
from app.models.activity_log import ActivityLog  # noqa: F401
