"""Company credentials for new hires.

Once the basic information step has a first and last name, the applicant
gets a company mailbox `first.last@<domain>` (falling back to
`first.last1@…` through `first.last99@…`), a username equal to the
mailbox's local part, and a random password.

Only the bcrypt hash of the password is stored.  The plaintext is
returned exactly once, in the IssuedCredentials of the call that
generated it.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass
from typing import Any, Mapping

from app.auth.password import hash_password
from app.config import settings
from app.services.store import (
    DataStore,
    DuplicateRecordError,
    RecordRejectedError,
    StoreUnavailableError,
)
from app.utils.activity import record_activity
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

MAX_EMAIL_VARIANTS = 99
NAME_PART_MAX_LENGTH = 20

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%&*"


class CredentialIssuanceError(Exception):
    """Credentials could not be issued; the wizard carries on without them."""


@dataclass(frozen=True)
class IssuedCredentials:
    email: str
    username: str
    password: str  # plaintext, shown once

    def __repr__(self) -> str:
        return f"IssuedCredentials(email={self.email!r}, username={self.username!r})"


def normalize_name_part(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())[:NAME_PART_MAX_LENGTH]


def email_candidates(first_name: str, last_name: str, domain: str):
    """Yield the base address, then numbered variants 1..99."""
    local = f"{normalize_name_part(first_name)}.{normalize_name_part(last_name)}"
    yield f"{local}@{domain}"
    for i in range(1, MAX_EMAIL_VARIANTS + 1):
        yield f"{local}{i}@{domain}"


def has_credentials(record: Mapping[str, Any]) -> bool:
    return bool(record.get("generated_email") and record.get("password_hash"))


class CredentialIssuer:
    def __init__(
        self,
        store: DataStore,
        *,
        domain: str | None = None,
        password_length: int | None = None,
    ):
        self.store = store
        self.domain = domain or settings.company_email_domain
        self.password_length = password_length or settings.generated_password_length

    # ── Credential primitives ──────────────────────────────────

    def generate_password(self) -> str:
        """Random password with at least one letter and one digit."""
        while True:
            password = "".join(
                secrets.choice(PASSWORD_ALPHABET) for _ in range(self.password_length)
            )
            if any(c.isalpha() for c in password) and any(c.isdigit() for c in password):
                return password

    def hash_password(self, plaintext: str) -> str:
        return hash_password(plaintext)

    async def reserve_email(self, first_name: str, last_name: str) -> str:
        """Claim the first free company address in the email registry.

        The unique constraint on `email_addresses.email` decides races:
        a concurrent claim of the same address moves on to the next
        variant.
        """
        if not normalize_name_part(first_name) or not normalize_name_part(last_name):
            raise CredentialIssuanceError("First and last name are required to generate an email")

        for candidate in email_candidates(first_name, last_name, self.domain):
            try:
                taken = await self.store.query("email_addresses", {"email": candidate}, limit=1)
                if taken:
                    continue
                await self.store.create(
                    "email_addresses",
                    {
                        "email": candidate,
                        "first_name": first_name,
                        "last_name": last_name,
                        "is_active": True,
                    },
                )
            except DuplicateRecordError:
                continue
            except StoreUnavailableError as exc:
                raise CredentialIssuanceError(f"Email registry unavailable: {exc}") from exc
            return candidate

        raise CredentialIssuanceError("Unable to generate unique email address")

    # ── Issuance ───────────────────────────────────────────────

    async def issue(self, submission_id: str, record: Mapping[str, Any]) -> IssuedCredentials | None:
        """Issue and store credentials unless the submission already has them.

        Returns None when credentials already exist.  Raises
        CredentialIssuanceError on any failure.
        """
        if has_credentials(record):
            return None

        first_name = (record.get("first_name") or "").strip()
        last_name = (record.get("last_name") or "").strip()
        email = await self.reserve_email(first_name, last_name)
        username = email.split("@", 1)[0]
        password = self.generate_password()

        try:
            await self.store.update(
                "onboarding_submissions",
                submission_id,
                {
                    "generated_email": email,
                    "username": username,
                    "password_hash": self.hash_password(password),
                    "credentials_issued_at": utcnow(),
                },
            )
        except (StoreUnavailableError, RecordRejectedError) as exc:
            raise CredentialIssuanceError(f"Could not store credentials: {exc}") from exc

        logger.info("Issued company email %s for submission %s", email, submission_id)
        await record_activity(
            self.store,
            action="credentials_issued",
            entity_id=submission_id,
            summary=f"Company email {email} issued",
        )
        return IssuedCredentials(email=email, username=username, password=password)
