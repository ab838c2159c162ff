"""Tests for company credential issuance."""

import pytest

from app.auth.password import verify_password
from app.services.credentials import (
    CredentialIssuanceError,
    CredentialIssuer,
    email_candidates,
    normalize_name_part,
)


@pytest.mark.unit
class TestEmailCandidates:

    def test_normalize_strips_punctuation_and_case(self):
        assert normalize_name_part("O'Brien-Smith") == "obriensmith"
        assert normalize_name_part("  Anne Marie ") == "annemarie"

    def test_candidates_start_with_base_then_number(self):
        candidates = list(email_candidates("Jane", "Doe", "triguardroofing.com"))
        assert candidates[0] == "jane.doe@triguardroofing.com"
        assert candidates[1] == "jane.doe1@triguardroofing.com"
        assert candidates[-1] == "jane.doe99@triguardroofing.com"
        assert len(candidates) == 100


@pytest.mark.unit
@pytest.mark.asyncio
class TestCredentialIssuer:

    async def _submission(self, store, **fields) -> str:
        return await store.create("onboarding_submissions", {
            "status": "draft", "current_step": 2, **fields,
        })

    async def test_generated_password_has_letter_and_digit(self, credentials):
        for _ in range(20):
            password = credentials.generate_password()
            assert len(password) == credentials.password_length
            assert any(c.isalpha() for c in password)
            assert any(c.isdigit() for c in password)

    async def test_issue_stores_hash_only(self, credentials, store):
        submission_id = await self._submission(store, first_name="Jane", last_name="Doe")
        record = await store.get("onboarding_submissions", submission_id)

        issued = await credentials.issue(submission_id, record)

        assert issued.email == "jane.doe@triguardroofing.com"
        assert issued.username == "jane.doe"
        assert issued.password not in repr(issued)

        stored = await store.get("onboarding_submissions", submission_id)
        assert stored["generated_email"] == issued.email
        assert stored["password_hash"] != issued.password
        assert verify_password(issued.password, stored["password_hash"])
        assert stored["credentials_issued_at"] is not None

    async def test_same_name_gets_numbered_variant(self, credentials, store):
        first = await self._submission(store, first_name="Jane", last_name="Doe")
        second = await self._submission(store, first_name="Jane", last_name="Doe")

        a = await credentials.issue(first, await store.get("onboarding_submissions", first))
        b = await credentials.issue(second, await store.get("onboarding_submissions", second))

        assert a.email == "jane.doe@triguardroofing.com"
        assert b.email == "jane.doe1@triguardroofing.com"
        registry = await store.query("email_addresses", order_by="email")
        assert [r["email"] for r in registry] == [a.email, b.email]

    async def test_issue_is_noop_when_credentials_exist(self, credentials, store):
        submission_id = await self._submission(
            store, first_name="Jane", last_name="Doe",
            generated_email="jane.doe@triguardroofing.com", password_hash="x",
        )
        record = await store.get("onboarding_submissions", submission_id)
        assert await credentials.issue(submission_id, record) is None

    async def test_missing_name_raises(self, credentials, store):
        submission_id = await self._submission(store, first_name="Jane")
        record = await store.get("onboarding_submissions", submission_id)
        with pytest.raises(CredentialIssuanceError):
            await credentials.issue(submission_id, record)

    async def test_exhausted_variants_raise(self, store):
        issuer = CredentialIssuer(store, domain="example.com")
        for candidate in email_candidates("Jane", "Doe", "example.com"):
            await store.create("email_addresses", {
                "email": candidate, "first_name": "Jane", "last_name": "Doe",
            })
        with pytest.raises(CredentialIssuanceError, match="unique email"):
            await issuer.reserve_email("Jane", "Doe")
