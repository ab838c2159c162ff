"""Pytest configuration and fixtures for TriGuard onboarding tests.

Every test gets a fresh in-memory SQLite database (aiosqlite), a
notification fan-out whose HTTP calls go to an httpx MockTransport, and
file storage under pytest's tmp_path.  Redis is switched off before the
app is imported, so rate limiting and lookup caching stay out of the way.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RESEND_API_KEY", "")

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.jwt import create_access_token
from app.auth.password import hash_password
from app.database import Base, get_db, get_session_factory
from app.main import app
from app.models import Manager, Recruiter, StaffRole, StaffUser, Task, Team
from app.services.credentials import CredentialIssuer
from app.services.drafts import DraftPersistenceService
from app.services.notifications import NotificationFanout
from app.services.pipeline import get_notifier, get_storage
from app.services.storage import LocalFileStorage
from app.services.store import SqlAlchemyDataStore
from app.services.submission import FinalSubmissionHandler
from app.services.wizard import WizardSession, WizardStateMachine


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database; StaticPool keeps it on one connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory) -> SqlAlchemyDataStore:
    return SqlAlchemyDataStore(session_factory, timeout=5.0)


# ── Outbound HTTP ────────────────────────────────────────────────

class RecordingTransport(httpx.MockTransport):
    """MockTransport that records requests; `fail_hosts` answer with 500."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.fail_hosts: set[str] = set()
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host in self.fail_hosts:
            return httpx.Response(500, text="upstream error")
        return httpx.Response(200, json={"ok": True})


@pytest.fixture
def http_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def notifier(store, http_transport) -> NotificationFanout:
    return NotificationFanout(store, transport=http_transport, timeout=2.0)


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "storage", "http://test/files")


# ── Pipeline services ────────────────────────────────────────────

@pytest.fixture
def drafts(store, notifier) -> DraftPersistenceService:
    return DraftPersistenceService(store, notifier)


@pytest.fixture
def credentials(store) -> CredentialIssuer:
    return CredentialIssuer(store, domain="triguardroofing.com")


@pytest.fixture
def submit_handler(store, credentials, notifier) -> FinalSubmissionHandler:
    return FinalSubmissionHandler(store, credentials, notifier)


@pytest.fixture
def new_machine(drafts, credentials, submit_handler, notifier):
    """Factory for a state machine on a brand-new session."""

    def _make(collect_payroll_documents: bool = False) -> WizardStateMachine:
        session = WizardSession(collect_payroll_documents=collect_payroll_documents)
        return WizardStateMachine(
            session, drafts, credentials, submit_handler, notifier=notifier,
        )

    return _make


# ── HTTP client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory, notifier, storage) -> AsyncGenerator[AsyncClient, None]:
    """Client against the ASGI app with database, notifier and storage overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

# Fixed ids so step data can be built without touching the database
TEAM_ID = "team-north"
MANAGER_ID = "manager-maria"
RECRUITER_ID = "recruiter-ray"
TASK_ID = "task-shadow"


@pytest_asyncio.fixture
async def org(db_session: AsyncSession) -> dict:
    """A team with one manager, one recruiter and one task."""
    db_session.add(Team(id=TEAM_ID, name="North Crew"))
    await db_session.flush()
    db_session.add_all([
        Manager(
            id=MANAGER_ID, first_name="Maria", last_name="Lopez",
            email="maria.lopez@example.com", team_id=TEAM_ID,
        ),
        Recruiter(id=RECRUITER_ID, first_name="Ray", last_name="Chen", email="ray.chen@example.com"),
    ])
    await db_session.flush()
    db_session.add(Task(
        id=TASK_ID, title="Shadow a roof inspection", manager_id=MANAGER_ID, team_id=TEAM_ID,
    ))
    await db_session.commit()

    return {
        "team_id": TEAM_ID,
        "manager_id": MANAGER_ID,
        "recruiter_id": RECRUITER_ID,
        "task_id": TASK_ID,
    }


@pytest.fixture
def step_data() -> dict:
    """Valid data for every step of the default and payroll sequences."""
    return {
        "basic_info": {
            "first_name": "Jane",
            "last_name": "Doe",
            "personal_email": "jane@example.com",
            "cell_phone": "(555) 123-4567",
            "employee_role": "ROOF_PRO",
        },
        "address": {
            "street_address": "123 Main St",
            "city": "Springfield",
            "state": "IL",
            "zip_code": "62701",
            "same_as_mailing": True,
        },
        "shipping_address": {
            "shipping_street_address": "9 Depot Rd",
            "shipping_city": "Peoria",
            "shipping_state": "IL",
            "shipping_zip_code": "61602",
        },
        "sizing": {
            "gender": "female",
            "shirt_size": "m",
            "coat_size": "m",
            "pant_size": "s",
            "shoe_size": "8.5",
            "hat_size": "m",
        },
        "badge_photo": {},
        "team": {
            "team_id": TEAM_ID,
            "manager_id": MANAGER_ID,
            "recruiter_id": RECRUITER_ID,
        },
        "w9": {"w9_completed": True},
        "documents": {
            "drivers_license_url": "sub/drivers_license.png",
            "social_security_card_url": "sub/social_security_card.png",
        },
        "direct_deposit": {
            "bank_routing_number": "011000015",
            "bank_account_number": "123456789",
            "account_type": "checking",
            "direct_deposit_confirmed": True,
        },
        "voice_pitch": {},
        "tasks": {"acknowledged_task_ids": [TASK_ID]},
        "review": {},
    }


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> StaffUser:
    user = StaffUser(
        email="admin@triguardroofing.com",
        full_name="Ada Admin",
        hashed_password=hash_password("testpassword123"),
        role=StaffRole.ADMIN.value,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def recruiter_user(db_session: AsyncSession) -> StaffUser:
    user = StaffUser(
        email="recruiter@triguardroofing.com",
        full_name="Rita Recruiter",
        hashed_password=hash_password("testpassword123"),
        role=StaffRole.RECRUITER.value,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(admin_user: StaffUser) -> dict:
    token = create_access_token(user_id=admin_user.id, role=admin_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def recruiter_headers(recruiter_user: StaffUser) -> dict:
    token = create_access_token(user_id=recruiter_user.id, role=recruiter_user.role)
    return {"Authorization": f"Bearer {token}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "auth: Staff authentication tests")
