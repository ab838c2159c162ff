"""FastAPI dependencies that assemble the onboarding pipeline.

Every request gets fresh service objects over the shared session
factory; tests override `get_session_factory`, `get_notifier` and
`get_storage` to swap in an in-memory database, a mocked HTTP transport
and a temporary directory.
"""

from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import settings
from app.database import get_session_factory
from app.services.credentials import CredentialIssuer
from app.services.drafts import DraftPersistenceService
from app.services.notifications import NotificationFanout
from app.services.storage import LocalFileStorage
from app.services.store import SqlAlchemyDataStore
from app.services.submission import FinalSubmissionHandler
from app.services.wizard import WizardStateMachine


@dataclass
class OnboardingServices:
    store: SqlAlchemyDataStore
    notifier: NotificationFanout
    drafts: DraftPersistenceService
    credentials: CredentialIssuer
    submit_handler: FinalSubmissionHandler

    async def resume(self, submission_id: str, step_index: int | None = None) -> WizardStateMachine:
        return await WizardStateMachine.resume(
            submission_id,
            drafts=self.drafts,
            credentials=self.credentials,
            submit_handler=self.submit_handler,
            notifier=self.notifier,
            step_index=step_index,
        )


def get_store(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> SqlAlchemyDataStore:
    return SqlAlchemyDataStore(session_factory, timeout=settings.backend_timeout_seconds)


def get_notifier(store: SqlAlchemyDataStore = Depends(get_store)) -> NotificationFanout:
    return NotificationFanout(store)


def get_storage() -> LocalFileStorage:
    return LocalFileStorage()


def get_services(
    store: SqlAlchemyDataStore = Depends(get_store),
    notifier: NotificationFanout = Depends(get_notifier),
) -> OnboardingServices:
    credentials = CredentialIssuer(store)
    return OnboardingServices(
        store=store,
        notifier=notifier,
        drafts=DraftPersistenceService(store, notifier),
        credentials=credentials,
        submit_handler=FinalSubmissionHandler(store, credentials, notifier),
    )
