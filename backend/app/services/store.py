"""Data store interface used by the onboarding pipeline.

The wizard talks to the database through four table-level operations
(create / update / get / query) on plain dicts, so the pipeline code can
be exercised without any ORM knowledge.

SqlAlchemyDataStore opens a short session per call and commits it, so
every write is durable on its own; a failure in a later pipeline step
never rolls back an earlier one.  Database errors and timeouts are
re-raised as StoreUnavailableError, which callers treat as retryable;
constraint violations surface as RecordRejectedError (DuplicateRecordError
for unique keys).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database import Base
from app.models import (
    ActivityLog,
    EmailAddress,
    Manager,
    OnboardingSubmission,
    Recruiter,
    Task,
    TaskAssignment,
    Team,
    WebhookEndpoint,
)

logger = logging.getLogger(__name__)

TABLES: dict[str, type[Base]] = {
    model.__tablename__: model
    for model in (
        OnboardingSubmission,
        EmailAddress,
        Team,
        Manager,
        Recruiter,
        Task,
        TaskAssignment,
        WebhookEndpoint,
        ActivityLog,
    )
}


class StoreUnavailableError(Exception):
    """Backend call failed or timed out; the caller may retry."""


class RecordRejectedError(Exception):
    """An integrity constraint rejected the write."""


class DuplicateRecordError(RecordRejectedError):
    """A unique constraint rejected the write."""


class DataStore(Protocol):
    async def create(self, table: str, record: dict) -> str: ...

    async def update(self, table: str, record_id: str, fields: dict) -> dict | None: ...

    async def get(self, table: str, record_id: str) -> dict | None: ...

    async def query(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]: ...


def as_dict(obj: Base) -> dict:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


class SqlAlchemyDataStore:
    """DataStore backed by the async SQLAlchemy models."""

    def __init__(self, session_factory: async_sessionmaker, timeout: float = 10.0):
        self._session_factory = session_factory
        self._timeout = timeout

    def _model(self, table: str) -> type[Base]:
        try:
            return TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    async def _run(self, table: str, op: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except IntegrityError as exc:
            message = f"{op} on {table} rejected: {exc.orig}"
            # SQLite says "UNIQUE constraint failed", Postgres "violates unique constraint"
            if "unique" in str(exc.orig).lower():
                raise DuplicateRecordError(message) from exc
            logger.warning("Store %s", message)
            raise RecordRejectedError(message) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("Store %s on %s timed out after %.1fs", op, table, self._timeout)
            raise StoreUnavailableError(f"{op} on {table} timed out") from exc
        except SQLAlchemyError as exc:
            logger.error("Store %s on %s failed: %s", op, table, exc)
            raise StoreUnavailableError(f"{op} on {table} failed") from exc

    async def create(self, table: str, record: dict) -> str:
        model = self._model(table)

        async def _create() -> str:
            async with self._session_factory() as session:
                obj = model(**record)
                session.add(obj)
                await session.commit()
                return obj.id

        return await self._run(table, "create", _create())

    async def update(self, table: str, record_id: str, fields: dict) -> dict | None:
        """Merge `fields` into the row; columns not named are left alone."""
        model = self._model(table)

        async def _update() -> dict | None:
            async with self._session_factory() as session:
                obj = await session.get(model, record_id)
                if obj is None:
                    return None
                for key, value in fields.items():
                    setattr(obj, key, value)
                await session.commit()
                return as_dict(obj)

        return await self._run(table, "update", _update())

    async def get(self, table: str, record_id: str) -> dict | None:
        model = self._model(table)

        async def _get() -> dict | None:
            async with self._session_factory() as session:
                obj = await session.get(model, record_id)
                return as_dict(obj) if obj is not None else None

        return await self._run(table, "get", _get())

    async def query(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        model = self._model(table)

        async def _query() -> list[dict]:
            stmt = select(model)
            for column, value in (filters or {}).items():
                attr = getattr(model, column)
                if isinstance(value, (list, tuple, set)):
                    stmt = stmt.where(attr.in_(list(value)))
                else:
                    stmt = stmt.where(attr == value)
            if order_by:
                col = getattr(model, order_by)
                stmt = stmt.order_by(col.desc() if descending else col.asc())
            if limit:
                stmt = stmt.limit(limit)
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [as_dict(obj) for obj in result.scalars().all()]

        return await self._run(table, "query", _query())
