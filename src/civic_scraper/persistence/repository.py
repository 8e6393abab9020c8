# ABOUTME: Narrow repository interface for manifest rows and its async SQLModel implementation
# ABOUTME: Supports find/create/update operations plus transactions shared through a context variable

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, Protocol

from sqlalchemy import ColumnElement, update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from civic_scraper.config import get_config
from civic_scraper.core.models import utcnow
from civic_scraper.persistence.models import ManifestRecord
from civic_scraper.utils.logging import get_logger

MANIFEST_COLUMNS = frozenset(ManifestRecord.model_fields)


class RecordNotFoundError(LookupError):
    """Raised when an update targets a manifest row that does not exist."""

    def __init__(self, record_id: str):
        super().__init__(f"Manifest record not found: {record_id}")
        self.record_id = record_id


class ManifestRepository(Protocol):
    """Storage operations the manifest store relies on.

    ``where`` and ``data`` mappings use manifest column names; ``order_by``
    maps a column name to ``"asc"`` or ``"desc"``.
    """

    async def find_first(
        self, where: Mapping[str, Any], order_by: Mapping[str, str] | None = None
    ) -> ManifestRecord | None: ...

    async def find_many(
        self, where: Mapping[str, Any], order_by: Mapping[str, str] | None = None, take: int | None = None
    ) -> list[ManifestRecord]: ...

    async def create(self, data: Mapping[str, Any]) -> ManifestRecord: ...

    async def update(self, record_id: str, data: Mapping[str, Any]) -> ManifestRecord: ...

    async def update_many(self, where: Mapping[str, Any], data: Mapping[str, Any]) -> int: ...

    def transaction(self) -> AbstractAsyncContextManager[None]: ...


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _check_columns(names: Any) -> None:
    unknown = set(names) - MANIFEST_COLUMNS
    if unknown:
        raise ValueError(f"Unknown manifest columns: {', '.join(sorted(unknown))}")


class SQLModelManifestRepository:
    """Manifest repository on an async SQLAlchemy engine.

    Calls made inside ``transaction()`` share one session and commit together;
    calls made outside it each run in their own short-lived session.
    """

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or get_config().database_url
        self.engine = create_async_engine(self.database_url, echo=False, future=True)
        self.async_session = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)
        self._transaction_session: ContextVar[AsyncSession | None] = ContextVar(
            f"manifest_transaction_{id(self)}", default=None
        )
        self.logger = get_logger(__name__)

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._transaction_session.get() is not None:
            yield
            return

        async with self.async_session() as session:
            token = self._transaction_session.set(session)
            try:
                yield
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                self._transaction_session.reset(token)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Yield the ambient transaction session, or a fresh one that commits on exit."""
        current = self._transaction_session.get()
        if current is not None:
            yield current
            return

        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @staticmethod
    def _conditions(where: Mapping[str, Any]) -> list[ColumnElement[bool]]:
        _check_columns(where)
        return [getattr(ManifestRecord, name) == _column_value(value) for name, value in where.items()]

    @staticmethod
    def _ordering(order_by: Mapping[str, str] | None) -> list[Any]:
        if not order_by:
            return []
        _check_columns(order_by)
        clauses = []
        for name, direction in order_by.items():
            column = getattr(ManifestRecord, name)
            if direction.lower() not in ("asc", "desc"):
                raise ValueError(f"Invalid sort direction for {name}: {direction}")
            clauses.append(column.desc() if direction.lower() == "desc" else column.asc())
        return clauses

    async def find_first(
        self, where: Mapping[str, Any], order_by: Mapping[str, str] | None = None
    ) -> ManifestRecord | None:
        records = await self.find_many(where, order_by=order_by, take=1)
        return records[0] if records else None

    async def find_many(
        self, where: Mapping[str, Any], order_by: Mapping[str, str] | None = None, take: int | None = None
    ) -> list[ManifestRecord]:
        statement = select(ManifestRecord).where(*self._conditions(where)).order_by(*self._ordering(order_by))
        if take is not None:
            statement = statement.limit(take)

        async with self._session() as session:
            result = await session.exec(statement)
            return list(result.all())

    async def create(self, data: Mapping[str, Any]) -> ManifestRecord:
        _check_columns(data)
        record = ManifestRecord(**{name: _column_value(value) for name, value in data.items()})

        async with self._session() as session:
            session.add(record)
            await session.flush()
            await session.refresh(record)

        self.logger.debug("Created manifest record", manifest_id=record.id, version=record.version)
        return record

    async def update(self, record_id: str, data: Mapping[str, Any]) -> ManifestRecord:
        _check_columns(data)

        async with self._session() as session:
            record = await session.get(ManifestRecord, record_id)
            if record is None:
                raise RecordNotFoundError(record_id)

            for name, value in data.items():
                setattr(record, name, _column_value(value))
            record.updated_at = utcnow()
            session.add(record)
            await session.flush()
            await session.refresh(record)

        return record

    async def update_many(self, where: Mapping[str, Any], data: Mapping[str, Any]) -> int:
        _check_columns(data)
        values = {name: _column_value(value) for name, value in data.items()}
        values.setdefault("updated_at", utcnow())
        statement = update(ManifestRecord).where(*self._conditions(where)).values(**values)

        async with self._session() as session:
            result = await session.exec(statement)  # type: ignore[call-overload]

        return result.rowcount or 0
