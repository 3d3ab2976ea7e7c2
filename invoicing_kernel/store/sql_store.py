"""
SqlRecordStore -- record store backed by a SQLAlchemy table.

Responsibility:
    Persists each collection as one row of ``record_collections`` with a
    JSON payload.  Works on SQLite and PostgreSQL.

Architecture position:
    Kernel > Store.  Uses db/base.py and db/engine.py.

Invariants enforced:
    - One row per collection key (unique constraint).
    - Each load/save/remove runs in its own transaction via session_scope.

Failure modes:
    - Any SQLAlchemyError is logged and reported as ``None`` (load) or
      ``False`` (save/remove), matching the RecordStore contract.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from invoicing_kernel.db.base import Base
from invoicing_kernel.db.engine import get_session_factory, session_scope
from invoicing_kernel.domain.clock import Clock, SystemClock
from invoicing_kernel.logging_config import get_logger
from invoicing_kernel.store.record_store import CollectionKey, collection_name

logger = get_logger("store.sql")


class RecordCollectionModel(Base):
    """One persisted collection (clients, invoices, settings, ...)."""

    __tablename__ = "record_collections"

    key: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime]


class SqlRecordStore:
    """RecordStore over a SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()

    def load(self, key: CollectionKey | str) -> list | dict | None:
        name = collection_name(key)
        try:
            with session_scope(self._session_factory) as session:
                row = session.execute(
                    select(RecordCollectionModel).where(RecordCollectionModel.key == name)
                ).scalar_one_or_none()
                if row is None:
                    return None
                return copy.deepcopy(row.payload)
        except SQLAlchemyError:
            logger.warning(
                "record_store_load_failed",
                extra={"collection": name},
                exc_info=True,
            )
            return None

    def save(self, key: CollectionKey | str, value: list | dict) -> bool:
        name = collection_name(key)
        try:
            with session_scope(self._session_factory) as session:
                row = session.execute(
                    select(RecordCollectionModel).where(RecordCollectionModel.key == name)
                ).scalar_one_or_none()
                now = self._clock.now_utc()
                if row is None:
                    session.add(
                        RecordCollectionModel(
                            key=name, payload=copy.deepcopy(value), updated_at=now
                        )
                    )
                else:
                    row.payload = copy.deepcopy(value)
                    row.updated_at = now
        except (SQLAlchemyError, TypeError, ValueError):
            logger.warning(
                "record_store_save_failed",
                extra={"collection": name},
                exc_info=True,
            )
            return False
        logger.debug("record_store_saved", extra={"collection": name})
        return True

    def remove(self, key: CollectionKey | str) -> bool:
        name = collection_name(key)
        try:
            with session_scope(self._session_factory) as session:
                session.execute(
                    delete(RecordCollectionModel).where(RecordCollectionModel.key == name)
                )
        except SQLAlchemyError:
            logger.warning(
                "record_store_remove_failed",
                extra={"collection": name},
                exc_info=True,
            )
            return False
        return True

    def exists(self, key: CollectionKey | str) -> bool:
        """Whether a row is stored for ``key``.  An unreachable table counts as present."""
        name = collection_name(key)
        try:
            with session_scope(self._session_factory) as session:
                found = session.execute(
                    select(RecordCollectionModel.id).where(RecordCollectionModel.key == name)
                ).first()
        except SQLAlchemyError:
            logger.warning(
                "record_store_exists_failed",
                extra={"collection": name},
                exc_info=True,
            )
            return True
        return found is not None
