"""Key-value store for locks, progress and run history in the ``sync_state`` table."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError

from shopsync.adapters.sqlalchemy.mappings import sync_state_table
from shopsync.domain.ports.state import KeyValueStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Connection, Engine

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyKeyValueStore:
    """Shares coordination state between processes through the database.

    Each call runs in its own short transaction. ``add`` relies on the primary key, so of
    two concurrent inserts exactly one succeeds.
    """

    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._engine = engine
        self._clock = clock

    def get(self, key: str) -> Any | None:
        table = sync_state_table
        now = self._clock()
        stmt = select(table.c.value).where(table.c.key == key).where(
            table.c.expires_at.is_(None) | (table.c.expires_at > now)
        )
        with self._engine.connect() as connection:
            return connection.execute(stmt).scalar_one_or_none()

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        with self._engine.begin() as connection:
            connection.execute(delete(sync_state_table).where(sync_state_table.c.key == key))
            self._insert(connection, key, value, ttl_seconds)

    def add(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> bool:
        table = sync_state_table
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    delete(table)
                    .where(table.c.key == key)
                    .where(table.c.expires_at.is_not(None))
                    .where(table.c.expires_at <= self._clock())
                )
                self._insert(connection, key, value, ttl_seconds)
        except IntegrityError:
            log.debug("Key %s already present", key)
            return False
        return True

    def delete(self, key: str) -> None:
        with self._engine.begin() as connection:
            connection.execute(delete(sync_state_table).where(sync_state_table.c.key == key))

    def _insert(
        self,
        connection: Connection,
        key: str,
        value: Any,
        ttl_seconds: int | None,
    ) -> None:
        now = self._clock()
        expires_at = None if ttl_seconds is None else now + timedelta(seconds=ttl_seconds)
        connection.execute(
            insert(sync_state_table).values(
                key=key,
                value=value,
                expires_at=expires_at,
                updated_at=now,
            )
        )


if TYPE_CHECKING:
    from sqlalchemy.engine import Engine as _Engine

    def _store_check(engine: _Engine) -> KeyValueStore:
        return SqlAlchemyKeyValueStore(engine)
