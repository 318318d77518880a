"""
Key/value backends holding the persisted JSON documents.

Every persisted structure (snapshot log, legacy log, invites, drafts, target
score) is one text value under one string key. ``SqlKeyValueStore`` keeps them
in the ``storage_items`` table; ``InMemoryKeyValueStore`` keeps them in a dict.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .config import DatabaseConfig, get_settings
from .db import create_database_engine, create_session_factory, initialise_database
from .exceptions import handle_storage_error
from .logging import get_logger
from .repositories import StorageItemRepo
from .uow import UnitOfWork

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SqlKeyValueStore:
    """
    Key/value store over the ``storage_items`` table.

    Each call runs in its own unit of work, so a ``set`` replaces the whole
    value atomically (last writer wins).
    """

    def __init__(self, SessionLocal: sessionmaker):
        self.uow = UnitOfWork(SessionLocal)

    def get(self, key: str) -> str | None:
        try:
            with self.uow.read() as s:
                return StorageItemRepo(s).get_value(key)
        except SQLAlchemyError as e:
            raise handle_storage_error(e, "storage.get") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self.uow.begin() as s:
                StorageItemRepo(s).put_value(key, value)
        except SQLAlchemyError as e:
            raise handle_storage_error(e, "storage.put") from e

    def delete(self, key: str) -> None:
        try:
            with self.uow.begin() as s:
                StorageItemRepo(s).delete_key(key)
        except SQLAlchemyError as e:
            raise handle_storage_error(e, "storage.delete") from e

    def keys(self, prefix: str = "") -> list[str]:
        try:
            with self.uow.read() as s:
                return StorageItemRepo(s).keys_with_prefix(prefix)
        except SQLAlchemyError as e:
            raise handle_storage_error(e, "storage.keys") from e


def create_key_value_store(config: DatabaseConfig | None = None) -> KeyValueStore:
    """
    Build the configured backend, creating the table on first use.

    Example:
        >>> kv = create_key_value_store(DatabaseConfig(backend="memory"))
    """
    if config is None:
        config = get_settings().database

    if config.backend == "memory":
        logger.info("Using in-memory key/value store")
        return InMemoryKeyValueStore()

    engine = create_database_engine(config)
    initialise_database(engine)
    return SqlKeyValueStore(create_session_factory(engine))


def load_json(kv: KeyValueStore, key: str) -> Any:
    """Decoded JSON under ``key``; None when absent, blank or unparsable."""
    raw = kv.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.warning(f"Ignoring unparsable content under {key}: {e}")
        return None
