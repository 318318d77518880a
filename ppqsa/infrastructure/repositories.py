from __future__ import annotations

import builtins

from sqlalchemy.orm import Session

from .logging import log_database_operation as log_op
from .models import StorageItemORM
from .repositories_base import BaseRepository as GenericBaseRepository


class StorageItemRepo(GenericBaseRepository[StorageItemORM]):
    model = StorageItemORM

    def __init__(self, session: Session):
        super().__init__(session)

    @log_op("storage.get")
    def get_value(self, key: str) -> str | None:
        item = self.get(key)
        return item.value if item is not None else None

    @log_op("storage.put")
    def put_value(self, key: str, value: str) -> StorageItemORM:
        item = self.get(key)
        if item is None:
            return self.create(key=key, value=value)
        return self.update(item, value=value)

    @log_op("storage.delete")
    def delete_key(self, key: str) -> bool:
        item = self.get(key)
        if item is None:
            return False
        self.delete(item)
        return True

    @log_op("storage.keys")
    def keys_with_prefix(self, prefix: str) -> builtins.list[str]:
        rows = self.list(
            StorageItemORM.key.startswith(prefix, autoescape=True), order_by=[StorageItemORM.key]
        )
        return [row.key for row in rows]
