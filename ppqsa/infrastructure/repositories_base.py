from __future__ import annotations

import builtins
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic CRUD over one mapped class, addressed by primary key.

    Subclasses set ``model``. Writes flush but never commit; the surrounding
    unit of work owns the transaction.
    """

    model: type[T]

    def __init__(self, session: Session):
        if getattr(self, "model", None) is None:
            raise ValueError(f"{self.__class__.__name__}.model must be set to an ORM class.")
        self.s = session

    # ---------- Read ----------
    def get(self, pk: Any) -> T | None:
        return self.s.get(self.model, pk)

    def query(
        self, *filters: Any, order_by: Iterable[Any] = (), limit: int | None = None
    ) -> Select[tuple[T]]:
        stmt = select(self.model).where(*filters).order_by(*order_by)
        if limit:
            stmt = stmt.limit(limit)
        return stmt

    def list(
        self, *filters: Any, order_by: Iterable[Any] = (), limit: int | None = None
    ) -> builtins.list[T]:
        return builtins.list(self.s.scalars(self.query(*filters, order_by=order_by, limit=limit)))

    def count(self, *filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model).where(*filters)
        return int(self.s.scalar(stmt) or 0)

    # ---------- Write ----------
    def create(self, **fields: Any) -> T:
        obj = self.model(**fields)
        self.s.add(obj)
        self.s.flush()
        return obj

    def update(self, obj: T, **fields: Any) -> T:
        for name, value in fields.items():
            setattr(obj, name, value)
        self.s.flush()
        return obj

    def delete(self, obj: T) -> None:
        self.s.delete(obj)
        self.s.flush()
