"""
Persistence layer for Taskboard.

Services never touch ``db.session`` directly; they talk to a store with a
narrow interface (``find``, ``find_one``, ``count``, ``aggregate``,
``insert``, ``update``, ``save``, ``delete``, ``delete_where``).  Swapping the backing
engine means re-implementing these few methods, not the services.

Every store call that reaches the database is wrapped by ``_guard``: a
``SQLAlchemyError`` rolls the session back, is logged with the operation
and its context (owner, resource id), and surfaces as a generic
``InternalError`` so no driver detail leaks to API callers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import db
from .errors import Conflict, InternalError
from .models import Task, Token, User, ensure_utc

logger = logging.getLogger(__name__)


def _same_value(current: Any, new: Any) -> bool:
    if isinstance(current, datetime) and isinstance(new, datetime):
        return ensure_utc(current) == ensure_utc(new)
    return current == new


class SqlStore:
    """Generic SQLAlchemy-backed store for one model class."""

    model: type = db.Model

    def __init__(self, session=None) -> None:
        self.session = session if session is not None else db.session

    @contextmanager
    def _guard(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning(
                "%s.%s violated a constraint (%s)", self.model.__name__, operation, context
            )
            raise Conflict() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(
                "%s.%s failed (%s)", self.model.__name__, operation, context
            )
            raise InternalError() from exc

    def find(
        self,
        *criteria: Any,
        order_by: Sequence[Any] = (),
        offset: int | None = None,
        limit: int | None = None,
        for_update: bool = False,
    ) -> list:
        stmt = select(self.model).where(*criteria).order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        if for_update:
            stmt = stmt.with_for_update()
        with self._guard("find"):
            return list(self.session.scalars(stmt).all())

    def find_one(self, *criteria: Any, for_update: bool = False):
        stmt = select(self.model).where(*criteria)
        if for_update:
            # Serialises concurrent read-modify-write on one row where the
            # backend supports row locks; SQLite ignores it.
            stmt = stmt.with_for_update()
        with self._guard("find_one"):
            return self.session.scalar(stmt)

    def count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self.model).where(*criteria)
        with self._guard("count"):
            return int(self.session.scalar(stmt) or 0)

    def aggregate(self, *columns: Any, criteria: Sequence[Any] = ()):
        """Run one aggregate ``SELECT`` over the model and return its single row."""
        stmt = select(*columns).select_from(self.model).where(*criteria)
        with self._guard("aggregate"):
            return self.session.execute(stmt).one()

    def insert(self, record, **context: Any):
        with self._guard("insert", **context):
            self.session.add(record)
            self.session.commit()
        return record

    def update(self, record, changes: dict[str, Any], **context: Any) -> bool:
        """
        Apply *changes* to *record* and commit.

        Returns ``True`` when at least one attribute actually changed value,
        mirroring a document store's "modified" count.
        """
        modified = False
        for attr, value in changes.items():
            if not _same_value(getattr(record, attr), value):
                setattr(record, attr, value)
                modified = True
        if not modified:
            return False
        with self._guard("update", id=getattr(record, "id", None), **context):
            self.session.commit()
        return True

    def save(self, record, **context: Any):
        """Commit changes already made on *record*."""
        with self._guard("save", id=getattr(record, "id", None), **context):
            self.session.add(record)
            self.session.commit()
        return record

    def delete(self, record, **context: Any) -> None:
        with self._guard("delete", id=getattr(record, "id", None), **context):
            self.session.delete(record)
            self.session.commit()

    def delete_where(self, *criteria: Any, **context: Any) -> int:
        stmt = sa_delete(self.model).where(*criteria)
        with self._guard("delete_where", **context):
            result = self.session.execute(stmt)
            self.session.commit()
        return result.rowcount or 0


class UserStore(SqlStore):
    """Credential store."""

    model = User

    def get(self, user_id: int) -> User | None:
        return self.find_one(User.id == user_id)

    def by_email(self, email: str) -> User | None:
        return self.find_one(User.email == email)

    def by_username(self, username: str) -> User | None:
        return self.find_one(User.username == username)


class TaskStore(SqlStore):
    """Task store.  Every lookup helper is scoped to an owner."""

    model = Task

    @staticmethod
    def owned_by(owner_id: int):
        return Task.user_id == owner_id

    def get_owned(self, owner_id: int, task_id: int, *, for_update: bool = False) -> Task | None:
        return self.find_one(
            self.owned_by(owner_id), Task.id == task_id, for_update=for_update
        )


class TokenStore(SqlStore):
    model = Token

    def by_jti(self, jti: str) -> Token | None:
        return self.find_one(Token.jti == jti)
