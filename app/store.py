"""
Record store access.

A thin table-level repository over SQLAlchemy. Every call is its own unit
of work: it commits on success and rolls back before raising, so callers
get single-row atomicity and nothing wider.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .models.comment import Comment
from .models.post import Post

TABLES = {
    "posts": Post,
    "comments": Comment,
}

COUNTER_FIELDS = {
    "posts": {"clicks", "views"},
}


class StoreError(Exception):
    """A store operation failed."""


class ConflictError(StoreError):
    """Insert rejected by a unique or primary-key constraint."""


class RecordNotFound(StoreError):
    """No row matched the given key."""


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "23505":
        return True
    message = str(orig if orig is not None else exc).lower()
    return "unique" in message or "duplicate" in message


def row_to_dict(obj) -> Dict[str, Any]:
    """Column values of an ORM instance as a plain dict."""
    return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}


class RecordStore:
    """Table operations used by the migration and the counter endpoints."""

    def __init__(self, db: Session):
        self.db = db

    def _model(self, table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}")

    def _query(self, table: str, filters: Optional[Dict[str, Any]]):
        model = self._model(table)
        query = self.db.query(model)
        if filters:
            query = query.filter_by(**filters)
        return model, query

    def select(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Rows matching every ``column == value`` pair in ``filters``."""
        model, query = self._query(table, filters)
        try:
            rows = query.order_by(model.created_at, model.id).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"select from {table} failed: {e}") from e
        return [row_to_dict(r) for r in rows]

    def get(self, table: str, id: str) -> Optional[Dict[str, Any]]:
        rows = self.select(table, {"id": id})
        return rows[0] if rows else None

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row; a uniqueness violation raises ConflictError."""
        model = self._model(table)
        try:
            result = self.db.execute(insert(model.__table__).values(**row))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_unique_violation(e):
                raise ConflictError(f"insert into {table} conflicts with an existing row") from e
            raise StoreError(f"insert into {table} failed: {e.orig}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"insert into {table} failed: {e}") from e
        self.db.expire_all()
        return self.get(table, result.inserted_primary_key[0])

    def update(self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]) -> int:
        """Apply ``patch`` to matching rows and return how many were affected."""
        if not filters:
            raise StoreError("update without a filter is not allowed")
        _, query = self._query(table, filters)
        try:
            affected = query.update(patch, synchronize_session=False)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_unique_violation(e):
                raise ConflictError(f"update of {table} conflicts with an existing row") from e
            raise StoreError(f"update of {table} failed: {e.orig}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"update of {table} failed: {e}") from e
        self.db.expire_all()
        return affected

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete matching rows and return how many were removed."""
        if not filters:
            raise StoreError("delete without a filter is not allowed")
        _, query = self._query(table, filters)
        try:
            affected = query.delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"delete from {table} failed: {e}") from e
        self.db.expire_all()
        return affected

    def increment_counter(self, table: str, id: str, field: str) -> None:
        """Atomic server-side ``field = field + 1`` for one row."""
        if field not in COUNTER_FIELDS.get(table, set()):
            raise StoreError(f"{table}.{field} is not a counter")
        model = self._model(table)
        column = getattr(model, field)
        try:
            affected = (
                self.db.query(model)
                .filter(model.id == id)
                .update({column: column + 1}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"increment of {table}.{field} failed: {e}") from e
        if not affected:
            raise RecordNotFound(f"{table} row '{id}' not found")
        self.db.expire_all()
