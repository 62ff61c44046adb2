"""Filtered CRUD over the named collections the app stores.

Rows go in and come out as plain dicts. Filters are ``{"field": value}`` for
equality or ``{"field__op": value}`` with ``op`` one of ``ne``, ``gt``,
``gte``, ``lt``, ``lte``, ``in``. Ordering entries are field names, with a
leading ``-`` for descending order.
"""

import logging
from collections.abc import Callable, Iterable, Mapping

from sqlalchemy import delete, inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notive.core.errors import RecordStoreError
from notive.db.models import CalendarNote, LoginAttempt, OtpCode, Profile, SecurityAlert

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "otp_codes": OtpCode,
    "login_attempts": LoginAttempt,
    "security_alerts": SecurityAlert,
    "profiles": Profile,
    "calendar_notes": CalendarNote,
}

_OPERATORS: dict[str, Callable] = {
    "eq": lambda col, value: col == value,
    "ne": lambda col, value: col != value,
    "gt": lambda col, value: col > value,
    "gte": lambda col, value: col >= value,
    "lt": lambda col, value: col < value,
    "lte": lambda col, value: col <= value,
    "in": lambda col, value: col.in_(list(value)),
}


def _model_for(collection: str):
    model = COLLECTIONS.get(collection)
    if model is None:
        raise ValueError(f"Unknown collection: {collection}")
    return model


def _column(model, field: str):
    columns = model.__table__.columns
    if field not in columns:
        raise ValueError(f"Unknown field {field!r} for {model.__tablename__}")
    return columns[field]


def _where(model, filters: Mapping | None) -> list:
    clauses = []
    for key, value in (filters or {}).items():
        field, _, op = key.partition("__")
        op = op or "eq"
        if op not in _OPERATORS:
            raise ValueError(f"Unknown filter operator: {op}")
        clauses.append(_OPERATORS[op](_column(model, field), value))
    return clauses


def _order(model, order_by: Iterable[str]) -> list:
    clauses = []
    for entry in order_by:
        descending = entry.startswith("-")
        col = _column(model, entry.lstrip("-"))
        clauses.append(col.desc() if descending else col.asc())
    return clauses


def _row_to_dict(obj) -> dict:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


def _checked_rows(model, rows: Iterable[Mapping]) -> list[dict]:
    rows = [dict(row) for row in rows]
    for row in rows:
        for field in row:
            _column(model, field)
    return rows


def _add_rows(db: Session, model, rows: list[dict]) -> list[dict]:
    objs = [model(**row) for row in rows]
    db.add_all(objs)
    db.flush()
    return [_row_to_dict(obj) for obj in objs]


class RecordStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _run(self, action: str, collection: str, fn):
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Record store %s on %s failed: %s", action, collection, exc)
            raise RecordStoreError(f"Failed to {action} {collection}") from exc
        finally:
            db.close()

    def insert(self, collection: str, rows: Iterable[Mapping]) -> list[dict]:
        model = _model_for(collection)
        rows = _checked_rows(model, rows)
        return self._run("insert", collection, lambda db: _add_rows(db, model, rows))

    def replace(self, collection: str, filters: Mapping, rows: Iterable[Mapping]) -> list[dict]:
        """Delete the rows matching ``filters`` and insert ``rows`` in one transaction."""
        model = _model_for(collection)
        rows = _checked_rows(model, rows)
        stmt = delete(model.__table__).where(*_where(model, filters))

        def _do(db: Session) -> list[dict]:
            db.execute(stmt)
            return _add_rows(db, model, rows)

        return self._run("replace", collection, _do)

    def update(self, collection: str, filters: Mapping, patch: Mapping) -> int:
        model = _model_for(collection)
        values = {_column(model, field).key: value for field, value in patch.items()}
        stmt = update(model.__table__).where(*_where(model, filters)).values(**values)
        return self._run("update", collection, lambda db: db.execute(stmt).rowcount)

    def delete(self, collection: str, filters: Mapping) -> int:
        """Delete every row matching ``filters`` in one statement.

        The match and the removal happen atomically, so callers can use the
        returned count as a "still existed and is now gone" check.
        """
        model = _model_for(collection)
        stmt = delete(model.__table__).where(*_where(model, filters))
        return self._run("delete", collection, lambda db: db.execute(stmt).rowcount)

    def select(
        self,
        collection: str,
        filters: Mapping | None = None,
        *,
        order_by: Iterable[str] = (),
        limit: int | None = None,
    ) -> list[dict]:
        model = _model_for(collection)
        stmt = select(model).where(*_where(model, filters)).order_by(*_order(model, order_by))
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._run(
            "select",
            collection,
            lambda db: [_row_to_dict(obj) for obj in db.scalars(stmt).all()],
        )

    def select_one(self, collection: str, filters: Mapping | None = None) -> dict | None:
        rows = self.select(collection, filters, limit=1)
        return rows[0] if rows else None
