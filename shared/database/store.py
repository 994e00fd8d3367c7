"""
Generic queryable store over the ORM models.

Rows cross this boundary as plain dicts and predicates are equality
mappings, so the reconciliation code never touches SQLAlchemy directly.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from shared.app_logging.logger import get_logger
from shared.database.session import COLLECTIONS, get_session_factory
from shared.utils.errors import StoreError, translate_store_error

logger = get_logger("database.store")

Row = Dict[str, Any]


class Store(Protocol):
    def find_one(self, collection: str, predicate: Mapping[str, Any]) -> Optional[Row]: ...

    def find_many(self, collection: str, predicate: Mapping[str, Any]) -> List[Row]: ...

    def insert(self, collection: str, row: Mapping[str, Any]) -> Row: ...

    def update(self, collection: str, predicate: Mapping[str, Any], patch: Mapping[str, Any]) -> Row: ...

    def upsert(self, collection: str, row: Mapping[str, Any], conflict_keys: Sequence[str]) -> Row: ...

    def delete(self, collection: str, predicate: Mapping[str, Any]) -> int: ...

    def transaction(self): ...


def _to_row(obj) -> Row:
    row = {}
    for attr in inspect(obj).mapper.column_attrs:
        value = getattr(obj, attr.key)
        # SQLite drops tzinfo; timezone-aware columns are always written in UTC
        if isinstance(value, datetime) and value.tzinfo is None and getattr(attr.columns[0].type, "timezone", False):
            value = value.replace(tzinfo=timezone.utc)
        row[attr.key] = value
    return row


class SQLAlchemyStore:
    """``Store`` backed by SQLAlchemy sessions.

    Outside ``transaction()`` every call runs in its own session and commits
    on success. Inside it, calls share one session that commits once when the
    block exits cleanly and rolls back otherwise.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None, collections=None):
        self._session_factory = session_factory
        self._collections = collections or COLLECTIONS
        self._active: ContextVar[Optional[Session]] = ContextVar(f"store_session_{id(self)}", default=None)

    def _new_session(self) -> Session:
        factory = self._session_factory or get_session_factory()
        return factory()

    def _model(self, collection: str):
        try:
            return self._collections[collection]
        except KeyError:
            raise StoreError(f"Unknown collection: {collection}", code="unknown_collection") from None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        active = self._active.get()
        if active is not None:
            try:
                yield active
                active.flush()
            except SQLAlchemyError as e:
                raise translate_store_error(e) from e
            return

        session = self._new_session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise translate_store_error(e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator["SQLAlchemyStore"]:
        """Run the enclosed store calls atomically. Nested use joins the outer transaction."""
        if self._active.get() is not None:
            yield self
            return

        session = self._new_session()
        token = self._active.set(session)
        try:
            yield self
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise translate_store_error(e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            self._active.reset(token)
            session.close()

    def find_one(self, collection: str, predicate: Mapping[str, Any]) -> Optional[Row]:
        model = self._model(collection)
        with self._session() as session:
            obj = session.query(model).filter_by(**predicate).first()
            return _to_row(obj) if obj is not None else None

    def find_many(self, collection: str, predicate: Mapping[str, Any]) -> List[Row]:
        model = self._model(collection)
        with self._session() as session:
            return [_to_row(obj) for obj in session.query(model).filter_by(**predicate).all()]

    def insert(self, collection: str, row: Mapping[str, Any]) -> Row:
        model = self._model(collection)
        with self._session() as session:
            obj = model(**row)
            session.add(obj)
            session.flush()
            return _to_row(obj)

    def update(self, collection: str, predicate: Mapping[str, Any], patch: Mapping[str, Any]) -> Row:
        """Apply ``patch`` to every matching row and return the first one."""
        model = self._model(collection)
        with self._session() as session:
            matches = session.query(model).filter_by(**predicate).all()
            if not matches:
                raise StoreError(f"No {collection} row matches {dict(predicate)}", code="not_found")
            for obj in matches:
                for key, value in patch.items():
                    setattr(obj, key, value)
            session.flush()
            return _to_row(matches[0])

    def upsert(self, collection: str, row: Mapping[str, Any], conflict_keys: Sequence[str]) -> Row:
        """Insert ``row``, or on a ``conflict_keys`` match update the row's other fields.

        Columns absent from ``row`` keep their stored value on update and take
        the model default on insert.
        """
        model = self._model(collection)
        missing = [key for key in conflict_keys if key not in row]
        if missing:
            raise StoreError(f"Upsert row lacks conflict keys {missing}", code="missing_conflict_keys")

        with self._session() as session:
            key_filter = {key: row[key] for key in conflict_keys}
            obj = session.query(model).filter_by(**key_filter).with_for_update().first()
            if obj is None:
                obj = model(**row)
                session.add(obj)
            else:
                for key, value in row.items():
                    if key not in conflict_keys:
                        setattr(obj, key, value)
            session.flush()
            return _to_row(obj)

    def delete(self, collection: str, predicate: Mapping[str, Any]) -> int:
        if not predicate:
            raise StoreError(f"Refusing to delete every row of {collection}", code="empty_predicate")
        model = self._model(collection)
        with self._session() as session:
            count = session.query(model).filter_by(**predicate).delete(synchronize_session=False)
            logger.debug(f"Deleted {count} row(s) from {collection}")
            return count
