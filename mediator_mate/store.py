"""
Record Store
============

Per-store persistent collections keyed by `id`, backed by SQLAlchemy.

    store = RecordStore()
    note = store.add("notes", {"caseFileNumber": "CF-000123", "content": "..."})
    store.get_by_index("notes", "by-caseFileNumber", "CF-000123")

Stores are independent: no cross-store transactions and no foreign keys.
Each call runs in its own session. Engine failures surface as StorageError;
callers are expected to report them to the user and carry on.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel, ValidationError
from sqlalchemy import Date, DateTime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import schemas
from .db import models
from .db.session import get_db_session
from .errors import (
    DuplicateRecordError,
    RecordNotFoundError,
    RecordValidationError,
    StorageError,
    StoreError,
    UnknownIndexError,
    UnknownStoreError,
)

logger = logging.getLogger(__name__)

RecordInput = Union[schemas.Record, Mapping[str, Any]]


@dataclass(frozen=True)
class StoreSpec:
    """Store name, its record type, its table and its secondary lookups"""
    name: str
    record_type: Type[schemas.Record]
    row_type: Type[models.Base]
    indexes: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @property
    def timestamped(self) -> bool:
        return "updated_at" in self.record_type.model_fields


STORES: Dict[str, StoreSpec] = {
    spec.name: spec
    for spec in (
        StoreSpec("matters", schemas.Matter, models.Matter, {
            "by-status": ("status",),
            "by-caseFileNumber": ("case_file_number",),
        }),
        StoreSpec("notes", schemas.Note, models.Note, {
            "by-caseFileNumber": ("case_file_number",),
        }),
        StoreSpec("contacts", schemas.Contact, models.Contact, {
            "by-name": ("name",),
        }),
        StoreSpec("documents", schemas.Document, models.Document, {
            "by-caseId": ("case_id",),
            "by-type": ("type",),
        }),
        StoreSpec("tasks", schemas.Task, models.Task, {
            "by-status": ("status",),
            "by-dueDate": ("due_date",),
        }),
        StoreSpec("caseFiles", schemas.CaseFileMetadata, models.CaseFileMetadata, {
            "by-caseId": ("case_id",),
            "by-name": ("name",),
            "by-parent": ("case_id", "parent_id"),
        }),
        StoreSpec("templates", schemas.Template, models.Template, {
            "by-caseFileNumber": ("case_file_number",),
        }),
        StoreSpec("timeline", schemas.TimelineEvent, models.TimelineEvent, {
            "by-caseId": ("case_id",),
            "by-date": ("date",),
        }),
        StoreSpec("meetings", schemas.Meeting, models.Meeting, {
            "by-caseId": ("case_id",),
        }),
    )
}

STORE_NAMES = tuple(STORES)


class RecordStore:
    """
    Generic CRUD over the named stores.

    `session_factory` is a context manager yielding a SQLAlchemy session that
    commits on success (default: `db.session.get_db_session`).
    """

    def __init__(self, session_factory: Callable[[], ContextManager[Session]] = get_db_session):
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def spec(self, store: str) -> StoreSpec:
        try:
            return STORES[store]
        except KeyError:
            raise UnknownStoreError(store) from None

    @contextmanager
    def _session(self, store: str, operation: str):
        try:
            with self._session_factory() as db:
                yield db
        except StoreError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Store {operation} on {store} failed: {e}")
            raise StorageError(store, operation, str(e)) from e

    def _coerce(self, spec: StoreSpec, record: RecordInput) -> schemas.Record:
        if isinstance(record, spec.record_type):
            return record.model_copy()
        if isinstance(record, BaseModel):
            record = record.model_dump()
        try:
            return spec.record_type.model_validate(record)
        except ValidationError as e:
            raise RecordValidationError(spec.name, schemas.validation_errors(e)) from e

    def _from_row(self, spec: StoreSpec, row) -> schemas.Record:
        values = {column.name: getattr(row, column.name) for column in row.__table__.columns}
        try:
            return spec.record_type.model_validate(values)
        except ValidationError as e:
            raise RecordValidationError(spec.name, schemas.validation_errors(e)) from e

    def _normalize_changes(self, spec: StoreSpec, record_id: str, changes) -> Dict[str, Any]:
        """Map camelCase or snake_case keys to field names; reject unknown fields and id changes."""
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(exclude_unset=True)

        fields = spec.record_type.model_fields
        by_alias = {(info.alias or name): name for name, info in fields.items()}
        normalized: Dict[str, Any] = {}
        errors: Dict[str, str] = {}
        for key, value in changes.items():
            name = key if key in fields else by_alias.get(key)
            if name is None:
                errors[key] = "Extra inputs are not permitted"
            elif name == "id" and str(value) != record_id:
                errors[key] = "Record id cannot be changed"
            else:
                normalized[name] = value
        if errors:
            raise RecordValidationError(spec.name, errors)
        return normalized

    def _index_columns(self, spec: StoreSpec, index: str) -> Tuple[str, ...]:
        try:
            return spec.indexes[index]
        except KeyError:
            raise UnknownIndexError(spec.name, index) from None

    @staticmethod
    def _index_value(store: str, index: str, column, value):
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, str):
            try:
                if isinstance(column.type, DateTime):
                    return datetime.fromisoformat(value)
                if isinstance(column.type, Date):
                    return date.fromisoformat(value[:10])
            except ValueError:
                raise RecordValidationError(store, {index: f"Invalid date: {value!r}"}) from None
        return value

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_all(self, store: str) -> List[schemas.Record]:
        """All records in key order"""
        spec = self.spec(store)
        with self._session(store, "read") as db:
            rows = db.query(spec.row_type).order_by(spec.row_type.id).all()
            return [self._from_row(spec, row) for row in rows]

    def get_by_id(self, store: str, record_id: str) -> Optional[schemas.Record]:
        spec = self.spec(store)
        with self._session(store, "read") as db:
            row = db.get(spec.row_type, str(record_id))
            return self._from_row(spec, row) if row is not None else None

    def get_by_index(self, store: str, index: str, value: Any) -> List[schemas.Record]:
        """
        Exact-match lookup on a declared index.

        Compound indexes (`by-parent`) take a tuple or list with one value per
        column; None matches NULL.
        """
        spec = self.spec(store)
        columns = self._index_columns(spec, index)
        if len(columns) > 1:
            if not isinstance(value, (tuple, list)):
                raise UnknownIndexError(store, f"{index} expects {len(columns)} values, got {value!r}")
            values: Sequence[Any] = tuple(value)
        else:
            values = (value,)
        if len(values) != len(columns):
            raise UnknownIndexError(store, f"{index} expects {len(columns)} values")

        with self._session(store, "read") as db:
            query = db.query(spec.row_type)
            for name, raw in zip(columns, values):
                column = getattr(spec.row_type, name)
                if raw is None:
                    query = query.filter(column.is_(None))
                else:
                    query = query.filter(column == self._index_value(store, index, column, raw))
            rows = query.order_by(spec.row_type.id).all()
            return [self._from_row(spec, row) for row in rows]

    def get_by_range(
        self,
        store: str,
        index: str,
        lower: Any = None,
        upper: Any = None,
    ) -> List[schemas.Record]:
        """Inclusive range lookup on a single-column index, ordered by that column"""
        spec = self.spec(store)
        columns = self._index_columns(spec, index)
        if len(columns) != 1:
            raise UnknownIndexError(store, f"{index} is compound; range lookups need a single column")

        column = getattr(spec.row_type, columns[0])
        with self._session(store, "read") as db:
            query = db.query(spec.row_type).filter(column.isnot(None))
            if lower is not None:
                query = query.filter(column >= self._index_value(store, index, column, lower))
            if upper is not None:
                query = query.filter(column <= self._index_value(store, index, column, upper))
            rows = query.order_by(column, spec.row_type.id).all()
            return [self._from_row(spec, row) for row in rows]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(self, store: str, record: RecordInput) -> schemas.Record:
        """Insert a new record; an id is generated when absent. Fails on an existing id."""
        spec = self.spec(store)
        record = self._coerce(spec, record)
        if spec.timestamped:
            now = datetime.utcnow()
            if record.created_at is None:
                record.created_at = now
            if record.updated_at is None:
                record.updated_at = now

        with self._session(store, "add") as db:
            if db.get(spec.row_type, record.id) is not None:
                raise DuplicateRecordError(store, record.id)
            db.add(spec.row_type(**record.model_dump()))
            try:
                db.flush()
            except IntegrityError as e:
                raise DuplicateRecordError(store, record.id) from e

        logger.debug(f"Added {store}/{record.id}")
        return record

    def put(self, store: str, record: RecordInput, touch: bool = True) -> schemas.Record:
        """
        Insert or replace by id.

        `touch=False` keeps the record's own `updatedAt` when it has one
        (used when restoring exports).
        """
        spec = self.spec(store)
        record = self._coerce(spec, record)

        with self._session(store, "put") as db:
            self._write(db, spec, record, touch)

        return record

    def put_many(
        self,
        store: str,
        records: Iterable[RecordInput],
        replace: bool = False,
        touch: bool = True,
    ) -> List[schemas.Record]:
        """
        Upsert several records in one transaction.

        With `replace=True` the store is emptied first, in the same
        transaction; if any write fails the store keeps its previous contents.
        """
        spec = self.spec(store)
        written: List[schemas.Record] = []
        with self._session(store, "put") as db:
            if replace:
                db.query(spec.row_type).delete(synchronize_session=False)
            for raw in records:
                record = self._coerce(spec, raw)
                self._write(db, spec, record, touch)
                written.append(record)

        logger.debug(f"Wrote {len(written)} records to {store} (replace={replace})")
        return written

    def _write(self, db: Session, spec: StoreSpec, record: schemas.Record, touch: bool) -> None:
        """Insert or overwrite one row; fills timestamps on `record`"""
        row = db.get(spec.row_type, record.id)
        if spec.timestamped:
            if record.created_at is None:
                record.created_at = row.created_at if row is not None and row.created_at else datetime.utcnow()
            if touch or record.updated_at is None:
                record.updated_at = datetime.utcnow()
        values = record.model_dump()
        if row is None:
            db.add(spec.row_type(**values))
            # later writes of the same id in this session must find the row
            db.flush()
        else:
            for key, value in values.items():
                setattr(row, key, value)

    def update(self, store: str, record_id: str, changes) -> schemas.Record:
        """
        Merge `changes` into an existing record.

        Applying the same changes twice leaves the same stored record;
        `updatedAt` only moves when a value actually changes.
        """
        spec = self.spec(store)
        record_id = str(record_id)
        changes = self._normalize_changes(spec, record_id, changes)

        with self._session(store, "update") as db:
            row = db.get(spec.row_type, record_id)
            if row is None:
                raise RecordNotFoundError(store, record_id)

            current = self._from_row(spec, row)
            merged = current.model_dump()
            merged.update(changes)
            updated = self._coerce(spec, merged)

            if spec.timestamped:
                changed = updated.model_dump(exclude={"updated_at"}) != current.model_dump(exclude={"updated_at"})
                if changed and "updated_at" not in changes:
                    updated.updated_at = datetime.utcnow()

            for key, value in updated.model_dump().items():
                setattr(row, key, value)

        return updated

    def delete(self, store: str, record_id: str) -> bool:
        """Delete one record. Returns False when the id does not exist."""
        spec = self.spec(store)
        with self._session(store, "delete") as db:
            row = db.get(spec.row_type, str(record_id))
            if row is None:
                return False
            db.delete(row)
        return True

    def delete_many(self, store: str, record_ids: Iterable[str]) -> int:
        """Delete exactly the given ids; returns how many existed"""
        spec = self.spec(store)
        ids = list({str(i) for i in record_ids})
        if not ids:
            return 0
        with self._session(store, "delete") as db:
            return (
                db.query(spec.row_type)
                .filter(spec.row_type.id.in_(ids))
                .delete(synchronize_session=False)
            )

    def clear(self, store: str) -> int:
        """Remove every record from a store (use with caution!)"""
        spec = self.spec(store)
        with self._session(store, "clear") as db:
            count = db.query(spec.row_type).delete(synchronize_session=False)
        logger.info(f"Cleared store {store} ({count} records)")
        return count
