"""
TABLE STORE
===========
SQLAlchemy-backed stand-in for the remote table service.

FLOW:
- Requests arrive as serialized bodies in the client's payload format.
- Entities are persisted as JSON minimal-metadata, which keeps every type.
- Reads apply the projection and answer in the requested accept format.

HOW:
- One session per call (one per batch), committed or rolled back as a unit.
- ETags are SHA-256 digests of the stored payload and its timestamp.
"""

from __future__ import annotations

import datetime
from contextlib import contextmanager
from dataclasses import dataclass

from Encryption.data_integrity import entity_etag, etag_matches

from .database import create_session_factory, create_store_engine
from .entity import PARTITION_KEY, ROW_KEY, TIMESTAMP, EdmType, EntityProperty
from .errors import (
    _ERROR_BATCH_COMMIT_FAIL,
    _ERROR_ENTITY_EXISTS,
    _ERROR_ENTITY_NOT_FOUND,
    _ERROR_ETAG_MISMATCH,
    _ERROR_TABLE_EXISTS,
    _ERROR_TABLE_NOT_FOUND,
    BatchError,
    PreconditionFailedError,
    ResourceExistsError,
    ResourceNotFoundError,
    TableServiceError,
)
from .models import StoredEntity, StoredTable
from .payload_format import TablePayloadFormat, deserialize_entity, serialize_entity


INSERT = "insert"
REPLACE = "replace"
INSERT_OR_REPLACE = "insert_or_replace"
MERGE = "merge"
INSERT_OR_MERGE = "insert_or_merge"
DELETE = "delete"

WRITE_OPERATIONS = (INSERT, REPLACE, INSERT_OR_REPLACE, MERGE, INSERT_OR_MERGE)
_CANONICAL_FORMAT = TablePayloadFormat.JSON_MINIMAL_METADATA


@dataclass
class StoreRequest:
    operation: str
    partition_key: str
    row_key: str
    body: str | None = None
    payload_format: str = _CANONICAL_FORMAT
    if_match: str | None = None


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite drops tzinfo on the way back.
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


class TableStore:
    def __init__(self, engine=None):
        self.engine = engine or create_store_engine()
        self.SessionLocal = create_session_factory(self.engine)

    @contextmanager
    def _session(self):
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_table(self, table_name: str) -> None:
        with self._session() as db:
            if db.get(StoredTable, table_name) is not None:
                raise ResourceExistsError(_ERROR_TABLE_EXISTS.format(table_name))
            db.add(StoredTable(name=table_name))

    def delete_table(self, table_name: str) -> None:
        with self._session() as db:
            table = self._get_table(db, table_name)
            db.delete(table)

    def table_exists(self, table_name: str) -> bool:
        with self._session() as db:
            return db.get(StoredTable, table_name) is not None

    def execute(self, table_name: str, request: StoreRequest) -> str | None:
        with self._session() as db:
            self._get_table(db, table_name)
            return self._apply(db, table_name, request)

    def execute_batch(self, table_name: str, requests: list[StoreRequest]) -> list[str | None]:
        with self._session() as db:
            self._get_table(db, table_name)
            results = []
            for index, request in enumerate(requests):
                try:
                    results.append(self._apply(db, table_name, request))
                except TableServiceError as exc:
                    raise BatchError(_ERROR_BATCH_COMMIT_FAIL.format(index, exc), exc.status_code) from exc
            return results

    def read(
        self,
        table_name: str,
        partition_key: str,
        row_key: str,
        select: list[str] | None = None,
        accept: str = _CANONICAL_FORMAT,
    ) -> tuple[str, str]:
        with self._session() as db:
            self._get_table(db, table_name)
            row = self._find(db, table_name, partition_key, row_key)
            if row is None:
                raise ResourceNotFoundError(_ERROR_ENTITY_NOT_FOUND.format(partition_key, row_key))
            return self._response_body(row, select, accept), row.etag

    def query(
        self,
        table_name: str,
        partition_key: str | None = None,
        select: list[str] | None = None,
        accept: str = _CANONICAL_FORMAT,
    ) -> list[tuple[str, str]]:
        with self._session() as db:
            self._get_table(db, table_name)
            rows = db.query(StoredEntity).filter(StoredEntity.table_name == table_name)
            if partition_key is not None:
                rows = rows.filter(StoredEntity.partition_key == partition_key)
            rows = rows.order_by(StoredEntity.partition_key, StoredEntity.row_key).all()
            return [(self._response_body(row, select, accept), row.etag) for row in rows]

    def _get_table(self, db, table_name: str) -> StoredTable:
        table = db.get(StoredTable, table_name)
        if table is None:
            raise ResourceNotFoundError(_ERROR_TABLE_NOT_FOUND.format(table_name))
        return table

    def _find(self, db, table_name: str, partition_key: str, row_key: str) -> StoredEntity | None:
        return (
            db.query(StoredEntity)
            .filter(
                StoredEntity.table_name == table_name,
                StoredEntity.partition_key == partition_key,
                StoredEntity.row_key == row_key,
            )
            .first()
        )

    def _apply(self, db, table_name: str, request: StoreRequest) -> str | None:
        row = self._find(db, table_name, request.partition_key, request.row_key)

        if request.operation == DELETE:
            if row is None:
                raise ResourceNotFoundError(_ERROR_ENTITY_NOT_FOUND.format(request.partition_key, request.row_key))
            self._check_etag(row, request.if_match)
            db.delete(row)
            db.flush()
            return None

        if request.operation not in WRITE_OPERATIONS:
            raise TableServiceError(f"Unsupported operation '{request.operation}'.", 400)

        properties = deserialize_entity(request.body, request.payload_format)
        for name in (PARTITION_KEY, ROW_KEY, TIMESTAMP):
            properties.pop(name, None)

        if request.operation == INSERT and row is not None:
            raise ResourceExistsError(_ERROR_ENTITY_EXISTS.format(request.partition_key, request.row_key))
        if request.operation in (REPLACE, MERGE):
            if row is None:
                raise ResourceNotFoundError(_ERROR_ENTITY_NOT_FOUND.format(request.partition_key, request.row_key))
            self._check_etag(row, request.if_match)

        if row is not None and request.operation in (MERGE, INSERT_OR_MERGE):
            merged = deserialize_entity(row.payload, _CANONICAL_FORMAT)
            merged.update(properties)
            properties = merged

        payload = serialize_entity(properties, _CANONICAL_FORMAT)
        timestamp = _utcnow()
        etag = entity_etag(payload, timestamp)
        if row is None:
            row = StoredEntity(
                table_name=table_name,
                partition_key=request.partition_key,
                row_key=request.row_key,
            )
            db.add(row)
        row.payload = payload
        row.timestamp = timestamp
        row.etag = etag
        db.flush()
        return etag

    def _check_etag(self, row: StoredEntity, if_match: str | None) -> None:
        if not etag_matches(if_match, row.etag):
            raise PreconditionFailedError(_ERROR_ETAG_MISMATCH.format(row.partition_key, row.row_key))

    def _response_body(self, row: StoredEntity, select: list[str] | None, accept: str) -> str:
        stored = deserialize_entity(row.payload, _CANONICAL_FORMAT)
        if select is not None:
            wanted = set(select)
            stored = {name: prop for name, prop in stored.items() if name in wanted}
        properties = {
            PARTITION_KEY: EntityProperty(EdmType.STRING, row.partition_key),
            ROW_KEY: EntityProperty(EdmType.STRING, row.row_key),
            TIMESTAMP: EntityProperty(EdmType.DATETIME, _as_utc(row.timestamp)),
        }
        properties.update(stored)
        return serialize_entity(properties, accept)
