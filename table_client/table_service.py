"""
TABLE SERVICE
=============
Client for table operations with transparent client-side encryption.

FLOW:
- Write operations: prepare_write() -> store.execute(); returns the new ETag.
- Reads: store.read()/query() with projection -> resolve_read().
- batch(): collect operations, commit them as one transaction on exit.

HOW:
- Per-call TableRequestOptions override the service defaults.
- Logs one table.activity line per operation (names and keys only).
"""

from __future__ import annotations

from contextlib import contextmanager

from Encryption.encryption_config import feature_enabled
from Encryption.encryption_logging import get_logger
from Encryption.metrics import set_feature_enabled

from .batch import TableBatch
from .operations import prepare_write, projection, resolve_read
from .request_options import TableRequestOptions
from .table_store import (
    DELETE,
    INSERT,
    INSERT_OR_MERGE,
    INSERT_OR_REPLACE,
    MERGE,
    REPLACE,
    StoreRequest,
    TableStore,
)


TRACKED_FEATURES = ("audit-trail", "metrics")


class TableService:
    def __init__(self, store: TableStore | None = None, options: TableRequestOptions | None = None):
        self.store = store or TableStore()
        self.default_options = options or TableRequestOptions()
        self.logger = get_logger("table.activity")
        for feature in TRACKED_FEATURES:
            set_feature_enabled(feature, feature_enabled(feature))

    def _options(self, options: TableRequestOptions | None) -> TableRequestOptions:
        return options or self.default_options

    def create_table(self, table_name: str) -> None:
        self.store.create_table(table_name)
        self.logger.info("operation=create_table table=%s", table_name)

    def delete_table(self, table_name: str) -> None:
        self.store.delete_table(table_name)
        self.logger.info("operation=delete_table table=%s", table_name)

    def exists(self, table_name: str) -> bool:
        return self.store.table_exists(table_name)

    def insert_entity(self, table_name: str, entity, options: TableRequestOptions | None = None) -> str:
        return self._write(table_name, entity, INSERT, options)

    def update_entity(
        self, table_name: str, entity, if_match: str | None = None, options: TableRequestOptions | None = None
    ) -> str:
        return self._write(table_name, entity, REPLACE, options, if_match)

    def insert_or_replace_entity(self, table_name: str, entity, options: TableRequestOptions | None = None) -> str:
        return self._write(table_name, entity, INSERT_OR_REPLACE, options)

    def merge_entity(
        self, table_name: str, entity, if_match: str | None = None, options: TableRequestOptions | None = None
    ) -> str:
        return self._write(table_name, entity, MERGE, options, if_match)

    def insert_or_merge_entity(self, table_name: str, entity, options: TableRequestOptions | None = None) -> str:
        return self._write(table_name, entity, INSERT_OR_MERGE, options)

    def delete_entity(self, table_name: str, partition_key: str, row_key: str, if_match: str = "*") -> None:
        self.store.execute(table_name, StoreRequest(DELETE, partition_key, row_key, if_match=if_match))
        self.logger.info(
            "operation=delete table=%s partition_key=%s row_key=%s", table_name, partition_key, row_key
        )

    def get_entity(
        self,
        table_name: str,
        partition_key: str,
        row_key: str,
        select=None,
        options: TableRequestOptions | None = None,
        entity_type=None,
    ):
        options = self._options(options)
        body, etag = self.store.read(
            table_name,
            partition_key,
            row_key,
            select=projection(select, options),
            accept=options.payload_format,
        )
        return resolve_read(body, etag, options, entity_type)

    def query_entities(
        self,
        table_name: str,
        partition_key: str | None = None,
        select=None,
        options: TableRequestOptions | None = None,
        entity_type=None,
    ) -> list:
        options = self._options(options)
        rows = self.store.query(
            table_name,
            partition_key=partition_key,
            select=projection(select, options),
            accept=options.payload_format,
        )
        return [resolve_read(body, etag, options, entity_type) for body, etag in rows]

    @contextmanager
    def batch(self, table_name: str, options: TableRequestOptions | None = None):
        batch = TableBatch(self._options(options))
        yield batch
        self.commit_batch(table_name, batch)

    def commit_batch(self, table_name: str, batch: TableBatch) -> list[str | None]:
        results = self.store.execute_batch(table_name, batch.requests)
        self.logger.info("operation=batch table=%s count=%s", table_name, len(batch))
        return results

    def _write(self, table_name: str, entity, operation: str, options, if_match: str | None = None) -> str:
        options = self._options(options)
        request = prepare_write(entity, options, operation)
        if if_match is not None:
            request.if_match = if_match
        etag = self.store.execute(table_name, request)
        self.logger.info(
            "operation=%s table=%s partition_key=%s row_key=%s encrypted=%s",
            operation,
            table_name,
            request.partition_key,
            request.row_key,
            options.encryption_policy is not None,
        )
        return etag
