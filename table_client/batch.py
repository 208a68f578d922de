from __future__ import annotations

from .errors import (
    _ERROR_DUPLICATE_ROW_KEY_IN_BATCH,
    _ERROR_INCORRECT_PARTITION_KEY_IN_BATCH,
    _ERROR_TOO_MANY_ENTITIES_IN_BATCH,
    BatchError,
)
from .operations import prepare_write
from .request_options import TableRequestOptions
from .table_store import (
    DELETE,
    INSERT,
    INSERT_OR_MERGE,
    INSERT_OR_REPLACE,
    MERGE,
    REPLACE,
    StoreRequest,
)


class TableBatch:
    """Entity group transaction.

    Entities are encrypted when they are added, so the options in force at
    that moment apply even if the batch is committed later.
    """

    MAX_OPERATIONS = 100

    def __init__(self, options: TableRequestOptions | None = None):
        self.options = options or TableRequestOptions()
        self._requests: list[StoreRequest] = []
        self._partition_key = None
        self._row_keys = set()

    def insert_entity(self, entity) -> None:
        self._add(prepare_write(entity, self.options, INSERT))

    def update_entity(self, entity, if_match: str | None = None) -> None:
        self._add(prepare_write(entity, self.options, REPLACE), if_match)

    def insert_or_replace_entity(self, entity) -> None:
        self._add(prepare_write(entity, self.options, INSERT_OR_REPLACE))

    def merge_entity(self, entity, if_match: str | None = None) -> None:
        self._add(prepare_write(entity, self.options, MERGE), if_match)

    def insert_or_merge_entity(self, entity) -> None:
        self._add(prepare_write(entity, self.options, INSERT_OR_MERGE))

    def delete_entity(self, partition_key: str, row_key: str, if_match: str = "*") -> None:
        self._add(StoreRequest(DELETE, partition_key, row_key, if_match=if_match))

    @property
    def requests(self) -> list[StoreRequest]:
        return list(self._requests)

    def __len__(self) -> int:
        return len(self._requests)

    def _add(self, request: StoreRequest, if_match: str | None = None) -> None:
        if len(self._requests) >= self.MAX_OPERATIONS:
            raise BatchError(_ERROR_TOO_MANY_ENTITIES_IN_BATCH.format(self.MAX_OPERATIONS))
        if self._partition_key is None:
            self._partition_key = request.partition_key
        elif request.partition_key != self._partition_key:
            raise BatchError(_ERROR_INCORRECT_PARTITION_KEY_IN_BATCH)
        if request.row_key in self._row_keys:
            raise BatchError(_ERROR_DUPLICATE_ROW_KEY_IN_BATCH)
        if if_match is not None:
            request.if_match = if_match
        self._row_keys.add(request.row_key)
        self._requests.append(request)
