"""
TABLE SERVICE ERRORS
====================
Errors raised by the table store, carrying the HTTP status the service uses.
"""

from __future__ import annotations


_ERROR_TABLE_NOT_FOUND = "Table '{}' does not exist."
_ERROR_TABLE_EXISTS = "Table '{}' already exists."
_ERROR_ENTITY_NOT_FOUND = "Entity ({}, {}) does not exist."
_ERROR_ENTITY_EXISTS = "Entity ({}, {}) already exists."
_ERROR_ETAG_MISMATCH = "ETag does not match for entity ({}, {})."
_ERROR_INCORRECT_PARTITION_KEY_IN_BATCH = "All entities in a batch must have the same partition key."
_ERROR_DUPLICATE_ROW_KEY_IN_BATCH = "Row keys must be unique within a batch."
_ERROR_TOO_MANY_ENTITIES_IN_BATCH = "Batches may contain at most {} operations."
_ERROR_BATCH_COMMIT_FAIL = "Batch operation {} failed: {}"


class TableServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class ResourceNotFoundError(TableServiceError):
    status_code = 404


class ResourceExistsError(TableServiceError):
    status_code = 409


class PreconditionFailedError(TableServiceError):
    status_code = 412


class BatchError(TableServiceError):
    status_code = 400
