"""Shared error codes and exception hierarchy.

Centralizes the failures raised while building queries and while talking
to the search engine, so callers can catch one typed family per concern.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    QUERY_INVALID = "QUERY_INVALID"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    READ_FAILED = "READ_FAILED"
    WRITE_FAILED = "WRITE_FAILED"
    BULK_FAILED = "BULK_FAILED"
    DELETE_FAILED = "DELETE_FAILED"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPSERT_FAILED = "UPSERT_FAILED"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ElasticRepositoryError(Exception):
    """Base class for every error raised by this package."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR


# ============================================================================
# Query building
# ============================================================================


class QueryError(ElasticRepositoryError, ValueError):
    """Invalid argument while building a query, criterion or aggregation."""

    code = ErrorCode.QUERY_INVALID


class UnknownOperatorError(QueryError):
    def __init__(self, operator: Any):
        super().__init__(f'Unknown operator "{operator}" given')


class UnhandledOperatorError(QueryError):
    def __init__(self, operator: Any):
        super().__init__(f'Unhandled operator "{operator}"')


class UnknownSearchTypeError(QueryError):
    def __init__(self, search_type: Any):
        super().__init__(f'Unknown full text search type "{search_type}" given')


class NoFieldsError(QueryError):
    def __init__(self) -> None:
        super().__init__("No fields given")


class UnknownAggregationTypeError(QueryError):
    def __init__(self, aggregation_type: Any):
        super().__init__(f'Unknown type "{aggregation_type}" given')


class UnknownChildArgumentTypeError(QueryError):
    def __init__(self, argument_index: int):
        self.argument_index = argument_index
        super().__init__(f"Argument #{argument_index} is of unknown type")


class InvalidSearchArgumentError(QueryError):
    def __init__(self, *allowed: str):
        self.allowed = list(allowed)
        super().__init__(f"Argument $search must be one of [{', '.join(allowed)}]")


class InvalidSortOrderError(QueryError):
    def __init__(self, order: Any):
        super().__init__(f'Invalid sort direction "{order}" given')


class InvalidSearchOperatorError(QueryError):
    def __init__(self, operator: Any):
        super().__init__(f"The value '{operator}' is not valid.")


class UnknownOptionError(QueryError):
    def __init__(self, option: str):
        super().__init__(f'Unknown option "{option}" given.')


class MissingAggregationAttributesError(QueryError):
    def __init__(self) -> None:
        super().__init__("Aggregation name is missing")


# ============================================================================
# Repository
# ============================================================================


class RepositoryConfigurationError(ElasticRepositoryError):
    """Missing or invalid repository configuration."""

    code = ErrorCode.CONFIGURATION_ERROR


class RepositoryError(ElasticRepositoryError):
    """A transport call made on behalf of a repository operation failed."""

    def __init__(self, message: str = "", prefix: str = ""):
        self.raw_message = message
        self.prefix = prefix
        super().__init__(f"{prefix}{message}")


class ReadOperationError(RepositoryError):
    code = ErrorCode.READ_FAILED


class WriteOperationError(RepositoryError):
    code = ErrorCode.WRITE_FAILED


class BulkError(WriteOperationError):
    """A bulk request failed; carries the operations that were attempted."""

    code = ErrorCode.BULK_FAILED

    def __init__(
        self,
        message: str = "",
        operations: Optional[List[Dict[str, Any]]] = None,
        prefix: str = "",
    ):
        super().__init__(message, prefix)
        self.operations = operations


class _DocumentWriteError(WriteOperationError):
    def __init__(
        self,
        message: str = "",
        document_id: Optional[str] = None,
        document: Optional[Dict[str, Any]] = None,
        prefix: str = "",
    ):
        super().__init__(message, prefix)
        self.document_id = document_id
        self.document = document


class UpdateError(_DocumentWriteError):
    code = ErrorCode.UPDATE_FAILED


class UpsertError(_DocumentWriteError):
    code = ErrorCode.UPSERT_FAILED


class DeleteError(RepositoryError):
    code = ErrorCode.DELETE_FAILED

    def __init__(self, message: str = "", document_id: Optional[str] = None, prefix: str = ""):
        super().__init__(message, prefix)
        self.document_id = document_id


class DocumentNotFoundError(DeleteError):
    """The addressed document does not exist. Expected outcome, not a failure."""

    code = ErrorCode.DOCUMENT_NOT_FOUND

    def __init__(self, document_id: str, prefix: str = ""):
        super().__init__(f"No document found with id {document_id}", document_id, prefix)


__all__ = [
    "ErrorCode",
    "ElasticRepositoryError",
    "QueryError",
    "UnknownOperatorError",
    "UnhandledOperatorError",
    "UnknownSearchTypeError",
    "NoFieldsError",
    "UnknownAggregationTypeError",
    "UnknownChildArgumentTypeError",
    "InvalidSearchArgumentError",
    "InvalidSortOrderError",
    "InvalidSearchOperatorError",
    "UnknownOptionError",
    "MissingAggregationAttributesError",
    "RepositoryConfigurationError",
    "RepositoryError",
    "ReadOperationError",
    "WriteOperationError",
    "BulkError",
    "UpdateError",
    "UpsertError",
    "DeleteError",
    "DocumentNotFoundError",
]
