"""Unit tests for the exception hierarchy."""

import pytest


class TestErrorHierarchy:
    """Test error families and codes."""

    def test_query_errors_are_value_errors(self):
        """Test query-building errors can be caught as ValueError."""
        from elastic_repository.core.errors import ElasticRepositoryError, ErrorCode, NoFieldsError

        error = NoFieldsError()

        assert isinstance(error, ValueError)
        assert isinstance(error, ElasticRepositoryError)
        assert error.code is ErrorCode.QUERY_INVALID

    def test_repository_error_prefix(self):
        """Test the prefix is part of the message and kept apart from it."""
        from elastic_repository.core.errors import ReadOperationError

        error = ReadOperationError("timeout", prefix="Elasticsearch exception: ")

        assert str(error) == "Elasticsearch exception: timeout"
        assert error.raw_message == "timeout"
        assert error.prefix == "Elasticsearch exception: "

    @pytest.mark.parametrize(
        "error_name,code",
        [
            ("BulkError", "BULK_FAILED"),
            ("UpdateError", "UPDATE_FAILED"),
            ("UpsertError", "UPSERT_FAILED"),
            ("DeleteError", "DELETE_FAILED"),
        ],
    )
    def test_write_family_codes(self, error_name, code):
        """Test each write failure carries its own code."""
        from elastic_repository.core import errors

        error = getattr(errors, error_name)("boom")

        assert error.code.value == code
        assert isinstance(error, errors.RepositoryError)

    def test_document_not_found_is_delete_error(self):
        """Test a missing document can be caught as a delete failure."""
        from elastic_repository.core.errors import DeleteError, DocumentNotFoundError, ErrorCode

        error = DocumentNotFoundError("42", prefix="Elasticsearch exception: ")

        assert isinstance(error, DeleteError)
        assert error.document_id == "42"
        assert error.code is ErrorCode.DOCUMENT_NOT_FOUND
        assert str(error) == "Elasticsearch exception: No document found with id 42"
