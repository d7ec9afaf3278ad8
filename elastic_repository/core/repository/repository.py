"""Repository operation layer.

Wraps raw transport calls with index resolution, entity (de)serialization
and one failure policy: a transport error is logged once, prefixed, and
re-raised as the typed exception of the operation.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from elasticsearch import NotFoundError

from elastic_repository.core.errors import (
    BulkError,
    DeleteError,
    DocumentNotFoundError,
    ElasticRepositoryError,
    ReadOperationError,
    RepositoryConfigurationError,
    RepositoryError,
    UpdateError,
    UpsertError,
    WriteOperationError,
)
from elastic_repository.core.logging.structured import StructuredLogger, get_logger, operation_context
from elastic_repository.core.repository.configuration import (
    EntitySerializer,
    OperationType,
    RepositoryConfiguration,
)
from elastic_repository.core.search.aggregations import CompositeAggregationBuilder
from elastic_repository.core.search.query import BaseQuery, Query
from elastic_repository.core.search.results import AggregationResultSet, CompositeResult, ResultIterator

T = TypeVar("T")

Document = Dict[str, Any]
Entity = Union[Document, Any]


class AbstractRepository:
    """CRUD, bulk, scroll and aggregation operations against one index pair.

    Subclasses set ``EXCEPTION_PREFIX`` and ``NOT_FOUND_ERRORS`` for their
    transport, and may override the ``post_*`` hooks, which run only after a
    successful write with the exact data that was persisted.
    """

    EXCEPTION_PREFIX = ""
    NOT_FOUND_ERRORS: Tuple[Type[BaseException], ...] = ()
    COMPOSITE_PAGE_SIZE = CompositeAggregationBuilder.DEFAULT_SIZE

    def __init__(
        self,
        client: Any,
        config: Union[RepositoryConfiguration, Mapping],
        logger: Optional[StructuredLogger] = None,
    ):
        self.client = client
        self.config = RepositoryConfiguration.from_mapping(config)
        self._logger = logger

    # -- logging ---------------------------------------------------------------

    @property
    def logger(self) -> StructuredLogger:
        if self._logger is None:
            self._logger = get_logger(__name__)
        return self._logger

    def set_logger(self, logger: StructuredLogger) -> None:
        self._logger = logger

    def _log_error(self, error: Union[BaseException, str], **context: Any) -> None:
        self.logger.error(f"{self.EXCEPTION_PREFIX}{error}", **context)

    def _log_critical(self, error: Union[BaseException, str], **context: Any) -> None:
        self.logger.critical(f"{self.EXCEPTION_PREFIX}{error}", **context)

    # -- writes ------------------------------------------------------------------

    def save(self, document_id: str, entity: Entity) -> None:
        document = self.prepare_document(entity)
        request = self.build_request_base(OperationType.WRITE)

        with operation_context("save", request["index"]):
            try:
                self.client.index(**request, id=document_id, document=document)
                self.post_save(document_id, document)
            except ElasticRepositoryError:
                raise
            except Exception as e:
                self._log_error(e, document_id=document_id)
                raise UpsertError(str(e), document_id, document, prefix=self.EXCEPTION_PREFIX) from e

    def save_bulk(self, entities: Mapping[str, Entity]) -> None:
        """Index many documents with one bulk request. Empty input is a no-op."""
        if not entities:
            return

        documents = {
            document_id: self.prepare_document(entity) for document_id, entity in entities.items()
        }

        operations: List[Dict[str, Any]] = []
        for document_id, document in documents.items():
            operations.append({"index": {"_id": document_id}})
            operations.append(document)

        self._bulk("save_bulk", operations, lambda: self.post_save_bulk(documents))

    def delete(self, document_id: str) -> None:
        request = self.build_request_base(OperationType.WRITE)

        with operation_context("delete", request["index"]):
            try:
                self.client.delete(**request, id=document_id)
                self.post_delete(document_id)
            except self.NOT_FOUND_ERRORS as e:
                raise DocumentNotFoundError(document_id, prefix=self.EXCEPTION_PREFIX) from e
            except ElasticRepositoryError:
                raise
            except Exception as e:
                self._log_error(e, document_id=document_id)
                raise DeleteError(str(e), document_id, prefix=self.EXCEPTION_PREFIX) from e

    def delete_bulk(self, *document_ids: str) -> None:
        """Delete many documents with one bulk request. Empty input is a no-op."""
        if not document_ids:
            return

        operations = [{"delete": {"_id": document_id}} for document_id in document_ids]
        self._bulk("delete_bulk", operations, lambda: self.post_delete_bulk(*document_ids))

    def _bulk(self, operation: str, operations: List[Dict[str, Any]], on_success: Callable[[], None]) -> None:
        request = self.build_request_base(OperationType.WRITE)

        with operation_context(operation, request["index"]):
            try:
                self.client.bulk(**request, operations=operations)
                on_success()
            except ElasticRepositoryError:
                raise
            except Exception as e:
                self._log_error(e, operations=len(operations))
                raise BulkError(str(e), operations, prefix=self.EXCEPTION_PREFIX) from e

    def upsert(self, document_id: str, entity: Entity) -> None:
        document = self.prepare_document(entity)
        request = self.build_request_base(OperationType.WRITE)

        with operation_context("upsert", request["index"]):
            try:
                self.client.update(**request, id=document_id, doc=document, doc_as_upsert=True)
                self.post_upsert(document_id, document)
            except ElasticRepositoryError:
                raise
            except Exception as e:
                self._log_error(e, document_id=document_id)
                raise UpsertError(str(e), document_id, document, prefix=self.EXCEPTION_PREFIX) from e

    def update(self, document_id: str, partial_entity: Entity) -> None:
        document = self.prepare_document(partial_entity)
        request = self.build_request_base(OperationType.WRITE)

        with operation_context("update", request["index"]):
            try:
                self.client.update(**request, id=document_id, doc=document)
                self.post_update(document_id, document)
            except ElasticRepositoryError:
                raise
            except Exception as e:
                self._log_error(e, document_id=document_id)
                raise UpdateError(str(e), document_id, document, prefix=self.EXCEPTION_PREFIX) from e

    def delete_by_query(self, query: BaseQuery, proceed_on_conflicts: bool = False) -> Dict[str, Any]:
        request = self.build_raw_query(query, OperationType.WRITE)
        if proceed_on_conflicts:
            request["conflicts"] = "proceed"

        return self.execute_write("delete_by_query", lambda: self.client.delete_by_query(**request))

    def update_by_query(self, query: BaseQuery, update_script: Dict[str, Any]) -> Dict[str, Any]:
        """Run a script over every matching document.

        Accepts a bare script ({"lang": ..., "source": ..., "params": ...}) or one
        already wrapped under a "script" key.
        """
        request = self.build_raw_query(query, OperationType.WRITE)
        request["body"]["script"] = self.sanitize_update_script(update_script)["script"]

        return self.execute_write("update_by_query", lambda: self.client.update_by_query(**request))

    # -- reads -------------------------------------------------------------------

    def find_by_query(self, query: BaseQuery) -> ResultIterator:
        request = self.build_search_request(query)

        return self.execute_read(
            "find_by_query", lambda: self.parse_search_response(self.client.search(**request))
        )

    def find_scrollable_by_query(
        self, query: BaseQuery, scroll_context_keepalive: Optional[str] = None
    ) -> ResultIterator:
        """Search and open a scroll context; the result carries its scroll id."""
        request = self.build_search_request(query)
        request["scroll"] = scroll_context_keepalive or self.config.scroll_context_keepalive

        return self.execute_read(
            "find_scrollable_by_query",
            lambda: self.parse_search_response(self.client.search(**request)),
        )

    def find_by_scroll_id(
        self, scroll_id: str, scroll_context_keepalive: Optional[str] = None
    ) -> ResultIterator:
        keepalive = scroll_context_keepalive or self.config.scroll_context_keepalive

        return self.execute_read(
            "find_by_scroll_id",
            lambda: self.parse_search_response(
                self.client.scroll(scroll_id=scroll_id, scroll=keepalive)
            ),
        )

    def clear_scroll_id(self, scroll_id: str) -> None:
        self.execute(None, "clear_scroll_id", lambda: self.client.clear_scroll(scroll_id=scroll_id))

    def find_by_id(self, document_id: str, source_fields: Optional[Sequence[str]] = None) -> Optional[Entity]:
        """Return the document (or entity), or None when it does not exist."""
        request = self._build_read_base()
        request["id"] = document_id
        if source_fields:
            request["source_includes"] = list(source_fields)

        def operation() -> Optional[Entity]:
            try:
                response = self.client.get(**request)
            except self.NOT_FOUND_ERRORS:
                return None
            if not response.get("found", False):
                return None
            return self.create_potential_entity(response)

        return self.execute_read("find_by_id", operation)

    def find_by_ids(self, document_ids: Sequence[str], source_fields: Optional[Sequence[str]] = None) -> List[Entity]:
        """Multi-get; ids without a stored document are skipped."""
        if not document_ids:
            return []

        docs: List[Dict[str, Any]] = []
        for document_id in document_ids:
            doc: Dict[str, Any] = {"_id": document_id}
            if source_fields:
                doc["_source"] = list(source_fields)
            docs.append(doc)

        request = self._build_read_base()
        request["docs"] = docs

        def operation() -> List[Entity]:
            try:
                response = self.client.mget(**request)
            except Exception:
                self._log_critical("Request error", request=json.dumps(request))
                raise
            return [
                self.create_potential_entity(doc)
                for doc in response.get("docs", [])
                if doc.get("found", False)
            ]

        return self.execute_read("find_by_ids", operation)

    def count(self) -> int:
        return self.count_by_query(Query.create())

    def count_by_query(self, query: BaseQuery) -> int:
        request = self._build_read_base()
        body = query.to_dict()
        if "query" in body:
            request["query"] = body["query"]

        return self.execute_read("count_by_query", lambda: self.client.count(**request)["count"])

    def aggregate_by_query(self, query: BaseQuery) -> AggregationResultSet:
        """Run a search and return its aggregations by name plus the hit documents."""
        request = self.build_search_request(query)

        def operation() -> AggregationResultSet:
            response = self.client.search(**request)
            return AggregationResultSet.create(response.get("aggregations") or {}).set_documents(
                self.parse_search_response(response)
            )

        return self.execute_read("aggregate_by_query", operation)

    def aggregate_composite_by_query(
        self,
        composite_query: CompositeAggregationBuilder,
        size: Optional[int] = None,
        query_hook: Optional[Callable[[BaseQuery], BaseQuery]] = None,
    ) -> Iterator[CompositeResult]:
        """Lazily yield every composite bucket, paging with the after key.

        Paging stops once a page returns fewer buckets than the page size.
        Buckets with an empty key or zero documents are skipped.
        """
        size = size or self.COMPOSITE_PAGE_SIZE
        name = composite_query.name
        after_key: Optional[Dict[str, Any]] = None

        while True:
            query: BaseQuery = composite_query.with_after_key(after_key).get_query(size)
            if query_hook is not None:
                query = query_hook(query)

            result = self.aggregate_by_query(query).get_result_by_name(name)
            buckets = (result.buckets if result is not None else None) or []

            for bucket in buckets:
                if bucket.get("key") and bucket.get("doc_count"):
                    yield CompositeResult(bucket["key"], bucket["doc_count"], name)

            if len(buckets) < size:
                return

            after_key = (result.get("after_key") if result is not None else None) or buckets[-1].get("key")
            if not after_key:
                return

    # -- hooks -------------------------------------------------------------------

    def post_save(self, document_id: str, document: Document) -> None:
        pass

    def post_save_bulk(self, documents: Mapping[str, Document]) -> None:
        pass

    def post_delete(self, document_id: str) -> None:
        pass

    def post_delete_bulk(self, *document_ids: str) -> None:
        pass

    def post_upsert(self, document_id: str, document: Document) -> None:
        pass

    def post_update(self, document_id: str, document: Document) -> None:
        pass

    # -- plumbing ----------------------------------------------------------------

    def execute_read(self, operation_name: str, operation: Callable[[], T]) -> T:
        return self.execute(OperationType.READ, operation_name, operation)

    def execute_write(self, operation_name: str, operation: Callable[[], T]) -> T:
        return self.execute(OperationType.WRITE, operation_name, operation)

    def execute(
        self,
        operation_type: Optional[OperationType],
        operation_name: str,
        operation: Callable[[], T],
    ) -> T:
        index = None
        if operation_type is not None:
            index = self.config.index_read if operation_type is OperationType.READ else self.config.index_write

        with operation_context(operation_name, index):
            try:
                return operation()
            except ElasticRepositoryError:
                raise
            except Exception as e:
                self._log_error(e)
                if operation_type is OperationType.READ:
                    raise ReadOperationError(str(e), prefix=self.EXCEPTION_PREFIX) from e
                if operation_type is OperationType.WRITE:
                    raise WriteOperationError(str(e), prefix=self.EXCEPTION_PREFIX) from e
                raise RepositoryError(str(e), prefix=self.EXCEPTION_PREFIX) from e

    def build_request_base(self, operation_type: Union[OperationType, str]) -> Dict[str, Any]:
        operation_type = OperationType(operation_type)
        base: Dict[str, Any] = {"index": self.config.get_index(operation_type)}

        if operation_type is OperationType.WRITE and self.config.force_refresh_on_write:
            base["refresh"] = True

        return base

    def _build_read_base(self) -> Dict[str, Any]:
        return self.build_request_base(OperationType.READ)

    def build_raw_query(self, query: BaseQuery, operation_type: Union[OperationType, str]) -> Dict[str, Any]:
        request = self.build_request_base(operation_type)
        request["body"] = query.to_dict()
        return request

    def build_search_request(self, query: BaseQuery) -> Dict[str, Any]:
        request = self.build_raw_query(query, OperationType.READ)
        if self.config.track_total_hits is not None:
            request["body"]["track_total_hits"] = self.config.track_total_hits
        return request

    def parse_search_response(self, response: Mapping[str, Any]) -> ResultIterator:
        hits = response.get("hits") or {}
        total = hits.get("total") or 0
        if isinstance(total, Mapping):
            total = total.get("value") or 0

        results = [self.create_potential_entity(hit) for hit in hits.get("hits") or []]
        return ResultIterator(results, total=total, scroll_id=response.get("_scroll_id"))

    @staticmethod
    def split_source_and_meta(hit: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        meta = {key: value for key, value in hit.items() if key != "_source"}
        return dict(hit.get("_source") or {}), meta

    def create_potential_entity(self, hit: Mapping[str, Any]) -> Entity:
        entity_class = self.config.entity_class
        entity_factory = self.config.entity_factory

        if entity_class is None and entity_factory is None:
            return dict(hit)

        source, meta = self.split_source_and_meta(hit)
        if entity_class is not None:
            return entity_class.from_elastic_document(source, meta)
        return entity_factory.from_document(source, meta)

    @staticmethod
    def sanitize_update_script(update_script: Mapping[str, Any]) -> Dict[str, Any]:
        script = update_script["script"] if "script" in update_script else update_script
        return {"script": {"lang": "painless", **script, "params": dict(script.get("params") or {})}}

    def prepare_document(self, entity: Entity) -> Document:
        if isinstance(entity, Mapping):
            return dict(entity)
        if entity is None or isinstance(entity, (str, bytes, int, float)):
            raise TypeError("Entity must be of type dict or object")

        entity_class = self.config.entity_class
        serializer = self.config.entity_serializer

        if entity_class is not None and isinstance(entity, entity_class):
            return entity.to_elastic()
        if isinstance(serializer, EntitySerializer):
            return serializer.to_elastic(entity)

        raise RepositoryConfigurationError("No entity serializer configured while trying to persist object")


class ElasticsearchRepository(AbstractRepository):
    """Repository over the official Elasticsearch client."""

    EXCEPTION_PREFIX = "Elasticsearch exception: "
    NOT_FOUND_ERRORS = (NotFoundError,)


class Repository(ElasticsearchRepository):
    """Default repository; subclass it to add hooks or domain queries."""


__all__ = ["AbstractRepository", "ElasticsearchRepository", "Repository"]
