"""Search Aggregations.

Provides named metric/bucket aggregation nodes and the composite
aggregation builder used for keyset pagination over grouped buckets.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from elastic_repository.core.errors import (
    MissingAggregationAttributesError,
    UnknownAggregationTypeError,
)
from elastic_repository.core.search.criteria import CriterionKind, Filter, Filters
from elastic_repository.core.search.query import RawQuery


class Metric(str, Enum):
    """Metric aggregation types."""

    AVG = "avg"
    CARDINALITY = "cardinality"
    EXTENDED_STATS = "extended_stats"
    GEO_BOUNDS = "geo_bounds"
    GEO_CENTROID = "geo_centroid"
    MAX = "max"
    MIN = "min"
    PERCENTILES = "percentiles"
    STATS = "stats"
    SUM = "sum"
    VALUE_COUNT = "value_count"
    RANGE = "range"


class Bucket(str, Enum):
    """Bucket aggregation types."""

    TERMS = "terms"
    FILTERS = "filters"


GLOBAL = "global"

AggregationType = Union[Metric, Bucket, str]


def _resolve_type(aggregation_type: AggregationType) -> str:
    for enum_cls in (Metric, Bucket):
        try:
            return enum_cls(aggregation_type).value
        except ValueError:
            continue
    if aggregation_type == GLOBAL:
        return GLOBAL
    raise UnknownAggregationTypeError(getattr(aggregation_type, "value", aggregation_type))


class Aggregation:
    """Named aggregation node, optionally carrying nested sub-aggregations."""

    kind = CriterionKind.AGGREGATION
    GLOBAL = GLOBAL

    def __init__(
        self,
        field: Optional[str],
        aggregation_type: AggregationType,
        name: str = "",
        options: Optional[Dict[str, Any]] = None,
    ):
        self.type = _resolve_type(aggregation_type)
        self.field = field
        self.name = name or f"agg_{uuid.uuid4().hex}"
        self.options: Dict[str, Any] = dict(options or {})
        self.nested: List[Any] = []

    @classmethod
    def create(
        cls,
        field: str,
        aggregation_type: AggregationType,
        name: str = "",
        options: Optional[Dict[str, Any]] = None,
    ) -> "Aggregation":
        return cls(field, aggregation_type, name, options)

    @classmethod
    def create_global(cls, name: str = "", options: Optional[Dict[str, Any]] = None) -> "Aggregation":
        """Aggregation over all documents, ignoring the query scope."""
        return cls(None, GLOBAL, name, options)

    @classmethod
    def create_fieldless(
        cls,
        aggregation_type: AggregationType,
        name: str = "",
        options: Optional[Dict[str, Any]] = None,
    ) -> "Aggregation":
        """Aggregation whose input is fully described by its options, e.g. filters buckets."""
        return cls(None, aggregation_type, name, options)

    def get_name(self) -> str:
        return self.name

    def nest(self, *aggregations: Any) -> "Aggregation":
        self.nested.extend(aggregations)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to engine aggregation dict."""
        if self.type == GLOBAL:
            body: Dict[str, Any] = {"global": {}, **self.options}
        else:
            type_body: Dict[str, Any] = {"field": self.field} if self.field else {}
            type_body.update(self.options)
            body = {self.type: type_body}

        if self.nested:
            aggs: Dict[str, Any] = {}
            for child in self.nested:
                aggs.update(child.to_dict())
            body["aggs"] = aggs

        return {self.name: body}

    def __repr__(self) -> str:
        return f"Aggregation({self.name!r}, {self.type!r}, field={self.field!r})"


# ============================================================================
# Composite aggregations
# ============================================================================


@dataclass(frozen=True)
class SourceProperty:
    """One composite grouping key: bucket key name and the field it reads."""

    source: str
    property: str
    missing_bucket: bool = False


class Sources:
    """Ordered collection of SourceProperty; order fixes the bucket key layout."""

    def __init__(self, *properties: SourceProperty):
        self._items: List[SourceProperty] = []
        for item in properties:
            self.append(item)

    def append(self, value: Any) -> None:
        if not isinstance(value, SourceProperty):
            raise TypeError("Can only append SourceProperty")
        self._items.append(value)

    def map(self, fn: Callable[[SourceProperty], Any]) -> List[Any]:
        return [fn(item) for item in self._items]

    def __iter__(self) -> Iterator[SourceProperty]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


def filter_null_and_empty_values(values: Dict[str, Any], recursive: bool = False) -> Dict[str, Any]:
    """Drop None and empty-container entries. False, 0 and "" are kept."""
    result: Dict[str, Any] = {}
    for key, value in values.items():
        if recursive and isinstance(value, dict):
            value = filter_null_and_empty_values(value, True)
        if value is None or (isinstance(value, (dict, list)) and not value):
            continue
        result[key] = value
    return result


class CompositeAggregationBuilder:
    """Fluent builder for a composite aggregation query.

    Example:
        query = (
            CompositeAggregationBuilder.create()
            .with_name("by_company")
            .with_sources(Sources(SourceProperty("company", "company_id")))
            .with_after_key({"company": 42})
            .get_query(size=50)
        )
    """

    DEFAULT_SIZE = 100

    def __init__(self) -> None:
        self._after_key: Optional[Dict[str, Any]] = None
        self._filters = Filters()
        self._name: Optional[str] = None
        self._sources: Optional[Sources] = None

    @classmethod
    def create(cls) -> "CompositeAggregationBuilder":
        return cls()

    def with_after_key(self, after_key: Optional[Dict[str, Any]]) -> "CompositeAggregationBuilder":
        self._after_key = after_key
        return self

    def with_filters(self, filters: Filters) -> "CompositeAggregationBuilder":
        self._filters = filters
        return self

    def with_name(self, name: str) -> "CompositeAggregationBuilder":
        self._name = name
        return self

    def with_sources(self, sources: Sources) -> "CompositeAggregationBuilder":
        self._sources = sources
        return self

    @property
    def name(self) -> str:
        if self._name is None:
            raise MissingAggregationAttributesError()
        return self._name

    def get_name(self) -> str:
        return self.name

    def get_query(self, size: int = DEFAULT_SIZE) -> RawQuery:
        sources = self._sources.map(
            lambda prop: {
                prop.source: {
                    "terms": {"field": prop.property, "missing_bucket": prop.missing_bucket}
                }
            }
        ) if self._sources is not None else []

        body = {
            "query": {"bool": {"must": self._filters.map(Filter.to_dict)}},
            "aggs": {
                self.name: {
                    "composite": {
                        "size": size,
                        "sources": sources,
                        "after": self._after_key,
                    }
                }
            },
        }
        return RawQuery.create(filter_null_and_empty_values(body, recursive=True))

    def to_dict(self) -> Dict[str, Any]:
        return self.get_query().to_dict()
