"""Search Criteria.

Leaf predicates (filters, full-text searches) and boolean combinators that
serialize to single clauses of the engine's query DSL.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from elastic_repository.core.errors import (
    NoFieldsError,
    UnhandledOperatorError,
    UnknownChildArgumentTypeError,
    UnknownOperatorError,
    UnknownSearchTypeError,
)


class CriterionKind(str, Enum):
    """Closed set of things a query knows how to place."""

    FILTER = "filter"
    SEARCH = "search"
    BOOL = "bool"
    NESTED = "nested"
    AGGREGATION = "aggregation"


class Criterion(ABC):
    """Anything that serializes to exactly one query clause."""

    kind: ClassVar[CriterionKind]

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert to engine query clause."""
        raise NotImplementedError


def is_criterion(value: Any) -> bool:
    if isinstance(value, Criterion):
        return True
    kind = getattr(value, "kind", None)
    if kind is CriterionKind.NESTED:
        # Only a query with a nested path serializes to a single clause.
        return bool(value.is_nested())
    return kind in (CriterionKind.FILTER, CriterionKind.SEARCH, CriterionKind.BOOL)


# ============================================================================
# Filters
# ============================================================================


class Operator(str, Enum):
    """Filter operators."""

    EXISTS = "exists"
    PREFIX = "prefix"
    REGEXP = "regexp"
    TERM = "term"
    TERMS = "terms"
    LESS_THAN = "lt"
    GREATER_THAN = "gt"
    LESS_THAN_EQUALS = "lte"
    GREATER_THAN_EQUALS = "gte"
    BETWEEN = "between"
    GEO_DISTANCE = "geo_distance"
    GEO_SHAPE = "geo_shape"


@dataclass(frozen=True)
class GeoDistance:
    """Filter value for geo_distance: a location and a radius like "12km"."""

    location: Union[Dict[str, float], List[float], str]
    distance: str


@dataclass(frozen=True)
class GeoShape:
    """Filter value for geo_shape, e.g. {"type": "envelope", "coordinates": [...]}."""

    shape: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.shape)


def _value_clause(keyword: str, field: str, value: Any, options: Dict[str, Any]) -> Dict[str, Any]:
    if not options:
        return {keyword: {field: value}}
    return {keyword: {field: {**options, "value": value}}}


def _range_clause(field: str, bounds: Dict[str, Any], options: Dict[str, Any]) -> Dict[str, Any]:
    return {"range": {field: {**options, **bounds}}}


def _exists_clause(field: str, value: Any) -> Dict[str, Any]:
    clause: Dict[str, Any] = {"exists": {"field": field}}
    if not value:
        clause = {"bool": {"must_not": [clause]}}
    return clause


def _geo_distance_clause(field: str, value: GeoDistance, options: Dict[str, Any]) -> Dict[str, Any]:
    return {"geo_distance": {**options, "distance": value.distance, field: value.location}}


def _geo_shape_clause(field: str, value: GeoShape, options: Dict[str, Any]) -> Dict[str, Any]:
    return {"geo_shape": {field: {**options, "shape": value.to_dict()}}}


_FilterBuilder = Callable[[str, Any, Dict[str, Any]], Dict[str, Any]]

_FILTER_BUILDERS: Dict[Operator, _FilterBuilder] = {
    Operator.TERM: lambda f, v, o: _value_clause("term", f, v, o),
    Operator.TERMS: lambda f, v, o: {"terms": {**o, f: list(v)}},
    Operator.PREFIX: lambda f, v, o: {"prefix": {**o, f: v}},
    Operator.REGEXP: lambda f, v, o: _value_clause("regexp", f, v, o),
    Operator.LESS_THAN: lambda f, v, o: _range_clause(f, {"lt": v}, o),
    Operator.LESS_THAN_EQUALS: lambda f, v, o: _range_clause(f, {"lte": v}, o),
    Operator.GREATER_THAN: lambda f, v, o: _range_clause(f, {"gt": v}, o),
    Operator.GREATER_THAN_EQUALS: lambda f, v, o: _range_clause(f, {"gte": v}, o),
    Operator.BETWEEN: lambda f, v, o: _range_clause(f, {"gte": v[0], "lte": v[1]}, o),
    Operator.EXISTS: lambda f, v, o: _exists_clause(f, v),
    Operator.GEO_DISTANCE: _geo_distance_clause,
    Operator.GEO_SHAPE: _geo_shape_clause,
}


class Filter(Criterion):
    """Exact (non-scoring) predicate on one field."""

    kind = CriterionKind.FILTER

    def __init__(
        self,
        field: str,
        value: Any,
        operator: Optional[Union[Operator, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ):
        if operator is not None:
            try:
                operator = Operator(operator)
            except ValueError:
                raise UnknownOperatorError(operator) from None

        self.field = field
        self.value = value
        self.operator: Optional[Operator] = operator
        self.options: Dict[str, Any] = dict(options or {})

    @classmethod
    def create(
        cls,
        field: str,
        value: Any,
        operator: Optional[Union[Operator, str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> "Filter":
        return cls(field, value, operator, options)

    def to_dict(self) -> Dict[str, Any]:
        builder = _FILTER_BUILDERS.get(self.operator or Operator.TERM)
        if builder is None:
            raise UnhandledOperatorError(self.operator)
        return builder(self.field, self.value, self.options)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return (self.field, self.value, self.operator, self.options) == (
            other.field,
            other.value,
            other.operator,
            other.options,
        )

    def __repr__(self) -> str:
        return f"Filter({self.field!r}, {self.value!r}, {self.operator!r})"


class Filters:
    """Ordered collection of Filter, used to scope composite aggregations."""

    def __init__(self, *filters: Filter):
        self._items: List[Filter] = []
        for item in filters:
            self.append(item)

    def append(self, value: Any) -> None:
        if not isinstance(value, Filter):
            raise TypeError("Can only append Filter")
        self._items.append(value)

    def map(self, fn: Callable[[Filter], Any]) -> List[Any]:
        return [fn(item) for item in self._items]

    def __iter__(self) -> Iterator[Filter]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Filter:
        return self._items[index]


# ============================================================================
# Full-text searches
# ============================================================================


class SearchType(str, Enum):
    """Full-text search flavours."""

    MATCH = "match"
    MATCH_PHRASE = "match_phrase"
    MATCH_PHRASE_PREFIX = "match_phrase_prefix"
    PREFIX = "prefix"
    QUERY_STRING = "query_string"
    TERM = "term"


FieldRef = Union[str, Mapping[str, Mapping[str, Any]]]


def _field_name(entry: FieldRef) -> str:
    if isinstance(entry, str):
        return entry
    return next(iter(entry))


def prepare_fields(fields: Sequence[FieldRef]) -> List[str]:
    """Render field references, turning {"name": {"boost": 2}} into "name^2"."""
    prepared: List[str] = []
    for entry in fields:
        if isinstance(entry, str):
            prepared.append(entry)
            continue
        for name, settings in entry.items():
            boost = settings.get("boost") if settings else None
            prepared.append(f"{name}^{boost}" if boost is not None else name)
    return prepared


def _query_string(fields: Sequence[FieldRef], query: str, options: Dict[str, Any]) -> Dict[str, Any]:
    return {"query_string": {**options, "fields": prepare_fields(fields), "query": query}}


def _match(fields: Sequence[FieldRef], query: str, options: Dict[str, Any]) -> Dict[str, Any]:
    if len(fields) > 1:
        return {"multi_match": {**options, "fields": prepare_fields(fields), "query": query}}
    return {"match": {_field_name(fields[0]): {**options, "query": query}}}


def _single_field(keyword: str, value_key: str) -> Callable[..., Dict[str, Any]]:
    # Only the first field is used; the engine clause addresses exactly one field.
    def build(fields: Sequence[FieldRef], query: str, options: Dict[str, Any]) -> Dict[str, Any]:
        return {keyword: {_field_name(fields[0]): {**options, value_key: query}}}

    return build


_SEARCH_BUILDERS: Dict[SearchType, Callable[..., Dict[str, Any]]] = {
    SearchType.QUERY_STRING: _query_string,
    SearchType.MATCH: _match,
    SearchType.MATCH_PHRASE: _single_field("match_phrase", "query"),
    SearchType.MATCH_PHRASE_PREFIX: _single_field("match_phrase_prefix", "query"),
    SearchType.PREFIX: _single_field("prefix", "value"),
    SearchType.TERM: _single_field("term", "value"),
}


class Search(Criterion):
    """Full-text (scoring) predicate over one or more fields."""

    kind = CriterionKind.SEARCH

    QUERY_STRING = SearchType.QUERY_STRING
    MATCH = SearchType.MATCH
    MATCH_PHRASE = SearchType.MATCH_PHRASE
    MATCH_PHRASE_PREFIX = SearchType.MATCH_PHRASE_PREFIX
    PREFIX = SearchType.PREFIX
    TERM = SearchType.TERM

    def __init__(
        self,
        fields: Sequence[FieldRef],
        query_string: str,
        search_type: Union[SearchType, str] = SearchType.QUERY_STRING,
        options: Optional[Dict[str, Any]] = None,
    ):
        if not fields:
            raise NoFieldsError()
        try:
            search_type = SearchType(search_type)
        except ValueError:
            raise UnknownSearchTypeError(search_type) from None

        self.fields = list(fields)
        self.query_string = query_string
        self.search_type: SearchType = search_type
        self.options: Dict[str, Any] = dict(options or {})

    @classmethod
    def create(
        cls,
        fields: Sequence[FieldRef],
        query_string: str,
        search_type: Union[SearchType, str] = SearchType.QUERY_STRING,
        options: Optional[Dict[str, Any]] = None,
    ) -> "Search":
        return cls(fields, query_string, search_type, options)

    def to_dict(self) -> Dict[str, Any]:
        return _SEARCH_BUILDERS[self.search_type](self.fields, self.query_string, self.options)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Search):
            return NotImplemented
        return (self.fields, self.query_string, self.search_type, self.options) == (
            other.fields,
            other.query_string,
            other.search_type,
            other.options,
        )

    def __repr__(self) -> str:
        return f"Search({self.fields!r}, {self.query_string!r}, {self.search_type.value!r})"


# ============================================================================
# Boolean combinators
# ============================================================================


class BoolQuery(Criterion):
    """Boolean compound clause over child criteria."""

    kind = CriterionKind.BOOL
    OPERATOR: ClassVar[str]

    def __init__(self, *children: Any):
        self.children: List[Any] = []
        for index, child in enumerate(children):
            if child is None:
                continue
            if not is_criterion(child):
                raise UnknownChildArgumentTypeError(index)
            self.children.append(child)

    @classmethod
    def create(cls, *children: Any) -> "BoolQuery":
        return cls(*children)

    def add(self, child: Any) -> "BoolQuery":
        if not is_criterion(child):
            raise UnknownChildArgumentTypeError(len(self.children))
        self.children.append(child)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"bool": {self.OPERATOR: [child.to_dict() for child in self.children]}}

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.children == other.children  # type: ignore[attr-defined]


class Must(BoolQuery):
    OPERATOR = "must"


class Should(BoolQuery):
    OPERATOR = "should"


class MustNot(BoolQuery):
    OPERATOR = "must_not"


__all__ = [
    "CriterionKind",
    "Criterion",
    "Operator",
    "GeoDistance",
    "GeoShape",
    "Filter",
    "Filters",
    "SearchType",
    "Search",
    "prepare_fields",
    "BoolQuery",
    "Must",
    "Should",
    "MustNot",
]
