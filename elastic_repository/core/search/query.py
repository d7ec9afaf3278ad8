"""Search Query DSL.

Provides the query builders that assemble a complete search request body:

    query = (
        Query.create(Filter.create("status", "active"))
        .select(["name"])
        .sort("name")
        .limit(10)
    )
    query.to_dict()
    # {"query": {"bool": {"filter": {"bool": {"must": [{"term": {"status": "active"}}]}}}},
    #  "_source": ["name"], "sort": {"name": {"order": "asc"}}, "size": 10}
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from elastic_repository.core.errors import (
    InvalidSearchArgumentError,
    InvalidSearchOperatorError,
    InvalidSortOrderError,
    UnknownChildArgumentTypeError,
    UnknownOptionError,
)
from elastic_repository.core.search.criteria import Criterion, CriterionKind, Must, Should


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class BaseQuery(ABC):
    """Select, sort and paging shared by every query flavour."""

    def __init__(self) -> None:
        self._select: Optional[List[str]] = None
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._sort: Dict[str, Dict[str, Any]] = {}

    def select(self, fields: Sequence[str]) -> "BaseQuery":
        """Restrict returned `_source` fields. An empty list disables `_source`."""
        self._select = list(fields)
        return self

    def sort(
        self,
        field: Union[str, Mapping[str, Mapping[str, Any]]],
        order: Union[SortOrder, str] = SortOrder.ASC,
        options: Optional[Dict[str, Any]] = None,
    ) -> "BaseQuery":
        """Add a sort entry; sorting a field again replaces its entry in place.

        Accepts a mapping form as well:
            query.sort({"name": {"order": "desc", "options": {"missing": "_last"}}})
        """
        if isinstance(field, Mapping):
            for name, entry in field.items():
                self.sort(name, entry.get("order", SortOrder.ASC), entry.get("options"))
            return self

        try:
            order = SortOrder(order)
        except ValueError:
            raise InvalidSortOrderError(order) from None

        self._sort[field] = {"order": order.value, **(options or {})}
        return self

    def limit(self, size: int) -> "BaseQuery":
        # Calling again overrides the previous size.
        self._limit = size
        return self

    def skip(self, offset: int) -> "BaseQuery":
        self._offset = offset
        return self

    def get_select(self) -> Optional[List[str]]:
        return self._select

    def get_limit(self) -> Optional[int]:
        return self._limit

    def get_offset(self) -> Optional[int]:
        return self._offset

    def get_sort(self) -> Dict[str, Dict[str, Any]]:
        return self._sort

    def build_base_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}

        if self._select is not None:
            body["_source"] = list(dict.fromkeys(self._select)) if self._select else False

        if self._sort:
            body["sort"] = {name: dict(entry) for name, entry in self._sort.items()}

        if self._limit is not None:
            body["size"] = self._limit

        if self._offset is not None:
            body["from"] = self._offset

        return body

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert to the request body."""
        raise NotImplementedError


class Query(BaseQuery):
    """Full query builder combining filters, searches and aggregations.

    Filters are always AND-combined under `bool.filter`; searches are combined
    per the search operator (`should` with `minimum_should_match: 1` by default,
    or `must`). A query created with `create_nested` serializes as a `nested`
    clause and can itself be used as a filter or search.
    """

    kind = CriterionKind.NESTED

    MINIMUM_SHOULD_MATCH = 1

    OPTION_PATH = "path"
    OPTION_SCORE_MODE = "score_mode"
    OPTION_IGNORE_UNMAPPED = "ignore_unmapped"
    OPTION_MIN_SCORE = "min_score"

    AVAILABLE_OPTIONS = (OPTION_PATH, OPTION_SCORE_MODE, OPTION_IGNORE_UNMAPPED, OPTION_MIN_SCORE)
    NESTED_OPTIONS = (OPTION_PATH, OPTION_SCORE_MODE, OPTION_IGNORE_UNMAPPED)

    def __init__(self, *children: Any):
        super().__init__()
        self.searches: List[Any] = []
        self.filters: List[Any] = []
        self.aggregations: List[Any] = []
        self._options: Dict[str, Any] = {}
        self._search_operator = Should.OPERATOR

        for index, child in enumerate(children):
            if child is None:
                continue
            self._add_child(child, index)

    @classmethod
    def create(cls, *children: Any) -> "Query":
        return cls(*children)

    @classmethod
    def create_nested(cls, path: str, *children: Any) -> "Query":
        """Sub-query on a nested-object field, e.g. `create_nested("reviews", filter)`."""
        query = cls(*children)
        query.set_option(cls.OPTION_PATH, path)
        return query

    def _add_child(self, child: Any, index: int = 0) -> None:
        kind = getattr(child, "kind", None)
        if kind is CriterionKind.NESTED and not child.is_nested():
            raise UnknownChildArgumentTypeError(index)
        if kind in (CriterionKind.FILTER, CriterionKind.BOOL, CriterionKind.NESTED):
            self.filters.append(child)
        elif kind is CriterionKind.SEARCH:
            self.searches.append(child)
        elif kind is CriterionKind.AGGREGATION:
            self.aggregations.append(child)
        else:
            raise UnknownChildArgumentTypeError(index)

    def add(self, child: Any) -> "Query":
        self._add_child(child)
        return self

    def where(self, criterion: Criterion) -> "Query":
        return self.add(criterion)

    def aggregate(self, aggregation: Any) -> "Query":
        if getattr(aggregation, "kind", None) is not CriterionKind.AGGREGATION:
            raise UnknownChildArgumentTypeError(0)
        self.aggregations.append(aggregation)
        return self

    def search(self, criterion: Any) -> "Query":
        kind = getattr(criterion, "kind", None)
        if kind not in (CriterionKind.SEARCH, CriterionKind.BOOL, CriterionKind.NESTED) or (
            kind is CriterionKind.NESTED and not criterion.is_nested()
        ):
            raise InvalidSearchArgumentError("Search", "BoolQuery", "Query (nested)")
        self.searches.append(criterion)
        return self

    # -- options --------------------------------------------------------------

    def _validate_option(self, option: str) -> None:
        if option not in self.AVAILABLE_OPTIONS:
            raise UnknownOptionError(option)

    def get_option(self, option: str) -> Any:
        self._validate_option(option)
        return self._options.get(option)

    def set_option(self, option: str, value: Any) -> "Query":
        self._validate_option(option)
        self._options[option] = value
        return self

    def get_options(self) -> Dict[str, Any]:
        return {key: value for key, value in self._options.items() if value is not None}

    def get_min_score(self) -> Optional[float]:
        return self._options.get(self.OPTION_MIN_SCORE)

    def set_min_score(self, min_score: float) -> "Query":
        return self.set_option(self.OPTION_MIN_SCORE, min_score)

    def get_search_operator(self) -> str:
        return self._search_operator

    def set_search_operator(self, operator: str) -> "Query":
        if operator not in (Must.OPERATOR, Should.OPERATOR):
            raise InvalidSearchOperatorError(operator)
        self._search_operator = operator
        return self

    # -- serialization --------------------------------------------------------

    def is_nested(self) -> bool:
        return self._options.get(self.OPTION_PATH) is not None

    def _build_query_clause(self) -> Optional[Dict[str, Any]]:
        bool_clause: Dict[str, Any] = {}

        if self.searches:
            prepared = [search.to_dict() for search in self.searches]
            if self._search_operator == Must.OPERATOR:
                bool_clause["must"] = prepared
            else:
                bool_clause["should"] = prepared

        if self.filters:
            bool_clause["filter"] = Must(*self.filters).to_dict()

        if self.searches and self._search_operator == Should.OPERATOR:
            bool_clause["minimum_should_match"] = self.MINIMUM_SHOULD_MATCH

        return {"bool": bool_clause} if bool_clause else None

    def _build_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}

        query_clause = self._build_query_clause()
        if query_clause is not None:
            body["query"] = query_clause

        min_score = self.get_min_score()
        if min_score is not None:
            body["min_score"] = min_score

        if self.aggregations:
            aggs: Dict[str, Any] = {}
            for aggregation in self.aggregations:
                aggs.update(aggregation.to_dict())
            body["aggs"] = aggs

        body.update(self.build_base_body())
        return body

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the request body, or to a `nested` clause for nested queries."""
        if not self.is_nested():
            return self._build_body()

        nested: Dict[str, Any] = {
            option: self._options[option]
            for option in self.NESTED_OPTIONS
            if self._options.get(option) is not None
        }
        nested["query"] = self._build_query_clause() or {}
        return {"nested": nested}

    def __repr__(self) -> str:
        return (
            f"Query(filters={len(self.filters)}, searches={len(self.searches)}, "
            f"aggregations={len(self.aggregations)})"
        )


class RawQuery(BaseQuery):
    """Literal request body, still composable with select, sort and paging.

    Example:
        RawQuery.create({"query": {"match_all": {}}}).limit(5)
    """

    def __init__(self, body: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.body: Dict[str, Any] = dict(body or {})
        self.aggregations: List[Any] = []

    @classmethod
    def create(cls, body: Optional[Dict[str, Any]] = None) -> "RawQuery":
        return cls(body)

    def aggregate(self, aggregation: Any) -> "RawQuery":
        if getattr(aggregation, "kind", None) is not CriterionKind.AGGREGATION:
            raise UnknownChildArgumentTypeError(0)
        self.aggregations.append(aggregation)
        return self

    def to_dict(self) -> Dict[str, Any]:
        body = {**self.body, **self.build_base_body()}

        if self.aggregations:
            aggs = dict(body.get("aggs") or {})
            for aggregation in self.aggregations:
                aggs.update(aggregation.to_dict())
            body["aggs"] = aggs

        return body


__all__ = ["SortOrder", "BaseQuery", "Query", "RawQuery"]
