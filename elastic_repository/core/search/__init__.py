"""Search query DSL.

Provides:
- Criteria (filters, full-text searches, boolean combinators)
- Aggregations and the composite aggregation builder
- Query builders
- Result types

The transport client factory lives in `client` and is imported on demand.
"""

from elastic_repository.core.search.criteria import (
    Criterion,
    CriterionKind,
    Filter,
    Filters,
    GeoDistance,
    GeoShape,
    Must,
    MustNot,
    Operator,
    Search,
    SearchType,
    Should,
)
from elastic_repository.core.search.query import (
    BaseQuery,
    Query,
    RawQuery,
    SortOrder,
)
from elastic_repository.core.search.aggregations import (
    Aggregation,
    Bucket,
    CompositeAggregationBuilder,
    Metric,
    SourceProperty,
    Sources,
    filter_null_and_empty_values,
)
from elastic_repository.core.search.results import (
    AggregationResult,
    AggregationResultSet,
    CompositeResult,
    ResultIterator,
)

__all__ = [
    # Criteria
    "Criterion",
    "CriterionKind",
    "Filter",
    "Filters",
    "GeoDistance",
    "GeoShape",
    "Must",
    "MustNot",
    "Operator",
    "Search",
    "SearchType",
    "Should",
    # Query
    "BaseQuery",
    "Query",
    "RawQuery",
    "SortOrder",
    # Aggregations
    "Aggregation",
    "Bucket",
    "CompositeAggregationBuilder",
    "Metric",
    "SourceProperty",
    "Sources",
    "filter_null_and_empty_values",
    # Results
    "AggregationResult",
    "AggregationResultSet",
    "CompositeResult",
    "ResultIterator",
]
