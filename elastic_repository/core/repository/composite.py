"""Composite aggregation lookups."""

from __future__ import annotations

from typing import Iterator, Optional

from elastic_repository.core.repository.repository import Repository
from elastic_repository.core.search.aggregations import CompositeAggregationBuilder, Sources
from elastic_repository.core.search.criteria import Filters
from elastic_repository.core.search.results import CompositeResult


class CompositeAggregationRepository(Repository):
    """Repository exposing grouped-bucket lookups over composite aggregations."""

    def lookup(
        self,
        filters: Filters,
        sources: Sources,
        aggregation_name: str,
        size: Optional[int] = None,
    ) -> Iterator[CompositeResult]:
        """Yield one CompositeResult per bucket across all pages.

        Hits are not fetched (`size: 0`); only the aggregation is read.
        """
        composite_query = (
            CompositeAggregationBuilder.create()
            .with_name(aggregation_name)
            .with_filters(filters)
            .with_sources(sources)
        )
        return self.aggregate_composite_by_query(
            composite_query,
            size=size,
            query_hook=lambda query: query.limit(0),
        )
