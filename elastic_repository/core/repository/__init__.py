"""Repositories over the search engine."""

from elastic_repository.core.repository.configuration import (
    EntityFactory,
    EntitySerializer,
    OperationType,
    PersistableEntity,
    RepositoryConfiguration,
)
from elastic_repository.core.repository.repository import (
    AbstractRepository,
    ElasticsearchRepository,
    Repository,
)
from elastic_repository.core.repository.composite import CompositeAggregationRepository

__all__ = [
    "EntityFactory",
    "EntitySerializer",
    "OperationType",
    "PersistableEntity",
    "RepositoryConfiguration",
    "AbstractRepository",
    "ElasticsearchRepository",
    "Repository",
    "CompositeAggregationRepository",
]
