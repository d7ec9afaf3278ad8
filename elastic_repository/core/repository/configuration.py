"""Repository configuration.

Validates and derives per-repository settings (index names per operation,
scroll keep-alive, entity mapping hooks) from a plain mapping:

    RepositoryConfiguration.from_mapping({
        "index": "companies",
        "index_write": "companies_v2",
        "entity_class": "myapp.entities.Company",
        "force_refresh_on_write": True,
    })
"""

from __future__ import annotations

import importlib
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from elastic_repository.core.config import get_settings
from elastic_repository.core.errors import RepositoryConfigurationError

DEFAULT_SCROLL_CONTEXT_KEEPALIVE = "1m"

_TIME_UNIT_PATTERN = re.compile(r"^\d+(d|h|m|s|ms|micros|nanos)$")


class OperationType(str, Enum):
    READ = "read"
    WRITE = "write"


class PersistableEntity(ABC):
    """Entity that knows how to convert itself to and from a stored document."""

    @abstractmethod
    def to_elastic(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    @abstractmethod
    def from_elastic_document(cls, document: Dict[str, Any], meta: Dict[str, Any]) -> Any:
        raise NotImplementedError


class EntityFactory(ABC):
    """Builds application objects from a stored document and its hit metadata."""

    @abstractmethod
    def from_document(self, document: Dict[str, Any], meta: Dict[str, Any]) -> Any:
        raise NotImplementedError


class EntitySerializer(ABC):
    """Turns application objects into documents."""

    @abstractmethod
    def to_elastic(self, entity: Any) -> Dict[str, Any]:
        raise NotImplementedError


def _import_entity_class(path: str) -> Any:
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise RepositoryConfigurationError("Given entity class does not exist.")
    try:
        return getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError):
        raise RepositoryConfigurationError("Given entity class does not exist.") from None


class RepositoryConfiguration(BaseModel):
    """Immutable, validated repository settings."""

    index_read: Optional[str] = None
    index_write: Optional[str] = None
    index_type: Optional[str] = Field(default=None, alias="type")
    scroll_context_keepalive: str = Field(
        default_factory=lambda: get_settings().ES_SCROLL_KEEPALIVE, validate_default=True
    )
    entity_class: Optional[Any] = None
    entity_factory: Optional[Any] = None
    entity_serializer: Optional[Any] = None
    force_refresh_on_write: bool = False
    track_total_hits: Optional[bool] = None

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": True,
        "extra": "ignore",
    }

    @classmethod
    def from_mapping(
        cls, config: Union["RepositoryConfiguration", Mapping[str, Any]]
    ) -> "RepositoryConfiguration":
        if isinstance(config, cls):
            return config
        return cls.model_validate(dict(config))

    @model_validator(mode="before")
    @classmethod
    def _inflate_index(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("index"):
            data = dict(data)
            for alias in ("index_read", "index_write"):
                if not data.get(alias):
                    data[alias] = data["index"]
        return data

    @field_validator("scroll_context_keepalive", mode="before")
    @classmethod
    def _validate_keepalive(cls, value: Any) -> str:
        if value is None:
            value = get_settings().ES_SCROLL_KEEPALIVE or DEFAULT_SCROLL_CONTEXT_KEEPALIVE
        if not isinstance(value, str) or not _TIME_UNIT_PATTERN.match(value):
            raise RepositoryConfigurationError(
                "Invalid value for scroll_context_keepalive given. Must be a valid time unit."
            )
        return value

    @field_validator("entity_class", mode="before")
    @classmethod
    def _validate_entity_class(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            value = _import_entity_class(value)
        if not isinstance(value, type) or not issubclass(value, PersistableEntity):
            raise RepositoryConfigurationError(
                "Invalid entity class given. Must be of type PersistableEntity"
            )
        return value

    @field_validator("entity_factory", mode="before")
    @classmethod
    def _validate_entity_factory(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, EntityFactory):
            raise TypeError("entity_factory must be an EntityFactory instance")
        return value

    @field_validator("entity_serializer", mode="before")
    @classmethod
    def _validate_entity_serializer(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, EntitySerializer):
            raise TypeError("entity_serializer must be an EntitySerializer instance")
        return value

    @field_validator("force_refresh_on_write", mode="before")
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("track_total_hits", mode="before")
    @classmethod
    def _truthy_or_unset(cls, value: Any) -> Optional[bool]:
        return None if value is None else bool(value)

    def get_index(self, operation: Union[OperationType, str]) -> str:
        operation = OperationType(operation)
        index = self.index_read if operation is OperationType.READ else self.index_write
        if not index:
            raise RepositoryConfigurationError(
                f'No valid index name configured for operation "{operation.value}"'
            )
        return index

    def get_type(self) -> str:
        if not self.index_type:
            raise RepositoryConfigurationError("No valid type configured")
        return self.index_type


__all__ = [
    "DEFAULT_SCROLL_CONTEXT_KEEPALIVE",
    "OperationType",
    "PersistableEntity",
    "EntityFactory",
    "EntitySerializer",
    "RepositoryConfiguration",
]
