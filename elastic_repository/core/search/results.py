"""Search Results.

Typed, materialized views over decoded engine responses.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional


class ResultIterator(Sequence):
    """Ordered documents of one query execution, with hit total and scroll token.

    Iteration is restartable; the scroll id is plain data, not a live cursor.
    """

    def __init__(
        self,
        results: Optional[List[Any]] = None,
        total: int = 0,
        scroll_id: Optional[str] = None,
    ):
        self._results: List[Any] = list(results or [])
        self.total = int(total)
        self.scroll_id = scroll_id

    @classmethod
    def create(cls, results: Optional[List[Any]] = None) -> "ResultIterator":
        return cls(results)

    def __getitem__(self, index):  # type: ignore[override]
        return self._results[index]

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._results)

    def __repr__(self) -> str:
        return f"ResultIterator(count={len(self)}, total={self.total}, scroll_id={self.scroll_id!r})"

    @property
    def count(self) -> int:
        return len(self._results)

    def set_total(self, total: int) -> "ResultIterator":
        self.total = int(total)
        return self

    def set_scroll_id(self, scroll_id: Optional[str]) -> "ResultIterator":
        self.scroll_id = scroll_id
        return self

    def push(self, result: Any) -> "ResultIterator":
        self._results.append(result)
        return self

    def as_list(self) -> List[Any]:
        return list(self._results)

    def first(self, fn: Callable[[Any], bool]) -> Optional[Any]:
        return next((result for result in self._results if fn(result)), None)

    def filter(self, fn: Callable[[Any], bool]) -> List[Any]:
        return [result for result in self._results if fn(result)]

    def some(self, fn: Callable[[Any, int], bool]) -> bool:
        return any(fn(result, key) for key, result in enumerate(self._results))

    def every(self, fn: Callable[[Any, int], bool]) -> bool:
        return all(fn(result, key) for key, result in enumerate(self._results))

    def each(self, fn: Callable[[Any, int], Any]) -> None:
        for key, result in enumerate(self._results):
            fn(result, key)

    def map(self, fn: Callable[[Any, int], Any]) -> List[Any]:
        return [fn(result, key) for key, result in enumerate(self._results)]

    def reduce(self, fn: Callable[[Any, Any, int], Any], initial: Any = None) -> Any:
        carry = initial
        for key, result in enumerate(self._results):
            carry = fn(carry, result, key)
        return carry


@dataclass
class AggregationResult:
    """One named aggregation from a response."""

    name: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, name: str, raw_result: Dict[str, Any]) -> "AggregationResult":
        return cls(name, dict(raw_result))

    def get(self, key: str) -> Any:
        return self.fields.get(key)

    @property
    def buckets(self) -> Optional[List[Dict[str, Any]]]:
        return self.get("buckets")

    @property
    def value(self) -> Optional[float]:
        return self.get("value")

    def to_dict(self) -> Dict[str, Any]:
        return {self.name: self.fields}


class AggregationResultSet:
    """Aggregation results by name, plus the hit documents of the same response."""

    def __init__(self, raw_result: Optional[Dict[str, Any]] = None):
        self.documents: Optional[ResultIterator] = None
        self.results: Dict[str, AggregationResult] = {
            name: AggregationResult.create(name, fields)
            for name, fields in (raw_result or {}).items()
        }

    @classmethod
    def create(cls, raw_result: Optional[Dict[str, Any]] = None) -> "AggregationResultSet":
        return cls(raw_result)

    def set_documents(self, documents: ResultIterator) -> "AggregationResultSet":
        self.documents = documents
        return self

    def get_result_by_name(self, name: str) -> Optional[AggregationResult]:
        return self.results.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.results

    def __len__(self) -> int:
        return len(self.results)


@dataclass(frozen=True)
class CompositeResult:
    """One bucket row of a composite aggregation."""

    key: Dict[str, Any]
    doc_count: int
    aggregation_name: str


__all__ = ["ResultIterator", "AggregationResult", "AggregationResultSet", "CompositeResult"]
