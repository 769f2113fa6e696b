"""Typed outcomes of upstream lookups.

Every primary call against the remote feed resolves to exactly one of:

* ``Ok(value)``: the lookup succeeded.
* ``NOT_FOUND``: the package or version does not exist upstream.
* ``TransientFailure(detail)``: the network call or response parsing failed.

Callers decide explicitly how each case maps to their own fail-soft result.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
D = TypeVar("D")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successful lookup."""

    value: T

    def value_or(self, default: D) -> Union[T, D]:
        return self.value


@dataclass(frozen=True)
class NotFound:
    """The requested package or version does not exist upstream."""

    def value_or(self, default: D) -> D:
        return default


@dataclass(frozen=True)
class TransientFailure:
    """The lookup failed for a reason unrelated to package existence.

    Attributes:
        detail: Human-readable description of the failure.
    """

    detail: str

    def value_or(self, default: D) -> D:
        return default


NOT_FOUND = NotFound()

Outcome = Union[Ok[T], NotFound, TransientFailure]
