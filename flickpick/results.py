"""Typed outcomes returned by the client services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Classification of everything that can go wrong in the client core."""

    NETWORK_UNREACHABLE = "network_unreachable"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION_REJECTED = "validation_rejected"
    SERVER_FAULT = "server_fault"
    FAVORITE_SYNC = "favorite_sync"
    UNKNOWN_FACET = "unknown_facet"

    @classmethod
    def from_status(cls, status_code: int) -> "FailureKind":
        """Map an HTTP error status to its failure kind."""

        if status_code in (401, 403):
            return cls.UNAUTHORIZED
        if status_code == 404:
            return cls.NOT_FOUND
        if 400 <= status_code < 500:
            return cls.VALIDATION_REJECTED
        return cls.SERVER_FAULT


@dataclass(slots=True, frozen=True)
class Failure:
    """A normalized error value safe to hand to the presentation layer."""

    kind: FailureKind
    message: str
    status_code: int | None = None
    cause: Failure | None = None

    def root(self) -> Failure:
        """Return the innermost failure in the cause chain."""

        failure = self
        while failure.cause is not None:
            failure = failure.cause
        return failure

    def to_payload(self) -> dict[str, object]:
        return {"error": self.kind.value, "message": self.message}


@dataclass(slots=True, frozen=True)
class Outcome(Generic[T]):
    """Either a value or a :class:`Failure`, never both."""

    value: T | None = None
    error: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Failure) -> "Outcome[T]":
        return cls(error=error)
