from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar


T = TypeVar("T")


class MomantzaError(Exception):
    """Base error for the Momantza core."""


class ConfigurationMissingError(MomantzaError):
    """Required connection string or signing secret is not configured."""


class TenantUnresolvedError(MomantzaError):
    """No tenant id could be resolved from the request context."""


class MalformedHashError(MomantzaError):
    """Stored credential hash could not be parsed."""


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TENANT_UNRESOLVED = "tenant_unresolved"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_TOKEN = "invalid_token"
    CONFLICT = "conflict"
    STORE_FAILURE = "store_failure"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a core operation.

    ``value`` always holds the plain contract value (``False``, ``None`` or an
    empty list when the operation failed) so callers that only branch on the
    value keep working; ``error`` says why it failed.
    """

    value: T
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, value: T) -> "Outcome[T]":
        return cls(value=value, error=error)
