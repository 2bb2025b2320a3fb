"""
Result values for version-gated writes.

Losing a version race is an expected outcome, so the ledger returns it as a
value instead of raising. Callers that prefer exceptions can call
``raise_for_status()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from kvcoord.exceptions import (
    BackendUnavailableError,
    ConcurrencyConflictError,
    EntityNotFoundError,
    KVCoordError,
)
from kvcoord.types import ItemKey


class WriteStatus(Enum):
    """
    Outcome of a version-gated write.

    Values:
        SUCCESS: The write is durable
        CONFLICT: Another writer changed the entity first (or it already exists on insert)
        NOT_FOUND: The entity does not exist
        BACKEND_ERROR: The backend failed; the write may or may not have happened
    """

    SUCCESS = "success"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    BACKEND_ERROR = "backend_error"


@dataclass(frozen=True)
class WriteResult:
    """
    Result of submitting a version-gated write.

    Attributes:
        status: What happened
        key: Key of the entity
        expected_version: Version the write was conditioned on (None for unconditioned writes)
        actual_version: Version found in the store after a conflict, if known
        error: The backend error for BACKEND_ERROR results
    """

    status: WriteStatus
    key: ItemKey
    expected_version: str | None = None
    actual_version: str | None = None
    error: KVCoordError | None = None

    @classmethod
    def successful(cls, key: ItemKey, expected_version: str | None = None) -> WriteResult:
        return cls(status=WriteStatus.SUCCESS, key=key, expected_version=expected_version)

    @classmethod
    def conflicted(
        cls,
        key: ItemKey,
        expected_version: str | None,
        actual_version: str | None = None,
    ) -> WriteResult:
        return cls(
            status=WriteStatus.CONFLICT,
            key=key,
            expected_version=expected_version,
            actual_version=actual_version,
        )

    @classmethod
    def missing(cls, key: ItemKey, expected_version: str | None = None) -> WriteResult:
        return cls(status=WriteStatus.NOT_FOUND, key=key, expected_version=expected_version)

    @classmethod
    def failed(
        cls,
        key: ItemKey,
        error: BackendUnavailableError,
        expected_version: str | None = None,
    ) -> WriteResult:
        return cls(
            status=WriteStatus.BACKEND_ERROR,
            key=key,
            expected_version=expected_version,
            error=error,
        )

    @property
    def succeeded(self) -> bool:
        return self.status is WriteStatus.SUCCESS

    @property
    def conflict(self) -> bool:
        return self.status is WriteStatus.CONFLICT

    @property
    def not_found(self) -> bool:
        return self.status is WriteStatus.NOT_FOUND

    def raise_for_status(self) -> None:
        """
        Raise the matching exception unless the write succeeded.

        Raises:
            ConcurrencyConflictError: On CONFLICT
            EntityNotFoundError: On NOT_FOUND
            BackendUnavailableError: On BACKEND_ERROR (the original error)
        """
        if self.status is WriteStatus.CONFLICT:
            raise ConcurrencyConflictError(self.key, self.expected_version, self.actual_version)
        if self.status is WriteStatus.NOT_FOUND:
            raise EntityNotFoundError(self.key)
        if self.status is WriteStatus.BACKEND_ERROR:
            assert self.error is not None
            raise self.error
