"""
Key-value backend interface.

The lock store and the version ledger only ever talk to the store through
this interface:

- ``put_if``: write a whole item if a condition over its current state holds
- ``delete_if``: delete an item if a condition over its current state holds
- ``get_item``: strongly consistent single-item read
- ``ping``: cheap liveness probe for health checks

Implementations must evaluate the condition and apply the write as one atomic
step per item. A failed condition is an expected outcome and is returned as
``WriteOutcome.CONDITION_FAILED``; anything else that goes wrong is raised as
``BackendUnavailableError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from kvcoord.conditions import Condition
from kvcoord.types import Item, ItemKey


class WriteOutcome(Enum):
    """
    Result of a conditioned write at the backend level.

    Values:
        APPLIED: The condition held (or there was none) and the write took effect
        CONDITION_FAILED: The condition did not hold; nothing was written
    """

    APPLIED = "applied"
    CONDITION_FAILED = "condition_failed"


@dataclass(frozen=True)
class ConditionedPut:
    """
    A whole-item put guarded by an optional condition.

    Attributes:
        table: Logical table name (including any prefix)
        key: Primary key of the item
        item: Complete attribute map to store, key attributes included
        condition: Condition over the current item; None writes unconditionally
    """

    table: str
    key: ItemKey
    item: Item = field(hash=False)
    condition: Condition | None = None

    def describe(self) -> str:
        """One-line description for logs."""
        condition = self.condition.render() if self.condition is not None else "<none>"
        return f"PUT {self.table}/{self.key} IF {condition}"


@dataclass(frozen=True)
class ConditionedDelete:
    """
    A single-item delete guarded by an optional condition.

    Attributes:
        table: Logical table name (including any prefix)
        key: Primary key of the item
        condition: Condition over the current item; None deletes unconditionally
    """

    table: str
    key: ItemKey
    condition: Condition | None = None

    def describe(self) -> str:
        """One-line description for logs."""
        condition = self.condition.render() if self.condition is not None else "<none>"
        return f"DELETE {self.table}/{self.key} IF {condition}"


@runtime_checkable
class KeyValueBackend(Protocol):
    """
    Protocol for single-table key-value stores with per-item conditional writes.

    Example:
        >>> backend: KeyValueBackend = InMemoryKeyValueBackend()
        >>> outcome = await backend.put_if(
        ...     ConditionedPut(
        ...         table="BitsAndBobs",
        ...         key=ItemKey("auction#42", "Auction"),
        ...         item={"PK": "auction#42", "SK": "Auction", "Version": "abc"},
        ...         condition=Attr("PK").not_exists(),
        ...     )
        ... )
        >>> outcome is WriteOutcome.APPLIED
        True
    """

    async def put_if(self, request: ConditionedPut) -> WriteOutcome:
        """
        Store ``request.item`` if ``request.condition`` holds for the current item.

        The condition is evaluated against the item currently stored under
        ``request.key`` (or against "no item" if there is none).

        Raises:
            BackendUnavailableError: On any failure other than the condition
        """
        ...

    async def delete_if(self, request: ConditionedDelete) -> WriteOutcome:
        """
        Delete the item if ``request.condition`` holds for it.

        Deleting a missing item whose condition holds for "no item" is
        reported as APPLIED.

        Raises:
            BackendUnavailableError: On any failure other than the condition
        """
        ...

    async def get_item(self, table: str, key: ItemKey) -> Item | None:
        """
        Read the current attributes of an item.

        Returns:
            A copy of the stored attributes, or None if the item does not exist

        Raises:
            BackendUnavailableError: If the backend cannot be reached
        """
        ...

    async def ping(self) -> bool:
        """
        Check that the backend is reachable.

        Returns:
            True if the backend answered

        Raises:
            BackendUnavailableError: If the backend cannot be reached
        """
        ...
