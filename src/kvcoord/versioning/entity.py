"""
Versioned entities for optimistic concurrency.

Every aggregate persisted through the VersionLedger carries a version pair
next to (not inside) its business fields:

- ``current``: the version the entity will store on its next write
- ``expected``: the version the store must hold for that write to succeed

Both start empty on a new aggregate. ``advance_version()`` is the only way to
move them forward: it makes the current version the expected one and draws a
fresh random current version. Call it once per mutation, before the write.
After a successful write the VersionLedger calls ``mark_stored()``, so both
halves name the stored version again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, PrivateAttr

from kvcoord.config import TableConfig
from kvcoord.identifiers import new_token
from kvcoord.types import Item, ItemKey


@dataclass(frozen=True)
class VersionPair:
    """
    Immutable ``{current, expected}`` version pair.

    Attributes:
        current: Version that is (or will be) stored for the entity
        expected: Version the next conditioned write expects to find
    """

    current: str = ""
    expected: str = ""

    @property
    def is_new(self) -> bool:
        """True if the entity has never been versioned."""
        return not self.current and not self.expected

    @property
    def is_advanced(self) -> bool:
        """True if there is an unwritten change (current differs from expected)."""
        return self.current != self.expected

    def advance(self) -> VersionPair:
        return VersionPair(current=new_token(), expected=self.current)

    @classmethod
    def loaded(cls, version: str) -> VersionPair:
        """Pair for an entity just read from the store at ``version``."""
        return cls(current=version, expected=version)


class VersionedEntity(BaseModel):
    """
    Base class for aggregates that take part in optimistic concurrency.

    Subclasses declare their business fields as usual and implement
    ``item_key()``. The version pair lives in a private attribute, so it is
    never part of ``model_dump()`` and cannot be changed by assigning fields.

    Example:
        >>> class Auction(VersionedEntity):
        ...     auction_id: int
        ...     current_bid: int = 0
        ...
        ...     def item_key(self) -> ItemKey:
        ...         return ItemKey(f"auction#{self.auction_id}", "Auction")
        ...
        ...     def place_bid(self, amount: int) -> None:
        ...         self.current_bid = amount
        ...         self.advance_version()
    """

    model_config = ConfigDict(
        validate_assignment=True,
        # Mutable: aggregates change in place between writes
    )

    _versions: VersionPair = PrivateAttr(default_factory=VersionPair)

    @property
    def version(self) -> str:
        return self._versions.current

    @property
    def initial_version(self) -> str:
        return self._versions.expected

    @property
    def versions(self) -> VersionPair:
        return self._versions

    def advance_version(self) -> None:
        """Set ``initial_version`` to the current version and draw a fresh version."""
        self._versions = self._versions.advance()

    def mark_stored(self) -> None:
        """Record that the current version is now the stored one."""
        self._versions = VersionPair.loaded(self._versions.current)

    def item_key(self) -> ItemKey:
        """Return the primary key under which this entity is stored."""
        raise NotImplementedError(f"{type(self).__name__} must implement item_key()")

    def to_attributes(self) -> dict[str, Any]:
        """Business fields as JSON-compatible attributes."""
        return self.model_dump(mode="json")

    @classmethod
    def from_item(cls, item: Item, config: TableConfig | None = None) -> Self:
        """
        Rebuild an entity from a stored item.

        Key attributes and the version attribute are stripped before
        validation; the stored version becomes both halves of the pair.
        """
        config = config or TableConfig()
        reserved = {config.hash_key_name, config.range_key_name, config.version_attribute}
        entity = cls.model_validate({k: v for k, v in item.items() if k not in reserved})
        entity._versions = VersionPair.loaded(item.get(config.version_attribute, ""))
        return entity
