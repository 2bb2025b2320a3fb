"""Core type aliases and key types for kvcoord."""

from dataclasses import dataclass
from typing import Any

# Scalar values that condition expressions can compare against
AttributeValue = str | int

# A stored item: attribute name -> JSON-compatible value
Item = dict[str, Any]


@dataclass(frozen=True, order=True)
class ItemKey:
    """
    Compound primary key of a single item in the table.

    Attributes:
        partition: Partition (hash) key value
        sort: Sort (range) key value
    """

    partition: str
    sort: str

    def __str__(self) -> str:
        return f"{self.partition}/{self.sort}"
