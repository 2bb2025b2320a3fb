"""
Condition expressions for conditioned writes.

A condition is a small boolean expression tree evaluated by the backend
against the current state of the target item, atomically with the write.
Supported forms mirror what single-item key-value stores offer:

- attribute exists / attribute does not exist
- equality and less-than against a string or integer value
- AND / OR composition (``&`` and ``|``)

Every condition can:

- ``evaluate(item)`` against an in-memory attribute map (None = no item)
- ``render()`` itself in DynamoDB expression syntax for logs and spans

SQL backends compile conditions with ``kvcoord.backends._sql``.

Example:
    >>> from kvcoord.conditions import Attr
    >>> cond = Attr("PK").not_exists() | (
    ...     Attr("PK").exists() & Attr("LockExpiresOn").lt(1700000000000)
    ... )
    >>> cond.evaluate(None)
    True
    >>> cond.render()
    '(attribute_not_exists(PK) OR (attribute_exists(PK) AND LockExpiresOn < 1700000000000))'
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kvcoord.exceptions import InvalidConditionError
from kvcoord.types import AttributeValue

ATTRIBUTE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_attribute_name(name: str) -> str:
    """
    Check that ``name`` is usable in a condition expression.

    Raises:
        InvalidConditionError: If the name is empty or contains characters
            outside ``[A-Za-z0-9_]`` (or starts with a digit)
    """
    if not isinstance(name, str) or not ATTRIBUTE_NAME_PATTERN.match(name):
        raise InvalidConditionError(f"Invalid attribute name in condition: {name!r}")
    return name


def validate_attribute_value(value: Any) -> AttributeValue:
    """
    Check that ``value`` is a string or a 64-bit integer.

    Booleans are rejected even though ``bool`` subclasses ``int``.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidConditionError(
            f"Condition values must be str or int, got {type(value).__name__}"
        )
    if isinstance(value, int) and not (-(2**63) <= value < 2**63):
        raise InvalidConditionError(f"Integer condition value out of 64-bit range: {value}")
    return value


def _same_kind(stored: Any, expected: AttributeValue) -> bool:
    if isinstance(stored, bool):
        return False
    if isinstance(expected, int):
        return isinstance(stored, int)
    return isinstance(stored, str)


class Condition(ABC):
    """Base class for condition expression nodes."""

    @abstractmethod
    def evaluate(self, item: Mapping[str, Any] | None) -> bool:
        """
        Evaluate the condition against an item.

        Args:
            item: Current attributes of the target item, or None if the item
                does not exist

        Returns:
            True if a conditioned write should proceed
        """
        ...

    @abstractmethod
    def render(self) -> str:
        """Render the condition in DynamoDB expression syntax."""
        ...

    def __and__(self, other: Condition) -> And:
        if not isinstance(other, Condition):
            return NotImplemented
        return And(_flatten(And, self, other))

    def __or__(self, other: Condition) -> Or:
        if not isinstance(other, Condition):
            return NotImplemented
        return Or(_flatten(Or, self, other))

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class AttributeExists(Condition):
    """True when the item exists and carries ``name``."""

    name: str

    def __post_init__(self) -> None:
        validate_attribute_name(self.name)

    def evaluate(self, item: Mapping[str, Any] | None) -> bool:
        return item is not None and self.name in item

    def render(self) -> str:
        return f"attribute_exists({self.name})"


@dataclass(frozen=True)
class AttributeNotExists(Condition):
    """True when the item is missing or does not carry ``name``."""

    name: str

    def __post_init__(self) -> None:
        validate_attribute_name(self.name)

    def evaluate(self, item: Mapping[str, Any] | None) -> bool:
        return item is None or self.name not in item

    def render(self) -> str:
        return f"attribute_not_exists({self.name})"


@dataclass(frozen=True)
class Equals(Condition):
    """True when ``name`` is present and equal to ``value`` (same type)."""

    name: str
    value: AttributeValue

    def __post_init__(self) -> None:
        validate_attribute_name(self.name)
        validate_attribute_value(self.value)

    def evaluate(self, item: Mapping[str, Any] | None) -> bool:
        if item is None or self.name not in item:
            return False
        stored = item[self.name]
        return _same_kind(stored, self.value) and stored == self.value

    def render(self) -> str:
        return f"{self.name} = {self.value!r}"


@dataclass(frozen=True)
class LessThan(Condition):
    """True when ``name`` is present, has the same type as ``value`` and sorts before it."""

    name: str
    value: AttributeValue

    def __post_init__(self) -> None:
        validate_attribute_name(self.name)
        validate_attribute_value(self.value)

    def evaluate(self, item: Mapping[str, Any] | None) -> bool:
        if item is None or self.name not in item:
            return False
        stored = item[self.name]
        # Code point order on str matches byte order of the UTF-8 encoding
        return _same_kind(stored, self.value) and bool(stored < self.value)

    def render(self) -> str:
        return f"{self.name} < {self.value!r}"


@dataclass(frozen=True)
class And(Condition):
    """Conjunction of two or more conditions."""

    operands: tuple[Condition, ...]

    def __post_init__(self) -> None:
        if len(self.operands) < 2:
            raise InvalidConditionError("AND requires at least two operands")

    def evaluate(self, item: Mapping[str, Any] | None) -> bool:
        return all(operand.evaluate(item) for operand in self.operands)

    def render(self) -> str:
        return "(" + " AND ".join(operand.render() for operand in self.operands) + ")"


@dataclass(frozen=True)
class Or(Condition):
    """Disjunction of two or more conditions."""

    operands: tuple[Condition, ...]

    def __post_init__(self) -> None:
        if len(self.operands) < 2:
            raise InvalidConditionError("OR requires at least two operands")

    def evaluate(self, item: Mapping[str, Any] | None) -> bool:
        return any(operand.evaluate(item) for operand in self.operands)

    def render(self) -> str:
        return "(" + " OR ".join(operand.render() for operand in self.operands) + ")"


def _flatten(kind: type[And] | type[Or], *conditions: Condition) -> tuple[Condition, ...]:
    operands: list[Condition] = []
    for condition in conditions:
        if isinstance(condition, kind):
            operands.extend(condition.operands)
        else:
            operands.append(condition)
    return tuple(operands)


class Attr:
    """
    Builder for conditions on a single attribute.

    Example:
        >>> Attr("Version").eq("a1b2")
        Equals(name='Version', value='a1b2')
        >>> Attr("PK").exists() & Attr("SK").exists()
        And(operands=(AttributeExists(name='PK'), AttributeExists(name='SK')))
    """

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = validate_attribute_name(name)

    def exists(self) -> AttributeExists:
        return AttributeExists(self.name)

    def not_exists(self) -> AttributeNotExists:
        return AttributeNotExists(self.name)

    def eq(self, value: AttributeValue) -> Equals:
        return Equals(self.name, value)

    def lt(self, value: AttributeValue) -> LessThan:
        return LessThan(self.name, value)


def all_of(*conditions: Condition) -> Condition:
    """AND together one or more conditions (a single condition is returned as-is)."""
    if not conditions:
        raise InvalidConditionError("all_of() requires at least one condition")
    if len(conditions) == 1:
        return conditions[0]
    return And(_flatten(And, *conditions))


def any_of(*conditions: Condition) -> Condition:
    """OR together one or more conditions (a single condition is returned as-is)."""
    if not conditions:
        raise InvalidConditionError("any_of() requires at least one condition")
    if len(conditions) == 1:
        return conditions[0]
    return Or(_flatten(Or, *conditions))


__all__ = [
    "ATTRIBUTE_NAME_PATTERN",
    "And",
    "Attr",
    "AttributeExists",
    "AttributeNotExists",
    "Condition",
    "Equals",
    "LessThan",
    "Or",
    "all_of",
    "any_of",
    "validate_attribute_name",
    "validate_attribute_value",
]
