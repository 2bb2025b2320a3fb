"""
Compile condition expressions into SQL predicates over the JSON item column.

Items live in a single ``attributes`` column (TEXT holding JSON on SQLite,
JSONB on PostgreSQL). Each condition node becomes a predicate that mirrors
``Condition.evaluate()``:

- a missing attribute fails every comparison
- comparisons only match values of the same JSON type (string vs integer)
- strings compare by byte order of their UTF-8 encoding

Attribute names are validated identifiers (``[A-Za-z_][A-Za-z0-9_]*``) and
are inlined as JSON paths; values are always bound as parameters.
"""

from __future__ import annotations

from typing import Any

from kvcoord.conditions import (
    And,
    AttributeExists,
    AttributeNotExists,
    Condition,
    Equals,
    LessThan,
    Or,
    validate_attribute_name,
)
from kvcoord.exceptions import InvalidConditionError

ITEM_COLUMN = "kv_items.attributes"


class SQLiteConditionCompiler:
    """
    Compile conditions to SQLite predicates using the JSON1 functions.

    Produces qmark-style placeholders for use with aiosqlite.

    Example:
        >>> sql, params = SQLiteConditionCompiler().compile(Attr("Version").eq("abc"))
        >>> sql
        "(json_type(kv_items.attributes, '$.Version') = 'text' AND json_extract(kv_items.attributes, '$.Version') = ?)"
        >>> params
        ['abc']
    """

    def __init__(self, column: str = ITEM_COLUMN) -> None:
        self._column = column
        self._params: list[Any] = []

    def compile(self, condition: Condition) -> tuple[str, list[Any]]:
        self._params = []
        sql = self._visit(condition)
        return sql, self._params

    def _path(self, name: str) -> str:
        return f"'$.{validate_attribute_name(name)}'"

    def _visit(self, condition: Condition) -> str:
        if isinstance(condition, AttributeExists):
            return f"json_type({self._column}, {self._path(condition.name)}) IS NOT NULL"
        if isinstance(condition, AttributeNotExists):
            return f"json_type({self._column}, {self._path(condition.name)}) IS NULL"
        if isinstance(condition, (Equals, LessThan)):
            operator = "=" if isinstance(condition, Equals) else "<"
            json_kind = "integer" if isinstance(condition.value, int) else "text"
            path = self._path(condition.name)
            self._params.append(condition.value)
            return (
                f"(json_type({self._column}, {path}) = '{json_kind}' "
                f"AND json_extract({self._column}, {path}) {operator} ?)"
            )
        if isinstance(condition, And):
            return "(" + " AND ".join(self._visit(op) for op in condition.operands) + ")"
        if isinstance(condition, Or):
            return "(" + " OR ".join(self._visit(op) for op in condition.operands) + ")"
        raise InvalidConditionError(f"Unsupported condition type: {type(condition).__name__}")


class PostgreSQLConditionCompiler:
    """
    Compile conditions to PostgreSQL predicates over a JSONB column.

    Produces named placeholders (``:c0``, ``:c1``...) for SQLAlchemy ``text()``.
    String comparisons use the "C" collation so ordering is by byte value
    regardless of the database default collation.
    Integer comparisons only match numbers stored without a decimal point,
    the values SQLite reports as 'integer'.
    """

    def __init__(self, column: str = ITEM_COLUMN, param_prefix: str = "c") -> None:
        self._column = column
        self._param_prefix = param_prefix
        self._params: dict[str, Any] = {}

    def compile(self, condition: Condition) -> tuple[str, dict[str, Any]]:
        self._params = {}
        sql = self._visit(condition)
        return sql, self._params

    def _bind(self, value: Any) -> str:
        name = f"{self._param_prefix}{len(self._params)}"
        self._params[name] = value
        return f":{name}"

    def _field(self, name: str) -> str:
        return f"({self._column} -> '{validate_attribute_name(name)}')"

    def _text_field(self, name: str) -> str:
        return f"({self._column} ->> '{validate_attribute_name(name)}')"

    def _visit(self, condition: Condition) -> str:
        if isinstance(condition, AttributeExists):
            return f"{self._field(condition.name)} IS NOT NULL"
        if isinstance(condition, AttributeNotExists):
            return f"{self._field(condition.name)} IS NULL"
        if isinstance(condition, (Equals, LessThan)):
            operator = "=" if isinstance(condition, Equals) else "<"
            field = self._field(condition.name)
            text_field = self._text_field(condition.name)
            placeholder = self._bind(condition.value)
            if isinstance(condition.value, int):
                return (
                    f"(jsonb_typeof({field}) = 'number' "
                    f"AND {text_field} ~ '^-?[0-9]+$' "
                    f"AND CAST({text_field} AS NUMERIC) {operator} CAST({placeholder} AS BIGINT))"
                )
            return (
                f"(jsonb_typeof({field}) = 'string' "
                f'AND {text_field} COLLATE "C" {operator} CAST({placeholder} AS TEXT))'
            )
        if isinstance(condition, And):
            return "(" + " AND ".join(self._visit(op) for op in condition.operands) + ")"
        if isinstance(condition, Or):
            return "(" + " OR ".join(self._visit(op) for op in condition.operands) + ")"
        raise InvalidConditionError(f"Unsupported condition type: {type(condition).__name__}")


__all__ = [
    "ITEM_COLUMN",
    "PostgreSQLConditionCompiler",
    "SQLiteConditionCompiler",
]
