"""Unit tests for the SQL condition compilers."""

import pytest

from kvcoord.backends._sql import PostgreSQLConditionCompiler, SQLiteConditionCompiler
from kvcoord.conditions import Attr, Condition
from kvcoord.exceptions import InvalidConditionError


class _Unsupported(Condition):
    def evaluate(self, item):  # type: ignore[no-untyped-def]
        return True

    def render(self) -> str:
        return "unsupported"


class TestSQLiteConditionCompiler:
    """Tests for SQLite predicates."""

    def test_exists(self) -> None:
        """Test attribute_exists compiles to a json_type check."""
        sql, params = SQLiteConditionCompiler().compile(Attr("PK").exists())

        assert sql == "json_type(kv_items.attributes, '$.PK') IS NOT NULL"
        assert params == []

    def test_not_exists(self) -> None:
        """Test attribute_not_exists compiles to IS NULL."""
        sql, _ = SQLiteConditionCompiler().compile(Attr("PK").not_exists())

        assert sql == "json_type(kv_items.attributes, '$.PK') IS NULL"

    def test_string_equality_checks_type(self) -> None:
        """Test string equality requires a JSON text value."""
        sql, params = SQLiteConditionCompiler().compile(Attr("Version").eq("abc"))

        assert sql == (
            "(json_type(kv_items.attributes, '$.Version') = 'text' "
            "AND json_extract(kv_items.attributes, '$.Version') = ?)"
        )
        assert params == ["abc"]

    def test_integer_less_than_checks_type(self) -> None:
        """Test integer comparison requires a JSON integer value."""
        sql, params = SQLiteConditionCompiler().compile(Attr("LockExpiresOn").lt(10))

        assert "= 'integer'" in sql
        assert sql.endswith("< ?)")
        assert params == [10]

    def test_composition_keeps_parameter_order(self) -> None:
        """Test parameters follow the order of placeholders."""
        condition = Attr("PK").not_exists() | (
            Attr("LockClientId").eq("me") | Attr("LockExpiresOn").lt(99)
        )

        sql, params = SQLiteConditionCompiler().compile(condition)

        assert sql.startswith("(json_type(kv_items.attributes, '$.PK') IS NULL OR ")
        assert params == ["me", 99]

    def test_compiler_is_reusable(self) -> None:
        """Test compiling twice does not leak parameters."""
        compiler = SQLiteConditionCompiler()
        compiler.compile(Attr("A").eq("x"))

        _, params = compiler.compile(Attr("B").eq("y"))

        assert params == ["y"]

    def test_unsupported_node(self) -> None:
        """Test unknown condition types are rejected."""
        with pytest.raises(InvalidConditionError):
            SQLiteConditionCompiler().compile(_Unsupported())


class TestPostgreSQLConditionCompiler:
    """Tests for PostgreSQL predicates."""

    def test_exists(self) -> None:
        """Test attribute_exists compiles to a JSONB key lookup."""
        sql, params = PostgreSQLConditionCompiler().compile(Attr("PK").exists())

        assert sql == "(kv_items.attributes -> 'PK') IS NOT NULL"
        assert params == {}

    def test_string_comparison_uses_c_collation(self) -> None:
        """Test string comparisons are byte ordered."""
        sql, params = PostgreSQLConditionCompiler().compile(Attr("Version").lt("m"))

        assert "jsonb_typeof((kv_items.attributes -> 'Version')) = 'string'" in sql
        assert 'COLLATE "C" < CAST(:c0 AS TEXT)' in sql
        assert params == {"c0": "m"}

    def test_integer_comparison_is_numeric(self) -> None:
        """Test integer comparisons cast both sides to numbers."""
        sql, params = PostgreSQLConditionCompiler().compile(Attr("LockExpiresOn").lt(5))

        assert "= 'number'" in sql
        assert "CAST((kv_items.attributes ->> 'LockExpiresOn') AS NUMERIC) < " in sql
        assert params == {"c0": 5}

    def test_integer_comparison_excludes_fractional_numbers(self) -> None:
        """Test integer comparisons require the stored number to be integral."""
        sql, _ = PostgreSQLConditionCompiler().compile(Attr("N").eq(1))

        assert "(kv_items.attributes ->> 'N') ~ '^-?[0-9]+$'" in sql

    def test_named_parameters_are_unique(self) -> None:
        """Test each value gets its own placeholder."""
        condition = Attr("A").eq("x") & Attr("B").eq("y") & Attr("C").lt(3)

        sql, params = PostgreSQLConditionCompiler().compile(condition)

        assert params == {"c0": "x", "c1": "y", "c2": 3}
        assert sql.count(" AND ") >= 2

    def test_param_prefix(self) -> None:
        """Test the placeholder prefix can be changed to avoid collisions."""
        _, params = PostgreSQLConditionCompiler(param_prefix="cond").compile(Attr("A").eq("x"))

        assert params == {"cond0": "x"}
