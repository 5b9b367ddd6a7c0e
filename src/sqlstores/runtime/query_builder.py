"""
SQL construction for store operations.

Builds the statement shapes a store needs (select, count, insert, update,
delete) as ``(sql, args)`` pairs. Identifiers come from trusted
configuration and are quoted into the SQL text; values are always bound
through ``?`` placeholders.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlstores.runtime.database import Dialect
from sqlstores.specs.field import FieldSchema

# Valid SQL identifier pattern (alphanumeric and underscore, not starting with digit)
_VALID_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# Sort direction value meaning "descending"
SORT_DESCENDING = 1

# Column alias of the count query, also the key of the total in query results
GRAND_TOTAL = "grandTotal"


def validate_sql_identifier(name: str, context: str = "identifier") -> str:
    """
    Validate that a string is a safe SQL identifier.

    Args:
        name: The identifier to validate
        context: Description of what's being validated (for error messages)

    Returns:
        The validated name

    Raises:
        ValueError: If the name contains invalid characters
    """
    if not name:
        raise ValueError(f"SQL {context} cannot be empty")
    if not _VALID_IDENTIFIER_PATTERN.match(name):
        raise ValueError(
            f"Invalid SQL {context} '{name}': must contain only letters, digits, "
            "and underscores, and cannot start with a digit"
        )
    return name


def _is_descending(direction: Any) -> bool:
    """Whether a sort direction ("1", 1, 1.0) asks for descending order."""
    try:
        return float(direction) == SORT_DESCENDING
    except (TypeError, ValueError):
        return False


def quote_identifier(name: str, dialect: Dialect | str = Dialect.SQLITE) -> str:
    """
    Quote an identifier for the given dialect.

    Qualified names are quoted part by part:
        - ("users", mysql) -> `users`
        - ("users.name", sqlite) -> "users"."name"
    """
    quote = Dialect(dialect).quote_char
    parts = [validate_sql_identifier(part) for part in name.split(".")]
    return ".".join(f"{quote}{part}{quote}" for part in parts)


@dataclass
class SqlBuilder:
    """
    Builds SQL statements for one table.

    Example:
        builder = SqlBuilder("items", Dialect.SQLITE)
        conditions, args = builder.params_conditions({"listId": 3})
        sql, args = builder.build_select(
            builder.schema_fields(schema), [], conditions, args, sort={"name": 0}
        )
    """

    table: str
    dialect: Dialect = Dialect.SQLITE

    def __post_init__(self) -> None:
        validate_sql_identifier(self.table, "table name")
        self.dialect = Dialect(self.dialect)

    # -------------------------------------------------------------------------
    # Identifiers
    # -------------------------------------------------------------------------

    def quote(self, name: str) -> str:
        return quote_identifier(name, self.dialect)

    @property
    def quoted_table(self) -> str:
        return self.quote(self.table)

    def column(self, name: str) -> str:
        """Quoted column reference, qualified with the table unless already qualified."""
        if "." in name:
            return self.quote(name)
        return self.quote(f"{self.table}.{name}")

    # -------------------------------------------------------------------------
    # Fragments
    # -------------------------------------------------------------------------

    def schema_fields(self, schema: FieldSchema) -> list[str]:
        """Default projection: every non-silent schema field, table-qualified."""
        return [self.column(f.name) for f in schema.fields if not f.silent]

    def expand_sort_field(self, name: str) -> str:
        """Qualify a sort field with the table unless it names one already."""
        return self.column(name)

    def params_conditions(self, params: Mapping[str, Any]) -> tuple[list[str], list[Any]]:
        """
        Equality conditions scoping a statement to the addressed resource.

        Returns:
            Tuple of (conditions, args), one condition per param, in order
        """
        conditions = []
        args = []
        for key, value in params.items():
            conditions.append(f"{self.column(key)} = ?")
            args.append(value)
        return conditions, args

    def sort_terms(self, sort: Mapping[str, Any] | None) -> list[str]:
        """ORDER BY terms for a field to direction mapping; 1 means descending."""
        return [
            f"{self.expand_sort_field(name)} {'DESC' if _is_descending(direction) else 'ASC'}"
            for name, direction in (sort or {}).items()
        ]

    def options_sort(self, sort: Mapping[str, Any] | None) -> tuple[list[str], list[Any]]:
        """
        Ordering requested by the caller.

        Returns:
            Tuple of (terms, args); plain field sorts bind no args
        """
        return self.sort_terms(sort), []

    def options_conditions(
        self,
        conditions_hash: Mapping[str, Any] | None,
        schema: FieldSchema,
        search_schema: FieldSchema,
    ) -> tuple[list[str], list[Any]]:
        """
        Conditions derived from a search filter.

        A key takes part only when it belongs to both the search schema and
        the schema, and its value is not the empty string. ``None`` matches
        NULL; full-search fields match ``LIKE %value%``; others match by
        equality.

        Returns:
            Tuple of (conditions, args)
        """
        conditions: list[str] = []
        args: list[Any] = []
        for key, value in (conditions_hash or {}).items():
            search_field = search_schema.get_field(key)
            field = schema.get_field(key)
            if search_field is None or field is None or str(value) == "":
                continue

            column = self.column(key)
            if value is None:
                conditions.append(f"{column} IS NULL")
            elif search_field.full_search or field.full_search:
                conditions.append(f"{column} LIKE ?")
                args.append(f"%{value}%")
            else:
                conditions.append(f"{column} = ?")
                args.append(value)
        return conditions, args

    def order_clause(self, sort: Mapping[str, Any] | Sequence[str] | None) -> str:
        """
        ORDER BY clause.

        ``sort`` is either a field to direction mapping or a list of ready
        terms (used verbatim).
        """
        if not sort:
            return ""
        terms = self.sort_terms(sort) if isinstance(sort, Mapping) else list(sort)
        return f"ORDER BY {', '.join(terms)}"

    @staticmethod
    def where_clause(conditions: Sequence[str]) -> str:
        if not conditions:
            return ""
        return f"WHERE {' AND '.join(conditions)}"

    @staticmethod
    def _join(parts: Sequence[str]) -> str:
        return " ".join(part for part in parts if part)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def build_select(
        self,
        fields: Sequence[str],
        joins: Sequence[str],
        conditions: Sequence[str],
        args: Sequence[Any],
        sort: Mapping[str, Any] | Sequence[str] | None = None,
        skip: int = 0,
        limit: int | None = None,
        sort_args: Sequence[Any] = (),
    ) -> tuple[str, list[Any]]:
        """
        Build a SELECT statement.

        Args:
            fields: Projected expressions; all columns when empty
            joins: JOIN clauses, used verbatim
            conditions: WHERE conditions, joined with AND
            args: Arguments bound by the conditions
            sort: Field to direction mapping, or ORDER BY terms
            skip: Rows to skip (only applied with a limit)
            limit: Maximum rows to return
            sort_args: Arguments bound by the ORDER BY terms

        Returns:
            Tuple of (sql, args); args are condition, sort, then pagination args
        """
        params = [*args, *sort_args]
        projection = ", ".join(fields) if fields else f"{self.quoted_table}.*"
        parts = [
            f"SELECT {projection} FROM {self.quoted_table}",
            *joins,
            self.where_clause(conditions),
            self.order_clause(sort),
        ]
        if limit is not None:
            parts.append("LIMIT ? OFFSET ?")
            params.extend([int(limit), int(skip or 0)])
        return self._join(parts), params

    def build_count(
        self,
        joins: Sequence[str],
        conditions: Sequence[str],
        args: Sequence[Any],
    ) -> tuple[str, list[Any]]:
        """COUNT query sharing a select's joins and conditions, aliased ``grandTotal``."""
        parts = [
            f"SELECT COUNT(*) AS {self.quote(GRAND_TOTAL)} FROM {self.quoted_table}",
            *joins,
            self.where_clause(conditions),
        ]
        return self._join(parts), list(args)

    def build_insert(
        self,
        values: Mapping[str, Any],
        returning: str | None = None,
    ) -> tuple[str, list[Any]]:
        """
        Build a single-row INSERT.

        Args:
            values: Column to value mapping
            returning: Column to read back (only used where the dialect needs it)
        """
        if values:
            columns = ", ".join(self.quote(name) for name in values)
            placeholders = ", ".join("?" for _ in values)
            sql = f"INSERT INTO {self.quoted_table} ({columns}) VALUES ({placeholders})"
        elif self.dialect is Dialect.MYSQL:
            sql = f"INSERT INTO {self.quoted_table} () VALUES ()"
        else:
            sql = f"INSERT INTO {self.quoted_table} DEFAULT VALUES"

        if returning and self.dialect.needs_returning:
            sql = f"{sql} RETURNING {self.quote(returning)}"
        return sql, list(values.values())

    def build_update(
        self,
        values: Mapping[str, Any],
        joins: Sequence[str],
        conditions: Sequence[str],
        args: Sequence[Any],
    ) -> tuple[str, list[Any]]:
        """
        Build an UPDATE; the value arguments come before the condition arguments.

        Raises:
            ValueError: If there is nothing to set
        """
        if not values:
            raise ValueError(f"Nothing to update in '{self.table}'")

        # Only the joined form needs (and allows) qualified SET targets
        target = self.column if joins else self.quote
        assignments = ", ".join(f"{target(name)} = ?" for name in values)
        parts = [
            f"UPDATE {self.quoted_table}",
            *joins,
            f"SET {assignments}",
            self.where_clause(conditions),
        ]
        return self._join(parts), [*values.values(), *args]

    def build_delete(
        self,
        tables: Sequence[str],
        joins: Sequence[str],
        conditions: Sequence[str],
        args: Sequence[Any],
    ) -> tuple[str, list[Any]]:
        """
        Build a DELETE.

        Deleting from the store's own table alone uses the portable
        ``DELETE FROM`` form; deleting from several tables or through joins
        uses ``DELETE t1, t2 FROM t <joins>``.
        """
        tables = list(tables) or [self.table]
        if tables == [self.table] and not joins:
            head = f"DELETE FROM {self.quoted_table}"
        else:
            targets = ", ".join(self.quote(t) for t in tables)
            head = f"DELETE {targets} FROM {self.quoted_table}"
        parts = [head, *joins, self.where_clause(conditions)]
        return self._join(parts), list(args)
