"""
Extension hooks for SQL stores.

``StoreHooks`` has one async method per extension point. Every method
receives the store and the current request; the defaults are permissive
and reproduce the store's built-in behaviour, so subclasses override only
what they need:

    class ItemHooks(StoreHooks):
        async def fields_and_joins(self, store, request, op):
            base = await super().fields_and_joins(store, request, op)
            return FieldsAndJoins(
                fields=[*base.fields, '"lists"."name" AS "listName"'],
                joins=['LEFT JOIN "lists" ON "lists"."id" = "items"."listId"'],
            )

    store = SqlStore(db, config, hooks=ItemHooks())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlstores.runtime.lifecycle import StoreRequest
    from sqlstores.runtime.store import SqlStore


class Operation(StrEnum):
    """Store operations a hook can be asked about."""

    FETCH = "fetch"
    QUERY = "query"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


# =============================================================================
# Hook Results
# =============================================================================


@dataclass
class FieldsAndJoins:
    """Projected expressions and JOIN clauses of a select."""

    fields: list[str] = field(default_factory=list)
    joins: list[str] = field(default_factory=list)


@dataclass
class ConditionsAndArgs:
    """WHERE conditions and the arguments they bind."""

    conditions: list[str] = field(default_factory=list)
    args: list[Any] = field(default_factory=list)

    def extend(self, conditions: list[str], args: list[Any]) -> ConditionsAndArgs:
        return ConditionsAndArgs([*self.conditions, *conditions], [*self.args, *args])


@dataclass
class SortAndArgs:
    """ORDER BY terms and the arguments they bind."""

    sort: list[str] = field(default_factory=list)
    args: list[Any] = field(default_factory=list)


@dataclass
class TablesAndJoins:
    """Tables a delete removes rows from, and the joins relating them."""

    tables: list[str] = field(default_factory=list)
    joins: list[str] = field(default_factory=list)


# =============================================================================
# Hooks
# =============================================================================


class StoreHooks:
    """Default (no-op) hooks."""

    async def fields_and_joins(
        self, store: SqlStore, request: StoreRequest, op: Operation
    ) -> FieldsAndJoins:
        """Projection for fetch and query: all non-silent fields, no joins."""
        return FieldsAndJoins(fields=store.builder.schema_fields(store.config.field_schema))

    async def conditions_and_args(
        self, store: SqlStore, request: StoreRequest, op: Operation
    ) -> ConditionsAndArgs:
        """
        Extra conditions for an operation.

        Queries default to the search conditions built from
        ``options.conditions_hash``; other operations add nothing.
        """
        if op is Operation.QUERY:
            conditions, args = store.builder.options_conditions(
                request.options.conditions_hash,
                store.config.field_schema,
                store.config.effective_search_schema,
            )
            return ConditionsAndArgs(conditions, args)
        return ConditionsAndArgs()

    async def update_joins(self, store: SqlStore, request: StoreRequest) -> list[str]:
        return []

    async def delete_tables_and_joins(
        self, store: SqlStore, request: StoreRequest
    ) -> TablesAndJoins:
        return TablesAndJoins(tables=[store.table])

    async def sort(self, store: SqlStore, request: StoreRequest) -> SortAndArgs:
        """
        Ordering for queries, built from ``options.sort`` by default.

        Terms are used verbatim, so an override may sort on a bound
        expression such as ``FIELD("items"."id", ?, ?)``.
        """
        terms, args = store.builder.options_sort(request.options.sort)
        return SortAndArgs(terms, args)

    async def insert_object(
        self, store: SqlStore, request: StoreRequest, values: dict[str, Any]
    ) -> dict[str, Any]:
        """Values to insert, given a copy of the request body."""
        return values

    async def update_object(
        self, store: SqlStore, request: StoreRequest, values: dict[str, Any]
    ) -> dict[str, Any]:
        """Values to update, given a copy of the request body."""
        return values

    async def after_insert(self, store: SqlStore, request: StoreRequest) -> None:
        pass

    async def after_update(self, store: SqlStore, request: StoreRequest) -> None:
        pass

    async def after_delete(self, store: SqlStore, request: StoreRequest) -> None:
        pass

    async def transform_result(
        self, store: SqlStore, request: StoreRequest, op: Operation, data: Any
    ) -> Any:
        """
        Transform a fetched record or a page of query rows.

        Returning a falsy value keeps the original data.
        """
        return None

    async def check_record_permissions(self, store: SqlStore, request: StoreRequest) -> bool:
        """Record-level check run after a fetch; ``False`` denies access."""
        return True
