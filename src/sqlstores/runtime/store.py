"""
SQL-backed store.

``SqlStore`` implements the five lifecycle operations against one table:

- fetch: one record addressed by ``request.params`` (``None`` when absent)
- query: a page of records plus the total count, as ``{"data", "grandTotal"}``
- insert: write ``request.body`` and return the re-fetched record
- update: write ``request.body`` over the addressed record and re-fetch it
  (``None`` when nothing is addressed)
- delete: remove the addressed record (optionally through joins)

Route parameters always become equality conditions, so a store mounted
under a parent resource only ever sees that parent's records.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlstores.errors import RecordAccessDenied, StoreConfigurationError
from sqlstores.runtime.database import Database
from sqlstores.runtime.hooks import Operation, StoreHooks
from sqlstores.runtime.lifecycle import BaseStore, QueryOptions, StoreRequest
from sqlstores.runtime.positions import PositionManager
from sqlstores.runtime.query_builder import GRAND_TOTAL, SqlBuilder
from sqlstores.specs.store import StoreConfig

logger = logging.getLogger(__name__)


class SqlStore(BaseStore):
    """
    Store backed by one SQL table.

    Example:
        config = StoreConfig(
            name="items",
            table="items",
            field_schema=FieldSchema.of(
                FieldSpec(name="id", type="id"),
                FieldSpec(name="name", searchable=True),
                FieldSpec(name="listId", type="number"),
                FieldSpec(name="position", type="number"),
            ),
            position_field="position",
            position_filter=["listId"],
        )
        store = SqlStore(Database.sqlite("app.db"), config)
        item = await store.implement_insert(StoreRequest(body={"name": "a", "listId": 1}))
    """

    def __init__(
        self,
        db: Database | None,
        config: StoreConfig,
        hooks: StoreHooks | None = None,
    ):
        """
        Initialize the store.

        Args:
            db: Database the table lives in
            config: Static store configuration
            hooks: Extension hooks (defaults to no-op hooks)
        """
        self.db = db
        self.config = config
        self.hooks = hooks or StoreHooks()
        self.before_id_field = config.before_id_field

        self.builder: SqlBuilder | None = None
        self.positions: PositionManager | None = None
        if db is not None and config.table:
            try:
                self.builder = SqlBuilder(config.table, db.dialect)
            except ValueError as e:
                raise StoreConfigurationError(f"Store '{config.name}': {e}") from e
            self.positions = PositionManager(db, config, self.builder)

    @property
    def table(self) -> str:
        return self.config.table or ""

    @property
    def id_field(self) -> str:
        return self.config.id_field

    def _check_config(self) -> None:
        if self.db is None:
            raise StoreConfigurationError(f"Store '{self.config.name}' has no database")
        if not self.config.table:
            raise StoreConfigurationError(f"Store '{self.config.name}' has no table")

    @contextmanager
    def _write_transaction(self) -> Iterator[None]:
        uses_positions = self.positions is not None and self.positions.enabled
        if uses_positions and self.config.atomic_positioning:
            with self.db.transaction():
                yield
        else:
            yield

    # =========================================================================
    # Fetch
    # =========================================================================

    async def implement_fetch(self, request: StoreRequest) -> dict[str, Any] | None:
        self._check_config()
        await super().implement_fetch(request)

        selection = await self.hooks.fields_and_joins(self, request, Operation.FETCH)
        extra = await self.hooks.conditions_and_args(self, request, Operation.FETCH)
        where = extra.extend(*self.builder.params_conditions(request.params))

        sql, args = self.builder.build_select(
            selection.fields, selection.joins, where.conditions, where.args
        )
        rows = self.db.execute(sql, args)
        request.record = rows[0] if rows else None

        if not await self.hooks.check_record_permissions(self, request):
            raise RecordAccessDenied(f"Access to record in '{self.table}' denied")

        record = request.record
        if record is not None:
            transformed = await self.hooks.transform_result(self, request, Operation.FETCH, record)
            if transformed:
                record = transformed
        return record

    async def fetch_existing_record(self, request: StoreRequest) -> dict[str, Any] | None:
        """Load the addressed record with the default projection, bypassing hooks."""
        self._check_config()
        conditions, args = self.builder.params_conditions(request.params)
        sql, args = self.builder.build_select([], [], conditions, args)
        rows = self.db.execute(sql, args)
        return rows[0] if rows else None

    # =========================================================================
    # Query
    # =========================================================================

    async def implement_query(self, request: StoreRequest) -> dict[str, Any]:
        self._check_config()
        await super().implement_query(request)

        selection = await self.hooks.fields_and_joins(self, request, Operation.QUERY)
        extra = await self.hooks.conditions_and_args(self, request, Operation.QUERY)
        where = extra.extend(*self.builder.params_conditions(request.params))

        ordering = await self.hooks.sort(self, request)
        if not ordering.sort and self.config.position_field:
            ordering.sort = self.builder.sort_terms({self.config.position_field: 0})

        options = request.options
        sql, args = self.builder.build_select(
            selection.fields,
            selection.joins,
            where.conditions,
            where.args,
            sort=ordering.sort,
            skip=options.skip,
            limit=options.limit,
            sort_args=ordering.args,
        )
        data = self.db.execute(sql, args)

        count_sql, count_args = self.builder.build_count(
            selection.joins, where.conditions, where.args
        )
        count_rows = self.db.execute(count_sql, count_args)
        grand_total = count_rows[0][GRAND_TOTAL] if count_rows else 0

        if data:
            transformed = await self.hooks.transform_result(self, request, Operation.QUERY, data)
            if transformed:
                data = transformed

        return {"data": data, GRAND_TOTAL: grand_total}

    # =========================================================================
    # Insert
    # =========================================================================

    async def implement_insert(self, request: StoreRequest) -> dict[str, Any] | None:
        self._check_config()
        await super().implement_insert(request)

        with self._write_transaction():
            await self.positions.calculate(request)

            values = await self.hooks.insert_object(self, request, dict(request.body))
            sql, args = self.builder.build_insert(values, returning=self.id_field)
            result = self.db.execute_modify(sql, args)

        new_id = values.get(self.id_field, result.lastrowid)
        logger.debug("Inserted into %s: %s=%s", self.table, self.id_field, new_id)

        refetch = StoreRequest(
            params={self.id_field: new_id},
            options=QueryOptions(),
            session=request.session,
        )
        request.record = await self.implement_fetch(refetch)
        request.insert_object = values

        await self.hooks.after_insert(self, request)
        self.restore_before_id(request)
        return request.record

    # =========================================================================
    # Update
    # =========================================================================

    async def implement_update(self, request: StoreRequest) -> dict[str, Any] | None:
        self._check_config()
        await super().implement_update(request)

        with self._write_transaction():
            addressed = True
            if self.positions.enabled:
                if request.record is None:
                    request.record = await self.fetch_existing_record(request)
                # No record in scope: positions of other records stay untouched
                addressed = request.record is not None
            if addressed:
                await self.positions.calculate(request)

            values = await self.hooks.update_object(self, request, dict(request.body))
            joins = await self.hooks.update_joins(self, request)
            extra = await self.hooks.conditions_and_args(self, request, Operation.UPDATE)
            where = extra.extend(*self.builder.params_conditions(request.params))

            if not addressed:
                logger.debug("No record in %s matches %s", self.table, request.params)
            elif values:
                sql, args = self.builder.build_update(values, joins, where.conditions, where.args)
                self.db.execute_modify(sql, args)
            else:
                logger.debug("Nothing to update in %s", self.table)

        request.original_record = request.record
        request.record = await self.implement_fetch(request)
        request.hook_results = {
            "update_object": values,
            "joins": joins,
            "conditions": where.conditions,
            "args": where.args,
        }

        await self.hooks.after_update(self, request)
        self.restore_before_id(request)
        return request.record

    # =========================================================================
    # Delete
    # =========================================================================

    async def implement_delete(self, request: StoreRequest) -> None:
        self._check_config()
        await super().implement_delete(request)

        targets = await self.hooks.delete_tables_and_joins(self, request)
        extra = await self.hooks.conditions_and_args(self, request, Operation.DELETE)
        where = extra.extend(*self.builder.params_conditions(request.params))

        sql, args = self.builder.build_delete(
            targets.tables, targets.joins, where.conditions, where.args
        )
        result = self.db.execute_modify(sql, args)
        logger.debug("Deleted %s row(s) from %s", result.rowcount, self.table)

        request.hook_results = {
            "tables": targets.tables,
            "joins": targets.joins,
            "conditions": where.conditions,
            "args": where.args,
        }
        await self.hooks.after_delete(self, request)
