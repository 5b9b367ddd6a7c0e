"""
Ordered-position maintenance.

Keeps an integer position column ordered within groups of records that
share the values of the store's position filter fields. Before an insert
or update is written, ``PositionManager.calculate`` decides the position
to store in ``request.body`` and shifts other records to make room.

Anchor (``request.before_id``) semantics:
    - UNSET: keep the previous position, or go last when there is none
    - None: go last
    - an id: take the anchor's position, shifting it and every following
      record down by one; go last when the anchor is not in the group
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlstores.errors import StoreConfigurationError
from sqlstores.runtime.database import Database
from sqlstores.runtime.lifecycle import UNSET, StoreRequest
from sqlstores.runtime.query_builder import SqlBuilder
from sqlstores.specs.store import StoreConfig

logger = logging.getLogger(__name__)


@dataclass
class GroupFilter:
    """SQL predicate selecting the records of one position group."""

    sql: str
    args: list[Any]


class PositionManager:
    """
    Computes positions for one store.

    Usage:
        positions = PositionManager(db, config)
        await positions.calculate(request)  # sets request.body[position_field]
    """

    def __init__(self, db: Database, config: StoreConfig, builder: SqlBuilder | None = None):
        self.db = db
        self.config = config
        if builder is None:
            try:
                builder = SqlBuilder(config.table or "", db.dialect)
            except ValueError as e:
                raise StoreConfigurationError(f"Store '{config.name}': {e}") from e
        self.builder = builder

    @property
    def enabled(self) -> bool:
        return bool(self.config.position_field)

    async def calculate(self, request: StoreRequest) -> None:
        """
        Set the position of the record being written.

        Side effects: ``request.body[position_field]``, ``request.before_id``
        and, when moving before an anchor, the positions of other records.
        """
        field = self.config.position_field
        if not field:
            return

        # An explicit position is the caller's decision
        if field in request.body:
            return

        previous = await self._previous_position(request)
        group = self.group_filter(request)

        if self._group_changed(request):
            logger.debug("Position group changed, placing record last")
            await self._place_last(request, group)
        elif request.before_id is UNSET:
            if previous:
                request.body[field] = previous
            else:
                await self._place_last(request, group)
        elif request.before_id is None:
            await self._place_last(request, group)
        else:
            await self._place_before(request, group)

    def group_filter(self, request: StoreRequest) -> GroupFilter:
        """
        Predicate for the record's group.

        Body values take precedence over the existing record's; a missing or
        ``None`` value matches NULL.
        """
        if not self.config.position_filter:
            return GroupFilter("1 = 1", [])

        source = {**(request.record or {}), **request.body}
        conditions = []
        args = []
        for name in self.config.position_filter:
            column = self.builder.column(name)
            value = source.get(name)
            if value is None:
                conditions.append(f"({column} IS NULL)")
            else:
                conditions.append(f"({column} = ?)")
                args.append(value)
        return GroupFilter(" AND ".join(conditions), args)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _previous_position(self, request: StoreRequest) -> Any:
        field = self.config.position_field
        if request.record is not None:
            return request.record.get(field)

        record_id = request.params.get(self.config.id_field)
        if record_id is None:
            return None
        sql = (
            f"SELECT {self.builder.column(field)} AS current_position FROM {self.builder.quoted_table} "
            f"WHERE {self.builder.column(self.config.id_field)} = ?"
        )
        rows = self.db.execute(sql, [record_id])
        return rows[0]["current_position"] if rows else None

    def _group_changed(self, request: StoreRequest) -> bool:
        if request.record is None:
            return False
        for name in self.config.position_filter:
            if name in request.body and name in request.record:
                # Loose comparison: the driver's types may differ from the body's
                if str(request.body[name]) != str(request.record[name]):
                    return True
        return False

    async def _place_last(self, request: StoreRequest, group: GroupFilter) -> None:
        field = self.config.position_field
        sql = (
            f"SELECT MAX({self.builder.column(field)}) AS max_position "
            f"FROM {self.builder.quoted_table} WHERE {group.sql}"
        )
        rows = self.db.execute(sql, group.args)
        max_position = rows[0]["max_position"] if rows else None
        request.body[field] = (max_position or 0) + 1
        request.before_id = None

    async def _place_before(self, request: StoreRequest, group: GroupFilter) -> None:
        field = self.config.position_field
        column = self.builder.column(field)
        sql = (
            f"SELECT {column} AS current_position FROM {self.builder.quoted_table} "
            f"WHERE {self.builder.column(self.config.id_field)} = ? AND {group.sql}"
        )
        rows = self.db.execute(sql, [request.before_id, *group.args])
        if not rows:
            logger.debug("Anchor %r not found in group, placing record last", request.before_id)
            await self._place_last(request, group)
            return

        anchor_position = rows[0]["current_position"] or 0
        shift = (
            f"UPDATE {self.builder.quoted_table} SET {self.builder.quote(field)} = {column} + 1 "
            f"WHERE {column} >= ? AND {group.sql}"
        )
        if self.db.dialect.supports_update_order_by:
            # Highest first, so a unique index never sees a duplicate
            shift = f"{shift} ORDER BY {column} DESC"
        self.db.execute_modify(shift, [anchor_position, *group.args])
        request.body[field] = anchor_position
