"""
Base lifecycle contract for stores.

A store answers five operations (fetch, query, insert, update, delete).
``BaseStore`` owns the parts common to every backend; concrete stores
override ``implement_*`` and call ``super()`` before doing their own work.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for "no value supplied", distinct from ``None``."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


# =============================================================================
# Requests
# =============================================================================


@dataclass
class QueryOptions:
    """Collection query options: search filter, sort and pagination."""

    conditions_hash: dict[str, Any] = field(default_factory=dict)
    sort: dict[str, Any] = field(default_factory=dict)
    skip: int = 0
    limit: int | None = None


@dataclass
class StoreRequest:
    """
    Context of one store operation.

    Attributes:
        params: Route parameters; each becomes a mandatory equality condition
        body: Incoming values for insert/update
        options: Query options for collection queries
        session: Opaque caller session, passed through to hooks
        before_id: Position anchor: UNSET (not requested), None (go last)
            or the id of the record to be placed before
        record: Current record; loaded on update, result of the operation after
        original_record: Record as it was before an update
        insert_object: Values written by an insert
        hook_results: Scratch space for hooks to share state within the request
    """

    params: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)
    options: QueryOptions = field(default_factory=QueryOptions)
    session: Any = None
    before_id: Any = UNSET
    record: dict[str, Any] | None = None
    original_record: dict[str, Any] | None = None
    insert_object: dict[str, Any] | None = None
    hook_results: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Base Store
# =============================================================================


class BaseStore(ABC):
    """
    Abstract base store.

    Subclasses implement each operation and must call the base
    implementation first.
    """

    before_id_field: str = "beforeId"

    @abstractmethod
    async def implement_fetch(self, request: StoreRequest) -> Any:
        """Fetch one record addressed by ``request.params``."""
        logger.debug("fetch params=%s", request.params)

    @abstractmethod
    async def implement_query(self, request: StoreRequest) -> Any:
        """Query a collection of records."""
        logger.debug("query params=%s options=%s", request.params, request.options)

    @abstractmethod
    async def implement_insert(self, request: StoreRequest) -> Any:
        """Insert ``request.body`` as a new record."""
        self._take_before_id(request)

    @abstractmethod
    async def implement_update(self, request: StoreRequest) -> Any:
        """Update the record addressed by ``request.params`` with ``request.body``."""
        self._take_before_id(request)

    @abstractmethod
    async def implement_delete(self, request: StoreRequest) -> Any:
        """Delete the record addressed by ``request.params``."""
        logger.debug("delete params=%s", request.params)

    def _take_before_id(self, request: StoreRequest) -> None:
        # The anchor is an instruction, not a column
        if self.before_id_field in request.body:
            request.before_id = request.body.pop(self.before_id_field)

    def restore_before_id(self, request: StoreRequest) -> None:
        """Echo the requested anchor back into the resulting record."""
        if request.record is not None and request.before_id is not UNSET:
            request.record[self.before_id_field] = request.before_id
