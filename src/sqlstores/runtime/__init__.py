"""
sqlstores runtime

SQL execution for stores declared with ``sqlstores.specs``.

This module provides:
- Database: DB-API connection wrapper with dialect-aware placeholders
- SqlBuilder: parameterized SQL for select, count, insert, update, delete
- PositionManager: ordered positions within record groups
- SqlStore: fetch/query/insert/update/delete lifecycle with hooks
- sync_schema: converge a MySQL table with a store's field schema

Example usage:
    >>> from sqlstores.specs import FieldSchema, FieldSpec, StoreConfig
    >>> from sqlstores.runtime import Database, SqlStore, StoreRequest
    >>>
    >>> config = StoreConfig(
    ...     table="items",
    ...     field_schema=FieldSchema.of(FieldSpec(name="id", type="id"), FieldSpec(name="name")),
    ... )
    >>> store = SqlStore(Database.sqlite("app.db"), config)
    >>> record = await store.implement_insert(StoreRequest(body={"name": "a"}))
"""

from sqlstores.runtime.database import (
    Database,
    Dialect,
    ExecuteResult,
    database_url_from_env,
)
from sqlstores.runtime.hooks import (
    ConditionsAndArgs,
    FieldsAndJoins,
    Operation,
    SortAndArgs,
    StoreHooks,
    TablesAndJoins,
)
from sqlstores.runtime.lifecycle import (
    UNSET,
    BaseStore,
    QueryOptions,
    StoreRequest,
)
from sqlstores.runtime.logging import (
    get_logger,
    log_with_context,
    setup_logging,
)
from sqlstores.runtime.positions import PositionManager
from sqlstores.runtime.query_builder import (
    GRAND_TOTAL,
    SqlBuilder,
    quote_identifier,
    validate_sql_identifier,
)
from sqlstores.runtime.schema_sync import (
    LiveSchema,
    SchemaSyncExecutor,
    SchemaSyncPlanner,
    SyncAction,
    SyncPlan,
    SyncStep,
    introspect_table,
    sync_schema,
)
from sqlstores.runtime.store import SqlStore

__all__ = [
    # Database
    "Database",
    "Dialect",
    "ExecuteResult",
    "database_url_from_env",
    # Query building
    "GRAND_TOTAL",
    "SqlBuilder",
    "quote_identifier",
    "validate_sql_identifier",
    # Lifecycle
    "UNSET",
    "BaseStore",
    "QueryOptions",
    "StoreRequest",
    # Hooks
    "ConditionsAndArgs",
    "FieldsAndJoins",
    "Operation",
    "SortAndArgs",
    "StoreHooks",
    "TablesAndJoins",
    # Stores
    "PositionManager",
    "SqlStore",
    # Schema sync
    "LiveSchema",
    "SchemaSyncExecutor",
    "SchemaSyncPlanner",
    "SyncAction",
    "SyncPlan",
    "SyncStep",
    "introspect_table",
    "sync_schema",
    # Logging
    "get_logger",
    "log_with_context",
    "setup_logging",
]
