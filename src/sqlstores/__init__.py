"""
sqlstores - SQL-backed CRUD stores

Declarative field schemas, parameterized SQL for fetch/query/insert/update/
delete, ordered positions within record groups, and MySQL schema
synchronisation.

This package provides:
- specs: Field, store and index declarations (pydantic models)
- runtime: Database wrapper, SQL store lifecycle, hooks, schema sync
- errors: Exceptions raised by this package
"""

__version__ = "0.1.0"

from sqlstores.errors import (
    RecordAccessDenied,
    SchemaSyncError,
    SqlStoresError,
    StoreConfigurationError,
)
from sqlstores.runtime import Database, SqlStore, StoreHooks, StoreRequest, sync_schema
from sqlstores.specs import FieldSchema, FieldSpec, StoreConfig

__all__ = [
    "Database",
    "FieldSchema",
    "FieldSpec",
    "RecordAccessDenied",
    "SchemaSyncError",
    "SqlStore",
    "SqlStoresError",
    "StoreConfig",
    "StoreConfigurationError",
    "StoreHooks",
    "StoreRequest",
    "sync_schema",
]
