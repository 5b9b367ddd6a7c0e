"""
Error types for sqlstores.

Backend errors (constraint violations, connectivity failures, SQL syntax
errors) are never wrapped: they reach the caller exactly as the driver
raised them. The types below cover the failures this package detects itself.
"""


class SqlStoresError(Exception):
    """Base exception for all sqlstores errors."""


class StoreConfigurationError(SqlStoresError):
    """
    Raised when static configuration is unusable.

    Examples:
    - Store without a database connection
    - Store without a table name
    - Field type with no SQL mapping and no ``db_type`` override
    - Invalid SQL identifier in the configuration
    """


class SchemaSyncError(SqlStoresError):
    """
    Raised when a schema synchronisation run cannot complete.

    Examples:
    - A DDL statement failed (the backend error is chained)
    - A foreign key references a store that is not registered
    - The backend does not support the synchronisation DDL
    """


class RecordAccessDenied(SqlStoresError):
    """Raised when the record-level permission hook rejects a fetched record."""
