"""
Declarative specifications for sqlstores.

Fields, stores and indexes are immutable pydantic models, defined once at
configuration time and shared by the store runtime and schema sync.
"""

from sqlstores.specs.field import (
    NUMERIC_KINDS,
    FieldKind,
    FieldSchema,
    FieldSpec,
    ForeignKeySpec,
)
from sqlstores.specs.store import IndexSpec, StoreConfig, StoreRegistry

__all__ = [
    "NUMERIC_KINDS",
    "FieldKind",
    "FieldSchema",
    "FieldSpec",
    "ForeignKeySpec",
    "IndexSpec",
    "StoreConfig",
    "StoreRegistry",
]
