"""
Field specification types for sqlstores.

Defines the declarative field schema a store is built from: field types,
nullability, defaults, database overrides, indexes and references.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# Field Types
# =============================================================================


class FieldKind(StrEnum):
    """Semantic field types with a built-in SQL mapping."""

    ID = "id"
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    BLOB = "blob"


# Types stored as integers (and therefore eligible for AUTO_INCREMENT)
NUMERIC_KINDS = frozenset({FieldKind.ID, FieldKind.NUMBER})


# =============================================================================
# References
# =============================================================================


class ForeignKeySpec(BaseModel):
    """
    Foreign key declaration for a field.

    The target is either a table named directly or a sibling store looked up
    in a ``StoreRegistry``; the target column defaults to the store's id field.

    Examples:
        - ForeignKeySpec(table="users", column="id")
        - ForeignKeySpec(store="users")
    """

    table: str | None = Field(default=None, description="Referenced table")
    store: str | None = Field(default=None, description="Referenced store name")
    column: str | None = Field(default=None, description="Referenced column")
    name: str | None = Field(default=None, description="Constraint name")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_target(self) -> ForeignKeySpec:
        if not self.table and not self.store:
            raise ValueError("A foreign key needs either 'table' or 'store'")
        return self


# =============================================================================
# Fields
# =============================================================================


class FieldSpec(BaseModel):
    """
    Field specification for a store.

    Attributes:
        name: Column name
        type: Semantic type (see FieldKind); other values need ``db_type``
        nullable: Whether the column accepts NULL
        max_length: Length of string columns (VARCHAR), 256 when unset
        default: Default value, also used as the column default
        db_default: Column default, takes precedence over ``default``
        db_type: Explicit SQL type, bypasses the type mapping
        floating: Store numbers as floating point
        auto_increment: Column is the table's AUTO_INCREMENT column
        indexed: Create a database index
        searchable: Field can be filtered through ``conditions_hash``
        full_search: Filter with ``LIKE %value%`` instead of equality
        unique: The index is unique
        index_name: Explicit index name
        references: Foreign key declaration
        silent: Left out of the default field projection
    """

    name: str = Field(description="Field name")
    type: str = Field(default=FieldKind.STRING, description="Semantic type")
    nullable: bool = Field(default=False, description="Column accepts NULL")
    max_length: int | None = Field(default=None, description="Max length for strings")
    default: Any | None = Field(default=None, description="Default value")
    db_default: Any | None = Field(default=None, description="Column default override")
    db_type: str | None = Field(default=None, description="Explicit SQL type")
    floating: bool = Field(default=False, description="Floating point numbers")
    auto_increment: bool = Field(default=False, description="AUTO_INCREMENT column")
    indexed: bool = Field(default=False, description="Create database index?")
    searchable: bool = Field(default=False, description="Filterable via conditions")
    full_search: bool = Field(default=False, description="Substring matching")
    unique: bool = Field(default=False, description="Unique index?")
    index_name: str | None = Field(default=None, description="Index name override")
    references: ForeignKeySpec | None = Field(default=None, description="Foreign key")
    silent: bool = Field(default=False, description="Hidden from default projection")

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure field name is a valid identifier."""
        if not v.isidentifier():
            raise ValueError(f"Field name '{v}' must be a valid identifier")
        return v

    @property
    def is_numeric(self) -> bool:
        return self.type in NUMERIC_KINDS and not self.floating


class FieldSchema(BaseModel):
    """
    Ordered collection of fields.

    Declaration order matters: schema synchronisation places columns in
    this order.

    Example:
        FieldSchema(
            fields=[
                FieldSpec(name="id", type="id"),
                FieldSpec(name="name", type="string", max_length=64, searchable=True),
            ]
        )
    """

    fields: list[FieldSpec] = Field(default_factory=list, description="Fields in order")

    model_config = ConfigDict(frozen=True)

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v: list[FieldSpec]) -> list[FieldSpec]:
        names = [f.name for f in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate field names: {', '.join(duplicates)}")
        auto = [f.name for f in v if f.auto_increment]
        if len(auto) > 1:
            raise ValueError(f"Only one auto_increment field allowed, got: {', '.join(auto)}")
        return v

    @classmethod
    def of(cls, *fields: FieldSpec) -> FieldSchema:
        return cls(fields=list(fields))

    def get_field(self, name: str) -> FieldSpec | None:
        """Get field by name."""
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    def __contains__(self, name: object) -> bool:
        return any(f.name == name for f in self.fields)
