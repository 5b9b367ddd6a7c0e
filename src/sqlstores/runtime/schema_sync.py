"""
Schema synchronisation for MySQL tables.

Compares a store's field schema with the live table and converges the two:

- Create the table (with a placeholder column) when it is missing
- Move the primary key to the id field when it points elsewhere
- Add missing columns, and restate every existing column's definition
- Add missing indexes and foreign key constraints
- Drop the placeholder column

Planning is pure (``SchemaSyncPlanner.plan`` works on a ``LiveSchema``
snapshot); ``SchemaSyncExecutor`` applies the plan. Every run restates all
column definitions, so running it against a converged table changes
nothing. Steps already applied stay applied when a later step fails.

Not supported:
- Dropping or renaming columns
- Dropping indexes or constraints
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from sqlstores.errors import SchemaSyncError, StoreConfigurationError
from sqlstores.runtime.database import Database, Dialect
from sqlstores.runtime.logging import log_with_context
from sqlstores.runtime.query_builder import quote_identifier
from sqlstores.specs.field import FieldKind, FieldSpec
from sqlstores.specs.store import IndexSpec, StoreConfig, StoreRegistry

logger = logging.getLogger(__name__)

# Column a new table is created with; MySQL does not allow empty tables
PLACEHOLDER_COLUMN = "__dummy__"

DEFAULT_STRING_LENGTH = 256


# =============================================================================
# Sync Types
# =============================================================================


class SyncAction(StrEnum):
    """Types of synchronisation steps."""

    CREATE_TABLE = "create_table"
    STRIP_AUTO_INCREMENT = "strip_auto_increment"
    ADD_INDEX = "add_index"
    CHANGE_PRIMARY_KEY = "change_primary_key"
    ADD_COLUMN = "add_column"
    CHANGE_COLUMN = "change_column"
    ADD_CONSTRAINT = "add_constraint"
    DROP_PLACEHOLDER = "drop_placeholder"


@dataclass
class SyncStep:
    """A single DDL statement."""

    action: SyncAction
    table: str
    sql: str
    column: str | None = None


@dataclass
class SyncPlan:
    """Ordered DDL statements converging one table."""

    table: str
    steps: list[SyncStep] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.steps) == 0

    def _of(self, *actions: SyncAction) -> list[SyncStep]:
        return [s for s in self.steps if s.action in actions]

    @property
    def columns_to_add(self) -> list[SyncStep]:
        return self._of(SyncAction.ADD_COLUMN)

    @property
    def columns_to_alter(self) -> list[SyncStep]:
        return self._of(SyncAction.CHANGE_COLUMN)

    @property
    def primary_key_change(self) -> list[SyncStep]:
        return self._of(SyncAction.STRIP_AUTO_INCREMENT, SyncAction.CHANGE_PRIMARY_KEY)

    @property
    def indexes_to_add(self) -> list[SyncStep]:
        return self._of(SyncAction.ADD_INDEX)

    @property
    def constraints_to_add(self) -> list[SyncStep]:
        return self._of(SyncAction.ADD_CONSTRAINT)


# =============================================================================
# Schema Introspection
# =============================================================================


@dataclass
class ColumnInfo:
    """Information about a live column."""

    name: str
    column_type: str
    nullable: bool
    default: Any = None
    key: str = ""
    extra: str = ""

    @property
    def is_pk(self) -> bool:
        return self.key == "PRI"

    @property
    def auto_increment(self) -> bool:
        return "auto_increment" in self.extra.lower()


@dataclass
class IndexInfo:
    """One column of a live index."""

    name: str
    column: str
    seq_in_index: int = 1
    unique: bool = False


@dataclass
class ConstraintInfo:
    """A live table constraint."""

    name: str
    constraint_type: str


@dataclass
class LiveSchema:
    """Snapshot of a table as the database sees it."""

    table: str
    exists: bool = True
    columns: list[ColumnInfo] = field(default_factory=list)
    indexes: list[IndexInfo] = field(default_factory=list)
    constraints: list[ConstraintInfo] = field(default_factory=list)

    def get_column(self, name: str) -> ColumnInfo | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    @property
    def primary_key(self) -> ColumnInfo | None:
        for column in self.columns:
            if column.is_pk:
                return column
        return None

    @property
    def index_names(self) -> set[str]:
        return {i.name for i in self.indexes}

    @property
    def constraint_names(self) -> set[str]:
        return {c.name for c in self.constraints}

    def has_leading_index(self, column: str) -> bool:
        """Whether a non-primary index starts with ``column``."""
        return any(
            i.name != "PRIMARY" and i.seq_in_index == 1 and i.column == column
            for i in self.indexes
        )


def _row_value(row: dict[str, Any], key: str) -> Any:
    # INFORMATION_SCHEMA column case depends on the server version
    if key in row:
        return row[key]
    return row.get(key.upper())


def introspect_table(db: Database, table: str) -> LiveSchema:
    """
    Read a table's columns, indexes and constraints from INFORMATION_SCHEMA.

    Args:
        db: MySQL database
        table: Table name

    Returns:
        LiveSchema snapshot (``exists=False`` when the table is missing)
    """
    tables = db.execute(
        "SELECT TABLE_NAME AS table_name FROM INFORMATION_SCHEMA.TABLES "
        "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = ?",
        [table],
    )
    if not tables:
        return LiveSchema(table=table, exists=False)

    column_rows = db.execute(
        "SELECT COLUMN_NAME AS column_name, COLUMN_TYPE AS column_type, "
        "IS_NULLABLE AS is_nullable, COLUMN_DEFAULT AS column_default, "
        "COLUMN_KEY AS column_key, EXTRA AS extra "
        "FROM INFORMATION_SCHEMA.COLUMNS "
        "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = ? ORDER BY ORDINAL_POSITION",
        [table],
    )
    index_rows = db.execute(
        "SELECT INDEX_NAME AS index_name, COLUMN_NAME AS column_name, "
        "SEQ_IN_INDEX AS seq_in_index, NON_UNIQUE AS non_unique "
        "FROM INFORMATION_SCHEMA.STATISTICS "
        "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = ?",
        [table],
    )
    constraint_rows = db.execute(
        "SELECT CONSTRAINT_NAME AS constraint_name, CONSTRAINT_TYPE AS constraint_type "
        "FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS "
        "WHERE CONSTRAINT_SCHEMA = DATABASE() AND TABLE_NAME = ?",
        [table],
    )

    return LiveSchema(
        table=table,
        columns=[
            ColumnInfo(
                name=_row_value(r, "column_name"),
                column_type=_row_value(r, "column_type"),
                nullable=_row_value(r, "is_nullable") == "YES",
                default=_row_value(r, "column_default"),
                key=_row_value(r, "column_key") or "",
                extra=_row_value(r, "extra") or "",
            )
            for r in column_rows
        ],
        indexes=[
            IndexInfo(
                name=_row_value(r, "index_name"),
                column=_row_value(r, "column_name"),
                seq_in_index=int(_row_value(r, "seq_in_index")),
                unique=not int(_row_value(r, "non_unique")),
            )
            for r in index_rows
        ],
        constraints=[
            ConstraintInfo(
                name=_row_value(r, "constraint_name"),
                constraint_type=_row_value(r, "constraint_type"),
            )
            for r in constraint_rows
        ],
    )


# =============================================================================
# Column Definitions
# =============================================================================


def field_sql_type(field: FieldSpec) -> str:
    """
    Map a field to its MySQL column type.

    Raises:
        StoreConfigurationError: If the type has no mapping and no ``db_type``
    """
    if field.db_type:
        return field.db_type

    match field.type:
        case FieldKind.NUMBER | FieldKind.ID:
            return "FLOAT" if field.floating else "BIGINT"
        case FieldKind.STRING:
            return f"VARCHAR({field.max_length or DEFAULT_STRING_LENGTH})"
        case FieldKind.BOOLEAN:
            return "TINYINT"
        case FieldKind.DATE:
            return "DATE"
        case FieldKind.TIMESTAMP:
            return "TIMESTAMP"
        case FieldKind.BLOB:
            return "BLOB"
        case _:
            raise StoreConfigurationError(
                f"Field '{field.name}' has type '{field.type}' with no SQL mapping; set db_type"
            )


def _sql_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int | float):
        return str(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def field_default_clause(field: FieldSpec) -> str:
    """DEFAULT clause; ``db_default`` takes precedence over ``default``."""
    value = field.db_default if field.db_default is not None else field.default
    if value is None:
        return ""
    return f"DEFAULT {_sql_literal(value)}"


# =============================================================================
# Planning
# =============================================================================


class SchemaSyncPlanner:
    """
    Plans the DDL converging a live table with a store configuration.
    """

    def __init__(self, config: StoreConfig, registry: StoreRegistry | None = None):
        if not config.table:
            raise StoreConfigurationError(f"Store '{config.name}' has no table")
        self.config = config
        self.registry = registry
        self.table = config.table

    def _q(self, name: str) -> str:
        try:
            return quote_identifier(name, Dialect.MYSQL)
        except ValueError as e:
            raise StoreConfigurationError(str(e)) from e

    def _alter(self, clause: str) -> str:
        return f"ALTER TABLE {self._q(self.table)} {clause}"

    def auto_increment_field(self) -> str | None:
        """The explicit auto-increment field, else a numeric id field."""
        schema = self.config.field_schema
        for f in schema.fields:
            if f.auto_increment:
                return f.name
        id_field = schema.get_field(self.config.id_field)
        if id_field is not None and id_field.is_numeric and not id_field.db_type:
            return id_field.name
        return None

    def plan(self, live: LiveSchema) -> SyncPlan:
        """
        Create the plan for one table.

        Args:
            live: Current state of the table

        Returns:
            Plan with steps in execution order
        """
        plan = SyncPlan(table=self.table)
        steps = plan.steps

        if not live.exists:
            steps.append(
                SyncStep(
                    SyncAction.CREATE_TABLE,
                    self.table,
                    f"CREATE TABLE {self._q(self.table)} ({self._q(PLACEHOLDER_COLUMN)} INT(1))",
                )
            )
            live = LiveSchema(
                table=self.table,
                columns=[ColumnInfo(PLACEHOLDER_COLUMN, "int(1)", nullable=True)],
            )

        id_field = self.config.id_field
        id_is_live = live.get_column(id_field) is not None
        new_primary_key = False

        primary_key = live.primary_key
        if primary_key is not None and primary_key.name != id_field:
            steps.extend(self._plan_primary_key_change(live, primary_key, id_is_live))
            new_primary_key = not id_is_live
        elif primary_key is None and id_is_live:
            steps.append(
                SyncStep(
                    SyncAction.CHANGE_PRIMARY_KEY,
                    self.table,
                    self._alter(f"ADD PRIMARY KEY ({self._q(id_field)})"),
                    column=id_field,
                )
            )
        elif primary_key is None:
            new_primary_key = True

        steps.extend(self._plan_columns(live, new_primary_key))
        steps.extend(self._plan_indexes(live))
        steps.extend(self._plan_constraints(live))

        if live.get_column(PLACEHOLDER_COLUMN) is not None:
            steps.append(
                SyncStep(
                    SyncAction.DROP_PLACEHOLDER,
                    self.table,
                    self._alter(f"DROP COLUMN {self._q(PLACEHOLDER_COLUMN)}"),
                    column=PLACEHOLDER_COLUMN,
                )
            )

        return plan

    def _plan_primary_key_change(
        self, live: LiveSchema, old: ColumnInfo, id_is_live: bool
    ) -> list[SyncStep]:
        steps: list[SyncStep] = []
        id_field = self.config.id_field

        # A column cannot stop being the key while it still auto-increments
        if old.auto_increment:
            null_clause = "NULL" if old.nullable else "NOT NULL"
            steps.append(
                SyncStep(
                    SyncAction.STRIP_AUTO_INCREMENT,
                    self.table,
                    self._alter(
                        f"CHANGE {self._q(old.name)} {self._q(old.name)} "
                        f"{old.column_type} {null_clause}"
                    ),
                    column=old.name,
                )
            )

        # Foreign keys referencing the old key still need an index on it
        if not live.has_leading_index(old.name):
            index_name = f"idx_{self.table}_{old.name}"
            steps.append(
                SyncStep(
                    SyncAction.ADD_INDEX,
                    self.table,
                    self._alter(f"ADD INDEX {self._q(index_name)} ({self._q(old.name)})"),
                    column=old.name,
                )
            )

        if id_is_live:
            clause = f"DROP PRIMARY KEY, ADD PRIMARY KEY ({self._q(id_field)})"
        else:
            # The id column is added below, carrying PRIMARY KEY
            clause = "DROP PRIMARY KEY"
        steps.append(
            SyncStep(SyncAction.CHANGE_PRIMARY_KEY, self.table, self._alter(clause), column=id_field)
        )
        return steps

    def _plan_columns(self, live: LiveSchema, new_primary_key: bool) -> list[SyncStep]:
        steps: list[SyncStep] = []
        auto_field = self.auto_increment_field()
        previous: str | None = None

        for f in self.config.field_schema.fields:
            is_new = live.get_column(f.name) is None
            parts = [
                self._q(f.name),
                field_sql_type(f),
                "NULL" if f.nullable else "NOT NULL",
                field_default_clause(f),
            ]
            if is_new and new_primary_key and f.name == self.config.id_field:
                parts.append("PRIMARY KEY")
            if f.name == auto_field:
                parts.append("AUTO_INCREMENT")
            parts.append(f"AFTER {self._q(previous)}" if previous else "FIRST")
            definition = " ".join(p for p in parts if p)

            if is_new:
                steps.append(
                    SyncStep(
                        SyncAction.ADD_COLUMN,
                        self.table,
                        self._alter(f"ADD COLUMN {definition}"),
                        column=f.name,
                    )
                )
            else:
                steps.append(
                    SyncStep(
                        SyncAction.CHANGE_COLUMN,
                        self.table,
                        self._alter(f"CHANGE {self._q(f.name)} {definition}"),
                        column=f.name,
                    )
                )
            previous = f.name
        return steps

    def requested_indexes(self) -> list[IndexSpec]:
        """Indexes declared by fields and by ``extra_indexes``."""
        indexes = [
            IndexSpec(columns=[f.name], unique=f.unique, name=f.index_name)
            for f in self.config.field_schema.fields
            if (f.indexed or f.searchable or f.unique) and f.name != self.config.id_field
        ]
        indexes.extend(self.config.extra_indexes)
        return indexes

    def _plan_indexes(self, live: LiveSchema) -> list[SyncStep]:
        steps: list[SyncStep] = []
        existing = set(live.index_names)

        for index in self.requested_indexes():
            name = index.name or f"idx_{self.table}_{'_'.join(index.columns)}"
            if name in existing:
                continue
            existing.add(name)
            kind = "UNIQUE INDEX" if index.unique else "INDEX"
            columns = ", ".join(self._q(c) for c in index.columns)
            steps.append(
                SyncStep(
                    SyncAction.ADD_INDEX,
                    self.table,
                    self._alter(f"ADD {kind} {self._q(name)} ({columns})"),
                    column=",".join(index.columns),
                )
            )
        return steps

    def resolve_reference(self, f: FieldSpec) -> tuple[str, str]:
        """
        Target table and column of a field's foreign key.

        Raises:
            SchemaSyncError: If the referenced store is unknown
        """
        ref = f.references
        if ref.table:
            return ref.table, ref.column or "id"

        target = self.registry.get(ref.store) if self.registry is not None else None
        if target is None or not target.table:
            raise SchemaSyncError(
                f"Field '{f.name}' references unknown store '{ref.store}'"
            )
        return target.table, ref.column or target.id_field

    def _plan_constraints(self, live: LiveSchema) -> list[SyncStep]:
        steps: list[SyncStep] = []
        existing = set(live.constraint_names)

        for f in self.config.field_schema.fields:
            if f.references is None:
                continue
            target_table, target_column = self.resolve_reference(f)
            name = f.references.name or f"fk_{self.table}_{f.name}_{target_table}_{target_column}"
            if name in existing:
                continue
            existing.add(name)
            steps.append(
                SyncStep(
                    SyncAction.ADD_CONSTRAINT,
                    self.table,
                    self._alter(
                        f"ADD CONSTRAINT {self._q(name)} FOREIGN KEY ({self._q(f.name)}) "
                        f"REFERENCES {self._q(target_table)} ({self._q(target_column)}) "
                        "ON DELETE NO ACTION ON UPDATE NO ACTION"
                    ),
                    column=f.name,
                )
            )
        return steps


# =============================================================================
# Execution
# =============================================================================


class SchemaSyncExecutor:
    """
    Executes sync plans against the database.
    """

    def __init__(self, db: Database):
        self.db = db

    def execute(self, plan: SyncPlan) -> list[SyncStep]:
        """
        Execute a sync plan.

        Args:
            plan: Plan to execute

        Returns:
            List of executed steps

        Raises:
            SchemaSyncError: If a statement fails; earlier steps stay applied
        """
        executed: list[SyncStep] = []
        for step in plan.steps:
            log_with_context(
                logger,
                logging.INFO,
                f"Applying {step.action.value} on {step.table}",
                action=step.action.value,
                table=step.table,
                column=step.column,
                sql=step.sql,
            )
            try:
                if step.action is SyncAction.STRIP_AUTO_INCREMENT:
                    self._run_without_fk_checks(step.sql)
                else:
                    self.db.execute(step.sql)
            except Exception as e:
                raise SchemaSyncError(
                    f"Failed to execute sync step: {step.action.value} "
                    f"on {step.table}.{step.column or ''}: {e}"
                ) from e
            executed.append(step)
        return executed

    def _run_without_fk_checks(self, sql: str) -> None:
        self.db.execute("SET foreign_key_checks = 0")
        try:
            self.db.execute(sql)
        finally:
            self.db.execute("SET foreign_key_checks = 1")


# =============================================================================
# High-Level API
# =============================================================================


def sync_schema(
    db: Database,
    config: StoreConfig,
    registry: StoreRegistry | None = None,
) -> SyncPlan:
    """
    Converge a store's table with its field schema.

    This is the main entry point for schema synchronisation; run it once,
    before serving requests.

    Args:
        db: MySQL database
        config: Store configuration
        registry: Sibling stores, to resolve foreign keys naming a store

    Returns:
        The executed plan
    """
    if db.dialect is not Dialect.MYSQL:
        raise SchemaSyncError(
            f"Schema synchronisation needs a MySQL database, got {db.dialect.value}"
        )

    planner = SchemaSyncPlanner(config, registry)
    live = introspect_table(db, planner.table)
    plan = planner.plan(live)

    logger.info("Synchronising %s: %d step(s)", planner.table, len(plan.steps))
    SchemaSyncExecutor(db).execute(plan)
    return plan
