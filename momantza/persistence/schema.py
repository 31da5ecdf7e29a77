from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from functools import cached_property
import logging
import types
from typing import Any, Union, get_args, get_origin, get_type_hints
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    Uuid,
    func,
    inspect,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.schema import CreateColumn, CreateTable
from sqlalchemy.types import TypeEngine

from momantza.core.errors import ErrorKind, Outcome
from momantza.persistence.guards import TENANT_COLUMN, bounded


logger = logging.getLogger(__name__)

PRIMARY_KEY_ATTRIBUTE = "id"


class FieldKind(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    UUID = "uuid"
    JSON = "json"


def column_name_for(attribute: str) -> str:
    # organization_id -> organizationid, matching the persisted schema.
    return attribute.replace("_", "").lower()


def kind_for_annotation(annotation: Any) -> FieldKind:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        return kind_for_annotation(members[0]) if len(members) == 1 else FieldKind.TEXT
    # bool before int: bool is an int subclass.
    if annotation is bool:
        return FieldKind.BOOLEAN
    if annotation is int:
        return FieldKind.INTEGER
    if annotation is str:
        return FieldKind.TEXT
    if annotation is Decimal:
        return FieldKind.DECIMAL
    if annotation is datetime:
        return FieldKind.TIMESTAMP
    if annotation is UUID:
        return FieldKind.UUID
    if origin in (list, dict) or annotation in (list, dict):
        return FieldKind.JSON
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return FieldKind.JSON
    return FieldKind.TEXT


def sql_type_for(kind: FieldKind) -> TypeEngine:
    if kind is FieldKind.INTEGER:
        return Integer()
    if kind is FieldKind.DECIMAL:
        return Numeric(18, 2)
    if kind is FieldKind.BOOLEAN:
        return Boolean()
    if kind is FieldKind.TIMESTAMP:
        return DateTime(timezone=True)
    if kind is FieldKind.UUID:
        return Uuid(as_uuid=False)
    if kind is FieldKind.JSON:
        return JSON().with_variant(JSONB(), "postgresql")
    return Text()


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    required: bool = False
    column_override: str | None = None

    @property
    def column(self) -> str:
        return self.column_override or column_name_for(self.name)

    @property
    def is_primary_key(self) -> bool:
        return self.name.lower() == PRIMARY_KEY_ATTRIBUTE

    def to_column(self, *, for_alter: bool = False, dialect: Dialect | None = None) -> Column:
        server_default = None
        if self.kind is FieldKind.TIMESTAMP:
            # SQLite refuses non-constant defaults in ALTER TABLE ADD COLUMN.
            if not (for_alter and dialect is not None and dialect.name == "sqlite"):
                server_default = func.now()
        if for_alter:
            # Existing rows have no value for an added column, so it stays nullable.
            return Column(self.column, sql_type_for(self.kind), nullable=True, server_default=server_default)
        return Column(
            self.column,
            sql_type_for(self.kind),
            primary_key=self.is_primary_key,
            nullable=not (self.required or self.is_primary_key),
            server_default=server_default,
        )


@dataclass(frozen=True)
class SchemaDescriptor:
    """Declarative attribute-to-column mapping for one entity type."""

    table_name: str
    fields: tuple[FieldSpec, ...]
    tenant_field: str | None = None

    @classmethod
    def from_dataclass(cls, entity_type: type, table: str | None = None) -> "SchemaDescriptor":
        """Derive the descriptor from a dataclass once, at definition time.

        ``field(metadata=...)`` may carry ``required``, ``column`` and ``kind``
        overrides. The attribute mapped to ``organizationid`` is the tenant field.
        """
        hints = get_type_hints(entity_type)
        specs: list[FieldSpec] = []
        tenant_field = None
        for item in dataclasses.fields(entity_type):
            metadata = item.metadata or {}
            kind = metadata.get("kind") or kind_for_annotation(hints.get(item.name, str))
            spec = FieldSpec(
                name=item.name,
                kind=FieldKind(kind),
                required=bool(metadata.get("required", False)),
                column_override=metadata.get("column"),
            )
            if spec.column == TENANT_COLUMN:
                tenant_field = item.name
            specs.append(spec)
        return cls(
            table_name=(table or entity_type.__name__).lower(),
            fields=tuple(specs),
            tenant_field=tenant_field,
        )

    @cached_property
    def table(self) -> Table:
        return Table(self.table_name, MetaData(), *(spec.to_column() for spec in self.fields))

    @property
    def columns(self) -> list[str]:
        return [spec.column for spec in self.fields]

    @property
    def json_columns(self) -> list[str]:
        return [spec.column for spec in self.fields if spec.kind is FieldKind.JSON]

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)


def _existing_columns(sync_conn: Connection, table_name: str) -> set[str] | None:
    # Catalog lookup; None means the table does not exist yet.
    inspector = inspect(sync_conn)
    if not inspector.has_table(table_name):
        return None
    return {str(column["name"]).lower() for column in inspector.get_columns(table_name)}


def add_column_sql(descriptor: SchemaDescriptor, spec: FieldSpec, dialect: Dialect) -> str:
    column = spec.to_column(for_alter=True, dialect=dialect)
    # Compiling a column spec needs it bound to a table.
    detached = Table(descriptor.table_name, MetaData(), column)
    preparer = dialect.identifier_preparer
    column_sql = str(CreateColumn(column).compile(dialect=dialect))
    return f"ALTER TABLE {preparer.format_table(detached)} ADD COLUMN {column_sql}"


class SchemaSynchronizer:
    """Create a table for a descriptor, or add the columns it is missing.

    Additive only: columns are never dropped or retyped. Failures are logged
    and reported as an unsuccessful outcome.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, timeout_s: float = 0) -> None:
        self._session_factory = session_factory
        self._timeout_s = timeout_s

    async def ensure_table(self, descriptor: SchemaDescriptor) -> Outcome[bool]:
        try:
            added = await bounded(self._sync(descriptor), self._timeout_s)
        except Exception as exc:  # noqa: BLE001 - schema errors surface as a failed outcome
            logger.error("schema_sync_failed table=%s", descriptor.table_name, exc_info=exc)
            return Outcome.failure(ErrorKind.STORE_FAILURE, False)
        if added:
            logger.info("schema_columns_added table=%s columns=%s", descriptor.table_name, ",".join(added))
        return Outcome.success(True)

    async def _sync(self, descriptor: SchemaDescriptor) -> list[str]:
        async with self._session_factory() as session:
            async with session.begin():
                conn = await session.connection()
                existing = await conn.run_sync(_existing_columns, descriptor.table_name)
                if existing is None:
                    await conn.execute(CreateTable(descriptor.table, if_not_exists=True))
                    logger.info("schema_table_created table=%s", descriptor.table_name)
                    return []
                added: list[str] = []
                for spec in descriptor.fields:
                    if spec.column in existing:
                        continue
                    await conn.exec_driver_sql(add_column_sql(descriptor, spec, conn.dialect))
                    added.append(spec.column)
                return added
