from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.dialects import postgresql, sqlite

from momantza.domain.models import HALL_SCHEMA, USER_SCHEMA, USER_SESSION_SCHEMA
from momantza.persistence.schema import (
    FieldKind,
    SchemaDescriptor,
    add_column_sql,
    column_name_for,
    kind_for_annotation,
)


@dataclass
class Booking:
    Id: str = ""
    hall_id: str = field(default="", metadata={"required": True})
    organization_id: str = ""
    guests: int = 0
    amount: Decimal = Decimal("0")
    confirmed: bool = False
    event_date: Optional[datetime] = None
    reference: UUID | None = None
    notes: list[str] = field(default_factory=list)
    legacy_code: str = field(default="", metadata={"column": "code", "kind": "integer"})


def test_column_names_drop_underscores_and_case() -> None:
    assert column_name_for("organization_id") == "organizationid"
    assert column_name_for("CreatedAt") == "createdat"


def test_annotation_kinds() -> None:
    assert kind_for_annotation(bool) is FieldKind.BOOLEAN
    assert kind_for_annotation(int) is FieldKind.INTEGER
    assert kind_for_annotation(Decimal) is FieldKind.DECIMAL
    assert kind_for_annotation(Optional[datetime]) is FieldKind.TIMESTAMP
    assert kind_for_annotation(UUID | None) is FieldKind.UUID
    assert kind_for_annotation(list[str]) is FieldKind.JSON
    assert kind_for_annotation(dict) is FieldKind.JSON
    assert kind_for_annotation(str) is FieldKind.TEXT


def test_descriptor_from_dataclass() -> None:
    descriptor = SchemaDescriptor.from_dataclass(Booking)
    assert descriptor.table_name == "booking"
    assert descriptor.tenant_field == "organization_id"
    assert descriptor.columns == [
        "id",
        "hallid",
        "organizationid",
        "guests",
        "amount",
        "confirmed",
        "eventdate",
        "reference",
        "notes",
        "code",
    ]
    assert descriptor.json_columns == ["notes"]
    assert descriptor.field("legacy_code").kind is FieldKind.INTEGER


def test_primary_key_and_not_null_rules() -> None:
    table = SchemaDescriptor.from_dataclass(Booking).table
    assert [column.name for column in table.primary_key.columns] == ["id"]
    assert table.c.hallid.nullable is False
    assert table.c.guests.nullable is True
    assert table.c.eventdate.server_default is not None


def test_model_descriptors() -> None:
    assert USER_SCHEMA.table_name == "users"
    assert "password" in USER_SCHEMA.columns
    assert USER_SESSION_SCHEMA.table_name == "usersession"
    assert HALL_SCHEMA.json_columns == ["features", "ratecard", "gallery"]
    assert USER_SCHEMA.table.c.email.nullable is False


def test_add_column_sql_is_nullable_and_dialect_aware() -> None:
    created_at = USER_SCHEMA.field("created_at")
    pg_sql = add_column_sql(USER_SCHEMA, created_at, postgresql.dialect())
    assert pg_sql.startswith("ALTER TABLE users ADD COLUMN createdat TIMESTAMP WITH TIME ZONE")
    assert "DEFAULT now()" in pg_sql
    assert "NOT NULL" not in pg_sql

    lite_sql = add_column_sql(USER_SCHEMA, created_at, sqlite.dialect())
    assert lite_sql.startswith("ALTER TABLE users ADD COLUMN createdat DATETIME")
    assert "DEFAULT" not in lite_sql

    email_sql = add_column_sql(USER_SCHEMA, USER_SCHEMA.field("email"), postgresql.dialect())
    assert "NOT NULL" not in email_sql
