from __future__ import annotations

from typing import Any, Mapping

from momantza.domain.models import User
from momantza.persistence.mapping import RowStatement, as_text, as_utc, json_value, utc_now


_INSERT_SQL = (
    "INSERT INTO users (id, email, name, password, role, organizationid, accessiblehalls, createdat, updatedat) "
    "VALUES (:id, :email, :name, :password, :role, :organizationid, :accessiblehalls, :createdat, :updatedat)"
)
# The password column is only written through password_update().
_UPDATE_SQL = (
    "UPDATE users SET email = :email, name = :name, role = :role, organizationid = :organizationid, "
    "accessiblehalls = :accessiblehalls, updatedat = :updatedat WHERE id = :id"
)
_PASSWORD_SQL = "UPDATE users SET password = :password, updatedat = :updatedat WHERE id = :id"


class UserMapper:
    def from_row(self, row: Mapping[str, Any]) -> User:
        return User(
            id=as_text(row.get("id")),
            name=as_text(row.get("name")),
            password_hash=as_text(row.get("password")),
            email=as_text(row.get("email")),
            role=as_text(row.get("role")),
            organization_id=as_text(row.get("organizationid")),
            accessible_halls=[str(item) for item in json_value(row.get("accessiblehalls"), [])],
            created_at=as_utc(row.get("createdat")),
            updated_at=as_utc(row.get("updatedat")),
        )

    def to_insert(self, entity: User) -> RowStatement:
        return RowStatement(
            sql=_INSERT_SQL,
            params={
                "id": entity.id,
                "email": entity.email,
                "name": entity.name,
                "password": entity.password_hash,
                "role": entity.role,
                "organizationid": entity.organization_id,
                "accessiblehalls": list(entity.accessible_halls),
                "createdat": entity.created_at,
                "updatedat": entity.updated_at,
            },
            json_fields=("accessiblehalls",),
        )

    def to_update(self, entity: User) -> RowStatement:
        entity.updated_at = utc_now()
        return RowStatement(
            sql=_UPDATE_SQL,
            params={
                "id": entity.id,
                "email": entity.email,
                "name": entity.name,
                "role": entity.role,
                "organizationid": entity.organization_id,
                "accessiblehalls": list(entity.accessible_halls),
                "updatedat": entity.updated_at,
            },
            json_fields=("accessiblehalls",),
        )

    def password_update(self, user_id: str, password_hash: str) -> RowStatement:
        return RowStatement(
            sql=_PASSWORD_SQL,
            params={"id": user_id, "password": password_hash, "updatedat": utc_now()},
        )
