from __future__ import annotations

from typing import Any, Mapping

from momantza.domain.models import UserSession
from momantza.persistence.mapping import RowStatement, as_bool, as_text, as_utc, utc_now


_INSERT_SQL = (
    "INSERT INTO usersession (id, userid, organizationid, accesstoken, refreshtoken, expiresat, createdat, "
    "updatedat, isactive) "
    "VALUES (:id, :userid, :organizationid, :accesstoken, :refreshtoken, :expiresat, :createdat, :updatedat, "
    ":isactive)"
)
_UPDATE_SQL = (
    "UPDATE usersession SET organizationid = :organizationid, accesstoken = :accesstoken, "
    "refreshtoken = :refreshtoken, expiresat = :expiresat, updatedat = :updatedat, isactive = :isactive "
    "WHERE id = :id"
)


class SessionMapper:
    def from_row(self, row: Mapping[str, Any]) -> UserSession:
        return UserSession(
            id=as_text(row.get("id")),
            user_id=as_text(row.get("userid")),
            organization_id=as_text(row.get("organizationid")),
            access_token=as_text(row.get("accesstoken")),
            refresh_token=as_text(row.get("refreshtoken")),
            expires_at=as_utc(row.get("expiresat")),
            created_at=as_utc(row.get("createdat")),
            updated_at=as_utc(row.get("updatedat")),
            is_active=as_bool(row.get("isactive")),
        )

    def to_insert(self, entity: UserSession) -> RowStatement:
        return RowStatement(
            sql=_INSERT_SQL,
            params={
                "id": entity.id,
                "userid": entity.user_id,
                "organizationid": entity.organization_id,
                "accesstoken": entity.access_token,
                "refreshtoken": entity.refresh_token,
                "expiresat": entity.expires_at,
                "createdat": entity.created_at,
                "updatedat": entity.updated_at,
                "isactive": entity.is_active,
            },
        )

    def to_update(self, entity: UserSession) -> RowStatement:
        entity.updated_at = utc_now()
        return RowStatement(
            sql=_UPDATE_SQL,
            params={
                "id": entity.id,
                "organizationid": entity.organization_id,
                "accesstoken": entity.access_token,
                "refreshtoken": entity.refresh_token,
                "expiresat": entity.expires_at,
                "updatedat": entity.updated_at,
                "isactive": entity.is_active,
            },
        )
