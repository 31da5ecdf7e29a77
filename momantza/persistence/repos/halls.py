from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping

from momantza.domain.models import Hall, HallFeature, RateCard
from momantza.persistence.mapping import (
    RowStatement,
    as_bool,
    as_decimal,
    as_int,
    as_text,
    as_utc,
    json_value,
    utc_now,
)


_INSERT_SQL = (
    "INSERT INTO halls (id, organizationid, name, capacity, location, address, features, ratecard, gallery, "
    "isactive, createdat, updatedat) "
    "VALUES (:id, :organizationid, :name, :capacity, :location, :address, :features, :ratecard, :gallery, "
    ":isactive, :createdat, :updatedat)"
)
_UPDATE_SQL = (
    "UPDATE halls SET organizationid = :organizationid, name = :name, capacity = :capacity, "
    "location = :location, address = :address, features = :features, ratecard = :ratecard, "
    "gallery = :gallery, isactive = :isactive, updatedat = :updatedat WHERE id = :id"
)
_JSON_FIELDS = ("features", "ratecard", "gallery")


def _feature(raw: Any) -> HallFeature:
    if not isinstance(raw, dict):
        return HallFeature()
    return HallFeature(name=as_text(raw.get("name")), charge=as_decimal(raw.get("charge")))


def _rate_card(raw: dict[str, Any]) -> RateCard:
    return RateCard(
        morning_rate=as_decimal(raw.get("morning_rate")),
        evening_rate=as_decimal(raw.get("evening_rate")),
        full_day_rate=as_decimal(raw.get("full_day_rate")),
    )


class HallMapper:
    def from_row(self, row: Mapping[str, Any]) -> Hall:
        return Hall(
            id=as_text(row.get("id")),
            name=as_text(row.get("name")),
            location=as_text(row.get("location")),
            address=as_text(row.get("address")),
            capacity=as_int(row.get("capacity")),
            organization_id=as_text(row.get("organizationid")),
            features=[_feature(item) for item in json_value(row.get("features"), [])],
            rate_card=_rate_card(json_value(row.get("ratecard"), {})),
            gallery=[str(item) for item in json_value(row.get("gallery"), [])],
            is_active=as_bool(row.get("isactive"), default=True),
            created_at=as_utc(row.get("createdat")),
            updated_at=as_utc(row.get("updatedat")),
        )

    def _params(self, entity: Hall) -> dict[str, Any]:
        return {
            "id": entity.id,
            "organizationid": entity.organization_id,
            "name": entity.name,
            "capacity": entity.capacity,
            "location": entity.location,
            "address": entity.address,
            "features": [asdict(feature) for feature in entity.features],
            "ratecard": asdict(entity.rate_card),
            "gallery": list(entity.gallery),
            "isactive": entity.is_active,
            "updatedat": entity.updated_at,
        }

    def to_insert(self, entity: Hall) -> RowStatement:
        params = self._params(entity)
        params["createdat"] = entity.created_at
        return RowStatement(sql=_INSERT_SQL, params=params, json_fields=_JSON_FIELDS)

    def to_update(self, entity: Hall) -> RowStatement:
        entity.updated_at = utc_now()
        return RowStatement(sql=_UPDATE_SQL, params=self._params(entity), json_fields=_JSON_FIELDS)
