from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import json

from momantza.domain.models import Hall, HallFeature, RateCard, User
from momantza.persistence.mapping import as_bool, as_decimal, as_int, as_utc, encode_json, json_value
from momantza.persistence.repos.halls import HallMapper
from momantza.persistence.repos.users import UserMapper


def test_json_value_tolerates_garbage() -> None:
    assert json_value(None, []) == []
    assert json_value("not json", []) == []
    assert json_value('{"a": 1}', []) == []
    assert json_value('["a"]', []) == ["a"]
    assert json_value(b'{"a": 1}', {}) == {"a": 1}
    assert json_value(["x"], []) == ["x"]


def test_encode_json_handles_decimal_and_datetime() -> None:
    stamp = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    decoded = json.loads(encode_json({"charge": Decimal("12.50"), "at": stamp}))
    assert decoded == {"charge": "12.50", "at": "2024-05-01T10:00:00+00:00"}
    assert encode_json(None) is None


def test_as_utc_normalizes() -> None:
    naive = datetime(2024, 1, 1, 12, 0)
    assert as_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert as_utc("2024-01-01T12:00:00+02:00") == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert as_utc(None, optional=True) is None
    assert as_utc(None).tzinfo is not None


def test_scalar_coercions() -> None:
    assert as_int("7") == 7
    assert as_int("x", default=3) == 3
    assert as_decimal("1.25") == Decimal("1.25")
    assert as_decimal("nan?") == Decimal("0")
    assert as_bool("true") is True
    assert as_bool(0) is False
    assert as_bool(None, default=True) is True


def test_user_mapper_never_updates_password() -> None:
    user = User(id="u1", name="A", email="a@x", role="user", organization_id="o1", password_hash="$2b$x")
    statement = UserMapper().to_update(user)
    assert "password" not in statement.params
    assert statement.json_fields == ("accessiblehalls",)
    assert UserMapper().to_insert(user).params["password"] == "$2b$x"


def test_user_mapper_from_row_defaults() -> None:
    user = UserMapper().from_row({"id": "u1", "email": "a@x", "accessiblehalls": None, "createdat": None})
    assert user.accessible_halls == []
    assert user.password_hash == ""
    assert user.created_at.tzinfo is not None


def test_hall_mapper_nested_json() -> None:
    hall = Hall(
        id="h1",
        name="Grand",
        location="City",
        address="1 Main St",
        capacity=250,
        organization_id="o1",
        features=[HallFeature(name="Stage", charge=Decimal("500"))],
        rate_card=RateCard(morning_rate=Decimal("1000"), evening_rate=Decimal("1500"), full_day_rate=Decimal("2200")),
        gallery=["a.jpg"],
    )
    params = HallMapper().to_insert(hall).params
    assert params["features"] == [{"name": "Stage", "charge": Decimal("500")}]
    assert params["ratecard"]["full_day_rate"] == Decimal("2200")

    row = {
        "id": "h1",
        "name": "Grand",
        "capacity": "250",
        "features": '[{"name": "Stage", "charge": 500.0}]',
        "ratecard": '{"morning_rate": 1000, "evening_rate": 1500.5, "full_day_rate": 2200}',
        "gallery": '["a.jpg"]',
        "isactive": 1,
    }
    restored = HallMapper().from_row(row)
    assert restored.capacity == 250
    assert restored.features == [HallFeature(name="Stage", charge=Decimal("500"))]
    assert restored.rate_card.evening_rate == Decimal("1500.5")
    assert restored.gallery == ["a.jpg"]
    assert restored.is_active is True
