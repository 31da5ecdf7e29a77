from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from momantza.persistence.schema import SchemaDescriptor


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: str = ""
    name: str = field(default="", metadata={"required": True})
    # Either empty (seed state), a bcrypt hash, or a legacy plaintext secret.
    password_hash: str = field(default="", metadata={"column": "password"})
    email: str = field(default="", metadata={"required": True})
    role: str = field(default="", metadata={"required": True})
    organization_id: str = field(default="", metadata={"required": True})
    accessible_halls: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)


@dataclass
class UserSession:
    id: str = ""
    user_id: str = field(default="", metadata={"required": True})
    organization_id: str = ""
    access_token: str = field(default="", metadata={"required": True})
    refresh_token: str = field(default="", metadata={"required": True})
    expires_at: datetime = field(default_factory=_utc_now)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    is_active: bool = True


@dataclass
class HallFeature:
    name: str = ""
    charge: Decimal = Decimal("0")


@dataclass
class RateCard:
    morning_rate: Decimal = Decimal("0")
    evening_rate: Decimal = Decimal("0")
    full_day_rate: Decimal = Decimal("0")


@dataclass
class Hall:
    id: str = ""
    name: str = field(default="", metadata={"required": True})
    location: str = field(default="", metadata={"required": True})
    address: str = field(default="", metadata={"required": True})
    capacity: int = field(default=0, metadata={"required": True})
    organization_id: str = field(default="", metadata={"required": True})
    features: list[HallFeature] = field(default_factory=list)
    rate_card: RateCard = field(default_factory=RateCard)
    gallery: list[str] = field(default_factory=list)
    is_active: bool = True
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)


USER_SCHEMA = SchemaDescriptor.from_dataclass(User, table="users")
USER_SESSION_SCHEMA = SchemaDescriptor.from_dataclass(UserSession)
HALL_SCHEMA = SchemaDescriptor.from_dataclass(Hall, table="halls")
