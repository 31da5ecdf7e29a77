from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import json
from typing import Any, Mapping, Protocol, TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class RowStatement:
    # Parameterized SQL (":name" binds) plus the params that must be sent as JSON text.
    sql: str
    params: dict[str, Any]
    json_fields: tuple[str, ...] = field(default_factory=tuple)


class RecordMapper(Protocol[T]):
    """Per-entity row mapping injected into the generic repository."""

    def from_row(self, row: Mapping[str, Any]) -> T: ...

    def to_insert(self, entity: T) -> RowStatement: ...

    def to_update(self, entity: T) -> RowStatement: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def encode_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        # Text keeps every digit; as_decimal reads it back exactly.
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_value(raw: Any, default: Any) -> Any:
    """Decode a JSON column, falling back to ``default`` on null or garbage."""
    if raw is None:
        return default
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return default
    if raw is None or not isinstance(raw, type(default)):
        return default
    return raw


def as_utc(raw: Any, *, optional: bool = False) -> datetime | None:
    """Normalize a timestamp column to an aware UTC datetime.

    Null becomes ``None`` for optional fields and "now" otherwise. Naive values
    (SQLite drops the offset) are taken to be UTC already.
    """
    if raw is None or raw == "":
        return None if optional else utc_now()
    if isinstance(raw, str):
        try:
            raw = datetime.fromisoformat(raw)
        except ValueError:
            return None if optional else utc_now()
    if not isinstance(raw, datetime):
        return None if optional else utc_now()
    if raw.tzinfo is None:
        return raw.replace(tzinfo=timezone.utc)
    return raw.astimezone(timezone.utc)


def as_text(raw: Any) -> str:
    return "" if raw is None else str(raw)


def as_int(raw: Any, default: int = 0) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def as_decimal(raw: Any, default: Decimal = Decimal("0")) -> Decimal:
    if raw is None:
        return default
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return default


def as_bool(raw: Any, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "t", "yes", "y"}
    return bool(raw)
