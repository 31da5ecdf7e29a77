from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping
from uuid import UUID


TENANT_ID_ITEM = "OrganizationId"
TENANT_OBJECT_ITEM = "Organization"
# Claim names accepted as a tenant marker, in lookup order.
TENANT_CLAIM_NAMES: tuple[str, ...] = ("organizationId", "org", "organization")


@dataclass(frozen=True)
class OrganizationContext:
    # Tenant resolved by the request middleware (from a header or URL path).
    organization_id: UUID | str
    domain: str = ""


@dataclass
class RequestContext:
    # Explicit per-request state handed to every tenant-scoped operation.
    items: dict[str, Any] = field(default_factory=dict)
    claims: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def for_tenant(cls, tenant_id: str | UUID) -> "RequestContext":
        return cls(items={TENANT_ID_ITEM: tenant_id})

    def tenant_id(self) -> str:
        return resolve_tenant_id(self)


def _as_tenant_text(value: Any) -> str:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return ""


def resolve_tenant_id(context: RequestContext | None) -> str:
    """Return the current tenant id, or an empty string when none resolves.

    Lookup order: explicit tenant item, resolved organization object, then the
    tenant claim of the authenticated caller. Callers must treat an empty
    result as "tenant unknown" and fail rather than widen the scope.
    """
    if context is None:
        return ""

    explicit = _as_tenant_text(context.items.get(TENANT_ID_ITEM))
    if explicit:
        return explicit

    organization = context.items.get(TENANT_OBJECT_ITEM)
    if isinstance(organization, OrganizationContext):
        resolved = _as_tenant_text(organization.organization_id)
    else:
        resolved = _as_tenant_text(organization)
    if resolved:
        return resolved

    for name in TENANT_CLAIM_NAMES:
        claim = context.claims.get(name)
        if claim is not None and str(claim).strip():
            return str(claim).strip()
    return ""
