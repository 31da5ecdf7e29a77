from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy import select

from momantza.core.context import (
    TENANT_ID_ITEM,
    TENANT_OBJECT_ITEM,
    OrganizationContext,
    RequestContext,
    resolve_tenant_id,
)
from momantza.core.errors import TenantUnresolvedError
from momantza.domain.models import USER_SCHEMA
from momantza.persistence.guards import require_tenant_id, tenant_predicate


def test_explicit_item_wins_over_object_and_claims() -> None:
    context = RequestContext(
        items={TENANT_ID_ITEM: "org-explicit", TENANT_OBJECT_ITEM: OrganizationContext("org-object")},
        claims={"organizationId": "org-claim"},
    )
    assert resolve_tenant_id(context) == "org-explicit"


def test_organization_object_used_when_no_explicit_item() -> None:
    organization_id = uuid4()
    context = RequestContext(items={TENANT_OBJECT_ITEM: OrganizationContext(organization_id)})
    assert resolve_tenant_id(context) == str(organization_id)


def test_claims_checked_in_order() -> None:
    assert resolve_tenant_id(RequestContext(claims={"org": "org-b", "organization": "org-c"})) == "org-b"
    assert resolve_tenant_id(RequestContext(claims={"organization": "org-c"})) == "org-c"


def test_blank_markers_resolve_to_empty() -> None:
    context = RequestContext(items={TENANT_ID_ITEM: "   "}, claims={"organizationId": ""})
    assert resolve_tenant_id(context) == ""
    assert resolve_tenant_id(None) == ""
    assert RequestContext().tenant_id() == ""


def test_for_tenant_builds_explicit_context() -> None:
    assert RequestContext.for_tenant("org-1").tenant_id() == "org-1"


def test_tenant_guard_rejects_missing_tenant() -> None:
    with pytest.raises(TenantUnresolvedError):
        require_tenant_id("")
    with pytest.raises(TenantUnresolvedError):
        tenant_predicate(USER_SCHEMA.table, None)


def test_tenant_predicate_targets_organization_column() -> None:
    statement = select(USER_SCHEMA.table).where(tenant_predicate(USER_SCHEMA.table, " org-1 "))
    compiled = statement.compile()
    assert "users.organizationid = :organizationid_1" in str(compiled)
    assert compiled.params["organizationid_1"] == "org-1"
