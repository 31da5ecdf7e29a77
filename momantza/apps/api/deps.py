from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status

from momantza.core.context import TENANT_OBJECT_ITEM, OrganizationContext, RequestContext
from momantza.core.errors import ErrorKind, Outcome
from momantza.services.registry import Services
from momantza.services.auth.tokens import strip_bearer


# Map core error kinds to HTTP statuses for the thin controller layer.
_STATUS_BY_ERROR: dict[ErrorKind, int] = {
    # The auth surface treats an unknown user or session as unauthorized.
    ErrorKind.NOT_FOUND: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.TENANT_UNRESOLVED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CREDENTIAL: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.STORE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_services(request: Request) -> Services:
    return request.app.state.services


def bearer_token(authorization: str | None = Header(default=None)) -> str:
    token = strip_bearer(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AUTH_UNAUTHORIZED", "message": "Missing bearer token"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_request_context(
    request: Request,
    services: Services = Depends(get_services),
    authorization: str | None = Header(default=None),
) -> RequestContext:
    # Tenant marker from the resolver middleware plus verified bearer claims, if any.
    items: dict[str, object] = {}
    organization = getattr(request.state, "organization", None)
    if isinstance(organization, OrganizationContext):
        items[TENANT_OBJECT_ITEM] = organization
    token = strip_bearer(authorization)
    claims = services.tokens.decode(token) if token else None
    return RequestContext(items=items, claims=claims or {})


def raise_for_outcome(outcome: Outcome[object], message: str) -> None:
    # Translate a failed core outcome into the matching HTTP error.
    if outcome.ok:
        return
    kind = outcome.error or ErrorKind.STORE_FAILURE
    status_code = _STATUS_BY_ERROR.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    raise HTTPException(
        status_code=status_code,
        detail={"code": kind.value.upper(), "message": message},
        headers=headers,
    )
