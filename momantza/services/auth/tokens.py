from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import secrets
from typing import Any, Callable
from uuid import uuid4

import jwt

from momantza.core.config import Settings
from momantza.core.errors import ConfigurationMissingError
from momantza.domain.models import User


logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "
TENANT_CLAIM = "organizationId"
DEFAULT_ROLE = "user"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def strip_bearer(token: str | None) -> str:
    if not token:
        return ""
    token = token.strip()
    if token.startswith(BEARER_PREFIX):
        return token[len(BEARER_PREFIX):].strip()
    return token


def generate_refresh_token() -> str:
    # 256 random bits, base64 encoded; carries no claims.
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    refresh_token: str
    expires_at: datetime


class TokenIssuer:
    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        audience: str,
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if not secret:
            raise ConfigurationMissingError("JWT_SECRET is required to sign access tokens")
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._ttl = ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "TokenIssuer":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            ttl=timedelta(days=settings.access_token_ttl_days),
            **kwargs,
        )

    def issue(self, user: User) -> IssuedToken:
        now = self._clock()
        expires_at = now + self._ttl
        claims = {
            "sub": user.id,
            "email": user.email,
            "name": user.name,
            TENANT_CLAIM: user.organization_id or "",
            "role": user.role or DEFAULT_ROLE,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            # Keeps tokens unique when one user logs in twice within a second.
            "jti": uuid4().hex,
        }
        access_token = jwt.encode(claims, self._secret, algorithm=ALGORITHM)
        return IssuedToken(
            access_token=access_token,
            refresh_token=generate_refresh_token(),
            expires_at=expires_at,
        )

    def decode(self, token: str) -> dict[str, Any] | None:
        # Signature, issuer, audience and expiry are all enforced with zero leeway.
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                audience=self._audience,
                options={"require": ["exp", "sub", "iss", "aud"]},
            )
        except jwt.InvalidTokenError as exc:
            logger.info("access_token_rejected reason=%s", type(exc).__name__)
            return None
