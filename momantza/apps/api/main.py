from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import re
from typing import AsyncIterator

from fastapi import FastAPI, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from momantza.apps.api.routes.auth import router as auth_router
from momantza.apps.api.routes.health import router as health_router
from momantza.core.config import Settings, get_settings
from momantza.core.context import OrganizationContext
from momantza.core.logging import configure_logging
from momantza.persistence.db import build_engine, build_session_factory
from momantza.services.registry import build_services


logger = logging.getLogger(__name__)

# /org/{id}/rest-of-path; the marker is stripped before routing.
_ORG_PATH = re.compile(r"^/org/(?P<org>[^/]+)(?P<rest>/.*)?$")


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    # Missing connection string or signing secret fails here, before serving.
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = None
    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)
    services = build_services(settings, session_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not await services.ensure_tables():
            logger.error("startup_schema_sync_failed")
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(title="Momantza API", lifespan=lifespan)
    app.state.services = services

    @app.middleware("http")
    async def tenant_resolution_middleware(request: Request, call_next):  # type: ignore[override]
        # Path marker wins over the header; neither leaves the tenant unresolved.
        organization_id = ""
        match = _ORG_PATH.match(request.url.path)
        if match:
            organization_id = match.group("org")
            request.scope["path"] = match.group("rest") or "/"
        else:
            organization_id = (request.headers.get(settings.tenant_header) or "").strip()
        if organization_id:
            request.state.organization = OrganizationContext(
                organization_id=organization_id,
                domain=request.headers.get("host", ""),
            )
        return await call_next(request)

    app.include_router(health_router)
    app.include_router(auth_router)
    return app
