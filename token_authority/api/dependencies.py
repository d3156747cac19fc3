from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header

from token_authority.core.config import SETTINGS, Settings
from token_authority.core.errors import ActorRequired
from token_authority.db.engine import async_session_factory, session_scope
from token_authority.middleware.request_context import actor_var
from token_authority.models.actor import Actor
from token_authority.repos.sql_token_ledger import SqlTokenLedger
from token_authority.repos.token_ledger import InMemoryTokenLedger, TokenLedger
from token_authority.services.authorization_resolver import AuthorizationResolver
from token_authority.services.cache import cache_service
from token_authority.services.secret_resolver import SecretResolver
from token_authority.services.token_authority import TokenAuthority
from token_authority.services.upstream import (
    HttpIdentityDirectory,
    HttpPermissionAuthority,
    HttpSecretProvider,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singletons (stateless apart from the in-memory ledger)
# ---------------------------------------------------------------------------

in_memory_ledger = InMemoryTokenLedger()

secret_resolver = SecretResolver(
    HttpSecretProvider(SETTINGS.config_service_url),
    cache=cache_service,
    ttl_seconds=SETTINGS.secret_cache_ttl_seconds,
)

authorization_resolver = AuthorizationResolver(
    HttpPermissionAuthority(SETTINGS.permission_service_url),
    HttpIdentityDirectory(SETTINGS.identity_service_url_template),
)


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
# The gateway authenticates the caller and forwards its id in X-Creator.
# These dependencies are async so the ContextVar they set is visible to
# the endpoint (sync dependencies run in a worker thread).


async def require_actor(
    x_creator: Annotated[str | None, Header(alias="X-Creator")] = None,
) -> Actor:
    """Resolve the calling actor; 401 ACTOR_REQUIRED when absent or blank."""
    if x_creator is None or not x_creator.strip():
        logger.warning("Request rejected: no actor in X-Creator")
        raise ActorRequired()
    actor = Actor.from_raw(x_creator)
    actor_var.set(actor.id)
    return actor


async def optional_actor(
    x_creator: Annotated[str | None, Header(alias="X-Creator")] = None,
) -> Actor | None:
    """Actor when the gateway supplied one, else None (verification routes)."""
    if x_creator is None or not x_creator.strip():
        return None
    actor = Actor.from_raw(x_creator)
    actor_var.set(actor.id)
    return actor


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


async def get_token_ledger() -> AsyncGenerator[TokenLedger, None]:
    """Request-scoped ledger: SQL when DATABASE_URL is set, else in-memory."""
    if async_session_factory is None:
        yield in_memory_ledger
        return
    async with session_scope() as session:
        yield SqlTokenLedger(session)


def get_settings() -> Settings:
    return SETTINGS


def get_secret_resolver() -> SecretResolver:
    return secret_resolver


def get_authorization_resolver() -> AuthorizationResolver:
    return authorization_resolver


def get_token_authority(
    ledger: Annotated[TokenLedger, Depends(get_token_ledger)],
    secrets: Annotated[SecretResolver, Depends(get_secret_resolver)],
    resolver: Annotated[AuthorizationResolver, Depends(get_authorization_resolver)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenAuthority:
    return TokenAuthority(
        ledger=ledger,
        secrets=secrets,
        resolver=resolver,
        enforce_revocation=settings.enforce_revocation,
    )
