from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

# Settings are read at import time: pin a store-less test environment
# before anything under token_authority is imported.
os.environ["APP_ENV"] = "test"
for _var in (
    "DATABASE_URL",
    "REDIS_URL",
    "ENFORCE_REVOCATION",
    "SECRET_CACHE_TTL_SECONDS",
    "LOG_JSON",
):
    os.environ.pop(_var, None)

# Ensure repo root is on sys.path so `import token_authority` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from token_authority.api import dependencies  # noqa: E402
from token_authority.core.config import SETTINGS  # noqa: E402
from token_authority.main import app  # noqa: E402
from token_authority.models.actor import Actor  # noqa: E402
from token_authority.repos.token_ledger import InMemoryTokenLedger  # noqa: E402
from token_authority.services.authorization_resolver import (  # noqa: E402
    AuthorizationResolver,
)
from token_authority.services.cache import cache_service  # noqa: E402
from token_authority.services.secret_resolver import SecretResolver  # noqa: E402
from token_authority.services.token_authority import TokenAuthority  # noqa: E402

# HS256 keys shorter than the digest size trigger PyJWT warnings
TEST_SECRET = "test-signing-secret-0123456789abcdef"


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeSecretProvider:
    def __init__(self, secret: str = TEST_SECRET) -> None:
        self.secret = secret
        self.failure: Exception | None = None
        self.calls: list[str] = []

    async def get(self, key: str) -> str:
        self.calls.append(key)
        if self.failure is not None:
            raise self.failure
        return self.secret


class FakePermissionAuthority:
    """Grants everything unless told otherwise via ``verdict``/``failure``."""

    def __init__(self) -> None:
        self.verdict: dict[str, Any] | None = None
        self.failure: Exception | None = None
        self.delay = 0.0
        self.calls: list[tuple[int, str, list[str], Actor | None]] = []

    async def has(
        self,
        identity: int,
        service: str,
        permissions: Sequence[str],
        *,
        actor: Actor | None = None,
    ) -> dict[str, Any]:
        self.calls.append((identity, service, list(permissions), actor))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failure is not None:
            raise self.failure
        if self.verdict is not None:
            return self.verdict
        return {"has": True, "permissions": list(permissions)}


class FakeIdentityDirectory:
    def __init__(self) -> None:
        self.answer: Any = None
        self.failure: Exception | None = None
        self.delay = 0.0
        self.calls: list[tuple[str, int | None, Actor | None]] = []
        self.completed = 0

    async def whoisthis(
        self,
        service: str,
        identity: int | None,
        *,
        actor: Actor | None = None,
    ) -> Any:
        self.calls.append((service, identity, actor))
        if self.delay:
            await asyncio.sleep(self.delay)
        self.completed += 1
        if self.failure is not None:
            raise self.failure
        if self.answer is not None:
            return self.answer
        return {"id": identity, "service": service, "name": f"user-{identity}"}


# ---------------------------------------------------------------------------
# Autouse resets
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_dependency_overrides() -> None:
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_in_memory_ledger() -> None:
    """The module-level ledger backs any request without an override."""
    dependencies.in_memory_ledger._rows.clear()
    dependencies.in_memory_ledger._next_id = 1


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def secret_provider() -> FakeSecretProvider:
    return FakeSecretProvider()


@pytest.fixture
def permission_authority() -> FakePermissionAuthority:
    return FakePermissionAuthority()


@pytest.fixture
def identity_directory() -> FakeIdentityDirectory:
    return FakeIdentityDirectory()


@pytest.fixture
def ledger() -> InMemoryTokenLedger:
    return InMemoryTokenLedger()


@pytest.fixture
def secrets(secret_provider: FakeSecretProvider) -> SecretResolver:
    return SecretResolver(secret_provider)


@pytest.fixture
def resolver(
    permission_authority: FakePermissionAuthority,
    identity_directory: FakeIdentityDirectory,
) -> AuthorizationResolver:
    return AuthorizationResolver(permission_authority, identity_directory)


@pytest.fixture
def authority(
    ledger: InMemoryTokenLedger,
    secrets: SecretResolver,
    resolver: AuthorizationResolver,
) -> TokenAuthority:
    return TokenAuthority(ledger=ledger, secrets=secrets, resolver=resolver)


@pytest.fixture
def client(
    ledger: InMemoryTokenLedger,
    secrets: SecretResolver,
    resolver: AuthorizationResolver,
) -> TestClient:
    """TestClient wired to the in-process fakes instead of HTTP upstreams."""
    app.dependency_overrides[dependencies.get_token_ledger] = lambda: ledger
    app.dependency_overrides[dependencies.get_secret_resolver] = lambda: secrets
    app.dependency_overrides[dependencies.get_authorization_resolver] = lambda: resolver
    return TestClient(app)


def enforce_revocation(enabled: bool = True) -> None:
    """Override the settings dependency for the current test."""
    settings = replace(SETTINGS, enforce_revocation=enabled)
    app.dependency_overrides[dependencies.get_settings] = lambda: settings


def actor_headers(actor: str = "alice") -> dict[str, str]:
    return {"X-Creator": actor}


def generate_token(
    client: TestClient,
    *,
    actor: str = "alice",
    service: str = "billing",
    **body: Any,
) -> str:
    """Issue a token through the API and return the signed string."""
    resp = client.post(
        "/api/v1/token/generate",
        json={"service": service, **body},
        headers=actor_headers(actor),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["token"]
