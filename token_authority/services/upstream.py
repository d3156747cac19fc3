"""Clients for the three external collaborators.

  secret provider       POST {CONFIG_SERVICE_URL}/get        {"key"}
  permission authority  POST {PERMISSION_SERVICE_URL}/has    {"identity", "service", "permissions"}
  identity service      POST IDENTITY_SERVICE_URL_TEMPLATE   {"identity"}

All three answer with the platform envelope ``{"code", "i18n", "data"}``.
A call succeeds only when both the HTTP status and the envelope code are
200; anything else raises UpstreamFailure carrying the collaborator's
status and body so the caller can relay them unchanged.  Transport errors
(connection refused, timeouts) are counted, logged and re-raised as-is;
the API layer answers them as internal failures.

The caller's actor id is forwarded as ``X-Creator`` so collaborators see
who the lookup is made for.

Each collaborator is a Protocol so the facade and resolver can be driven
by in-process fakes in tests.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from contextlib import asynccontextmanager
from typing import Any, Protocol

import httpx

from token_authority.core.config import SETTINGS
from token_authority.core.errors import UpstreamFailure
from token_authority.core.metrics import UPSTREAM_DURATION, UPSTREAM_REQUESTS
from token_authority.models.actor import Actor
from token_authority.models.token_record import is_valid_service_name

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-Creator"


class SecretProvider(Protocol):
    async def get(self, key: str) -> str: ...


class PermissionAuthority(Protocol):
    async def has(
        self,
        identity: int,
        service: str,
        permissions: Sequence[str],
        *,
        actor: Actor | None = None,
    ) -> dict[str, Any]: ...


class IdentityDirectory(Protocol):
    async def whoisthis(
        self,
        service: str,
        identity: int | None,
        *,
        actor: Actor | None = None,
    ) -> Any: ...


# ---------------------------------------------------------------------------
# Shared HTTP client
# ---------------------------------------------------------------------------

_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(timeout=SETTINGS.upstream_timeout_seconds)
    return _http_client


@asynccontextmanager
async def lifespan_http():
    """Close the shared upstream client on shutdown."""
    yield
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
        logger.info("Upstream HTTP client closed")


class _EnvelopeClient:
    upstream = "upstream"

    def __init__(self, http: httpx.AsyncClient | None = None) -> None:
        self._http = http

    @property
    def _client(self) -> httpx.AsyncClient:
        return self._http if self._http is not None else get_http_client()

    async def _post(self, url: str, body: dict[str, Any], actor: Actor | None) -> Any:
        headers = {ACTOR_HEADER: actor.id} if actor is not None else {}
        start = time.monotonic()
        try:
            response = await self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError:
            UPSTREAM_REQUESTS.labels(upstream=self.upstream, outcome="error").inc()
            logger.warning("%s request failed url=%s", self.upstream, url, exc_info=True)
            raise
        finally:
            UPSTREAM_DURATION.labels(upstream=self.upstream).observe(
                time.monotonic() - start
            )

        try:
            envelope = response.json()
        except ValueError:
            envelope = response.text

        code = response.status_code
        if isinstance(envelope, dict) and isinstance(envelope.get("code"), int):
            code = envelope["code"]

        if response.status_code != 200 or code != 200:
            UPSTREAM_REQUESTS.labels(upstream=self.upstream, outcome="failure").inc()
            logger.warning(
                "%s answered http=%d code=%s url=%s",
                self.upstream,
                response.status_code,
                code,
                url,
            )
            status = code if code != 200 and 100 <= code <= 599 else response.status_code
            raise UpstreamFailure(self.upstream, status, envelope)

        UPSTREAM_REQUESTS.labels(upstream=self.upstream, outcome="success").inc()
        if isinstance(envelope, dict):
            return envelope.get("data")
        return envelope


class HttpSecretProvider(_EnvelopeClient):
    upstream = "secret"

    def __init__(self, base_url: str, http: httpx.AsyncClient | None = None) -> None:
        super().__init__(http)
        self._url = f"{base_url.rstrip('/')}/get"

    async def get(self, key: str) -> str:
        data = await self._post(self._url, {"key": key}, actor=None)
        if not isinstance(data, dict) or not isinstance(data.get("value"), str):
            # 200 without a usable value: the provider broke its contract
            raise UpstreamFailure(
                self.upstream, 502, {"code": 502, "i18n": "SECRET_UNAVAILABLE"}
            )
        return data["value"]


class HttpPermissionAuthority(_EnvelopeClient):
    upstream = "permission"

    def __init__(self, base_url: str, http: httpx.AsyncClient | None = None) -> None:
        super().__init__(http)
        self._url = f"{base_url.rstrip('/')}/has"

    async def has(
        self,
        identity: int,
        service: str,
        permissions: Sequence[str],
        *,
        actor: Actor | None = None,
    ) -> dict[str, Any]:
        data = await self._post(
            self._url,
            {"identity": identity, "service": service, "permissions": list(permissions)},
            actor=actor,
        )
        if not isinstance(data, dict) or "has" not in data:
            raise UpstreamFailure(
                self.upstream, 502, {"code": 502, "i18n": "PERMISSION_UNAVAILABLE"}
            )
        return data


class HttpIdentityDirectory(_EnvelopeClient):
    """Routes ``whoisthis`` to the service named in the token's claims."""

    upstream = "identity"

    def __init__(self, url_template: str, http: httpx.AsyncClient | None = None) -> None:
        super().__init__(http)
        self._template = url_template

    def url_for(self, service: str) -> str:
        # Claims pick the host; only plain service names may reach the template
        if not is_valid_service_name(service):
            raise ValueError(f"invalid service name {service!r}")
        return self._template.format(service=service)

    async def whoisthis(
        self,
        service: str,
        identity: int | None,
        *,
        actor: Actor | None = None,
    ) -> Any:
        return await self._post(self.url_for(service), {"identity": identity}, actor=actor)
