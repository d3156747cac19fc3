"""Token lifecycle operations.

TokenAuthority wires the secret resolver, codec, ledger and authorization
resolver into the operations the HTTP layer exposes.  Every operation that
acts on behalf of someone takes the Actor explicitly; nothing here reads
request state.

Revocation is a ledger flag.  By default it is audit-only: a revoked token
still verifies, exactly as tokens always have on this platform.  With
``enforce_revocation`` on, ``payload`` and ``whoisthis`` look the token up
after verifying it and reject revoked ones with TOKEN_REVOKED.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from token_authority.core.errors import TokenExpired, TokenInvalid, TokenNotFound, TokenRevoked
from token_authority.core.metrics import TOKEN_VERIFICATIONS, TOKENS_ISSUED, TOKENS_REVOKED
from token_authority.models.actor import Actor
from token_authority.models.token_record import (
    NO_EXPIRY,
    ExpiresIn,
    TokenRecord,
    is_valid_service_name,
)
from token_authority.repos.token_ledger import TokenLedger
from token_authority.services import token_codec
from token_authority.services.authorization_resolver import AccessDecision, AuthorizationResolver
from token_authority.services.secret_resolver import SecretResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    expires_in: ExpiresIn


@dataclass(frozen=True, slots=True)
class SearchPage:
    records: list[TokenRecord]
    page: int
    limit: int
    total: int

    @property
    def last(self) -> int:
        return math.ceil(self.total / self.limit)

    def meta(self) -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, "last": self.last}


class TokenAuthority:
    def __init__(
        self,
        *,
        ledger: TokenLedger,
        secrets: SecretResolver,
        resolver: AuthorizationResolver,
        enforce_revocation: bool = False,
    ) -> None:
        self._ledger = ledger
        self._secrets = secrets
        self._resolver = resolver
        self._enforce_revocation = enforce_revocation

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    async def generate(
        self,
        actor: Actor,
        *,
        service: str,
        payload: Mapping[str, Any] | None = None,
        identity: int | None = None,
        expires_in: ExpiresIn = NO_EXPIRY,
    ) -> IssuedToken:
        if not is_valid_service_name(service):
            raise ValueError(f"invalid service name {service!r}")

        secret = await self._secrets.resolve()

        # Injected claims win over caller keys of the same name
        claims: dict[str, Any] = dict(payload or {})
        if identity is not None:
            claims["identity"] = identity
        else:
            claims.pop("identity", None)
        claims["creator"] = actor.id
        claims["service"] = service

        token = token_codec.sign(claims, secret, expires_in)
        record = await self._ledger.insert(
            TokenRecord.new(
                token=token,
                service=service,
                created_by=actor.id,
                expires_in=expires_in,
                identity=identity,
            )
        )
        TOKENS_ISSUED.labels(expires_in=expires_in).inc()
        logger.info(
            "Token issued id=%s service=%s creator=%s expires_in=%s",
            record.id,
            service,
            actor.id,
            expires_in,
        )
        return IssuedToken(token=token, expires_in=expires_in)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def payload(self, token: str) -> dict[str, Any]:
        return await self._verified_claims(token)

    async def whoisthis(
        self,
        token: str,
        permissions: Sequence[str] = (),
        *,
        actor: Actor | None = None,
    ) -> AccessDecision:
        claims = await self._verified_claims(token)
        return await self._resolver.resolve(permissions, claims, actor=actor)

    async def _verified_claims(self, token: str) -> dict[str, Any]:
        secret = await self._secrets.resolve()
        try:
            claims = token_codec.verify(token, secret)
        except TokenExpired:
            TOKEN_VERIFICATIONS.labels(result="expired").inc()
            logger.info("Expired token rejected")
            raise
        except TokenInvalid as e:
            TOKEN_VERIFICATIONS.labels(result="invalid").inc()
            logger.info("Invalid token rejected: %s", e)
            raise

        if self._enforce_revocation:
            record = await self._ledger.get_by_token(token)
            if record is not None and record.deleted:
                TOKEN_VERIFICATIONS.labels(result="revoked").inc()
                logger.info("Revoked token rejected id=%s", record.id)
                raise TokenRevoked()

        TOKEN_VERIFICATIONS.labels(result="valid").inc()
        return claims

    # ------------------------------------------------------------------
    # Revocation (scoped to the actor's own tokens)
    # ------------------------------------------------------------------

    async def delete_by_token(self, actor: Actor, token: str) -> None:
        matched = await self._ledger.soft_delete_by_token(token.strip(), actor.id)
        if matched == 0:
            logger.info("Revocation target not found creator=%s", actor.id)
            raise TokenNotFound()
        TOKENS_REVOKED.labels(scope="token").inc(matched)
        logger.info("Token revoked creator=%s rows=%d", actor.id, matched)

    async def delete_by_service(self, actor: Actor, service: str) -> int:
        matched = await self._ledger.soft_delete_by_service(service, actor.id)
        TOKENS_REVOKED.labels(scope="service").inc(matched)
        logger.info(
            "Tokens revoked by service service=%s creator=%s rows=%d",
            service,
            actor.id,
            matched,
        )
        return matched

    async def delete_by_creator(self, actor: Actor) -> int:
        matched = await self._ledger.soft_delete_by_creator(actor.id)
        TOKENS_REVOKED.labels(scope="creator").inc(matched)
        logger.info("Tokens revoked by creator creator=%s rows=%d", actor.id, matched)
        return matched

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    async def search(
        self,
        actor: Actor,
        *,
        service: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> SearchPage:
        records, total = await self._ledger.search(actor.id, service, page, limit)
        return SearchPage(records=records, page=page, limit=limit, total=total)
