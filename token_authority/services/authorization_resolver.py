"""Turn verified claims into one access decision.

Two collaborators are involved: the permission authority ("does identity X
of service S hold these permissions?") and the identity service that owns
the token ("who is identity X?").  Both are asked at the same time and
both answers are awaited before anything is decided:

    permission check  ─┐
                       ├─ gather (join, not race) ─→ decide
    identity lookup   ─┘

Decision order once both are back:

  1. permission check raised          → re-raise it, drop the identity answer
  2. permission check said has=false  → AccessDenied(detail), drop identity
  3. identity lookup raised           → re-raise it
  4. otherwise                        → AccessDecision

No permissions requested, or claims without identity/service, means no
permission check at all: an automatic grant with an empty permission list.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from token_authority.core.errors import AccessDenied, TokenInvalid
from token_authority.models.actor import Actor
from token_authority.models.token_record import is_valid_service_name
from token_authority.services.upstream import IdentityDirectory, PermissionAuthority

logger = logging.getLogger(__name__)


def automatic_grant() -> dict[str, Any]:
    return {"has": True, "permissions": []}


@dataclass(frozen=True, slots=True)
class AccessDecision:
    claims: dict[str, Any]
    permissions: dict[str, Any]
    whoisthis: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": self.claims,
            "permissions": self.permissions,
            "whoisthis": self.whoisthis,
        }


class AuthorizationResolver:
    def __init__(
        self,
        permissions: PermissionAuthority,
        identities: IdentityDirectory,
    ) -> None:
        self._permissions = permissions
        self._identities = identities

    async def resolve(
        self,
        requested: Sequence[str],
        claims: Mapping[str, Any],
        *,
        actor: Actor | None = None,
    ) -> AccessDecision:
        service = claims.get("service")
        if not is_valid_service_name(service):
            # Without a routable service there is no identity lookup to make
            raise TokenInvalid("token carries no usable service claim")

        permission_result, identity_result = await asyncio.gather(
            self._check_permissions(requested, claims, actor),
            self._identities.whoisthis(service, claims.get("identity"), actor=actor),
            return_exceptions=True,
        )

        if isinstance(permission_result, BaseException):
            raise permission_result

        if not permission_result.get("has"):
            logger.info(
                "Access denied service=%s identity=%s requested=%s",
                service,
                claims.get("identity"),
                list(requested),
            )
            raise AccessDenied(data=permission_result)

        if isinstance(identity_result, BaseException):
            raise identity_result

        return AccessDecision(
            claims=dict(claims),
            permissions=permission_result,
            whoisthis=identity_result,
        )

    async def _check_permissions(
        self,
        requested: Sequence[str],
        claims: Mapping[str, Any],
        actor: Actor | None,
    ) -> dict[str, Any]:
        identity = claims.get("identity")
        service = claims.get("service")
        if not requested or not identity or not service:
            return automatic_grant()
        return await self._permissions.has(identity, service, list(requested), actor=actor)
