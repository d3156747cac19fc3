"""Token endpoints under /api/v1/token.

Every response uses the platform envelope ``{"code", "i18n", "data",
"meta"}``; failures are raised as TokenAuthorityError subclasses and
rendered by the handlers registered in token_authority.main.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from token_authority.api.dependencies import get_token_authority, optional_actor, require_actor
from token_authority.models.actor import Actor
from token_authority.models.token_record import NO_EXPIRY, ExpiresIn, is_valid_service_name
from token_authority.services.token_authority import TokenAuthority
from token_authority.services.token_codec import RESERVED_CLAIMS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/token", tags=["token"])

SEARCH_LIMIT_MAX = 100


def envelope(
    i18n: str | None = None,
    *,
    data: Any = None,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"code": 200, "i18n": i18n}
    if data is not None:
        body["data"] = data
    if meta is not None:
        body["meta"] = meta
    return body


def _check_service(value: str) -> str:
    if not is_valid_service_name(value):
        raise ValueError(
            "service must be 1-64 letters, digits, '-' or '_' and start "
            "with a letter or digit"
        )
    return value


class GenerateIn(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)
    identity: int | None = Field(default=None, ge=1)
    service: str
    expiresIn: ExpiresIn = NO_EXPIRY

    @field_validator("service")
    @classmethod
    def _service_name(cls, v: str) -> str:
        return _check_service(v)

    @field_validator("payload")
    @classmethod
    def _no_reserved_claims(cls, v: dict[str, Any]) -> dict[str, Any]:
        clash = RESERVED_CLAIMS.intersection(v)
        if clash:
            raise ValueError(f"payload may not set {', '.join(sorted(clash))}")
        return v


class TokenIn(BaseModel):
    token: str = Field(min_length=1)


class ServiceIn(BaseModel):
    service: str

    @field_validator("service")
    @classmethod
    def _service_name(cls, v: str) -> str:
        return _check_service(v)


class SearchIn(BaseModel):
    service: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=SEARCH_LIMIT_MAX)


class WhoIsThisIn(BaseModel):
    token: str = Field(min_length=1)
    permissions: list[str] = Field(default_factory=list)


Authority = Annotated[TokenAuthority, Depends(get_token_authority)]


@router.post("/generate")
async def generate(
    body: GenerateIn,
    actor: Annotated[Actor, Depends(require_actor)],
    authority: Authority,
) -> dict[str, Any]:
    issued = await authority.generate(
        actor,
        service=body.service,
        payload=body.payload,
        identity=body.identity,
        expires_in=body.expiresIn,
    )
    return envelope(
        i18n="TOKEN_GENERATED",
        data={"token": issued.token, "expiresIn": issued.expires_in},
    )


@router.post("/payload")
async def payload(body: TokenIn, authority: Authority) -> dict[str, Any]:
    claims = await authority.payload(body.token)
    return envelope(i18n="TOKEN_PAYLOAD", data=claims)


@router.delete("/delete/token")
async def delete_by_token(
    body: TokenIn,
    actor: Annotated[Actor, Depends(require_actor)],
    authority: Authority,
) -> dict[str, Any]:
    await authority.delete_by_token(actor, body.token)
    return envelope(i18n="TOKEN_DELETED")


@router.delete("/delete/service")
async def delete_by_service(
    body: ServiceIn,
    actor: Annotated[Actor, Depends(require_actor)],
    authority: Authority,
) -> dict[str, Any]:
    matched = await authority.delete_by_service(actor, body.service)
    return envelope(i18n="TOKENS_DELETED", data={"matched": matched})


@router.delete("/delete/creator")
async def delete_by_creator(
    actor: Annotated[Actor, Depends(require_actor)],
    authority: Authority,
) -> dict[str, Any]:
    matched = await authority.delete_by_creator(actor)
    return envelope(i18n="TOKENS_DELETED", data={"matched": matched})


@router.post("/search")
async def search(
    actor: Annotated[Actor, Depends(require_actor)],
    authority: Authority,
    body: SearchIn | None = None,
) -> dict[str, Any]:
    body = body or SearchIn()
    result = await authority.search(
        actor, service=body.service, page=body.page, limit=body.limit
    )
    return envelope(
        i18n="TOKENS_FOUND",
        data=[r.to_dict() for r in result.records],
        meta=result.meta(),
    )


@router.post("/whoisthis")
async def whoisthis(
    body: WhoIsThisIn,
    actor: Annotated[Actor | None, Depends(optional_actor)],
    authority: Authority,
) -> dict[str, Any]:
    decision = await authority.whoisthis(body.token, body.permissions, actor=actor)
    return envelope(i18n="TOKEN_PAYLOAD", data=decision.to_dict())
