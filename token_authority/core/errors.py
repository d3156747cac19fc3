"""Failure taxonomy for the token authority.

Every outcome a caller can act on is an exception carrying the HTTP status
and the i18n key of the response envelope.  The FastAPI handlers in
token_authority.main turn them into ``{"code", "i18n", "data"}`` bodies.
Anything that is not a TokenAuthorityError is an internal failure: it is
logged with its traceback and answered with a bare 500.
"""

from __future__ import annotations

from typing import Any


class TokenAuthorityError(Exception):
    code: int = 500
    i18n: str | None = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None, *, data: Any = None) -> None:
        super().__init__(message or self.i18n or self.__class__.__name__)
        self.data = data

    def envelope(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "i18n": self.i18n}
        if self.data is not None:
            body["data"] = self.data
        return body


class UpstreamFailure(TokenAuthorityError):
    """A collaborator (secret provider, permission authority, identity
    service) answered with something other than success.

    The collaborator's own status code and body are kept untouched and
    relayed to the caller as-is.
    """

    def __init__(self, upstream: str, status_code: int, body: Any) -> None:
        super().__init__(f"{upstream} answered {status_code}")
        self.upstream = upstream
        self.code = status_code
        self.body = body

    def envelope(self) -> dict[str, Any]:
        if isinstance(self.body, dict):
            return self.body
        return {"code": self.code, "i18n": None, "data": self.body}


class TokenExpired(TokenAuthorityError):
    code = 400
    i18n = "TOKEN_EXPIRED"


class TokenInvalid(TokenAuthorityError):
    code = 400
    i18n = "TOKEN_INVALID"


class TokenRevoked(TokenAuthorityError):
    code = 400
    i18n = "TOKEN_REVOKED"


class TokenNotFound(TokenAuthorityError):
    code = 404
    i18n = "TOKEN_NOT_FOUND"


class AccessDenied(TokenAuthorityError):
    """The permission authority answered, and the answer was no."""

    code = 403
    i18n = "ACCESS_DENIED"


class ActorRequired(TokenAuthorityError):
    code = 401
    i18n = "ACTOR_REQUIRED"
