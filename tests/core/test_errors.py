from __future__ import annotations

from token_authority.core.errors import (
    AccessDenied,
    ActorRequired,
    TokenExpired,
    TokenInvalid,
    TokenNotFound,
    TokenRevoked,
    UpstreamFailure,
)


def test_envelope_status_and_i18n() -> None:
    cases = [
        (TokenExpired(), 400, "TOKEN_EXPIRED"),
        (TokenInvalid("bad"), 400, "TOKEN_INVALID"),
        (TokenRevoked(), 400, "TOKEN_REVOKED"),
        (TokenNotFound(), 404, "TOKEN_NOT_FOUND"),
        (AccessDenied(), 403, "ACCESS_DENIED"),
        (ActorRequired(), 401, "ACTOR_REQUIRED"),
    ]
    for exc, code, i18n in cases:
        assert exc.code == code
        assert exc.envelope() == {"code": code, "i18n": i18n}


def test_envelope_includes_data_when_present() -> None:
    exc = AccessDenied(data={"has": False})
    assert exc.envelope() == {"code": 403, "i18n": "ACCESS_DENIED", "data": {"has": False}}


def test_upstream_failure_relays_body_verbatim() -> None:
    body = {"code": 409, "i18n": "SOMETHING", "data": {"x": 1}, "extra": True}
    exc = UpstreamFailure("permission", 409, body)
    assert exc.code == 409
    assert exc.envelope() is body
    assert str(exc) == "permission answered 409"


def test_upstream_failure_wraps_non_dict_body() -> None:
    exc = UpstreamFailure("identity", 500, "oops")
    assert exc.envelope() == {"code": 500, "i18n": None, "data": "oops"}
