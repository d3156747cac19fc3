"""JWT signing and verification (HS256, shared secret).

Two recoverable verification failures are told apart:

  TokenExpired: signature checks out but ``exp`` has passed
  TokenInvalid: everything else PyJWT rejects (bad signature, malformed
                 segments, wrong algorithm, non-numeric exp, ...)

Any other exception is a bug or an environment problem and propagates.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from token_authority.core.errors import TokenExpired, TokenInvalid
from token_authority.models.token_record import NO_EXPIRY, ExpiresIn

ALGORITHM = "HS256"

# Labels follow the ms-style strings the platform has always used; "1m" is
# one minute, not one month.
EXPIRY_DELTAS: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "2h": timedelta(hours=2),
    "3h": timedelta(hours=3),
    "6h": timedelta(hours=6),
    "12h": timedelta(hours=12),
    "1d": timedelta(days=1),
    "1w": timedelta(weeks=1),
    "1m": timedelta(minutes=1),
    "1y": timedelta(days=365.25),
}

# Registered claims the signer owns; callers may not supply them
RESERVED_CLAIMS = frozenset({"exp", "iat", "nbf"})


def sign(
    claims: Mapping[str, Any],
    secret: str,
    expires_in: ExpiresIn = NO_EXPIRY,
    *,
    now: datetime | None = None,
) -> str:
    """Sign ``claims`` into a compact JWT.

    ``iat`` is always set; ``exp`` only when ``expires_in`` is not
    "always".  ``now`` overrides the issue time (tests use it to mint
    tokens that are already past their window).
    """
    clash = RESERVED_CLAIMS.intersection(claims)
    if clash:
        raise ValueError(f"reserved claims may not be supplied: {sorted(clash)}")

    issued_at = now or datetime.now(UTC)
    payload: dict[str, Any] = {**claims, "iat": issued_at}
    if expires_in != NO_EXPIRY:
        try:
            payload["exp"] = issued_at + EXPIRY_DELTAS[expires_in]
        except KeyError:
            raise ValueError(f"unknown expiry {expires_in!r}") from None
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify(token: str, secret: str) -> dict[str, Any]:
    """Verify signature and expiry, return the claims.

    Pins the algorithm so a token cannot pick its own (alg:none,
    HS/RS confusion).
    """
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpired() from None
    except jwt.InvalidTokenError as e:
        raise TokenInvalid(str(e)) from None
