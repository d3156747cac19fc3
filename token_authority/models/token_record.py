from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal, get_args

ExpiresIn = Literal["1h", "2h", "3h", "6h", "12h", "1d", "1w", "1m", "1y", "always"]

EXPIRES_IN_VALUES: tuple[str, ...] = get_args(ExpiresIn)
NO_EXPIRY: ExpiresIn = "always"

# Service names end up in the identity lookup URL
SERVICE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}\Z")


def is_valid_service_name(service: object) -> bool:
    return isinstance(service, str) and SERVICE_NAME_PATTERN.match(service) is not None


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """One issued token as recorded in the ledger.

    ``created_by`` is the owner: only the actor that issued a token can
    revoke it.  ``deleted`` is an audit flag; a deleted row stays in the
    ledger and in search results.

    ``id`` is assigned by the ledger on insert (None before that) and
    orders search results newest first.
    """

    token: str
    service: str
    created_by: str
    expires_in: ExpiresIn = NO_EXPIRY
    identity: int | None = None
    deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: int | None = None

    @staticmethod
    def new(
        *,
        token: str,
        service: str,
        created_by: str,
        expires_in: ExpiresIn = NO_EXPIRY,
        identity: int | None = None,
    ) -> TokenRecord:
        return TokenRecord(
            token=token,
            service=service,
            created_by=created_by,
            expires_in=expires_in,
            identity=identity,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "identity": self.identity,
            "service": self.service,
            "expiresIn": self.expires_in,
            "createdBy": self.created_by,
            "deleted": self.deleted,
            "deletedAt": self.deleted_at.isoformat() if self.deleted_at else None,
            "createdAt": self.created_at.isoformat(),
        }
