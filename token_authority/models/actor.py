from __future__ import annotations

from dataclasses import dataclass


def normalize_actor_id(raw: str) -> str:
    return raw.strip().lower()


@dataclass(frozen=True, slots=True)
class Actor:
    """The authenticated caller an operation runs on behalf of.

    Resolved once per request by ``require_actor`` and passed explicitly
    to every TokenAuthority operation.  ``id`` is already normalized
    (trimmed, lower-cased); it is the ``createdBy`` value stored on issued
    tokens and the only key revocation is scoped by.
    """

    id: str

    @staticmethod
    def from_raw(raw: str) -> Actor:
        actor_id = normalize_actor_id(raw)
        if not actor_id:
            raise ValueError("actor id must be non-empty")
        return Actor(id=actor_id)
