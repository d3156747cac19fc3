from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol

from token_authority.models.token_record import TokenRecord


class TokenLedger(Protocol):
    async def insert(self, record: TokenRecord) -> TokenRecord: ...
    async def get_by_token(self, token: str) -> TokenRecord | None: ...
    async def soft_delete_by_token(self, token: str, created_by: str) -> int: ...
    async def soft_delete_by_service(self, service: str, created_by: str) -> int: ...
    async def soft_delete_by_creator(self, created_by: str) -> int: ...
    async def search(
        self,
        created_by: str,
        service: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[TokenRecord], int]: ...


def page_offset(page: int, limit: int) -> int:
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be >= 1")
    return (page - 1) * limit


class InMemoryTokenLedger:
    """Per-process ledger used when DATABASE_URL is unset (dev, tests).

    Soft-delete methods return how many rows matched the filter, deleted or
    not; only rows not yet deleted get flagged, so a row keeps the
    ``deleted_at`` of its first revocation.
    """

    def __init__(self) -> None:
        self._rows: list[TokenRecord] = []
        self._next_id = 1

    async def insert(self, record: TokenRecord) -> TokenRecord:
        stored = replace(record, id=self._next_id)
        self._next_id += 1
        self._rows.append(stored)
        return stored

    async def get_by_token(self, token: str) -> TokenRecord | None:
        for row in reversed(self._rows):
            if row.token == token:
                return row
        return None

    async def soft_delete_by_token(self, token: str, created_by: str) -> int:
        return self._soft_delete(
            lambda r: r.token == token and r.created_by == created_by
        )

    async def soft_delete_by_service(self, service: str, created_by: str) -> int:
        return self._soft_delete(
            lambda r: r.service == service and r.created_by == created_by
        )

    async def soft_delete_by_creator(self, created_by: str) -> int:
        return self._soft_delete(lambda r: r.created_by == created_by)

    async def search(
        self,
        created_by: str,
        service: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[TokenRecord], int]:
        offset = page_offset(page, limit)
        matches = [
            r
            for r in reversed(self._rows)
            if r.created_by == created_by and (service is None or r.service == service)
        ]
        return matches[offset : offset + limit], len(matches)

    def _soft_delete(self, predicate) -> int:
        now = datetime.now(UTC)
        matched = 0
        for i, row in enumerate(self._rows):
            if not predicate(row):
                continue
            matched += 1
            if not row.deleted:
                self._rows[i] = replace(row, deleted=True, deleted_at=now)
        return matched
