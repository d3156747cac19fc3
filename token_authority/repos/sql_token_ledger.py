"""SQLAlchemy implementation of TokenLedger.

Every filter value reaches the database as a bound parameter: statements
are built with SQLAlchemy Core expressions, never with string formatting.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import ColumnElement, and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from token_authority.db.tables import TokenRow
from token_authority.models.token_record import TokenRecord
from token_authority.repos.token_ledger import page_offset


class SqlTokenLedger:
    """Satisfies the TokenLedger Protocol using an async SQLAlchemy session.

    The session's transaction is owned by the caller
    (``session_scope`` commits once per request).
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert(self, record: TokenRecord) -> TokenRecord:
        row = TokenRow(
            token=record.token,
            identity=record.identity,
            service=record.service,
            expires_in=record.expires_in,
            created_by=record.created_by,
            deleted=record.deleted,
            deleted_at=record.deleted_at,
            created_at=record.created_at,
        )
        self._session.add(row)
        await self._session.flush()
        return _row_to_record(row)

    async def get_by_token(self, token: str) -> TokenRecord | None:
        stmt = (
            select(TokenRow)
            .where(TokenRow.token == token)
            .order_by(TokenRow.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def soft_delete_by_token(self, token: str, created_by: str) -> int:
        return await self._soft_delete(
            and_(TokenRow.token == token, TokenRow.created_by == created_by)
        )

    async def soft_delete_by_service(self, service: str, created_by: str) -> int:
        return await self._soft_delete(
            and_(TokenRow.service == service, TokenRow.created_by == created_by)
        )

    async def soft_delete_by_creator(self, created_by: str) -> int:
        return await self._soft_delete(TokenRow.created_by == created_by)

    async def search(
        self,
        created_by: str,
        service: str | None,
        page: int,
        limit: int,
    ) -> tuple[list[TokenRecord], int]:
        offset = page_offset(page, limit)
        condition: ColumnElement[bool] = TokenRow.created_by == created_by
        if service is not None:
            condition = and_(condition, TokenRow.service == service)

        count_stmt = select(func.count()).select_from(TokenRow).where(condition)
        total = (await self._session.execute(count_stmt)).scalar_one()

        stmt = (
            select(TokenRow)
            .where(condition)
            .order_by(TokenRow.id.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows], int(total)

    async def _soft_delete(self, condition: ColumnElement[bool]) -> int:
        count_stmt = select(func.count()).select_from(TokenRow).where(condition)
        matched = (await self._session.execute(count_stmt)).scalar_one()
        if matched == 0:
            return 0

        # Already-deleted rows keep their original deleted_at
        stmt = (
            update(TokenRow)
            .where(condition, TokenRow.deleted.is_(False))
            .values(deleted=True, deleted_at=datetime.now(UTC))
        )
        await self._session.execute(stmt)
        return int(matched)


def _row_to_record(row: TokenRow) -> TokenRecord:
    return TokenRecord(
        id=row.id,
        token=row.token,
        identity=row.identity,
        service=row.service,
        expires_in=row.expires_in,  # type: ignore[arg-type]
        created_by=row.created_by,
        # Some drivers hand the flag back as 0/1
        deleted=bool(row.deleted),
        deleted_at=row.deleted_at,
        created_at=row.created_at,
    )
