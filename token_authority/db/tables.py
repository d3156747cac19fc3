"""SQLAlchemy table definitions.

The ledger's domain type is the frozen TokenRecord dataclass in
token_authority/models/token_record.py; SqlTokenLedger converts rows to it.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from token_authority.db.engine import Base


class TokenRow(Base):
    __tablename__ = "tokens"

    # Autoincrement id doubles as the insertion-recency key for search
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(Text, nullable=False)
    identity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    service: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_in: Mapped[str] = mapped_column(
        String(8), nullable=False, default="always"
    )  # 1h|2h|3h|6h|12h|1d|1w|1m|1y|always
    created_by: Mapped[str] = mapped_column(String(320), nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_tokens_token", "token"),
        Index("ix_tokens_created_by_service", "created_by", "service"),
    )
