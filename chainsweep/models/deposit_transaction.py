"""
Deposit transaction audit model.

Written once per applied credit.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from chainsweep.models.base import Base


class DepositTransaction(Base):
    """Audit record of a credited deposit."""

    __tablename__ = "deposit_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    network: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(160), nullable=False)

    from_address: Mapped[str] = mapped_column(String(64), nullable=False)
    to_address: Mapped[str] = mapped_column(String(64), nullable=False)

    amount_crypto: Mapped[Decimal] = mapped_column(DECIMAL(38, 18), nullable=False)
    amount_usd: Mapped[Decimal] = mapped_column(DECIMAL(20, 2), nullable=False)

    # Slot / block number the balance change was observed at
    block_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
