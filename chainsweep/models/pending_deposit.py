"""
Pending deposit model.

The unique constraint on (user_id, transaction_hash, network) is the
idempotency key: inserts use ON CONFLICT DO NOTHING so a detected
deposit is credited at most once.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chainsweep.models.base import Base
from chainsweep.models.enums import DepositStatus


class PendingDeposit(Base):
    """Detected deposit awaiting (or having received) a ledger credit."""

    __tablename__ = "pending_deposits"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "transaction_hash",
            "network",
            name="uq_pending_deposit_idempotency",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    network: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(160), nullable=False)

    from_address: Mapped[str] = mapped_column(
        String(64), nullable=False, default="unknown"
    )
    to_address: Mapped[str] = mapped_column(String(64), nullable=False)

    amount_crypto: Mapped[Decimal] = mapped_column(DECIMAL(38, 18), nullable=False)
    amount_usd: Mapped[Decimal | None] = mapped_column(
        DECIMAL(20, 2), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DepositStatus.CONFIRMED.value
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    credited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
