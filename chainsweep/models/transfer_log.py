"""
Transfer log model.

One row per sweep broadcast to a collection wallet.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chainsweep.models.base import Base
from chainsweep.models.enums import TransferStatus


class TransferLog(Base):
    """Sweep transfer record."""

    __tablename__ = "transfer_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    network: Mapped[str] = mapped_column(String(20), nullable=False)
    from_address: Mapped[str] = mapped_column(String(64), nullable=False)
    to_address: Mapped[str] = mapped_column(String(64), nullable=False)

    amount_crypto: Mapped[Decimal] = mapped_column(DECIMAL(38, 18), nullable=False)
    fee_crypto: Mapped[Decimal] = mapped_column(DECIMAL(38, 18), nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransferStatus.COMPLETED.value
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
