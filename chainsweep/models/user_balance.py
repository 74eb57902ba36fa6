"""
User balance model.

USD balance credited from detected deposits. Increments are done in SQL
(balance = balance + delta) so concurrent credits never lose updates.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from chainsweep.models.base import Base


class UserBalance(Base):
    """Per-user USD ledger balance."""

    __tablename__ = "user_balances"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance_usd: Mapped[Decimal] = mapped_column(
        DECIMAL(20, 2), nullable=False, default=Decimal("0")
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<UserBalance(user_id={self.user_id}, balance_usd={self.balance_usd})>"
