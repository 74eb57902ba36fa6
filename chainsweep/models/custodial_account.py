"""
Custodial account model.

One row per (user, network): the account index the user's deposit
address is derived from. The address is stored for lookups only; the
private key is never stored and is rederived on demand.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chainsweep.models.base import Base


class CustodialAccount(Base):
    """
    Custodial deposit account.

    Maps a user to a derived deposit address on one network.
    """

    __tablename__ = "custodial_accounts"
    __table_args__ = (
        UniqueConstraint("network", "address", name="uq_custodial_network_address"),
        UniqueConstraint("user_id", "network", name="uq_custodial_user_network"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    network: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    account_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Derived public address (not secret)
    address: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CustodialAccount(user_id={self.user_id}, network={self.network}, "
            f"index={self.account_index})>"
        )
