"""
Deposit ledger repositories.

Data access for pending deposits, user balances, deposit audit rows and
sweep transfer logs.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chainsweep.models.deposit_transaction import DepositTransaction
from chainsweep.models.enums import DepositStatus
from chainsweep.models.pending_deposit import PendingDeposit
from chainsweep.models.transfer_log import TransferLog
from chainsweep.models.user_balance import UserBalance
from chainsweep.repositories.base import BaseRepository


class PendingDepositRepository(BaseRepository[PendingDeposit]):
    """Pending deposit repository with idempotent insert."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize pending deposit repository."""
        super().__init__(PendingDeposit, session)

    async def insert_if_absent(self, **data) -> bool:
        """
        INSERT ... ON CONFLICT DO NOTHING on the idempotency constraint.

        Returns:
            True if a row was inserted, False if the key already existed
        """
        stmt = (
            pg_insert(PendingDeposit)
            .values(**data)
            .on_conflict_do_nothing(constraint="uq_pending_deposit_idempotency")
            .returning(PendingDeposit.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def mark_credited(
        self, user_id: str, transaction_hash: str, network: str, amount_usd: Decimal
    ) -> None:
        """Set status credited and store the USD amount."""
        stmt = (
            update(PendingDeposit)
            .where(
                PendingDeposit.user_id == user_id,
                PendingDeposit.transaction_hash == transaction_hash,
                PendingDeposit.network == network,
            )
            .values(
                status=DepositStatus.CREDITED.value,
                amount_usd=amount_usd,
                credited_at=datetime.now(UTC),
            )
        )
        await self.session.execute(stmt)


class UserBalanceRepository(BaseRepository[UserBalance]):
    """User balance repository with atomic increments."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user balance repository."""
        super().__init__(UserBalance, session)

    async def increment(self, user_id: str, usd_delta: Decimal) -> Decimal:
        """
        Atomically add usd_delta (creates the row on first credit).

        Returns:
            New balance
        """
        stmt = pg_insert(UserBalance).values(
            user_id=user_id,
            balance_usd=usd_delta,
            updated_at=datetime.now(UTC),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserBalance.user_id],
            set_={
                "balance_usd": UserBalance.balance_usd + stmt.excluded.balance_usd,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(UserBalance.balance_usd)
        result = await self.session.execute(stmt)
        return result.scalar_one()


class DepositTransactionRepository(BaseRepository[DepositTransaction]):
    """Deposit audit repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize deposit transaction repository."""
        super().__init__(DepositTransaction, session)


class TransferLogRepository(BaseRepository[TransferLog]):
    """Sweep transfer log repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize transfer log repository."""
        super().__init__(TransferLog, session)
