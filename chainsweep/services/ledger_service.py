"""
PostgreSQL ledger adapters.

SQL implementations of AddressRegistry and DepositLedger. Each call runs
in its own session and transaction.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chainsweep.models.enums import Network
from chainsweep.repositories import (
    CustodialAccountRepository,
    DepositTransactionRepository,
    PendingDepositRepository,
    TransferLogRepository,
    UserBalanceRepository,
)
from chainsweep.services.interfaces import (
    AuditRecord,
    PendingDepositRecord,
    RegisteredAddress,
    TransferLogRecord,
)

UNKNOWN_SENDER = "unknown"


class SqlAddressRegistry:
    """AddressRegistry backed by the custodial_accounts table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def get_addresses_for_network(self, network: Network) -> list[RegisteredAddress]:
        async with self.session_maker() as session:
            accounts = await CustodialAccountRepository(session).get_by_network(str(network))
        return [
            RegisteredAddress(
                address=account.address,
                user_id=account.user_id,
                account_index=account.account_index,
            )
            for account in accounts
        ]


class SqlDepositLedger:
    """
    DepositLedger backed by PostgreSQL.

    Features:
    - Idempotent pending insert (ON CONFLICT DO NOTHING)
    - Atomic balance increment (upsert with balance + delta)
    - Audit write also marks the pending row credited
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def insert_pending_deposit(self, record: PendingDepositRecord) -> bool:
        async with self.session_maker() as session:
            inserted = await PendingDepositRepository(session).insert_if_absent(
                user_id=record.user_id,
                network=str(record.network),
                transaction_hash=record.transaction_hash,
                from_address=UNKNOWN_SENDER,
                to_address=record.to_address,
                amount_crypto=record.amount_crypto,
                amount_usd=record.amount_usd,
                status=str(record.status),
                created_at=record.created_at,
            )
            await session.commit()
        return inserted

    async def credit_balance(self, user_id: str, usd_delta: Decimal) -> None:
        async with self.session_maker() as session:
            new_balance = await UserBalanceRepository(session).increment(user_id, usd_delta)
            await session.commit()
        logger.debug(f"Balance of user {user_id} is now ${new_balance}")

    async def insert_audit_record(self, record: AuditRecord) -> None:
        async with self.session_maker() as session:
            await DepositTransactionRepository(session).create(
                user_id=record.user_id,
                network=str(record.network),
                transaction_hash=record.transaction_hash,
                from_address=UNKNOWN_SENDER,
                to_address=record.address,
                amount_crypto=record.amount_crypto,
                amount_usd=record.amount_usd,
                block_number=record.block_number,
                created_at=record.created_at,
            )
            await PendingDepositRepository(session).mark_credited(
                record.user_id,
                record.transaction_hash,
                str(record.network),
                record.amount_usd,
            )
            await session.commit()

    async def insert_transfer_log(self, record: TransferLogRecord) -> None:
        async with self.session_maker() as session:
            await TransferLogRepository(session).create(
                user_id=record.user_id,
                network=str(record.network),
                from_address=record.from_address,
                to_address=record.to_address,
                amount_crypto=record.amount_crypto,
                fee_crypto=record.fee_crypto,
                transaction_hash=record.transaction_hash,
                reason=record.reason,
                status=str(record.status),
                created_at=record.created_at,
            )
            await session.commit()
