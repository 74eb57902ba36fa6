"""
Interfaces consumed by the engine.

The address registry and the deposit ledger are external stores; the
engine only relies on the narrow protocols below. SQL implementations
live in chainsweep.services.ledger_service.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

from chainsweep.models.enums import DepositStatus, Network, TransferStatus


@dataclass(frozen=True)
class RegisteredAddress:
    """Custodial address owned by a user."""

    address: str
    user_id: str
    account_index: int


@dataclass
class PendingDepositRecord:
    """Idempotency row; unique on (user_id, transaction_hash, network)."""

    user_id: str
    transaction_hash: str
    network: Network
    to_address: str
    amount_crypto: Decimal
    status: DepositStatus = DepositStatus.CONFIRMED
    amount_usd: Decimal | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class AuditRecord:
    """One applied credit."""

    user_id: str
    network: Network
    address: str
    transaction_hash: str
    amount_crypto: Decimal
    amount_usd: Decimal
    block_number: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class TransferLogRecord:
    """One successful sweep transfer."""

    user_id: str
    network: Network
    from_address: str
    to_address: str
    amount_crypto: Decimal
    fee_crypto: Decimal
    transaction_hash: str
    reason: str
    status: TransferStatus = TransferStatus.COMPLETED
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@runtime_checkable
class AddressRegistry(Protocol):
    """Read-only view of custodial accounts."""

    async def get_addresses_for_network(self, network: Network) -> list[RegisteredAddress]:
        ...


@runtime_checkable
class DepositLedger(Protocol):
    """Idempotent deposit bookkeeping and balance credit."""

    async def insert_pending_deposit(self, record: PendingDepositRecord) -> bool:
        """Insert with conflict-skip; False when the key already exists."""
        ...

    async def credit_balance(self, user_id: str, usd_delta: Decimal) -> None:
        """Atomically add usd_delta to the user's balance."""
        ...

    async def insert_audit_record(self, record: AuditRecord) -> None:
        ...

    async def insert_transfer_log(self, record: TransferLogRecord) -> None:
        ...


@runtime_checkable
class UsdConverter(Protocol):
    """Anything that can price a crypto amount in USD."""

    async def convert_to_usd(self, amount: Decimal, network: Network) -> Decimal:
        ...
