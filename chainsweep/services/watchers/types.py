"""
Watcher data types.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from chainsweep.config.constants import NETWORK_DECIMALS
from chainsweep.models.enums import Network


class WatcherStatus(StrEnum):
    """Connection lifecycle of a watcher."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class BalanceSnapshot:
    """
    Balance of one address as reported by a transport.

    Attributes:
        address: Watched address
        balance: Balance in minor units (lamport, wei, sun)
        context: Slot (Solana) or block number (Ethereum, Tron) of the read
    """

    address: str
    balance: int
    context: int | None = None


def to_main_units(amount: int, network: Network) -> Decimal:
    """Convert minor units to main units (SOL, ETH, TRX)."""
    return Decimal(amount) / (Decimal(10) ** NETWORK_DECIMALS[network])


@dataclass(frozen=True)
class DepositEvent:
    """Balance increase of an owned custodial address."""

    network: Network
    address: str
    user_id: str
    account_index: int
    previous_balance: int
    new_balance: int
    delta: int
    context: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def amount_crypto(self) -> Decimal:
        return to_main_units(self.delta, self.network)

    @property
    def idempotency_key(self) -> str:
        """
        Synthetic transaction hash for the ledger.

        Two reads of the same address at the same context and balance
        yield the same key, so replays collapse onto one ledger row.
        """
        context = self.context if self.context is not None else "na"
        return f"balance_change:{self.address}:{context}:{self.new_balance}"


@dataclass
class WatchedAddress:
    """Owner and last observed balance of a tracked address."""

    network: Network
    address: str
    user_id: str | None = None
    account_index: int | None = None
    last_known_balance: int | None = None
    last_context: int | None = None

    @property
    def has_owner(self) -> bool:
        return self.user_id is not None and self.account_index is not None


@dataclass
class WatcherState:
    """
    Mutable state owned by a single watcher.

    Kept separate from the watcher so it survives reconnects and can be
    inspected in tests.
    """

    network: Network
    status: WatcherStatus = WatcherStatus.DISCONNECTED
    addresses: dict[str, WatchedAddress] = field(default_factory=dict)
    subscribed: set[str] = field(default_factory=set)
    reconnect_count: int = 0
    last_error: str | None = None

    def entry(self, address: str) -> WatchedAddress:
        """Get or create the entry for an address."""
        watched = self.addresses.get(address)
        if watched is None:
            watched = WatchedAddress(network=self.network, address=address)
            self.addresses[address] = watched
        return watched
