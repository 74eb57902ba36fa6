"""
Sweep primitives shared by the per-network sweepers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from chainsweep.models.enums import Network
from chainsweep.services.keys import DerivedKeypair
from chainsweep.services.watchers.types import to_main_units


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one broadcast sweep; amounts in minor units."""

    network: Network
    tx_hash: str
    amount_transferred: int
    fee: int
    from_address: str
    to_address: str

    @property
    def amount_crypto(self) -> Decimal:
        return to_main_units(self.amount_transferred, self.network)

    @property
    def fee_crypto(self) -> Decimal:
        return to_main_units(self.fee, self.network)


@dataclass
class NetworkSweepTotals:
    """Per-network counters of a sweep-all run."""

    addresses: int = 0
    swept: int = 0
    skipped: int = 0
    failures: int = 0
    total_swept: Decimal = Decimal("0")


@dataclass
class SweepSummary:
    """Result of SweepEngine.sweep_all."""

    networks: dict[Network, NetworkSweepTotals] = field(default_factory=dict)

    def totals(self, network: Network) -> NetworkSweepTotals:
        return self.networks.setdefault(network, NetworkSweepTotals())

    @property
    def total_failures(self) -> int:
        return sum(t.failures for t in self.networks.values())

    @property
    def total_swept_count(self) -> int:
        return sum(t.swept for t in self.networks.values())


class NetworkSweeper(ABC):
    """Chain-specific balance read, fee quote and signed transfer."""

    network: Network

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Live balance in minor units."""

    @abstractmethod
    async def estimate_fee(self, keypair: DerivedKeypair, destination: str, balance: int) -> int:
        """Fee in minor units for a full-balance transfer to destination."""

    @abstractmethod
    async def transfer(
        self, keypair: DerivedKeypair, destination: str, amount: int, fee: int
    ) -> str:
        """
        Sign, broadcast and wait for acknowledgment.

        Returns:
            Transaction hash / signature

        Raises:
            BroadcastError: If the network rejects or does not acknowledge it
        """

    async def close(self) -> None:
        """Release client resources."""
