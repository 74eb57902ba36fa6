"""
Deposit watchers.

One ChainWatcher per network, fed by a network-specific BalanceTransport.
"""

from chainsweep.services.watchers.chain_watcher import ChainWatcher
from chainsweep.services.watchers.ethereum_transport import EthereumHeadsTransport
from chainsweep.services.watchers.solana_transport import SolanaAccountTransport
from chainsweep.services.watchers.transport import BalanceTransport
from chainsweep.services.watchers.tron_transport import TronAccountTransport
from chainsweep.services.watchers.types import (
    BalanceSnapshot,
    DepositEvent,
    WatchedAddress,
    WatcherState,
    WatcherStatus,
)

__all__ = [
    "BalanceSnapshot",
    "BalanceTransport",
    "ChainWatcher",
    "DepositEvent",
    "EthereumHeadsTransport",
    "SolanaAccountTransport",
    "TronAccountTransport",
    "WatchedAddress",
    "WatcherState",
    "WatcherStatus",
]
