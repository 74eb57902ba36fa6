"""
Balance transport interface.

A transport delivers balance snapshots for subscribed addresses. How it
gets them (account push feed, new-head push plus reads, or polling) is
the transport's business; the watcher only sees snapshots.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from chainsweep.models.enums import Network
from chainsweep.services.watchers.types import BalanceSnapshot

SnapshotCallback = Callable[[BalanceSnapshot], None]


class BalanceTransport(ABC):
    """Per-network source of balance snapshots."""

    network: Network

    @abstractmethod
    async def connect(self, on_snapshot: SnapshotCallback) -> None:
        """
        Open the connection.

        Args:
            on_snapshot: Called synchronously for every pushed snapshot

        Raises:
            WatcherConnectionError: If the connection cannot be established
        """

    @abstractmethod
    async def subscribe(self, address: str) -> BalanceSnapshot:
        """
        Start delivering snapshots for an address.

        Returns:
            Balance read at subscription time
        """

    @abstractmethod
    async def unsubscribe(self, address: str) -> None:
        """Stop delivering snapshots for an address."""

    @abstractmethod
    async def wait_closed(self) -> None:
        """
        Block until the connection ends.

        Returns normally after close(); raises WatcherConnectionError when
        the connection drops on its own.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the connection and any client resources."""
