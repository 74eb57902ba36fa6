"""
Tron balance transport.

TronGrid offers no account push feed, so tracked accounts are polled
with getaccount through tronpy. Unactivated accounts read as 0 sun.
"""

import asyncio

from loguru import logger
from tronpy import AsyncTron
from tronpy.exceptions import AddressNotFound
from tronpy.providers.async_http import AsyncHTTPProvider

from chainsweep.config.constants import BLOCKCHAIN_TIMEOUT
from chainsweep.models.enums import Network
from chainsweep.services.keys.address_codec import tron_hex_address
from chainsweep.services.watchers.transport import BalanceTransport, SnapshotCallback
from chainsweep.services.watchers.types import BalanceSnapshot
from chainsweep.utils.exceptions import RetryExhaustedError, WatcherConnectionError
from chainsweep.utils.retry import retry_async
from chainsweep.utils.security import mask_address


def build_tron_client(rpc_url: str, api_key: str | None) -> AsyncTron:
    """AsyncTron bound to a TronGrid-compatible endpoint."""
    provider = AsyncHTTPProvider(rpc_url, timeout=BLOCKCHAIN_TIMEOUT, api_key=api_key)
    return AsyncTron(provider=provider)


async def read_tron_balance(client: AsyncTron, address: str) -> int:
    """Account balance in sun; 0 for accounts that were never activated."""
    try:
        account = await client.get_account(tron_hex_address(address))
    except AddressNotFound:
        return 0
    return int(account.get("balance", 0))


class TronAccountTransport(BalanceTransport):
    """Polling transport for Tron accounts."""

    network = Network.TRON

    def __init__(
        self,
        rpc_url: str,
        api_key: str | None = None,
        poll_interval: float = 15.0,
        client: AsyncTron | None = None,
    ):
        self.rpc_url = rpc_url
        self.api_key = api_key
        self.poll_interval = poll_interval
        self._client = client
        self._owns_client = client is None
        self._on_snapshot: SnapshotCallback | None = None
        self._tracked: set[str] = set()
        self._poller: asyncio.Task | None = None
        self._closing = False

    async def connect(self, on_snapshot: SnapshotCallback) -> None:
        self._on_snapshot = on_snapshot
        self._tracked.clear()
        self._closing = False
        if self._client is None:
            self._client = build_tron_client(self.rpc_url, self.api_key)

        # Read the head block so connect fails fast when it is down
        try:
            await self._client.get_latest_block_number()
        except Exception as e:
            raise WatcherConnectionError(f"tron: endpoint unreachable: {e}") from e

        self._poller = asyncio.create_task(self._poll_loop(), name="tron-poller")
        logger.info(f"tron: polling every {self.poll_interval}s")

    async def subscribe(self, address: str) -> BalanceSnapshot:
        self._tracked.add(address)
        try:
            block_number = await self._latest_block()
            balance = await self._read(address)
        except Exception as e:
            raise WatcherConnectionError(f"tron: balance read failed: {e}") from e
        return BalanceSnapshot(address=address, balance=balance, context=block_number)

    async def unsubscribe(self, address: str) -> None:
        self._tracked.discard(address)

    async def wait_closed(self) -> None:
        if self._poller is None:
            return
        try:
            await self._poller
        except asyncio.CancelledError:
            if not self._closing:
                raise

    async def close(self) -> None:
        self._closing = True
        if self._poller is not None and not self._poller.done():
            self._poller.cancel()
            try:
                await self._poller
            except (asyncio.CancelledError, WatcherConnectionError):
                pass
        self._poller = None
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None

    async def _latest_block(self) -> int:
        return await retry_async(
            lambda: self._client.get_latest_block_number(),
            operation_name="tron getnowblock",
            timeout=BLOCKCHAIN_TIMEOUT,
        )

    async def _read(self, address: str) -> int:
        return await retry_async(
            lambda: read_tron_balance(self._client, address),
            operation_name=f"tron getaccount {mask_address(address)}",
            timeout=BLOCKCHAIN_TIMEOUT,
        )

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                block_number = await self._latest_block()
            except RetryExhaustedError as e:
                raise WatcherConnectionError(f"tron: endpoint lost: {e}") from e

            for address in list(self._tracked):
                try:
                    balance = await self._read(address)
                except RetryExhaustedError as e:
                    logger.warning(f"tron: poll failed for {mask_address(address)}: {e}")
                    continue
                if address in self._tracked and self._on_snapshot is not None:
                    self._on_snapshot(
                        BalanceSnapshot(address=address, balance=balance, context=block_number)
                    )
