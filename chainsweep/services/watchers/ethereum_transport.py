"""
Ethereum balance transport.

Ethereum has no per-account push feed for native ETH, so the transport
subscribes to newHeads and reads every tracked balance at each new block.
"""

import asyncio
from typing import Any

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3

from chainsweep.config.constants import BLOCKCHAIN_TIMEOUT
from chainsweep.models.enums import Network
from chainsweep.services.watchers.jsonrpc_socket import JsonRpcSocket
from chainsweep.services.watchers.transport import BalanceTransport, SnapshotCallback
from chainsweep.services.watchers.types import BalanceSnapshot
from chainsweep.utils.exceptions import WatcherConnectionError
from chainsweep.utils.retry import retry_async
from chainsweep.utils.security import mask_address


class EthereumHeadsTransport(BalanceTransport):
    """
    New-head driven balance reader.

    Features:
    - eth_subscribe ["newHeads"] over WebSocket
    - eth_getBalance per tracked address at the head's block number
    - Heads arriving during a running read pass are skipped
    """

    network = Network.ETHEREUM

    def __init__(
        self,
        wss_url: str,
        rpc_url: str,
        socket: JsonRpcSocket | None = None,
        web3: AsyncWeb3 | None = None,
    ):
        self.wss_url = wss_url
        self.rpc_url = rpc_url
        self._socket = socket or JsonRpcSocket(wss_url, name="ethereum")
        self.web3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": BLOCKCHAIN_TIMEOUT})
        )
        self._on_snapshot: SnapshotCallback | None = None
        self._head_subscription: Any = None
        self._tracked: set[str] = set()
        self._pass_task: asyncio.Task | None = None
        self.skipped_heads = 0

    async def connect(self, on_snapshot: SnapshotCallback) -> None:
        self._on_snapshot = on_snapshot
        self._tracked.clear()
        await self._socket.connect(self._handle_notification)
        self._head_subscription = await self._socket.call("eth_subscribe", ["newHeads"])
        logger.info(f"ethereum: newHeads subscription {self._head_subscription}")

    async def subscribe(self, address: str) -> BalanceSnapshot:
        self._tracked.add(address)
        try:
            block_number = await retry_async(
                lambda: self.web3.eth.block_number,
                operation_name="ethereum eth_blockNumber",
                timeout=BLOCKCHAIN_TIMEOUT,
            )
            balance = await self._read_balance(address, block_number)
        except Exception as e:
            raise WatcherConnectionError(f"ethereum: balance read failed: {e}") from e
        return BalanceSnapshot(address=address, balance=balance, context=block_number)

    async def unsubscribe(self, address: str) -> None:
        self._tracked.discard(address)

    async def wait_closed(self) -> None:
        await self._socket.wait_closed()

    async def close(self) -> None:
        if self._head_subscription is not None and self._socket.connected:
            try:
                await self._socket.call("eth_unsubscribe", [self._head_subscription])
            except WatcherConnectionError as e:
                logger.warning(f"ethereum: eth_unsubscribe failed: {e}")
        self._head_subscription = None
        if self._pass_task is not None and not self._pass_task.done():
            self._pass_task.cancel()
        await self._socket.close()

    async def _read_balance(self, address: str, block_number: int) -> int:
        checksum = AsyncWeb3.to_checksum_address(address)
        return await retry_async(
            lambda: self.web3.eth.get_balance(checksum, block_identifier=block_number),
            operation_name=f"ethereum getBalance {mask_address(address)}",
            timeout=BLOCKCHAIN_TIMEOUT,
        )

    def _handle_notification(self, method: str, subscription: Any, result: Any) -> None:
        if subscription != self._head_subscription or not isinstance(result, dict):
            return
        try:
            block_number = int(result["number"], 16)
        except (KeyError, TypeError, ValueError):
            logger.warning("ethereum: malformed newHeads notification")
            return

        if self._pass_task is not None and not self._pass_task.done():
            self.skipped_heads += 1
            logger.debug(f"ethereum: head {block_number} skipped, previous read pass still running")
            return

        self._pass_task = asyncio.create_task(
            self._read_pass(block_number), name=f"ethereum-read-{block_number}"
        )

    async def _read_pass(self, block_number: int) -> None:
        for address in list(self._tracked):
            try:
                balance = await self._read_balance(address, block_number)
            except Exception as e:
                logger.warning(
                    f"ethereum: balance read at block {block_number} failed "
                    f"for {mask_address(address)}: {e}"
                )
                continue
            if address in self._tracked and self._on_snapshot is not None:
                self._on_snapshot(
                    BalanceSnapshot(address=address, balance=balance, context=block_number)
                )
