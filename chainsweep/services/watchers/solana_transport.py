"""
Solana balance transport.

accountSubscribe over WebSocket for pushes; getBalance over HTTP for the
subscription-time snapshot.
"""

from typing import Any

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from chainsweep.config.constants import BLOCKCHAIN_TIMEOUT
from chainsweep.models.enums import Network
from chainsweep.services.watchers.jsonrpc_socket import JsonRpcSocket
from chainsweep.services.watchers.transport import BalanceTransport, SnapshotCallback
from chainsweep.services.watchers.types import BalanceSnapshot
from chainsweep.utils.exceptions import WatcherConnectionError
from chainsweep.utils.retry import retry_async
from chainsweep.utils.security import mask_address

ACCOUNT_SUBSCRIBE_CONFIG = {"encoding": "base64", "commitment": "confirmed"}


class SolanaAccountTransport(BalanceTransport):
    """Solana account-change feed."""

    network = Network.SOLANA

    def __init__(
        self,
        wss_url: str,
        rpc_url: str,
        socket: JsonRpcSocket | None = None,
        client: AsyncClient | None = None,
    ):
        self.wss_url = wss_url
        self.rpc_url = rpc_url
        self._socket = socket or JsonRpcSocket(wss_url, name="solana")
        self._client = client
        self._owns_client = client is None
        self._on_snapshot: SnapshotCallback | None = None
        self._address_by_sub: dict[Any, str] = {}
        self._sub_by_address: dict[str, Any] = {}

    async def connect(self, on_snapshot: SnapshotCallback) -> None:
        self._on_snapshot = on_snapshot
        self._address_by_sub.clear()
        self._sub_by_address.clear()
        if self._client is None:
            self._client = AsyncClient(self.rpc_url, commitment=Confirmed, timeout=BLOCKCHAIN_TIMEOUT)
        await self._socket.connect(self._handle_notification)

    async def subscribe(self, address: str) -> BalanceSnapshot:
        sub_id = await self._socket.call("accountSubscribe", [address, ACCOUNT_SUBSCRIBE_CONFIG])
        self._address_by_sub[sub_id] = address
        self._sub_by_address[address] = sub_id
        logger.debug(f"solana: subscribed {mask_address(address)} (subscription {sub_id})")
        return await self._read_balance(address)

    async def unsubscribe(self, address: str) -> None:
        sub_id = self._sub_by_address.pop(address, None)
        if sub_id is None:
            return
        self._address_by_sub.pop(sub_id, None)
        if self._socket.connected:
            await self._socket.call("accountUnsubscribe", [sub_id])

    async def wait_closed(self) -> None:
        await self._socket.wait_closed()

    async def close(self) -> None:
        await self._socket.close()
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None

    async def _read_balance(self, address: str) -> BalanceSnapshot:
        pubkey = Pubkey.from_string(address)
        try:
            response = await retry_async(
                lambda: self._client.get_balance(pubkey, commitment=Confirmed),
                operation_name=f"solana getBalance {mask_address(address)}",
                timeout=BLOCKCHAIN_TIMEOUT,
            )
        except Exception as e:
            raise WatcherConnectionError(f"solana: balance read failed: {e}") from e
        return BalanceSnapshot(address=address, balance=response.value, context=response.context.slot)

    def _handle_notification(self, method: str, subscription: Any, result: Any) -> None:
        if method != "accountNotification":
            return
        address = self._address_by_sub.get(subscription)
        if address is None or self._on_snapshot is None:
            return
        try:
            lamports = int(result["value"]["lamports"])
            slot = result.get("context", {}).get("slot")
        except (KeyError, TypeError, ValueError):
            logger.warning(f"solana: malformed accountNotification for {mask_address(address)}")
            return
        self._on_snapshot(BalanceSnapshot(address=address, balance=lamports, context=slot))
