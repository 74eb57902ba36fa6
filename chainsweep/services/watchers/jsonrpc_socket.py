"""
JSON-RPC 2.0 over WebSocket (aiohttp).

Request/response calls are matched by id; subscription notifications are
handed to a callback as (method, subscription id, result).
"""

import asyncio
import itertools
import json
from collections.abc import Callable
from typing import Any

import aiohttp
from loguru import logger

from chainsweep.config.constants import BLOCKCHAIN_TIMEOUT, WS_HEARTBEAT_SECONDS
from chainsweep.utils.exceptions import WatcherConnectionError

NotificationCallback = Callable[[str, Any, Any], None]


class JsonRpcSocket:
    """
    Minimal JSON-RPC WebSocket client.

    Features:
    - Concurrent calls matched by request id
    - Notification dispatch for eth_subscribe / accountSubscribe feeds
    - Drop detection through wait_closed()
    """

    def __init__(
        self,
        url: str,
        name: str,
        heartbeat: float = WS_HEARTBEAT_SECONDS,
    ):
        """
        Initialize socket.

        Args:
            url: ws:// or wss:// endpoint
            name: Label for log lines
            heartbeat: Ping interval in seconds
        """
        self.url = url
        self.name = name
        self.heartbeat = heartbeat

        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task | None = None
        self._pending: dict[int, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._on_notification: NotificationCallback | None = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self, on_notification: NotificationCallback) -> None:
        """Open the WebSocket and start the read loop."""
        self._closing = False
        self._on_notification = on_notification
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat)
        except (aiohttp.ClientError, OSError) as e:
            await self._session.close()
            self._session = None
            raise WatcherConnectionError(f"{self.name}: WebSocket connect failed: {e}") from e

        self._reader = asyncio.create_task(self._read_loop(), name=f"{self.name}-ws-reader")
        logger.info(f"{self.name}: WebSocket connected")

    async def call(self, method: str, params: list, timeout: float = BLOCKCHAIN_TIMEOUT) -> Any:
        """
        Send a request and wait for its response.

        Raises:
            WatcherConnectionError: If the socket is closed, the call times
                out or the node returns an error
        """
        if not self.connected:
            raise WatcherConnectionError(f"{self.name}: socket is not connected")

        request_id = next(self._ids)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}

        try:
            await self._ws.send_str(json.dumps(payload))
            return await asyncio.wait_for(future, timeout=timeout)
        except TimeoutError as e:
            raise WatcherConnectionError(f"{self.name}: {method} timed out after {timeout}s") from e
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise WatcherConnectionError(f"{self.name}: {method} send failed: {e}") from e
        finally:
            self._pending.pop(request_id, None)

    async def wait_closed(self) -> None:
        """Wait for the read loop to end (see BalanceTransport.wait_closed)."""
        if self._reader is None:
            return
        await self._reader

    async def close(self) -> None:
        """Close socket and session."""
        self._closing = True
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._reader is not None and not self._reader.done():
            try:
                await self._reader
            except WatcherConnectionError:
                pass
        if self._session is not None:
            await self._session.close()
        self._ws = None
        self._session = None

    async def _read_loop(self) -> None:
        reason = "closed by server"
        try:
            async for message in self._ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(message.data)
                elif message.type == aiohttp.WSMsgType.ERROR:
                    reason = f"error: {self._ws.exception()}"
                    break
        finally:
            self._fail_pending(reason)

        if not self._closing:
            raise WatcherConnectionError(f"{self.name}: WebSocket {reason}")

    def _dispatch(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"{self.name}: non-JSON frame ignored")
            return
        if not isinstance(data, dict):
            logger.warning(f"{self.name}: non-object frame ignored")
            return

        request_id = data.get("id")
        if request_id is not None:
            future = self._pending.get(request_id)
            if future is None or future.done():
                return
            if "error" in data:
                future.set_exception(
                    WatcherConnectionError(f"{self.name}: RPC error {data['error']}")
                )
            else:
                future.set_result(data.get("result"))
            return

        params = data.get("params") or {}
        if self._on_notification is None or "subscription" not in params:
            return
        try:
            self._on_notification(data.get("method", ""), params["subscription"], params.get("result"))
        except Exception as e:
            logger.exception(f"{self.name}: notification handler failed: {e}")

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(WatcherConnectionError(f"{self.name}: socket {reason}"))
        self._pending.clear()
