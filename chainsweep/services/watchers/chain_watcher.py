"""
Chain watcher.

Keeps one network's custodial addresses subscribed through a
BalanceTransport, turns balance increases into DepositEvents and
reconnects with bounded backoff when the transport drops.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from chainsweep.models.enums import Network
from chainsweep.services.interfaces import AddressRegistry
from chainsweep.services.watchers.transport import BalanceTransport
from chainsweep.services.watchers.types import (
    BalanceSnapshot,
    DepositEvent,
    WatcherState,
    WatcherStatus,
    to_main_units,
)
from chainsweep.utils.exceptions import RetryExhaustedError, WatcherConnectionError
from chainsweep.utils.retry import OperationTimeoutError, RetryPolicy, retry_async, with_timeout
from chainsweep.utils.security import mask_address

DepositCallback = Callable[[DepositEvent], None]


class ChainWatcher:
    """
    Real-time deposit watcher for one network.

    Features:
    - Baseline balance on first subscription, comparison afterwards
    - Re-subscription of every tracked address after reconnect
    - Periodic registry refresh that only adds new subscriptions
    - CRITICAL alert and WatcherConnectionError when reconnects run out
    """

    def __init__(
        self,
        network: Network,
        transport: BalanceTransport,
        registry: AddressRegistry,
        state: WatcherState | None = None,
        reconnect_policy: RetryPolicy | None = None,
        connect_timeout: float = 10.0,
        subscribe_delay: float = 0.1,
        stable_after: float = 60.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize watcher.

        Args:
            network: Watched network
            transport: Source of balance snapshots
            registry: Custodial address registry
            state: Watcher state (created when omitted)
            reconnect_policy: Reconnect schedule (linear, 5 attempts, 5s base)
            connect_timeout: Time bound for one connect attempt
            subscribe_delay: Pause between subscriptions
            stable_after: Uptime after which a dropped connection no
                longer counts toward the reconnect limit
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
        """
        self.network = network
        self.transport = transport
        self.registry = registry
        self.state = state or WatcherState(network=network)
        self.reconnect_policy = reconnect_policy or RetryPolicy(
            max_attempts=5, base_delay=5.0, backoff="linear"
        )
        self.connect_timeout = connect_timeout
        self.subscribe_delay = subscribe_delay
        self.stable_after = stable_after
        self._sleep = sleep
        self._clock = clock
        self._on_deposit: DepositCallback | None = None
        self._stopping = False

    def set_deposit_callback(self, callback: DepositCallback) -> None:
        """Register the consumer of DepositEvents."""
        self._on_deposit = callback

    # ------------------------------------------------------------ lifecycle

    async def run(self) -> None:
        """
        Connect, stay subscribed and reconnect until stopped.

        Raises:
            WatcherConnectionError: When reconnect attempts or consecutive
                short-lived connections reach the attempt limit
        """
        self._stopping = False
        await self.refresh_addresses()
        # Consecutive drops of short-lived connections
        drops = 0

        while not self._stopping:
            try:
                await retry_async(
                    self._connect_and_subscribe,
                    policy=self.reconnect_policy,
                    operation_name=f"{self.network} watcher connect",
                    retry_on=(WatcherConnectionError, OperationTimeoutError),
                    sleep=self._sleep,
                )
            except RetryExhaustedError as e:
                self._give_up(e.attempts, e.last_error, cause=e)

            if self._stopping:
                break
            connected_at = self._clock()

            try:
                await self.transport.wait_closed()
            except WatcherConnectionError as e:
                self.state.last_error = str(e)
                logger.warning(f"{self.network} watcher connection lost: {e}")

            if self._stopping:
                break

            self.state.status = WatcherStatus.DISCONNECTED
            self.state.subscribed.clear()
            self.state.reconnect_count += 1
            await self._close_transport()

            if self._clock() - connected_at >= self.stable_after:
                drops = 0
            drops += 1
            if drops >= self.reconnect_policy.max_attempts:
                self._give_up(drops, self.state.last_error or "connection dropped")

            delay = self.reconnect_policy.delay_for(drops)
            logger.info(f"{self.network}: reconnecting in {delay:.1f}s (drop {drops})")
            await self._sleep(delay)

    def _give_up(self, attempts: int, error: Any, cause: BaseException | None = None) -> None:
        self.state.status = WatcherStatus.FAILED
        self.state.last_error = str(error)
        logger.critical(
            f"ALERT: {self.network} watcher gave up after {attempts} "
            f"connection attempts: {error}"
        )
        raise WatcherConnectionError(
            f"{self.network} watcher failed after {attempts} attempts"
        ) from cause

    async def stop(self) -> None:
        """Unsubscribe every address and close the transport."""
        self._stopping = True
        if self.state.status == WatcherStatus.SUBSCRIBED:
            for address in list(self.state.subscribed):
                try:
                    await self.transport.unsubscribe(address)
                except Exception as e:
                    logger.warning(
                        f"{self.network}: unsubscribe failed for {mask_address(address)}: {e}"
                    )
        self.state.subscribed.clear()
        await self._close_transport()
        self.state.status = WatcherStatus.STOPPED
        logger.info(f"{self.network} watcher stopped")

    async def _connect_and_subscribe(self) -> None:
        self.state.status = WatcherStatus.CONNECTING
        self.state.subscribed.clear()
        logger.info(f"{self.network}: connecting...")

        try:
            await with_timeout(
                self.transport.connect(self.handle_snapshot),
                timeout=self.connect_timeout,
                operation_name=f"{self.network} connect",
            )
            for address in list(self.state.addresses):
                await self._subscribe(address)
                await self._sleep(self.subscribe_delay)
        except (WatcherConnectionError, OperationTimeoutError):
            self.state.status = WatcherStatus.DISCONNECTED
            await self._close_transport()
            raise
        except Exception as e:
            self.state.status = WatcherStatus.DISCONNECTED
            await self._close_transport()
            raise WatcherConnectionError(f"{self.network}: connect failed: {e}") from e

        self.state.status = WatcherStatus.SUBSCRIBED
        logger.success(
            f"{self.network}: subscribed to {len(self.state.subscribed)} addresses"
        )

    async def _subscribe(self, address: str) -> None:
        snapshot = await self.transport.subscribe(address)
        self.state.subscribed.add(address)
        self.handle_snapshot(snapshot)

    async def _close_transport(self) -> None:
        try:
            await self.transport.close()
        except Exception as e:
            logger.warning(f"{self.network}: transport close failed: {e}")

    # ------------------------------------------------------------ registry

    async def refresh_addresses(self) -> int:
        """
        Reload owners from the registry and subscribe new addresses.

        Existing subscriptions are left alone. A failing registry keeps
        the current map.

        Returns:
            Number of newly subscribed addresses
        """
        try:
            registered = await self.registry.get_addresses_for_network(self.network)
        except Exception as e:
            logger.error(f"{self.network}: registry refresh failed, keeping current map: {e}")
            return 0

        current: list[str] = []
        for item in registered:
            entry = self.state.entry(item.address)
            entry.user_id = item.user_id
            entry.account_index = item.account_index
            current.append(item.address)

        known = set(current)
        for address, entry in self.state.addresses.items():
            if address not in known:
                entry.user_id = None
                entry.account_index = None

        if self.state.status != WatcherStatus.SUBSCRIBED:
            return 0

        added = 0
        for address in current:
            if address in self.state.subscribed:
                continue
            try:
                await self._subscribe(address)
                added += 1
            except Exception as e:
                logger.warning(
                    f"{self.network}: subscribe failed for {mask_address(address)}: {e}"
                )
            await self._sleep(self.subscribe_delay)

        if added:
            logger.info(f"{self.network}: subscribed {added} new addresses")
        return added

    # ------------------------------------------------------------ snapshots

    def handle_snapshot(self, snapshot: BalanceSnapshot) -> DepositEvent | None:
        """
        Compare a snapshot with the last known balance.

        Runs without awaiting, so read and update of the balance cannot
        interleave with another snapshot for the same address.

        Returns:
            The emitted DepositEvent, if any
        """
        entry = self.state.entry(snapshot.address)

        if (
            snapshot.context is not None
            and entry.last_context is not None
            and snapshot.context < entry.last_context
        ):
            logger.debug(
                f"{self.network}: stale snapshot for {mask_address(snapshot.address)} "
                f"at {snapshot.context} < {entry.last_context}"
            )
            return None

        previous = entry.last_known_balance
        entry.last_known_balance = snapshot.balance
        if snapshot.context is not None:
            entry.last_context = snapshot.context

        if previous is None:
            logger.debug(
                f"{self.network}: baseline {snapshot.balance} for {mask_address(snapshot.address)}"
            )
            return None

        if snapshot.balance <= previous:
            return None

        delta = snapshot.balance - previous
        if not entry.has_owner:
            logger.warning(
                f"{self.network}: balance increase of {to_main_units(delta, self.network)} "
                f"on {mask_address(snapshot.address)} has no registered owner"
            )
            return None

        event = DepositEvent(
            network=self.network,
            address=snapshot.address,
            user_id=entry.user_id,
            account_index=entry.account_index,
            previous_balance=previous,
            new_balance=snapshot.balance,
            delta=delta,
            context=snapshot.context,
        )
        logger.info(
            f"Deposit detected on {self.network}: {event.amount_crypto} "
            f"to {mask_address(event.address)} (user {event.user_id})"
        )
        if self._on_deposit is not None:
            self._on_deposit(event)
        return event
