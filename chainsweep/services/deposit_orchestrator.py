"""
Deposit orchestrator.

Connects watchers to the ledger and the sweep engine: every DepositEvent
is credited at most once and then swept, one task per event, serialized
per (user, network).
"""

import asyncio

from loguru import logger

from chainsweep.config.constants import NETWORK_SYMBOLS
from chainsweep.services.interfaces import (
    AuditRecord,
    DepositLedger,
    PendingDepositRecord,
    UsdConverter,
)
from chainsweep.services.sweep import SweepEngine
from chainsweep.services.watchers import ChainWatcher, DepositEvent
from chainsweep.utils.exceptions import (
    BroadcastError,
    DuplicateDepositError,
    WatcherConnectionError,
)
from chainsweep.utils.keyed_lock import KeyedLock
from chainsweep.utils.security import mask_address, mask_tx_hash


class DepositOrchestrator:
    """
    Runs watchers and processes their deposits.

    Features:
    - Idempotent credit through conflict-skip insert
    - Per (user_id, network) serialization, other keys run concurrently
    - Sweep after credit; sweep failures never undo the credit
    - Graceful stop that lets in-flight deposits finish
    """

    def __init__(
        self,
        watchers: list[ChainWatcher],
        ledger: DepositLedger,
        prices: UsdConverter,
        sweep_engine: SweepEngine | None = None,
        refresh_interval: float = 300.0,
    ):
        """
        Initialize orchestrator.

        Args:
            watchers: One watcher per enabled network
            ledger: Deposit ledger
            prices: USD converter
            sweep_engine: Sweep engine (None disables auto-sweep)
            refresh_interval: Seconds between registry refreshes
        """
        self.watchers = watchers
        self.ledger = ledger
        self.prices = prices
        self.sweep_engine = sweep_engine
        self.refresh_interval = refresh_interval

        self._locks = KeyedLock()
        self._watcher_tasks: dict[str, asyncio.Task] = {}
        self._inflight: set[asyncio.Task] = set()
        self._refresh_task: asyncio.Task | None = None
        self._running = False

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def start(self) -> None:
        """Start every watcher and the registry refresh timer."""
        if self._running:
            return
        self._running = True

        for watcher in self.watchers:
            watcher.set_deposit_callback(self.handle_deposit)
            self._watcher_tasks[watcher.network] = asyncio.create_task(
                self._run_watcher(watcher), name=f"{watcher.network}-watcher"
            )

        self._refresh_task = asyncio.create_task(self._refresh_loop(), name="registry-refresh")
        logger.info(
            f"Deposit orchestrator started for {', '.join(w.network for w in self.watchers)}"
        )

    async def stop(self) -> None:
        """
        Stop watchers and wait for in-flight deposits.

        Deposit tasks are not cancelled; credits and sweeps already under
        way run to completion.
        """
        if not self._running:
            return
        self._running = False

        if self._refresh_task is not None:
            self._refresh_task.cancel()
            await asyncio.gather(self._refresh_task, return_exceptions=True)
            self._refresh_task = None

        for watcher in self.watchers:
            await watcher.stop()

        for task in self._watcher_tasks.values():
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._watcher_tasks.values(), return_exceptions=True)
        self._watcher_tasks.clear()

        if self._inflight:
            logger.info(f"Waiting for {len(self._inflight)} in-flight deposits...")
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

        logger.info("Deposit orchestrator stopped")

    async def wait_watchers(self) -> None:
        """Block until every watcher task has ended."""
        await asyncio.gather(*self._watcher_tasks.values(), return_exceptions=True)

    def handle_deposit(self, event: DepositEvent) -> asyncio.Task:
        """Watcher callback: process the event in its own task."""
        task = asyncio.create_task(
            self.process_deposit(event), name=f"deposit-{event.network}-{event.user_id}"
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def process_deposit(self, event: DepositEvent) -> bool:
        """
        Credit and sweep one deposit.

        Returns:
            True if the deposit was credited by this call
        """
        try:
            async with self._locks.hold((event.user_id, event.network)):
                if not await self._credit(event):
                    return False
                await self._sweep(event)
                return True
        except Exception as e:
            logger.exception(
                f"Deposit processing failed for user {event.user_id} on {event.network}: {e}"
            )
            return False

    async def _credit(self, event: DepositEvent) -> bool:
        key = event.idempotency_key
        record = PendingDepositRecord(
            user_id=event.user_id,
            transaction_hash=key,
            network=event.network,
            to_address=event.address,
            amount_crypto=event.amount_crypto,
        )

        try:
            if not await self.ledger.insert_pending_deposit(record):
                raise DuplicateDepositError(key)
        except DuplicateDepositError:
            logger.debug(f"Duplicate deposit skipped: {mask_tx_hash(key)}")
            return False

        amount_usd = await self.prices.convert_to_usd(event.amount_crypto, event.network)

        try:
            await self.ledger.credit_balance(event.user_id, amount_usd)
        except Exception as e:
            # Pending row exists, so a retry would be skipped as duplicate
            logger.error(
                f"Credit failed after pending insert for user {event.user_id} "
                f"({event.amount_crypto} {NETWORK_SYMBOLS[event.network]}, key {key}); "
                f"manual reconciliation required: {e}"
            )
            return False

        audit = AuditRecord(
            user_id=event.user_id,
            network=event.network,
            address=event.address,
            transaction_hash=key,
            amount_crypto=event.amount_crypto,
            amount_usd=amount_usd,
            block_number=event.context,
        )
        try:
            await self.ledger.insert_audit_record(audit)
        except Exception as e:
            logger.warning(f"Audit record write failed for {mask_tx_hash(key)}: {e}")

        logger.success(
            f"Credited ${amount_usd} to user {event.user_id} for "
            f"{event.amount_crypto} {NETWORK_SYMBOLS[event.network]} "
            f"on {mask_address(event.address)}"
        )
        return True

    async def _sweep(self, event: DepositEvent) -> None:
        if self.sweep_engine is None:
            return
        try:
            await self.sweep_engine.sweep(event.network, event.user_id, event.account_index)
        except BroadcastError as e:
            logger.error(f"Sweep broadcast failed for user {event.user_id}, retry next cycle: {e}")
        except Exception as e:
            logger.error(f"Sweep failed for user {event.user_id} on {event.network}: {e}")

    async def _run_watcher(self, watcher: ChainWatcher) -> None:
        try:
            await watcher.run()
        except WatcherConnectionError as e:
            logger.error(f"watcher_failed: {watcher.network}: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"watcher_failed: {watcher.network} crashed: {e}")

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            for watcher in self.watchers:
                if self._watcher_tasks.get(watcher.network) is None:
                    continue
                if self._watcher_tasks[watcher.network].done():
                    continue
                await watcher.refresh_addresses()
