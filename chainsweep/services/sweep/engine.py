"""
Sweep engine.

Moves custodial balances into the operator's collection wallets. Keys are
derived per sweep inside a key scope and wiped before the result is
recorded.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from chainsweep.config.constants import BLOCKCHAIN_TIMEOUT, NETWORK_SYMBOLS
from chainsweep.models.enums import Network
from chainsweep.services.interfaces import AddressRegistry, DepositLedger, TransferLogRecord
from chainsweep.services.keys import KeyDerivationService
from chainsweep.services.sweep.base import NetworkSweeper, SweepResult, SweepSummary
from chainsweep.utils.exceptions import InsufficientFundsError
from chainsweep.utils.retry import retry_async
from chainsweep.utils.security import mask_address, mask_tx_hash

MANUAL_SWEEP_REASON = "Manual sweep"
DEPOSIT_SWEEP_REASON = "Auto-sweep after deposit"


def transfer_amount(balance: int, fee: int) -> int:
    """
    Amount left after the fee.

    Raises:
        InsufficientFundsError: If nothing would be left to transfer
    """
    amount = balance - fee
    if amount <= 0:
        raise InsufficientFundsError(balance, fee)
    return amount


class SweepEngine:
    """
    Per-network sweep orchestration.

    Features:
    - Bounded concurrency across users (semaphore)
    - Zero-balance and fee-exceeds-balance sweeps are no-ops
    - Broadcast failures surface as BroadcastError; never retried here
    - Transfer log write failures only warn
    """

    def __init__(
        self,
        keys: KeyDerivationService,
        sweepers: dict[Network, NetworkSweeper],
        collection_addresses: dict[Network, str],
        ledger: DepositLedger | None = None,
        max_concurrent: int = 3,
        sweep_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize engine.

        Args:
            keys: Key derivation service
            sweepers: NetworkSweeper per network
            collection_addresses: Destination wallet per network
            ledger: Transfer log sink (optional)
            max_concurrent: Sweeps allowed in flight at once
            sweep_delay: Pause between sweeps in sweep_all
            sleep: Sleep function (injectable for tests)
        """
        self.keys = keys
        self.sweepers = sweepers
        self.collection_addresses = collection_addresses
        self.ledger = ledger
        self.sweep_delay = sweep_delay
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._sleep = sleep

    async def sweep(
        self,
        network: Network,
        user_id: str,
        account_index: int,
        reason: str = DEPOSIT_SWEEP_REASON,
    ) -> SweepResult | None:
        """
        Sweep one custodial account.

        Args:
            network: Account network
            user_id: Account owner
            account_index: Custodial account index
            reason: Free-text reason stored in the transfer log

        Returns:
            SweepResult, or None when there is nothing worth sweeping

        Raises:
            BroadcastError: If the transfer is rejected or not acknowledged
        """
        sweeper = self.sweepers.get(network)
        if sweeper is None:
            raise ValueError(f"No sweeper configured for {network}")
        destination = self.collection_addresses[network]

        async with self._semaphore:
            with self.keys.keypair(network, account_index) as keypair:
                source = keypair.address
                balance = await retry_async(
                    lambda: sweeper.get_balance(source),
                    operation_name=f"{network} balance {mask_address(source)}",
                    timeout=BLOCKCHAIN_TIMEOUT,
                )
                if balance <= 0:
                    logger.info(f"{network}: nothing to sweep on {mask_address(source)}")
                    return None

                fee = await sweeper.estimate_fee(keypair, destination, balance)
                try:
                    amount = transfer_amount(balance, fee)
                except InsufficientFundsError as e:
                    logger.info(
                        f"{network}: skip sweep of {mask_address(source)}, "
                        f"balance {e.balance} does not cover fee {e.fee}"
                    )
                    return None

                logger.info(
                    f"{network}: sweeping {amount} (fee {fee}) from {mask_address(source)} "
                    f"to {mask_address(destination)}"
                )
                tx_hash = await sweeper.transfer(keypair, destination, amount, fee)

        result = SweepResult(
            network=network,
            tx_hash=tx_hash,
            amount_transferred=amount,
            fee=fee,
            from_address=source,
            to_address=destination,
        )
        logger.success(
            f"Swept {result.amount_crypto} {NETWORK_SYMBOLS[network]} from "
            f"{mask_address(source)} (tx {mask_tx_hash(tx_hash)})"
        )
        await self._record(result, user_id, reason)
        return result

    async def sweep_user(
        self, network: Network, user_id: str, account_index: int = 0
    ) -> SweepResult | None:
        """Operator-triggered sweep of one account."""
        return await self.sweep(network, user_id, account_index, reason=MANUAL_SWEEP_REASON)

    async def sweep_all(
        self,
        registry: AddressRegistry,
        networks: list[Network] | None = None,
    ) -> SweepSummary:
        """
        Sweep every registered account, one at a time.

        Per-account failures are logged and counted; the run continues.
        """
        summary = SweepSummary()

        for network in networks or list(Network):
            totals = summary.totals(network)
            if network not in self.sweepers:
                logger.warning(f"{network}: no sweeper configured, skipping")
                continue

            try:
                accounts = await registry.get_addresses_for_network(network)
            except Exception as e:
                logger.error(f"{network}: failed to load accounts: {e}")
                totals.failures += 1
                continue

            logger.info(f"{network}: sweeping {len(accounts)} accounts")
            for account in accounts:
                totals.addresses += 1
                try:
                    result = await self.sweep(
                        network, account.user_id, account.account_index, reason=MANUAL_SWEEP_REASON
                    )
                except Exception as e:
                    totals.failures += 1
                    logger.error(
                        f"{network}: sweep failed for user {account.user_id} "
                        f"({mask_address(account.address)}): {e}"
                    )
                else:
                    if result is None:
                        totals.skipped += 1
                    else:
                        totals.swept += 1
                        totals.total_swept += result.amount_crypto
                await self._sleep(self.sweep_delay)

            logger.info(
                f"{network}: swept {totals.swept}/{totals.addresses} accounts, "
                f"total {totals.total_swept} {NETWORK_SYMBOLS[network]}, failures {totals.failures}"
            )

        return summary

    async def close(self) -> None:
        """Close every sweeper client."""
        for sweeper in self.sweepers.values():
            try:
                await sweeper.close()
            except Exception as e:
                logger.warning(f"{sweeper.network}: close failed: {e}")

    async def _record(self, result: SweepResult, user_id: str, reason: str) -> None:
        if self.ledger is None:
            return
        record = TransferLogRecord(
            user_id=user_id,
            network=result.network,
            from_address=result.from_address,
            to_address=result.to_address,
            amount_crypto=result.amount_crypto,
            fee_crypto=result.fee_crypto,
            transaction_hash=result.tx_hash,
            reason=reason,
        )
        try:
            await self.ledger.insert_transfer_log(record)
        except Exception as e:
            logger.warning(
                f"Failed to record transfer log for {mask_tx_hash(result.tx_hash)}: {e}"
            )
