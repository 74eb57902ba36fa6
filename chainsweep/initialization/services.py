"""
Initialization - Services Module.

Builds the engine's components from Settings.
"""

from loguru import logger

from chainsweep.config.settings import Settings
from chainsweep.models.enums import Network
from chainsweep.services.deposit_orchestrator import DepositOrchestrator
from chainsweep.services.interfaces import AddressRegistry, DepositLedger
from chainsweep.services.keys import KeyDerivationService
from chainsweep.services.price_oracle import PriceOracle
from chainsweep.services.sweep import NetworkSweeper, SweepEngine
from chainsweep.services.sweep.ethereum_sweeper import EthereumSweeper
from chainsweep.services.sweep.solana_sweeper import SolanaSweeper
from chainsweep.services.sweep.tron_sweeper import TronSweeper
from chainsweep.services.watchers import (
    BalanceTransport,
    ChainWatcher,
    EthereumHeadsTransport,
    SolanaAccountTransport,
    TronAccountTransport,
)
from chainsweep.utils.retry import RetryPolicy


def build_key_service(settings: Settings) -> KeyDerivationService:
    """KeyDerivationService over the configured master mnemonic."""
    return KeyDerivationService(settings.master_mnemonic)


def build_transport(network: Network, settings: Settings) -> BalanceTransport:
    """Balance transport for one network."""
    if network == Network.SOLANA:
        return SolanaAccountTransport(settings.solana_wss_url, settings.solana_rpc_url)
    if network == Network.ETHEREUM:
        return EthereumHeadsTransport(settings.ethereum_wss_url, settings.ethereum_rpc_url)
    if network == Network.TRON:
        return TronAccountTransport(
            settings.tron_rpc_url,
            api_key=settings.tron_api_key,
            poll_interval=settings.tron_poll_interval_seconds,
        )
    raise ValueError(f"Unsupported network: {network}")


def build_watchers(settings: Settings, registry: AddressRegistry) -> list[ChainWatcher]:
    """One watcher per enabled network."""
    policy = RetryPolicy(
        max_attempts=settings.reconnect_max_attempts,
        base_delay=settings.reconnect_base_delay_seconds,
        backoff="linear",
    )
    watchers = [
        ChainWatcher(
            network=network,
            transport=build_transport(network, settings),
            registry=registry,
            reconnect_policy=policy,
            connect_timeout=settings.connect_timeout_seconds,
            subscribe_delay=settings.subscribe_delay_seconds,
            stable_after=settings.reconnect_stable_seconds,
        )
        for network in settings.get_enabled_networks()
    ]
    logger.info(f"Built {len(watchers)} watchers")
    return watchers


def build_sweepers(settings: Settings) -> dict[Network, NetworkSweeper]:
    """Sweeper per network."""
    return {
        Network.SOLANA: SolanaSweeper(settings.solana_rpc_url),
        Network.ETHEREUM: EthereumSweeper(settings.ethereum_rpc_url),
        Network.TRON: TronSweeper(settings.tron_rpc_url, api_key=settings.tron_api_key),
    }


def build_sweep_engine(
    settings: Settings,
    keys: KeyDerivationService,
    ledger: DepositLedger | None,
) -> SweepEngine:
    """SweepEngine with every network's sweeper and collection wallet."""
    return SweepEngine(
        keys=keys,
        sweepers=build_sweepers(settings),
        collection_addresses={network: settings.collection_address(network) for network in Network},
        ledger=ledger,
        max_concurrent=settings.max_concurrent_sweeps,
        sweep_delay=settings.sweep_delay_seconds,
    )


def build_orchestrator(
    settings: Settings,
    registry: AddressRegistry,
    ledger: DepositLedger,
    sweep_engine: SweepEngine,
    prices: PriceOracle,
) -> DepositOrchestrator:
    """DepositOrchestrator over the enabled networks."""
    return DepositOrchestrator(
        watchers=build_watchers(settings, registry),
        ledger=ledger,
        prices=prices,
        sweep_engine=sweep_engine,
        refresh_interval=settings.refresh_interval_seconds,
    )
