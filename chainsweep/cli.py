"""
Command-line entry point.

Usage:
    chainsweep listen
    chainsweep sweep-all
    chainsweep sweep-user <network> <user_id> [account_index]
    chainsweep derive-address <network> <account_index>
    chainsweep init-db
"""

import argparse
import asyncio
import signal
import sys

from loguru import logger

from chainsweep import __version__
from chainsweep.models.enums import Network
from chainsweep.utils.security import mask_tx_hash


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chainsweep",
        description="Custodial deposit detection and sweep engine for Solana, Ethereum and Tron",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("listen", help="Watch deposits and sweep until SIGINT/SIGTERM")
    subparsers.add_parser("sweep-all", help="Sweep every registered account once")

    sweep_user = subparsers.add_parser("sweep-user", help="Sweep one custodial account")
    sweep_user.add_argument("network", type=Network, choices=list(Network))
    sweep_user.add_argument("user_id")
    sweep_user.add_argument("account_index", type=int, nargs="?", default=0)

    derive = subparsers.add_parser("derive-address", help="Print a custodial account address")
    derive.add_argument("network", type=Network, choices=list(Network))
    derive.add_argument("account_index", type=int)

    subparsers.add_parser("init-db", help="Create ledger tables")
    return parser


async def run_listen() -> int:
    """Run watchers and the orchestrator until a stop signal arrives."""
    from chainsweep.config.database import async_session_maker, engine
    from chainsweep.config.settings import settings
    from chainsweep.initialization.services import (
        build_key_service,
        build_orchestrator,
        build_sweep_engine,
    )
    from chainsweep.services.ledger_service import SqlAddressRegistry, SqlDepositLedger
    from chainsweep.services.price_oracle import PriceOracle

    registry = SqlAddressRegistry(async_session_maker)
    ledger = SqlDepositLedger(async_session_maker)
    prices = PriceOracle(cache_ttl=settings.price_cache_ttl_seconds)
    sweep_engine = build_sweep_engine(settings, build_key_service(settings), ledger)
    orchestrator = build_orchestrator(settings, registry, ledger, sweep_engine, prices)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    await orchestrator.start()
    watchers_done = asyncio.create_task(orchestrator.wait_watchers())
    stop_requested = asyncio.create_task(stop_event.wait())

    try:
        done, _ = await asyncio.wait(
            {watchers_done, stop_requested}, return_when=asyncio.FIRST_COMPLETED
        )
        if watchers_done in done:
            logger.error("All watchers have ended, shutting down")
        else:
            logger.info("Stop signal received, shutting down...")
    finally:
        stop_requested.cancel()
        await orchestrator.stop()
        watchers_done.cancel()
        await sweep_engine.close()
        await prices.close()
        await engine.dispose()

    return 0


async def run_sweep_all() -> int:
    """Sweep every registered account; exit code 1 if any sweep failed."""
    from chainsweep.config.database import async_session_maker, engine
    from chainsweep.config.settings import settings
    from chainsweep.initialization.services import build_key_service, build_sweep_engine
    from chainsweep.services.ledger_service import SqlAddressRegistry, SqlDepositLedger

    sweep_engine = build_sweep_engine(
        settings, build_key_service(settings), SqlDepositLedger(async_session_maker)
    )
    try:
        summary = await sweep_engine.sweep_all(SqlAddressRegistry(async_session_maker))
    finally:
        await sweep_engine.close()
        await engine.dispose()

    for network, totals in summary.networks.items():
        logger.info(
            f"{network}: {totals.swept} swept, {totals.skipped} skipped, "
            f"{totals.failures} failed of {totals.addresses} (total {totals.total_swept})"
        )
    return 1 if summary.total_failures else 0


async def run_sweep_user(network: Network, user_id: str, account_index: int) -> int:
    """Sweep a single account."""
    from chainsweep.config.database import async_session_maker, engine
    from chainsweep.config.settings import settings
    from chainsweep.initialization.services import build_key_service, build_sweep_engine
    from chainsweep.services.ledger_service import SqlDepositLedger

    sweep_engine = build_sweep_engine(
        settings, build_key_service(settings), SqlDepositLedger(async_session_maker)
    )
    try:
        result = await sweep_engine.sweep_user(network, user_id, account_index)
    finally:
        await sweep_engine.close()
        await engine.dispose()

    if result is None:
        logger.info("Nothing swept")
    else:
        logger.success(f"Swept {result.amount_crypto} (tx {mask_tx_hash(result.tx_hash)})")
        print(result.tx_hash)
    return 0


def run_derive_address(network: Network, account_index: int) -> int:
    """Print the public address of a custodial account."""
    from chainsweep.config.settings import settings
    from chainsweep.initialization.services import build_key_service

    print(build_key_service(settings).address_for(network, account_index))
    return 0


async def run_init_db() -> int:
    """Create all ledger tables."""
    from chainsweep.config.database import engine
    from chainsweep.models import Base

    logger.info("Creating tables (checkfirst=True)...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    await engine.dispose()
    logger.success("Database tables created successfully!")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    from chainsweep.config.settings import settings
    from chainsweep.initialization.logging import setup_logging

    setup_logging(args.log_level or settings.log_level, settings.log_file)

    if args.command == "listen":
        return asyncio.run(run_listen())
    if args.command == "sweep-all":
        return asyncio.run(run_sweep_all())
    if args.command == "sweep-user":
        return asyncio.run(run_sweep_user(args.network, args.user_id, args.account_index))
    if args.command == "derive-address":
        return run_derive_address(args.network, args.account_index)
    if args.command == "init-db":
        return asyncio.run(run_init_db())
    return 2


if __name__ == "__main__":
    sys.exit(main())
