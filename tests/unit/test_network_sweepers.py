"""
Tests for the per-network sweepers with faked RPC clients.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from hexbytes import HexBytes
from solders.hash import Hash
from solders.signature import Signature
from tronpy.exceptions import AddressNotFound
from web3.exceptions import Web3Exception

from chainsweep.config.constants import (
    ETHEREUM_FALLBACK_GAS_PRICE_WEI,
    SOLANA_FALLBACK_FEE_LAMPORTS,
    TRON_FEE_RESERVE_SUN,
)
from chainsweep.models.enums import Network
from chainsweep.services.keys import derive_keypair, seed_from_mnemonic
from chainsweep.services.sweep.ethereum_sweeper import EthereumSweeper
from chainsweep.services.sweep.solana_sweeper import SolanaSweeper
from chainsweep.services.sweep.tron_sweeper import TronSweeper
from chainsweep.services.watchers.tron_transport import read_tron_balance
from chainsweep.utils.exceptions import BroadcastError

SEED = seed_from_mnemonic(" ".join(["abandon"] * 11 + ["about"]))
ETH_DESTINATION = "0x742d35cc6634c0532925a3b844bc9e7595f0beb0"
SOL_DESTINATION = "11111111111111111111111111111111"
TRON_DESTINATION = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"


class FakeEth:
    """Subset of AsyncEth used by EthereumSweeper."""

    def __init__(self, gas_price=30 * 10**9, status=1):
        self._gas_price = gas_price
        self.status = status
        self.sent: list[bytes] = []
        self.get_balance = AsyncMock(return_value=10**18)
        self.get_transaction_count = AsyncMock(return_value=7)

    @property
    def gas_price(self):
        async def _read():
            if isinstance(self._gas_price, Exception):
                raise self._gas_price
            return self._gas_price

        return _read()

    @property
    def chain_id(self):
        async def _read():
            return 1

        return _read()

    async def send_raw_transaction(self, raw):
        self.sent.append(bytes(raw))
        return HexBytes(b"\xab" * 32)

    async def wait_for_transaction_receipt(self, tx_hash, timeout):
        return {"status": self.status}


def eth_sweeper(eth: FakeEth) -> EthereumSweeper:
    return EthereumSweeper("https://eth.test", web3=SimpleNamespace(eth=eth, provider=object()))


class TestEthereumSweeper:
    """Test the Ethereum sweeper."""

    @pytest.mark.asyncio
    async def test_fee_is_gas_limit_times_price(self):
        """Fee = 21000 x node gas price."""
        keypair = derive_keypair(SEED, Network.ETHEREUM, 0)
        fee = await eth_sweeper(FakeEth()).estimate_fee(keypair, ETH_DESTINATION, 10**18)
        assert fee == 21_000 * 30 * 10**9

    @pytest.mark.asyncio
    async def test_fee_falls_back_to_20_gwei(self):
        """A failing gas oracle uses the fallback price."""
        keypair = derive_keypair(SEED, Network.ETHEREUM, 0)
        sweeper = eth_sweeper(FakeEth(gas_price=Web3Exception("oracle down")))
        fee = await sweeper.estimate_fee(keypair, ETH_DESTINATION, 10**18)
        assert fee == 21_000 * ETHEREUM_FALLBACK_GAS_PRICE_WEI

    @pytest.mark.asyncio
    async def test_transfer_signs_legacy_transaction(self):
        """The broadcast transaction is signed by the custodial key."""
        keypair = derive_keypair(SEED, Network.ETHEREUM, 0)
        eth = FakeEth()
        fee = 21_000 * 30 * 10**9

        tx_hash = await eth_sweeper(eth).transfer(keypair, ETH_DESTINATION, 10**18 - fee, fee)

        assert tx_hash == "0x" + "ab" * 32
        assert Account.recover_transaction(eth.sent[0]).lower() == keypair.address
        eth.get_transaction_count.assert_awaited_once()
        assert eth.get_transaction_count.await_args.args[1] == "pending"

    @pytest.mark.asyncio
    async def test_reverted_receipt_raises(self):
        """Status 0 receipts are broadcast failures."""
        keypair = derive_keypair(SEED, Network.ETHEREUM, 0)
        with pytest.raises(BroadcastError, match="reverted"):
            await eth_sweeper(FakeEth(status=0)).transfer(keypair, ETH_DESTINATION, 1, 21_000)

    @pytest.mark.asyncio
    async def test_send_failure_raises_broadcast_error(self):
        """Node rejections surface as BroadcastError."""
        keypair = derive_keypair(SEED, Network.ETHEREUM, 0)
        eth = FakeEth()
        eth.send_raw_transaction = AsyncMock(side_effect=ValueError("nonce too low"))
        with pytest.raises(BroadcastError, match="nonce too low"):
            await eth_sweeper(eth).transfer(keypair, ETH_DESTINATION, 1, 21_000)


def solana_client(fee=5_000, err=None):
    client = MagicMock()
    client.get_balance = AsyncMock(return_value=SimpleNamespace(value=10**9))
    client.get_latest_blockhash = AsyncMock(
        return_value=SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default()))
    )
    client.get_fee_for_message = AsyncMock(return_value=SimpleNamespace(value=fee))
    client.send_raw_transaction = AsyncMock(return_value=SimpleNamespace(value=Signature.default()))
    client.confirm_transaction = AsyncMock(
        return_value=SimpleNamespace(value=[SimpleNamespace(err=err)])
    )
    client.close = AsyncMock()
    return client


class TestSolanaSweeper:
    """Test the Solana sweeper."""

    @pytest.mark.asyncio
    async def test_balance(self):
        """Balance is read in lamports."""
        sweeper = SolanaSweeper("https://sol.test", client=solana_client())
        assert await sweeper.get_balance(SOL_DESTINATION) == 10**9

    @pytest.mark.asyncio
    async def test_fee_from_node(self):
        """getFeeForMessage result is used when available."""
        keypair = derive_keypair(SEED, Network.SOLANA, 0)
        sweeper = SolanaSweeper("https://sol.test", client=solana_client(fee=10_000))
        assert await sweeper.estimate_fee(keypair, SOL_DESTINATION, 10**9) == 10_000

    @pytest.mark.asyncio
    async def test_fee_fallback_on_null(self):
        """A null fee falls back to 5000 lamports."""
        keypair = derive_keypair(SEED, Network.SOLANA, 0)
        sweeper = SolanaSweeper("https://sol.test", client=solana_client(fee=None))
        fee = await sweeper.estimate_fee(keypair, SOL_DESTINATION, 10**9)
        assert fee == SOLANA_FALLBACK_FEE_LAMPORTS

    @pytest.mark.asyncio
    async def test_transfer_returns_signature(self):
        """A confirmed transfer returns its signature."""
        keypair = derive_keypair(SEED, Network.SOLANA, 0)
        client = solana_client()

        signature = await SolanaSweeper("https://sol.test", client=client).transfer(
            keypair, SOL_DESTINATION, 10**9 - 5_000, 5_000
        )

        assert signature == str(Signature.default())
        client.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_confirmation_raises(self):
        """A transaction error in the status raises BroadcastError."""
        keypair = derive_keypair(SEED, Network.SOLANA, 0)
        sweeper = SolanaSweeper("https://sol.test", client=solana_client(err="InsufficientFunds"))
        with pytest.raises(BroadcastError):
            await sweeper.transfer(keypair, SOL_DESTINATION, 1, 5_000)


def tron_client(response=None):
    client = MagicMock()
    client.get_account = AsyncMock(return_value={"balance": 3_000_000})
    transaction = MagicMock()
    transaction.txid = "local-txid"
    transaction.broadcast = AsyncMock(
        return_value=response if response is not None else {"result": True, "txid": "ab" * 32}
    )
    builder = MagicMock()
    builder.build = AsyncMock(return_value=transaction)
    client.trx.transfer = MagicMock(return_value=builder)
    client.close = AsyncMock()
    return client, transaction


class TestTronSweeper:
    """Test the Tron sweeper."""

    @pytest.mark.asyncio
    async def test_fee_is_flat_reserve(self):
        """The 1 TRX reserve is kept back."""
        keypair = derive_keypair(SEED, Network.TRON, 0)
        client, _ = tron_client()
        sweeper = TronSweeper("https://tron.test", client=client)
        assert await sweeper.estimate_fee(keypair, TRON_DESTINATION, 3_000_000) == TRON_FEE_RESERVE_SUN

    @pytest.mark.asyncio
    async def test_transfer_uses_hex_addresses(self):
        """Addresses are passed to tronpy in 41-prefixed hex form."""
        keypair = derive_keypair(SEED, Network.TRON, 0)
        client, transaction = tron_client()

        txid = await TronSweeper("https://tron.test", client=client).transfer(
            keypair, TRON_DESTINATION, 2_000_000, TRON_FEE_RESERVE_SUN
        )

        assert txid == "ab" * 32
        source, destination, amount = client.trx.transfer.call_args.args
        assert source.startswith("41") and len(source) == 42
        assert destination == "41a614f803b6fd780986a42c78ec9c7f77e6ded13c"
        assert amount == 2_000_000
        transaction.sign.assert_called_once()

    @pytest.mark.asyncio
    async def test_rejected_broadcast_raises(self):
        """A broadcast without result=True is a failure."""
        keypair = derive_keypair(SEED, Network.TRON, 0)
        client, _ = tron_client(response={"result": False, "message": "BANDWITH_ERROR"})
        with pytest.raises(BroadcastError, match="BANDWITH_ERROR"):
            await TronSweeper("https://tron.test", client=client).transfer(
                keypair, TRON_DESTINATION, 1, TRON_FEE_RESERVE_SUN
            )

    @pytest.mark.asyncio
    async def test_unactivated_account_reads_zero(self):
        """getaccount on an unknown address reads as 0 sun."""
        client = MagicMock()
        client.get_account = AsyncMock(side_effect=AddressNotFound("account not found on-chain"))
        assert await read_tron_balance(client, TRON_DESTINATION) == 0
