"""
Ethereum sweeper: legacy 21000-gas value transfer.
"""

import asyncio

import aiohttp
from eth_account import Account
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import Web3Exception

from chainsweep.config.constants import (
    BLOCKCHAIN_RECEIPT_TIMEOUT,
    BLOCKCHAIN_TIMEOUT,
    ETHEREUM_FALLBACK_GAS_PRICE_WEI,
    ETHEREUM_TRANSFER_GAS_LIMIT,
)
from chainsweep.models.enums import Network
from chainsweep.services.keys import DerivedKeypair
from chainsweep.services.sweep.base import NetworkSweeper
from chainsweep.utils.exceptions import BroadcastError
from chainsweep.utils.security import mask_address, mask_tx_hash


class EthereumSweeper(NetworkSweeper):
    """
    Sweeps ETH to the collection wallet.

    Features:
    - Gas price from the node oracle with a 20 gwei fallback
    - Pending nonce per sweep
    - Receipt wait with status check
    """

    network = Network.ETHEREUM

    def __init__(
        self,
        rpc_url: str,
        web3: AsyncWeb3 | None = None,
        receipt_timeout: float = BLOCKCHAIN_RECEIPT_TIMEOUT,
    ):
        self.rpc_url = rpc_url
        self.web3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": BLOCKCHAIN_TIMEOUT})
        )
        self.receipt_timeout = receipt_timeout

    async def get_balance(self, address: str) -> int:
        return await self.web3.eth.get_balance(Web3.to_checksum_address(address))

    async def estimate_fee(self, keypair: DerivedKeypair, destination: str, balance: int) -> int:
        try:
            gas_price = await asyncio.wait_for(self.web3.eth.gas_price, timeout=BLOCKCHAIN_TIMEOUT)
        except (TimeoutError, Web3Exception, aiohttp.ClientError, OSError, ValueError) as e:
            logger.warning(f"ethereum: gas price unavailable, using fallback: {e}")
            gas_price = ETHEREUM_FALLBACK_GAS_PRICE_WEI
        return ETHEREUM_TRANSFER_GAS_LIMIT * int(gas_price)

    async def transfer(
        self, keypair: DerivedKeypair, destination: str, amount: int, fee: int
    ) -> str:
        sender = Web3.to_checksum_address(keypair.address)
        try:
            nonce = await self.web3.eth.get_transaction_count(sender, "pending")
            chain_id = await self.web3.eth.chain_id
            transaction = {
                "to": Web3.to_checksum_address(destination),
                "value": amount,
                "gas": ETHEREUM_TRANSFER_GAS_LIMIT,
                "gasPrice": fee // ETHEREUM_TRANSFER_GAS_LIMIT,
                "nonce": nonce,
                "chainId": chain_id,
            }
            signed = Account.sign_transaction(transaction, bytes(keypair.private_key))
            tx_hash = await self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise BroadcastError(
                f"ethereum: broadcast from {mask_address(keypair.address)} failed: {e}"
            ) from e

        tx_hex = Web3.to_hex(tx_hash)
        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
        except Exception as e:
            raise BroadcastError(f"ethereum: no receipt for {mask_tx_hash(tx_hex)}: {e}") from e

        if receipt["status"] != 1:
            raise BroadcastError(f"ethereum: transaction {mask_tx_hash(tx_hex)} reverted")
        return tx_hex

    async def close(self) -> None:
        provider = self.web3.provider
        if hasattr(provider, "disconnect"):
            await provider.disconnect()
