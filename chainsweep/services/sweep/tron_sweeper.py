"""
Tron sweeper: TRX transfer built and broadcast through tronpy.
"""

from tronpy import AsyncTron
from tronpy.keys import PrivateKey

from chainsweep.config.constants import TRON_FEE_RESERVE_SUN
from chainsweep.models.enums import Network
from chainsweep.services.keys import DerivedKeypair
from chainsweep.services.keys.address_codec import tron_hex_address
from chainsweep.services.sweep.base import NetworkSweeper
from chainsweep.services.watchers.tron_transport import build_tron_client, read_tron_balance
from chainsweep.utils.exceptions import BroadcastError
from chainsweep.utils.security import mask_address


class TronSweeper(NetworkSweeper):
    """Sweeps TRX to the Tron collection wallet, keeping a flat fee reserve."""

    network = Network.TRON

    def __init__(self, rpc_url: str, api_key: str | None = None, client: AsyncTron | None = None):
        self.rpc_url = rpc_url
        self.client = client or build_tron_client(rpc_url, api_key)

    async def get_balance(self, address: str) -> int:
        return await read_tron_balance(self.client, address)

    async def estimate_fee(self, keypair: DerivedKeypair, destination: str, balance: int) -> int:
        return TRON_FEE_RESERVE_SUN

    async def transfer(
        self, keypair: DerivedKeypair, destination: str, amount: int, fee: int
    ) -> str:
        try:
            builder = self.client.trx.transfer(
                tron_hex_address(keypair.address), tron_hex_address(destination), amount
            )
            transaction = await builder.build()
            transaction.sign(PrivateKey(bytes(keypair.private_key)))
            response = await transaction.broadcast()
        except Exception as e:
            raise BroadcastError(
                f"tron: broadcast from {mask_address(keypair.address)} failed: {e}"
            ) from e

        if not response.get("result"):
            raise BroadcastError(f"tron: broadcast rejected: {response.get('message', response)}")
        return response.get("txid") or transaction.txid

    async def close(self) -> None:
        await self.client.close()
