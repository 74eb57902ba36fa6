"""
Solana sweeper: SystemProgram transfer signed with the derived ed25519 key.
"""

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from chainsweep.config.constants import BLOCKCHAIN_TIMEOUT, SOLANA_FALLBACK_FEE_LAMPORTS
from chainsweep.models.enums import Network
from chainsweep.services.keys import DerivedKeypair
from chainsweep.services.sweep.base import NetworkSweeper
from chainsweep.utils.exceptions import BroadcastError
from chainsweep.utils.security import mask_address


def build_transfer_message(payer: Pubkey, destination: str, lamports: int, blockhash: Hash) -> Message:
    """Single-instruction transfer message."""
    instruction = transfer(
        TransferParams(
            from_pubkey=payer,
            to_pubkey=Pubkey.from_string(destination),
            lamports=lamports,
        )
    )
    return Message.new_with_blockhash([instruction], payer, blockhash)


class SolanaSweeper(NetworkSweeper):
    """Sweeps lamports to the Solana collection wallet."""

    network = Network.SOLANA

    def __init__(self, rpc_url: str, client: AsyncClient | None = None):
        self.rpc_url = rpc_url
        self.client = client or AsyncClient(rpc_url, commitment=Confirmed, timeout=BLOCKCHAIN_TIMEOUT)

    async def get_balance(self, address: str) -> int:
        response = await self.client.get_balance(Pubkey.from_string(address), commitment=Confirmed)
        return response.value

    async def estimate_fee(self, keypair: DerivedKeypair, destination: str, balance: int) -> int:
        signer = Keypair.from_seed(bytes(keypair.private_key))
        try:
            blockhash = (await self.client.get_latest_blockhash(commitment=Confirmed)).value.blockhash
            message = build_transfer_message(signer.pubkey(), destination, balance, blockhash)
            fee = (await self.client.get_fee_for_message(message, commitment=Confirmed)).value
        except Exception as e:
            logger.warning(f"solana: getFeeForMessage failed, using fallback fee: {e}")
            fee = None

        if fee is None:
            return SOLANA_FALLBACK_FEE_LAMPORTS
        return int(fee)

    async def transfer(
        self, keypair: DerivedKeypair, destination: str, amount: int, fee: int
    ) -> str:
        signer = Keypair.from_seed(bytes(keypair.private_key))
        try:
            blockhash = (await self.client.get_latest_blockhash(commitment=Confirmed)).value.blockhash
            message = build_transfer_message(signer.pubkey(), destination, amount, blockhash)
            transaction = Transaction([signer], message, blockhash)
            signature = (
                await self.client.send_raw_transaction(
                    bytes(transaction), opts=TxOpts(preflight_commitment=Confirmed)
                )
            ).value
        except Exception as e:
            raise BroadcastError(
                f"solana: broadcast from {mask_address(keypair.address)} failed: {e}"
            ) from e

        try:
            statuses = (await self.client.confirm_transaction(signature, commitment=Confirmed)).value
        except Exception as e:
            raise BroadcastError(f"solana: transaction {signature} not confirmed: {e}") from e

        status = statuses[0] if statuses else None
        if status is None or status.err is not None:
            error = status.err if status is not None else "no status"
            raise BroadcastError(f"solana: transaction {signature} failed: {error}")
        return str(signature)

    async def close(self) -> None:
        await self.client.close()
