"""
Key derivation service.

Derives per-account custodial keypairs from the master BIP-39 mnemonic.
Only the account index is ever stored; keys are recomputed per use,
handed out inside a scope and zeroed when the scope exits.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from bip_utils import (
    Bip32Slip10Ed25519,
    Bip32Slip10Secp256k1,
    Bip39MnemonicValidator,
    Bip39SeedGenerator,
)
from loguru import logger
from pydantic import SecretStr
from solders.keypair import Keypair

from chainsweep.config.constants import DERIVATION_PATHS
from chainsweep.models.enums import Network
from chainsweep.services.keys.address_codec import (
    encode_ethereum_address,
    encode_solana_address,
    encode_tron_address,
    keccak_account_id,
)
from chainsweep.utils.exceptions import DerivationError
from chainsweep.utils.security import mask_address, wipe_bytes


@dataclass
class DerivedKeypair:
    """
    Ephemeral keypair for one custodial account.

    The private key is a mutable buffer so it can be wiped after signing.
    """

    network: Network
    account_index: int
    address: str
    private_key: bytearray = field(repr=False)

    def wipe(self) -> None:
        """Zero the private key in place."""
        wipe_bytes(self.private_key)

    @property
    def is_wiped(self) -> bool:
        return not any(self.private_key)


def seed_from_mnemonic(mnemonic: str) -> bytes:
    """
    Build the BIP-39 seed (empty passphrase).

    Raises:
        DerivationError: If the mnemonic fails word list or checksum validation
    """
    words = " ".join(mnemonic.split())
    if not Bip39MnemonicValidator().IsValid(words):
        raise DerivationError("Master mnemonic is not a valid BIP-39 mnemonic")
    return bytes(Bip39SeedGenerator(words).Generate())


def derivation_path(network: Network, account_index: int) -> str:
    """Concrete derivation path for an account."""
    if account_index < 0:
        raise DerivationError(f"Account index must be non-negative, got {account_index}")
    try:
        template = DERIVATION_PATHS[Network(network)]
    except (KeyError, ValueError) as e:
        raise DerivationError(f"Unsupported network: {network}") from e
    return template.format(index=account_index)


def derive_keypair(seed: bytes, network: Network, account_index: int) -> DerivedKeypair:
    """
    Derive the keypair for (network, account_index).

    Args:
        seed: BIP-39 seed bytes
        network: Target network
        account_index: Custodial account index (>= 0)

    Returns:
        DerivedKeypair whose private key the caller must wipe

    Raises:
        DerivationError: On bad index, unsupported network or failed derivation
    """
    path = derivation_path(network, account_index)
    network = Network(network)

    try:
        if network == Network.SOLANA:
            node = Bip32Slip10Ed25519.FromSeedAndPath(seed, path)
            private_key = bytearray(node.PrivateKey().Raw().ToBytes())
            public_key = bytes(Keypair.from_seed(bytes(private_key)).pubkey())
            address = encode_solana_address(public_key)
        else:
            node = Bip32Slip10Secp256k1.FromSeedAndPath(seed, path)
            private_key = bytearray(node.PrivateKey().Raw().ToBytes())
            account_id = keccak_account_id(node.PublicKey().RawUncompressed().ToBytes())
            if network == Network.ETHEREUM:
                address = encode_ethereum_address(account_id)
            else:
                address = encode_tron_address(account_id)
    except DerivationError:
        raise
    except Exception as e:
        # Exception text from the BIP-32 layer carries no key material
        raise DerivationError(
            f"Failed to derive {network} key at index {account_index}: {type(e).__name__}"
        ) from e

    if len(private_key) != 32 or not any(private_key):
        raise DerivationError(f"No private key derived for {network} index {account_index}")

    return DerivedKeypair(
        network=network,
        account_index=account_index,
        address=address,
        private_key=private_key,
    )


class KeyDerivationService:
    """
    Derives custodial addresses and scoped signing keys.

    Features:
    - Master seed recomputed per acquisition, never cached
    - Private keys zeroed when the key scope exits
    - Public address lookup without exposing key material
    """

    def __init__(self, mnemonic: SecretStr) -> None:
        self._mnemonic = mnemonic
        # Fail fast on misconfiguration
        seed = bytearray(seed_from_mnemonic(self._mnemonic.get_secret_value()))
        wipe_bytes(seed)

    @contextmanager
    def keypair(self, network: Network, account_index: int) -> Iterator[DerivedKeypair]:
        """
        Key scope for one signing operation.

        Usage:
            with service.keypair(Network.ETHEREUM, 3) as kp:
                sign(kp.private_key)
        """
        seed = bytearray(seed_from_mnemonic(self._mnemonic.get_secret_value()))
        derived: DerivedKeypair | None = None
        try:
            derived = derive_keypair(bytes(seed), network, account_index)
            yield derived
        finally:
            if derived is not None:
                derived.wipe()
            wipe_bytes(seed)

    def address_for(self, network: Network, account_index: int) -> str:
        """Public address of a custodial account."""
        with self.keypair(network, account_index) as kp:
            address = kp.address
        logger.debug(f"Derived {network} address {mask_address(address)} for index {account_index}")
        return address
