"""
Address codec.

Pure conversions between raw key material and network address strings:
- Solana: Base58 of the 32-byte ed25519 public key
- Ethereum: 0x + lowercase hex of the 20-byte Keccak account id
- Tron: Base58Check(0x41 || account id) with a Keccak checksum
"""

import hashlib

import base58
from eth_utils import keccak

from chainsweep.config.constants import TRON_ADDRESS_PREFIX
from chainsweep.models.enums import Network
from chainsweep.utils.exceptions import AddressFormatError

SOLANA_PUBKEY_LENGTH = 32
ACCOUNT_ID_LENGTH = 20
UNCOMPRESSED_PUBKEY_LENGTH = 65
CHECKSUM_LENGTH = 4


def b58encode(data: bytes) -> str:
    """Encode bytes as Base58 (Bitcoin alphabet)."""
    return base58.b58encode(data).decode("ascii")


def b58decode(value: str) -> bytes:
    """
    Decode a Base58 string.

    Raises:
        AddressFormatError: If the string contains non-Base58 characters
    """
    try:
        return base58.b58decode(value)
    except ValueError as e:
        raise AddressFormatError(f"Invalid Base58 string: {e}") from e


def keccak_account_id(public_key: bytes) -> bytes:
    """
    Derive the 20-byte account id from an uncompressed secp256k1 key.

    Drops the leading format byte, hashes the remaining 64 bytes with
    Keccak-256 and keeps the last 20 bytes.

    Args:
        public_key: 65-byte uncompressed public key (0x04 || X || Y)

    Returns:
        20-byte account id
    """
    if len(public_key) != UNCOMPRESSED_PUBKEY_LENGTH or public_key[0] != 0x04:
        raise AddressFormatError("Expected a 65-byte uncompressed secp256k1 public key")
    return keccak(public_key[1:])[-ACCOUNT_ID_LENGTH:]


# ---------------------------------------------------------------- Solana


def encode_solana_address(public_key: bytes) -> str:
    """Solana address = Base58(public key)."""
    if len(public_key) != SOLANA_PUBKEY_LENGTH:
        raise AddressFormatError(
            f"Solana public key must be {SOLANA_PUBKEY_LENGTH} bytes, got {len(public_key)}"
        )
    return b58encode(public_key)


def decode_solana_address(address: str) -> bytes:
    """Decode a Solana address to its 32-byte public key."""
    raw = b58decode(address.strip())
    if len(raw) != SOLANA_PUBKEY_LENGTH:
        raise AddressFormatError(
            f"Solana address must decode to {SOLANA_PUBKEY_LENGTH} bytes, got {len(raw)}"
        )
    return raw


# ---------------------------------------------------------------- Ethereum


def encode_ethereum_address(account_id: bytes) -> str:
    """Ethereum address = 0x + hex(account id)."""
    if len(account_id) != ACCOUNT_ID_LENGTH:
        raise AddressFormatError(
            f"Ethereum account id must be {ACCOUNT_ID_LENGTH} bytes, got {len(account_id)}"
        )
    return "0x" + account_id.hex()


def decode_ethereum_address(address: str) -> bytes:
    """Decode a 0x-prefixed Ethereum address (any case) to 20 bytes."""
    address = address.strip()
    if not address.startswith(("0x", "0X")) or len(address) != 2 + 2 * ACCOUNT_ID_LENGTH:
        raise AddressFormatError(
            f"Invalid Ethereum address: {address}. Must start with 0x and be 42 characters long."
        )
    try:
        return bytes.fromhex(address[2:])
    except ValueError as e:
        raise AddressFormatError(f"Invalid Ethereum address format: {address}") from e


# ---------------------------------------------------------------- Tron


def tron_checksum(payload: bytes) -> bytes:
    """First 4 bytes of Keccak256(Keccak256(payload))."""
    return keccak(keccak(payload))[:CHECKSUM_LENGTH]


def _sha256d_checksum(payload: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:CHECKSUM_LENGTH]


def encode_tron_address(account_id: bytes) -> str:
    """Tron address = Base58(0x41 || account id || checksum)."""
    if len(account_id) != ACCOUNT_ID_LENGTH:
        raise AddressFormatError(
            f"Tron account id must be {ACCOUNT_ID_LENGTH} bytes, got {len(account_id)}"
        )
    payload = bytes([TRON_ADDRESS_PREFIX]) + account_id
    return b58encode(payload + tron_checksum(payload))


def decode_tron_address(address: str) -> bytes:
    """
    Decode a Tron Base58Check address to its 20-byte account id.

    The Keccak checksum written by encode_tron_address is accepted, as is
    the standard double-SHA-256 checksum of externally issued addresses.

    Raises:
        AddressFormatError: On bad length, prefix or checksum
    """
    raw = b58decode(address.strip())
    if len(raw) != 1 + ACCOUNT_ID_LENGTH + CHECKSUM_LENGTH:
        raise AddressFormatError(f"Tron address has wrong length: {address}")

    payload, checksum = raw[:-CHECKSUM_LENGTH], raw[-CHECKSUM_LENGTH:]
    if payload[0] != TRON_ADDRESS_PREFIX:
        raise AddressFormatError(f"Tron address has wrong prefix: {address}")
    if checksum not in (tron_checksum(payload), _sha256d_checksum(payload)):
        raise AddressFormatError(f"Tron address checksum mismatch: {address}")
    return payload[1:]


def tron_hex_address(address: str) -> str:
    """Wire form of a Tron address: '41' + hex(account id)."""
    return f"{TRON_ADDRESS_PREFIX:02x}" + decode_tron_address(address).hex()


# ---------------------------------------------------------------- Dispatch


def encode_address(network: Network, raw: bytes) -> str:
    """
    Encode raw account bytes for a network.

    Args:
        network: Target network
        raw: Solana 32-byte public key, or 20-byte account id for Ethereum/Tron

    Returns:
        Address string
    """
    if network == Network.SOLANA:
        return encode_solana_address(raw)
    if network == Network.ETHEREUM:
        return encode_ethereum_address(raw)
    if network == Network.TRON:
        return encode_tron_address(raw)
    raise AddressFormatError(f"Unsupported network: {network}")


def decode_address(network: Network, address: str) -> bytes:
    """Inverse of encode_address."""
    if network == Network.SOLANA:
        return decode_solana_address(address)
    if network == Network.ETHEREUM:
        return decode_ethereum_address(address)
    if network == Network.TRON:
        return decode_tron_address(address)
    raise AddressFormatError(f"Unsupported network: {network}")


def is_valid_address(network: Network, address: str) -> bool:
    """Check whether an address decodes for the given network."""
    try:
        decode_address(network, address)
    except AddressFormatError:
        return False
    return True
