"""
Tests for address encoding and decoding.

Covers:
- Base58 round trips and leading-zero handling
- Ethereum hex addresses in any case
- Tron Base58Check with Keccak and double-SHA-256 checksums
- Network dispatch
"""

import base58
import pytest

from chainsweep.models.enums import Network
from chainsweep.services.keys.address_codec import (
    b58decode,
    b58encode,
    decode_address,
    decode_ethereum_address,
    decode_solana_address,
    decode_tron_address,
    encode_address,
    encode_ethereum_address,
    encode_tron_address,
    is_valid_address,
    keccak_account_id,
    tron_checksum,
    tron_hex_address,
)
from chainsweep.utils.exceptions import AddressFormatError

ACCOUNT_ID = bytes.fromhex("9858effd232b4033e47d90003d41ec34ecaeda94")


class TestBase58:
    """Test Base58 helpers."""

    def test_leading_zero_bytes_become_ones(self):
        """Each leading zero byte encodes as '1'."""
        assert b58encode(b"\x00\x00\x01") == "112"
        assert b58decode("112") == b"\x00\x00\x01"

    def test_invalid_character_rejected(self):
        """'0', 'O', 'I' and 'l' are not in the alphabet."""
        with pytest.raises(AddressFormatError):
            b58decode("0OIl")


class TestSolanaAddress:
    """Test Solana address codec."""

    def test_system_program_decodes_to_zero_key(self):
        """All-ones address is the zero public key."""
        assert decode_solana_address("11111111111111111111111111111111") == bytes(32)

    def test_round_trip(self):
        """Decode inverts encode for a 32-byte key."""
        key = bytes(range(32))
        assert decode_address(Network.SOLANA, encode_address(Network.SOLANA, key)) == key

    def test_wrong_key_length_rejected(self):
        """Only 32-byte keys are Solana addresses."""
        with pytest.raises(AddressFormatError):
            encode_address(Network.SOLANA, bytes(31))
        with pytest.raises(AddressFormatError):
            decode_solana_address(b58encode(bytes(20)))


class TestEthereumAddress:
    """Test Ethereum address codec."""

    def test_encode_is_lowercase_hex(self):
        """Encoding yields 0x + 40 lowercase hex characters."""
        address = encode_ethereum_address(ACCOUNT_ID)
        assert address == "0x9858effd232b4033e47d90003d41ec34ecaeda94"

    def test_decode_accepts_checksummed_case(self):
        """Mixed-case (EIP-55) input decodes to the same bytes."""
        lower = decode_ethereum_address("0x742d35cc6634c0532925a3b844bc9e7595f0beb0")
        mixed = decode_ethereum_address("0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0")
        assert lower == mixed
        assert len(mixed) == 20

    @pytest.mark.parametrize(
        "address",
        [
            "742d35cc6634c0532925a3b844bc9e7595f0beb0",
            "0x742d35cc",
            "0xZZ2d35cc6634c0532925a3b844bc9e7595f0beb0",
        ],
    )
    def test_invalid_addresses_rejected(self, address):
        """Missing prefix, short input and non-hex characters fail."""
        with pytest.raises(AddressFormatError):
            decode_ethereum_address(address)

    def test_address_format_error_is_value_error(self):
        """Callers catching ValueError also catch codec errors."""
        with pytest.raises(ValueError):
            decode_ethereum_address("not-an-address")


class TestTronAddress:
    """Test Tron address codec."""

    def test_encode_shape(self):
        """Mainnet addresses start with T and are 34 characters long."""
        address = encode_tron_address(ACCOUNT_ID)
        assert address.startswith("T")
        assert len(address) == 34

    def test_round_trip(self):
        """Decode inverts encode."""
        assert decode_tron_address(encode_tron_address(ACCOUNT_ID)) == ACCOUNT_ID

    def test_checksum_is_double_keccak(self):
        """The last four bytes are Keccak(Keccak(payload))[:4]."""
        raw = base58.b58decode(encode_tron_address(ACCOUNT_ID))
        assert raw[0] == 0x41
        assert raw[-4:] == tron_checksum(raw[:-4])

    def test_sha256_checksummed_address_accepted(self):
        """Externally issued addresses with the SHA-256 checksum decode."""
        hex_address = tron_hex_address("TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t")
        assert hex_address == "41a614f803b6fd780986a42c78ec9c7f77e6ded13c"

    def test_bad_checksum_rejected(self):
        """A payload with a wrong checksum fails to decode."""
        payload = b"\x41" + ACCOUNT_ID
        address = b58encode(payload + b"\x00\x00\x00\x00")
        with pytest.raises(AddressFormatError, match="checksum"):
            decode_tron_address(address)

    def test_wrong_prefix_rejected(self):
        """Only the 0x41 mainnet prefix is accepted."""
        payload = b"\x42" + ACCOUNT_ID
        address = b58encode(payload + tron_checksum(payload))
        with pytest.raises(AddressFormatError, match="prefix"):
            decode_tron_address(address)

    def test_hex_wire_form(self):
        """Wire form is '41' followed by the account id."""
        assert tron_hex_address(encode_tron_address(ACCOUNT_ID)) == "41" + ACCOUNT_ID.hex()


class TestAccountId:
    """Test Keccak account id derivation."""

    def test_requires_uncompressed_key(self):
        """Compressed or prefix-less keys are rejected."""
        with pytest.raises(AddressFormatError):
            keccak_account_id(bytes(64))
        with pytest.raises(AddressFormatError):
            keccak_account_id(b"\x02" + bytes(64))

    def test_returns_twenty_bytes(self):
        """Any well-formed uncompressed key maps to 20 bytes."""
        assert len(keccak_account_id(b"\x04" + bytes(range(64)))) == 20


class TestDispatch:
    """Test network dispatch."""

    @pytest.mark.parametrize(
        "network,raw",
        [
            (Network.SOLANA, bytes(range(32))),
            (Network.ETHEREUM, ACCOUNT_ID),
            (Network.TRON, ACCOUNT_ID),
        ],
    )
    def test_encoded_addresses_are_valid(self, network, raw):
        """Encoded addresses pass validation for their own network."""
        assert is_valid_address(network, encode_address(network, raw))

    def test_cross_network_address_invalid(self):
        """An Ethereum address is not a Tron address."""
        assert not is_valid_address(Network.TRON, encode_ethereum_address(ACCOUNT_ID))
