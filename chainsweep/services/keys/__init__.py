"""
Custodial key material: address codecs and HD key derivation.
"""

from chainsweep.services.keys.derivation import (
    DerivedKeypair,
    KeyDerivationService,
    derive_keypair,
    seed_from_mnemonic,
)

__all__ = [
    "DerivedKeypair",
    "KeyDerivationService",
    "derive_keypair",
    "seed_from_mnemonic",
]
