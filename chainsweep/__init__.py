"""
Chainsweep.

Custodial multi-chain deposit detection and fund sweep engine.
"""

__version__ = "0.1.0"
