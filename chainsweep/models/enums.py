"""
Enumerations shared by models and services.
"""

from enum import StrEnum


class Network(StrEnum):
    """Supported custodial networks."""

    SOLANA = "solana"
    ETHEREUM = "ethereum"
    TRON = "tron"


class DepositStatus(StrEnum):
    """Pending deposit lifecycle."""

    CONFIRMED = "confirmed"
    CREDITED = "credited"
    FAILED = "failed"


class TransferStatus(StrEnum):
    """Sweep transfer outcome."""

    COMPLETED = "completed"
    FAILED = "failed"
