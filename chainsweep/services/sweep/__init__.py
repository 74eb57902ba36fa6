"""
Sweeps of custodial balances into collection wallets.
"""

from chainsweep.services.sweep.base import (
    NetworkSweeper,
    NetworkSweepTotals,
    SweepResult,
    SweepSummary,
)
from chainsweep.services.sweep.engine import SweepEngine

__all__ = [
    "NetworkSweeper",
    "NetworkSweepTotals",
    "SweepEngine",
    "SweepResult",
    "SweepSummary",
]
