"""
Repositories.

Data access layer for database models.
"""

from chainsweep.repositories.base import BaseRepository
from chainsweep.repositories.custodial_account_repository import CustodialAccountRepository
from chainsweep.repositories.deposit_ledger_repository import (
    DepositTransactionRepository,
    PendingDepositRepository,
    TransferLogRepository,
    UserBalanceRepository,
)

__all__ = [
    "BaseRepository",
    "CustodialAccountRepository",
    "DepositTransactionRepository",
    "PendingDepositRepository",
    "TransferLogRepository",
    "UserBalanceRepository",
]
