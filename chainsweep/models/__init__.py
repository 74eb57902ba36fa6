"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from chainsweep.models.base import Base
from chainsweep.models.custodial_account import CustodialAccount
from chainsweep.models.deposit_transaction import DepositTransaction
from chainsweep.models.enums import DepositStatus, Network, TransferStatus
from chainsweep.models.pending_deposit import PendingDeposit
from chainsweep.models.transfer_log import TransferLog
from chainsweep.models.user_balance import UserBalance


__all__ = [
    "Base",
    "CustodialAccount",
    "DepositStatus",
    "DepositTransaction",
    "Network",
    "PendingDeposit",
    "TransferLog",
    "TransferStatus",
    "UserBalance",
]
