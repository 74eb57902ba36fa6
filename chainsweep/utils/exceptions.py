"""
Exception taxonomy.

Defines categorized exception types for proper error handling:

- WatcherConnectionError: transport-level failure; watcher reconnects with
  bounded backoff and raises an alert after exhaustion
- DerivationError: fatal seed/path misconfiguration
- InsufficientFundsError: sweep balance does not cover the fee (no-op)
- BroadcastError: transaction rejected; surfaced to the caller
- DuplicateDepositError: idempotency key already recorded (skipped)
"""


class ChainsweepError(Exception):
    """Base exception for all engine errors."""


class WatcherConnectionError(ChainsweepError, ConnectionError):
    """Raised when a watcher transport fails to connect or drops."""


class DerivationError(ChainsweepError):
    """Raised when a keypair cannot be derived from seed and path."""


class AddressFormatError(ChainsweepError, ValueError):
    """Raised when an address string cannot be decoded."""


class InsufficientFundsError(ChainsweepError):
    """Raised when a balance cannot cover the sweep fee."""

    def __init__(self, balance: int, fee: int) -> None:
        self.balance = balance
        self.fee = fee
        super().__init__(f"Balance {balance} does not cover fee {fee}")


class BroadcastError(ChainsweepError):
    """Raised when a signed transaction is rejected or not acknowledged."""


class DuplicateDepositError(ChainsweepError):
    """Raised when a deposit idempotency key already exists in the ledger."""

    def __init__(self, idempotency_key: str) -> None:
        self.idempotency_key = idempotency_key
        super().__init__(f"Deposit already recorded: {idempotency_key}")


class RetryExhaustedError(ChainsweepError):
    """Raised when the retry combinator runs out of attempts."""

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException | None) -> None:
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation_name} failed after {attempts} attempts: {last_error}"
        )
