"""
Exceptions for the palette bridge bootstrap.
"""
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ConfirmationRecord


class Phase(str, Enum):
    """
    Genesis bootstrap phases, in protocol order.
    """
    REGISTER = "register_side_chain"
    APPROVE = "approve_register_side_chain"
    PUSH_GENESIS = "push_genesis"
    PULL_GENESIS = "pull_genesis"


class BridgeError(Exception):
    """Base exception for bridge bootstrap errors."""
    pass


class ChainUnavailable(BridgeError):
    """Raised when a chain RPC endpoint cannot be reached or answers with a transport error."""
    pass


class SigningError(BridgeError):
    """Raised when the local signer refuses to sign a transaction."""
    pass


class TransactionError(BridgeError):
    """Base class for failures tied to a broadcast transaction."""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class TransactionReverted(TransactionError):
    """Raised when a transaction was mined with a failure status."""

    def __init__(
        self,
        tx_hash: str,
        record: Optional["ConfirmationRecord"] = None,
        reason: Optional[str] = None
    ):
        self.record = record
        self.reason = reason
        message = f"Transaction {tx_hash} reverted"
        if reason:
            message += f": {reason}"
        super().__init__(message, tx_hash=tx_hash)


class ConfirmationTimeout(TransactionError):
    """Raised when a transaction stays pending longer than the configured maximum wait."""

    def __init__(self, tx_hash: str, waited: float):
        self.waited = waited
        super().__init__(f"Transaction {tx_hash} still pending after {waited:.1f}s", tx_hash=tx_hash)


class ConfirmationCancelled(TransactionError):
    """Raised when a confirmation wait is cancelled from outside."""

    def __init__(self, tx_hash: str):
        super().__init__(f"Confirmation wait for {tx_hash} cancelled", tx_hash=tx_hash)


class EventNotFound(BridgeError):
    """Raised when a receipt carries no log with the expected event signature."""
    pass


class UnexpectedEmitter(EventNotFound):
    """Raised when the expected event was emitted by a different contract."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected event emitter {expected}, got {actual}")


class InsufficientLogs(BridgeError):
    """Raised when a receipt carries fewer logs than the configured minimum."""

    def __init__(self, tx_hash: str, expected: int, actual: int):
        self.tx_hash = tx_hash
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid receipt {tx_hash}, logs length expect {expected}, got {actual}")


class ProtocolViolation(BridgeError):
    """
    Raised when a relay or side chain entry point rejects a bootstrap call.

    The reason is reported exactly as the entry point gave it.
    """

    def __init__(self, entry_point: str, reason: Optional[str], tx_hash: Optional[str] = None):
        self.entry_point = entry_point
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(f"{entry_point} rejected: {reason or 'execution reverted'}")


class PhaseError(BridgeError):
    """Raised when a single bootstrap phase fails; earlier phases are left as they are on-chain."""

    def __init__(self, phase: Phase, cause: Exception, tx_hash: Optional[str] = None):
        self.phase = phase
        self.cause = cause
        self.tx_hash = tx_hash or getattr(cause, "tx_hash", None)
        message = f"Phase {phase.value} failed: {cause}"
        if self.tx_hash:
            message += f" (tx {self.tx_hash})"
        super().__init__(message)
