"""
palette-bridge: genesis bootstrap and transfer tooling between the Palette
side chain and the cross-chain relay chain.
"""
from .abi import ContractRegistry, DEFAULT_REGISTRY
from .bootstrap import GenesisBootstrap
from .config import BridgeConfig
from .engine import CancellationToken, ConfirmationWaiter, TransactionEngine
from .events import EventDecoder, LogCheckSeverity
from .exceptions import (
    BridgeError,
    ChainUnavailable,
    ConfirmationCancelled,
    ConfirmationTimeout,
    EventNotFound,
    InsufficientLogs,
    Phase,
    PhaseError,
    ProtocolViolation,
    SigningError,
    TransactionError,
    TransactionReverted,
    UnexpectedEmitter,
)
from .models import (
    ConfirmationRecord,
    EventKind,
    EventLog,
    GenesisHeader,
    PendingCall,
    PhaseResult,
    Router,
    SideChainDescriptor,
    TransferEvent,
    ValidatorSet,
)
from .nonce import NonceAllocator
from .rpc import ChainRPC
from .signer import LocalSigner, Signer
from .transfer import LockSubmitter
from .version import __version__

__all__ = [
    "BridgeConfig",
    "BridgeError",
    "CancellationToken",
    "ChainRPC",
    "ChainUnavailable",
    "ConfirmationCancelled",
    "ConfirmationRecord",
    "ConfirmationTimeout",
    "ConfirmationWaiter",
    "ContractRegistry",
    "DEFAULT_REGISTRY",
    "EventDecoder",
    "EventKind",
    "EventLog",
    "EventNotFound",
    "GenesisBootstrap",
    "GenesisHeader",
    "InsufficientLogs",
    "LocalSigner",
    "LockSubmitter",
    "LogCheckSeverity",
    "NonceAllocator",
    "PendingCall",
    "Phase",
    "PhaseError",
    "PhaseResult",
    "ProtocolViolation",
    "Router",
    "SideChainDescriptor",
    "Signer",
    "SigningError",
    "TransactionEngine",
    "TransactionError",
    "TransactionReverted",
    "TransferEvent",
    "UnexpectedEmitter",
    "ValidatorSet",
    "__version__",
]
