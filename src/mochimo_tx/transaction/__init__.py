"""Transaction construction pipeline.

This module drives a transfer through the Construction API, signs it with a
one-time key and decodes the fixed signed-transaction layout.
"""

from mochimo_tx.transaction.base import (
    InsufficientFundsError,
    LedgerStepError,
    OrchestratorUsedError,
    ProtocolViolationError,
    TransferError,
    TransferResult,
    TransferValidationError,
    TxState,
)
from mochimo_tx.transaction.codec import SignedTransaction, TransactionDecodeError
from mochimo_tx.transaction.orchestrator import TransactionOrchestrator

__all__ = [
    "InsufficientFundsError",
    "LedgerStepError",
    "OrchestratorUsedError",
    "ProtocolViolationError",
    "SignedTransaction",
    "TransactionDecodeError",
    "TransactionOrchestrator",
    "TransferError",
    "TransferResult",
    "TransferValidationError",
    "TxState",
]
