"""States, results and errors of the transfer pipeline.

Transfer flow:
1. Caller builds an orchestrator for one transfer (sender, change, receiver tag)
2. Orchestrator walks the Construction API steps strictly in order
3. Unsigned transaction is verified, hashed and signed once
4. Signed transaction is verified and submitted
5. Orchestrator ends in DONE or FAILED and is discarded
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class TxState(str, Enum):
    """Pipeline state. Strictly sequential; FAILED is reachable from any step."""
    INIT = "init"
    DERIVE = "derive"
    PREPROCESS = "preprocess"
    METADATA = "metadata"
    BUILD_OPERATIONS = "build_operations"
    PAYLOADS = "payloads"
    PARSE_UNSIGNED = "parse_unsigned"
    SIGN = "sign"
    COMBINE = "combine"
    PARSE_SIGNED = "parse_signed"
    SUBMIT = "submit"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TxState.DONE, TxState.FAILED)


STATUS_MESSAGES: dict[TxState, str] = {
    TxState.INIT: "Initialized",
    TxState.DERIVE: "Deriving addresses from API...",
    TxState.PREPROCESS: "Preprocessing transaction...",
    TxState.METADATA: "Getting transaction metadata...",
    TxState.BUILD_OPERATIONS: "Building operations...",
    TxState.PAYLOADS: "Preparing transaction payloads...",
    TxState.PARSE_UNSIGNED: "Parsing unsigned transaction...",
    TxState.SIGN: "Signing transaction...",
    TxState.COMBINE: "Combining transaction parts...",
    TxState.PARSE_SIGNED: "Verifying signed transaction...",
    TxState.SUBMIT: "Submitting transaction...",
    TxState.DONE: "Transaction submitted successfully",
    TxState.FAILED: "Transaction failed",
}


@dataclass
class TransferResult:
    """Result of a transfer attempt."""
    success: bool
    state: TxState
    transaction_hash: Optional[str] = None
    amount: Optional[int] = None
    fee: Optional[int] = None
    change: Optional[int] = None
    error: Optional[str] = None


class TransferError(Exception):
    """Base error of the transfer pipeline.

    Attributes:
        state: Pipeline state in which the error occurred
    """

    def __init__(self, message: str, state: Optional[TxState] = None):
        super().__init__(message)
        self.state = state


class ProtocolViolationError(TransferError):
    """A cross-step invariant does not hold. Always fatal, never retried."""
    pass


class TransferValidationError(TransferError):
    """Caller-supplied transfer parameters are invalid."""
    pass


class InsufficientFundsError(TransferValidationError):
    """Source balance cannot cover amount plus fee."""

    def __init__(self, balance: int, amount: int, fee: int, state: Optional[TxState] = None):
        super().__init__(
            f"Insufficient funds: balance {balance} < amount {amount} + fee {fee}",
            state=state,
        )
        self.balance = balance
        self.amount = amount
        self.fee = fee


class LedgerStepError(TransferError):
    """The node rejected a step or could not be reached.

    Attributes:
        body: Remote error payload, untouched
        status_code: HTTP status of the failed call, if any
    """

    def __init__(
        self,
        message: str,
        state: Optional[TxState] = None,
        body: Any = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, state=state)
        self.body = body
        self.status_code = status_code


class OrchestratorUsedError(TransferError):
    """The orchestrator already ran; build a new one to retry."""
    pass


class TransferCancelledError(TransferError):
    """Recorded as the failure reason when an in-flight step is cancelled."""
    pass
