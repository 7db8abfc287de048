"""Transfer orchestrator for the Construction API.

Drives one transfer through the node, strictly in order:

    INIT -> DERIVE -> PREPROCESS -> METADATA -> BUILD_OPERATIONS -> PAYLOADS
         -> PARSE_UNSIGNED -> SIGN -> COMBINE -> PARSE_SIGNED -> SUBMIT -> DONE

Any failure moves the orchestrator to FAILED. There are no retries: the sender
key is a one-time signature key, so a second attempt must use a new
orchestrator built from fresh key material or a fresh balance snapshot.

Example:
    orchestrator = TransactionOrchestrator(client, sender, change, receiver_tag)
    txid = await orchestrator.send(amount=300_000_000, fee=1_000)
"""

import asyncio
import logging
from typing import Callable, Optional, Sequence

from mochimo_tx.config import Settings, get_settings
from mochimo_tx.rosetta.client import LedgerClient, LedgerTransportError
from mochimo_tx.rosetta.types import (
    AccountIdentifier,
    Amount,
    Operation,
    OperationIdentifier,
    PublicKey,
    Signature,
    SigningPayload,
    TransactionIdentifier,
)
from mochimo_tx.signing.base import (
    Hasher,
    OneTimeSigner,
    Sha256Hasher,
    Signer,
    SignerConsumedError,
    SigningError,
    normalize_hex,
)
from mochimo_tx.transaction.base import (
    STATUS_MESSAGES,
    InsufficientFundsError,
    LedgerStepError,
    OrchestratorUsedError,
    ProtocolViolationError,
    TransferCancelledError,
    TransferError,
    TransferResult,
    TransferValidationError,
    TxState,
)
from mochimo_tx.transaction.codec import MAX_AMOUNT, SignedTransaction, TransactionDecodeError

logger = logging.getLogger(__name__)

StatusCallback = Callable[[TxState, str], None]

SOURCE_INDEX = 0
DESTINATION_INDEX = 1
CHANGE_INDEX = 2
FEE_INDEX = 3


def _operation_value(op: Operation) -> Optional[int]:
    if op.amount is None:
        return None
    try:
        return int(op.amount.value)
    except ValueError:
        return None


def check_conservation(operations: Sequence[Operation]) -> bool:
    """Source debit equals destination + change + fee."""
    values = [_operation_value(op) for op in operations]
    if len(values) != 4 or any(v is None for v in values):
        return False
    source, destination, change, fee = values
    return source == destination + change + fee


class TransactionOrchestrator:
    """Single-use driver for one transfer.

    Attributes:
        state: Current pipeline state
        status: Human-readable progress string for display
        operations: Operations built in BUILD_OPERATIONS
        signed_transaction: Decoded signed transaction after PARSE_SIGNED
        transaction_identifier: Final identifier after SUBMIT
        error: Terminal error, if the orchestrator failed
    """

    def __init__(
        self,
        client: LedgerClient,
        sender: Signer,
        change: Signer,
        receiver_tag: str,
        *,
        hasher: Optional[Hasher] = None,
        settings: Optional[Settings] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        """Initialize orchestrator.

        Args:
            client: Construction API client (may be shared)
            sender: One-time signer holding the source funds
            change: Key receiving the leftover balance (only its address is used)
            receiver_tag: Hex tag of the destination account
            hasher: Digest applied to the unsigned transaction (SHA-256 by default)
            settings: Currency/operation constants (global settings by default)
            on_status: Optional observer called with (state, status) on every transition

        Raises:
            ProtocolViolationError: If sender and change addresses are equal
            SignerConsumedError: If the sender key has already signed
            TransferValidationError: If the receiver tag is not hex
        """
        self.client = client
        self.settings = settings or get_settings()
        self.hasher = hasher or Sha256Hasher()
        self._on_status = on_status

        self.state = TxState.INIT
        self.status = STATUS_MESSAGES[TxState.INIT]
        self.operations: list[Operation] = []
        self.signed_transaction: Optional[SignedTransaction] = None
        self.transaction_identifier: Optional[TransactionIdentifier] = None
        self.error: Optional[Exception] = None
        self._started = False

        self._sender = OneTimeSigner.wrap(sender)
        if self._sender.consumed:
            raise SignerConsumedError("Sender key has already signed a transaction")

        self._sender_hex = normalize_hex(self._sender.address_hex())
        self._change_hex = normalize_hex(change.address_hex())
        if self._sender_hex == self._change_hex:
            raise ProtocolViolationError(
                "Change wallet cannot be the same as sender wallet", state=TxState.INIT
            )

        tag = normalize_hex(receiver_tag)
        if not tag or not _is_hex(tag):
            raise TransferValidationError(
                f"Receiver tag must be a hex string, got {receiver_tag!r}", state=TxState.INIT
            )
        self._receiver_tag = tag

    @property
    def destination_address(self) -> str:
        return "0x" + self._receiver_tag

    # ======================
    # Public API
    # ======================

    async def send(self, amount: int, fee: Optional[int] = None) -> TransactionIdentifier:
        """Build, sign and submit the transfer.

        Args:
            amount: Amount to send in base units
            fee: Miner fee in base units; taken from the node's suggestion if omitted

        Returns:
            Identifier of the submitted transaction

        Raises:
            TransferError: On any failure; the orchestrator is then FAILED
            asyncio.CancelledError: If cancelled; the orchestrator is then FAILED
        """
        if self._started:
            raise OrchestratorUsedError(
                f"Orchestrator already used (state={self.state.value}); create a new one",
                state=self.state,
            )
        self._started = True

        try:
            return await self._run(amount, fee)
        except asyncio.CancelledError:
            self._fail(TransferCancelledError(f"Cancelled during {self.state.value}", state=self.state))
            raise
        except SigningError as e:
            error = TransferError(f"Signing failed: {e}", state=self.state)
            self._fail(error)
            raise error from e
        except Exception as e:
            self._fail(e)
            raise

    async def execute(self, amount: int, fee: Optional[int] = None) -> TransferResult:
        """Like ``send`` but reports failures as a ``TransferResult``."""
        try:
            txid = await self.send(amount, fee)
        except TransferError as e:
            return TransferResult(
                success=False,
                state=self.state,
                amount=amount,
                fee=fee,
                error=str(e),
            )

        fee_op = self.operations[FEE_INDEX]
        change_op = self.operations[CHANGE_INDEX]
        return TransferResult(
            success=True,
            state=self.state,
            transaction_hash=txid.hash,
            amount=amount,
            fee=_operation_value(fee_op),
            change=_operation_value(change_op),
        )

    # ======================
    # Pipeline
    # ======================

    async def _run(self, amount: int, fee: Optional[int]) -> TransactionIdentifier:
        self._validate_amounts(amount, fee)

        network = await self._ledger(self.client.initialize())
        logger.info(
            f"Connected to {self.client.network_identifier.network}, "
            f"tip={network.status.current_block_identifier.index}"
        )
        op_types = network.options.allow.operation_types
        if op_types and self.settings.operation_type not in op_types:
            logger.warning(
                f"Node does not list operation type {self.settings.operation_type!r}: {op_types}"
            )

        # Derive
        self._transition(TxState.DERIVE)
        curve = self.settings.signature_type
        sender_resp = await self._ledger(self.client.construction_derive("0x" + self._sender_hex, curve))
        change_resp = await self._ledger(self.client.construction_derive("0x" + self._change_hex, curve))
        sender_account = sender_resp.account_identifier
        change_account = change_resp.account_identifier
        if sender_account.address.lower() == change_account.address.lower():
            raise ProtocolViolationError(
                f"Sender and change derive to the same account {sender_account.address}",
                state=self.state,
            )

        # Preprocess
        self._transition(TxState.PREPROCESS)
        operations = self._skeleton(sender_account, change_account)
        preprocess = await self._ledger(self.client.construction_preprocess(operations))

        # Metadata
        self._transition(TxState.METADATA)
        metadata = await self._ledger(self.client.construction_metadata(preprocess.options))
        try:
            balance = metadata.source_balance
        except ValueError as e:
            raise ProtocolViolationError(f"Unreadable source_balance: {e}", state=self.state) from e
        if balance is None:
            raise ProtocolViolationError("Metadata response has no source_balance", state=self.state)

        if fee is None:
            try:
                suggested = metadata.fee_suggestion
            except ValueError as e:
                raise ProtocolViolationError(f"Unreadable suggested fee: {e}", state=self.state) from e
            fee = suggested if suggested is not None else self.settings.default_fee
            logger.info(f"Using fee {fee} ({'node suggestion' if suggested is not None else 'default'})")
            self._validate_amounts(amount, fee)

        # Build operations
        self._transition(TxState.BUILD_OPERATIONS)
        self.operations = self._build_operations(operations, balance, amount, fee)

        # Payloads
        self._transition(TxState.PAYLOADS)
        payloads = await self._ledger(
            self.client.construction_payloads(self.operations, metadata.metadata)
        )
        unsigned_hex = payloads.unsigned_transaction

        # Parse unsigned
        self._transition(TxState.PARSE_UNSIGNED)
        parsed = await self._ledger(self.client.construction_parse(unsigned_hex, False))
        self._verify_operations(parsed.operations, "unsigned")

        # Sign
        self._transition(TxState.SIGN)
        signature = self._sign(unsigned_hex, payloads.payloads)

        # Combine
        self._transition(TxState.COMBINE)
        combined = await self._ledger(self.client.construction_combine(unsigned_hex, [signature]))
        signed_hex = combined.signed_transaction

        # Parse signed
        self._transition(TxState.PARSE_SIGNED)
        parsed = await self._ledger(self.client.construction_parse(signed_hex, True))
        self._verify_operations(parsed.operations, "signed")
        self.signed_transaction = self._verify_signed_layout(signed_hex, signature)

        # Submit
        self._transition(TxState.SUBMIT)
        submitted = await self._ledger(self.client.construction_submit(signed_hex))
        self.transaction_identifier = submitted.transaction_identifier

        self._transition(TxState.DONE)
        logger.info(f"Transaction submitted: {self.transaction_identifier.hash}")
        return self.transaction_identifier

    # ======================
    # Steps
    # ======================

    def _amount(self, value: int) -> Amount:
        return Amount(value=str(value), currency=self.settings.currency)

    def _operation(self, index: int, account: AccountIdentifier, value: int) -> Operation:
        return Operation(
            operation_identifier=OperationIdentifier(index=index),
            type=self.settings.operation_type,
            status=self.settings.operation_status,
            account=account,
            amount=self._amount(value),
        )

    def _skeleton(
        self, sender_account: AccountIdentifier, change_account: AccountIdentifier
    ) -> list[Operation]:
        """Source, destination and change legs with zero placeholders."""
        return [
            self._operation(SOURCE_INDEX, sender_account, 0),
            self._operation(DESTINATION_INDEX, AccountIdentifier(address=self.destination_address), 0),
            self._operation(CHANGE_INDEX, change_account, 0),
        ]

    def _build_operations(
        self, skeleton: list[Operation], balance: int, amount: int, fee: int
    ) -> list[Operation]:
        change = balance - amount - fee
        if change < 0:
            raise InsufficientFundsError(balance, amount, fee, state=self.state)

        values = {SOURCE_INDEX: balance, DESTINATION_INDEX: amount, CHANGE_INDEX: change}
        operations = [
            op.model_copy(update={"amount": self._amount(values[op.index])}) for op in skeleton
        ]
        operations.append(
            self._operation(FEE_INDEX, AccountIdentifier(address=self.settings.fee_address), fee)
        )

        if not check_conservation(operations):
            raise ProtocolViolationError("Operations do not conserve the source balance", state=self.state)

        logger.info(f"Operations: balance={balance} amount={amount} change={change} fee={fee}")
        return operations

    def _sign(self, unsigned_hex: str, payloads: Sequence[SigningPayload]) -> Signature:
        if len(payloads) != 1:
            raise ProtocolViolationError(
                f"Expected exactly one signing payload, got {len(payloads)}", state=self.state
            )
        payload = payloads[0]
        if payload.hex_bytes != unsigned_hex:
            raise ProtocolViolationError(
                "Signing payload hex bytes must match unsigned transaction", state=self.state
            )

        try:
            unsigned_bytes = bytes.fromhex(unsigned_hex)
        except ValueError as e:
            raise ProtocolViolationError(f"Unsigned transaction is not hex: {e}", state=self.state) from e

        digest = self.hasher.hash(unsigned_bytes)
        signature_bytes = self._sender.sign(digest)
        logger.debug(f"Signed {len(unsigned_bytes)} byte payload, signature {len(signature_bytes)} bytes")

        signature_type = self.settings.signature_type
        signature = Signature(
            signing_payload=SigningPayload(
                hex_bytes=payload.hex_bytes,
                signature_type=signature_type,
                address=payload.address,
            ),
            public_key=PublicKey(hex_bytes=self._sender_hex, curve_type=signature_type),
            signature_type=signature_type,
            hex_bytes=signature_bytes.hex(),
        )

        if signature.signing_payload.hex_bytes != unsigned_hex:
            raise ProtocolViolationError(
                "Signing payload hex bytes must match unsigned transaction", state=self.state
            )
        return signature

    def _verify_operations(self, decoded: Sequence[Operation], label: str) -> None:
        """Decoded operations must match the intended ones index by index.

        Amounts are compared by magnitude so a node reporting debits as
        negative values still matches. Addresses are compared
        case-insensitively when both sides carry one.
        """
        if len(decoded) != len(self.operations):
            raise ProtocolViolationError(
                f"Parsed {label} transaction has {len(decoded)} operations, "
                f"expected {len(self.operations)}",
                state=self.state,
            )

        by_index = {op.index: op for op in decoded}
        for intended in self.operations:
            got = by_index.get(intended.index)
            if got is None:
                raise ProtocolViolationError(
                    f"Parsed {label} transaction lacks operation {intended.index}", state=self.state
                )

            expected_value = _operation_value(intended)
            got_value = _operation_value(got)
            if got_value is None or abs(got_value) != expected_value:
                raise ProtocolViolationError(
                    f"Parsed {label} operation {intended.index} amount "
                    f"{got.amount.value if got.amount else None} != {expected_value}",
                    state=self.state,
                )

            expected_address = intended.account.address if intended.account else ""
            got_address = got.account.address if got.account else ""
            if expected_address and got_address and expected_address.lower() != got_address.lower():
                raise ProtocolViolationError(
                    f"Parsed {label} operation {intended.index} address {got_address} "
                    f"!= {expected_address}",
                    state=self.state,
                )

        logger.debug(f"Parsed {label} transaction matches {len(decoded)} operations")

    def _verify_signed_layout(self, signed_hex: str, signature: Signature) -> SignedTransaction:
        try:
            decoded = SignedTransaction.from_hex(signed_hex)
        except TransactionDecodeError as e:
            raise ProtocolViolationError(f"Signed transaction layout: {e}", state=self.state) from e

        logger.debug(f"Signed transaction fields: {decoded.describe()}")

        expected = (
            _operation_value(self.operations[DESTINATION_INDEX]),
            _operation_value(self.operations[CHANGE_INDEX]),
            _operation_value(self.operations[FEE_INDEX]),
        )
        if (decoded.amount, decoded.change, decoded.fee) != expected:
            raise ProtocolViolationError(
                f"Signed transaction amounts {(decoded.amount, decoded.change, decoded.fee)} "
                f"!= intended {expected}",
                state=self.state,
            )
        if decoded.signature.hex() != signature.hex_bytes:
            raise ProtocolViolationError(
                "Signed transaction does not carry our signature", state=self.state
            )
        return decoded

    # ======================
    # Helpers
    # ======================

    def _validate_amounts(self, amount: int, fee: Optional[int]) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise TransferValidationError(f"Amount must be a positive integer, got {amount!r}", state=self.state)
        if amount > MAX_AMOUNT:
            raise TransferValidationError(f"Amount exceeds 64-bit range: {amount}", state=self.state)
        if fee is None:
            return
        if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
            raise TransferValidationError(f"Fee must be a non-negative integer, got {fee!r}", state=self.state)
        if fee > MAX_AMOUNT:
            raise TransferValidationError(f"Fee exceeds 64-bit range: {fee}", state=self.state)

    async def _ledger(self, call):
        """Await a client call, converting transport errors into step errors."""
        try:
            return await call
        except LedgerTransportError as e:
            raise LedgerStepError(
                f"{self.state.value} failed: {e.message}",
                state=self.state,
                body=e.body,
                status_code=e.status_code,
            ) from e

    def _transition(self, state: TxState) -> None:
        self.state = state
        self.status = STATUS_MESSAGES[state]
        logger.info(f"[{state.value}] {self.status}")
        self._notify()

    def _fail(self, error: Exception) -> None:
        failed_in = self.state
        self.error = error
        self.state = TxState.FAILED
        self.status = f"{STATUS_MESSAGES[TxState.FAILED]}: {error}"
        logger.error(f"Transfer failed during {failed_in.value}: {error}")
        self._notify()

    def _notify(self) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(self.state, self.status)
        except Exception as e:
            logger.warning(f"Status observer raised: {e}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(state={self.state.value}, receiver=0x{self._receiver_tag[:16]})"


def _is_hex(value: str) -> bool:
    try:
        bytes.fromhex(value if len(value) % 2 == 0 else "0" + value)
    except ValueError:
        return False
    return True
