"""Wire models for the Construction API.

Amount values are decimal strings on the wire and are never converted to
floats. Response models ignore fields they do not know about; request models
are serialized with ``exclude_none`` so optional fields are omitted.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WireModel(BaseModel):
    """Base for all wire models."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


# ======================
# Identifiers
# ======================


class NetworkIdentifier(WireModel):
    """Network this client talks to. Fixed per client instance."""

    model_config = ConfigDict(frozen=True)

    blockchain: str
    network: str


class BlockIdentifier(WireModel):
    """Reference to a block by index, hash, or both."""

    index: Optional[int] = None
    hash: Optional[str] = None

    @model_validator(mode="after")
    def _require_index_or_hash(self) -> "BlockIdentifier":
        if self.index is None and self.hash is None:
            raise ValueError("block identifier needs an index or a hash")
        return self


class TransactionIdentifier(WireModel):
    hash: str


class OperationIdentifier(WireModel):
    index: int


class AccountIdentifier(WireModel):
    """Ledger account. ``metadata.tag`` may carry the persistent tag."""

    address: str
    metadata: Optional[dict[str, Any]] = None

    @property
    def tag(self) -> Optional[str]:
        if self.metadata:
            return self.metadata.get("tag")
        return None


class Currency(WireModel):
    symbol: str
    decimals: int


class Amount(WireModel):
    value: str = Field(..., description="Signed decimal string in base units")
    currency: Currency

    @property
    def as_int(self) -> int:
        return int(self.value)


class Operation(WireModel):
    """One leg of value movement."""

    operation_identifier: OperationIdentifier
    type: str
    status: Optional[str] = None
    account: Optional[AccountIdentifier] = None
    amount: Optional[Amount] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def index(self) -> int:
        return self.operation_identifier.index


class Transaction(WireModel):
    transaction_identifier: TransactionIdentifier
    operations: list[Operation] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None


class Block(WireModel):
    block_identifier: BlockIdentifier
    parent_block_identifier: Optional[BlockIdentifier] = None
    timestamp: Optional[int] = None
    transactions: list[Transaction] = Field(default_factory=list)


class PublicKey(WireModel):
    """Public key. ``curve_type`` is a signature-scheme tag, not a curve."""

    hex_bytes: str
    curve_type: str


class SigningPayload(WireModel):
    hex_bytes: str
    signature_type: Optional[str] = None
    address: Optional[str] = None
    account_identifier: Optional[AccountIdentifier] = None
    metadata: Optional[dict[str, Any]] = None


class Signature(WireModel):
    """Signature over ``signing_payload.hex_bytes``."""

    signing_payload: SigningPayload
    public_key: PublicKey
    signature_type: str
    hex_bytes: str


# ======================
# Network / data API
# ======================


class NetworkStatus(WireModel):
    current_block_identifier: BlockIdentifier
    genesis_block_identifier: Optional[BlockIdentifier] = None
    current_block_timestamp: Optional[int] = None
    peers: list[dict[str, Any]] = Field(default_factory=list)


class Version(WireModel):
    rosetta_version: Optional[str] = None
    node_version: Optional[str] = None
    middleware_version: Optional[str] = None


class OperationStatus(WireModel):
    status: str
    successful: bool


class ErrorDescription(WireModel):
    code: int
    message: str
    retriable: bool = False


class Allow(WireModel):
    operation_statuses: list[OperationStatus] = Field(default_factory=list)
    operation_types: list[str] = Field(default_factory=list)
    errors: list[ErrorDescription] = Field(default_factory=list)
    mempool_coins: bool = False
    transaction_hash_case: Optional[str] = None


class NetworkOptions(WireModel):
    version: Optional[Version] = None
    allow: Allow = Field(default_factory=Allow)


class NetworkInfo(WireModel):
    """Joined result of the status and options fan-out."""

    status: NetworkStatus
    options: NetworkOptions


class BlockResponse(WireModel):
    block: Optional[Block] = None


class AccountBalanceResponse(WireModel):
    block_identifier: Optional[BlockIdentifier] = None
    balances: list[Amount] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None


class MempoolResponse(WireModel):
    transaction_identifiers: list[TransactionIdentifier] = Field(default_factory=list)


# ======================
# Construction API
# ======================


class ConstructionDeriveResponse(WireModel):
    account_identifier: AccountIdentifier
    metadata: Optional[dict[str, Any]] = None


class ConstructionPreprocessResponse(WireModel):
    options: Optional[dict[str, Any]] = None
    required_public_keys: list[AccountIdentifier] = Field(default_factory=list)


def parse_base_units(value: Any) -> int:
    """Integer base units from a decimal string or JSON integer.

    Raises:
        ValueError: For floats, booleans or non-integer strings
    """
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError(f"expected an integer amount, got {value!r}")
    return int(value)


class ConstructionMetadataResponse(WireModel):
    metadata: dict[str, Any] = Field(default_factory=dict)
    suggested_fee: list[Amount] = Field(default_factory=list)

    @property
    def source_balance(self) -> Optional[int]:
        value = self.metadata.get("source_balance")
        return None if value is None else parse_base_units(value)

    @property
    def fee_suggestion(self) -> Optional[int]:
        """Fee suggested by the node, if any."""
        value = self.metadata.get("suggested_fee")
        if value is not None:
            return parse_base_units(value)
        if self.suggested_fee:
            return self.suggested_fee[0].as_int
        return None


class ConstructionPayloadsResponse(WireModel):
    unsigned_transaction: str
    payloads: list[SigningPayload] = Field(default_factory=list)


class ConstructionParseResponse(WireModel):
    operations: list[Operation] = Field(default_factory=list)
    account_identifier_signers: list[AccountIdentifier] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None


class ConstructionCombineResponse(WireModel):
    signed_transaction: str


class TransactionIdentifierResponse(WireModel):
    """Response of both ``/construction/hash`` and ``/construction/submit``."""

    transaction_identifier: TransactionIdentifier
    metadata: Optional[dict[str, Any]] = None
