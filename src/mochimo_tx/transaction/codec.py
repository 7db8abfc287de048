"""Fixed binary layout of a signed transaction.

The signed transaction is a positional concatenation, no length prefixes or
delimiters:

    offset  size  field
    0       2208  source address (WOTS public key + tag)
    2208    2208  destination address
    4416    2208  change address
    6624    8     amount        (big-endian unsigned)
    6632    8     change        (big-endian unsigned)
    6640    8     fee           (big-endian unsigned)
    6648    2144  WOTS signature
    8792          end

Decoding anything that is not exactly 8792 bytes fails.
"""

import logging
import struct
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ADDRESS_SIZE = 2208
AMOUNT_SIZE = 8
SIGNATURE_SIZE = 2144

SOURCE_OFFSET = 0
DESTINATION_OFFSET = SOURCE_OFFSET + ADDRESS_SIZE
CHANGE_ADDRESS_OFFSET = DESTINATION_OFFSET + ADDRESS_SIZE
AMOUNT_OFFSET = CHANGE_ADDRESS_OFFSET + ADDRESS_SIZE
CHANGE_OFFSET = AMOUNT_OFFSET + AMOUNT_SIZE
FEE_OFFSET = CHANGE_OFFSET + AMOUNT_SIZE
SIGNATURE_OFFSET = FEE_OFFSET + AMOUNT_SIZE

UNSIGNED_TX_SIZE = SIGNATURE_OFFSET
SIGNED_TX_SIZE = SIGNATURE_OFFSET + SIGNATURE_SIZE

MAX_AMOUNT = 2**64 - 1

_AMOUNTS = struct.Struct(">QQQ")


class TransactionDecodeError(ValueError):
    """Raised when bytes do not match the signed transaction layout."""
    pass


def _hex_to_bytes(value: str) -> bytes:
    value = value.strip()
    if value[:2].lower() == "0x":
        value = value[2:]
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise TransactionDecodeError(f"Invalid hex: {e}") from e


@dataclass(frozen=True)
class SignedTransaction:
    """Decoded signed transaction."""

    source_address: bytes
    destination_address: bytes
    change_address: bytes
    amount: int
    change: int
    fee: int
    signature: bytes

    def __post_init__(self):
        for name in ("source_address", "destination_address", "change_address"):
            size = len(getattr(self, name))
            if size != ADDRESS_SIZE:
                raise ValueError(f"{name} must be {ADDRESS_SIZE} bytes, got {size}")
        if len(self.signature) != SIGNATURE_SIZE:
            raise ValueError(
                f"signature must be {SIGNATURE_SIZE} bytes, got {len(self.signature)}"
            )
        for name in ("amount", "change", "fee"):
            value = getattr(self, name)
            if not 0 <= value <= MAX_AMOUNT:
                raise ValueError(f"{name} out of 64-bit range: {value}")

    @property
    def total_debit(self) -> int:
        """Amount leaving the source: sent + change + fee."""
        return self.amount + self.change + self.fee

    def unsigned_bytes(self) -> bytes:
        """Everything before the signature."""
        return (
            self.source_address
            + self.destination_address
            + self.change_address
            + _AMOUNTS.pack(self.amount, self.change, self.fee)
        )

    def to_bytes(self) -> bytes:
        return self.unsigned_bytes() + self.signature

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, data: bytes) -> "SignedTransaction":
        if len(data) != SIGNED_TX_SIZE:
            raise TransactionDecodeError(
                f"Signed transaction must be {SIGNED_TX_SIZE} bytes, got {len(data)}"
            )

        amount, change, fee = _AMOUNTS.unpack_from(data, AMOUNT_OFFSET)
        return cls(
            source_address=bytes(data[SOURCE_OFFSET:DESTINATION_OFFSET]),
            destination_address=bytes(data[DESTINATION_OFFSET:CHANGE_ADDRESS_OFFSET]),
            change_address=bytes(data[CHANGE_ADDRESS_OFFSET:AMOUNT_OFFSET]),
            amount=amount,
            change=change,
            fee=fee,
            signature=bytes(data[SIGNATURE_OFFSET:SIGNED_TX_SIZE]),
        )

    @classmethod
    def from_hex(cls, value: str) -> "SignedTransaction":
        """Decode from hex, with or without a ``0x`` prefix."""
        return cls.from_bytes(_hex_to_bytes(value))

    def describe(self) -> dict:
        """Short printable summary (addresses truncated)."""
        return {
            "source_address": self.source_address[:32].hex() + "...",
            "destination_address": self.destination_address[:32].hex() + "...",
            "change_address": self.change_address[:32].hex() + "...",
            "amount": self.amount,
            "change": self.change,
            "fee": self.fee,
            "signature": self.signature[:32].hex() + "...",
        }
