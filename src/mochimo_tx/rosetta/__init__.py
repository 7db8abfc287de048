"""Construction API transport.

Wraps each remote procedure of the node (network, block, account, mempool and
the construction endpoints) as an async method on ``LedgerClient``.
"""

from mochimo_tx.rosetta.client import LedgerClient, LedgerTransportError
from mochimo_tx.rosetta.types import (
    AccountIdentifier,
    Amount,
    Currency,
    NetworkIdentifier,
    Operation,
    PublicKey,
    Signature,
    SigningPayload,
)

__all__ = [
    "AccountIdentifier",
    "Amount",
    "Currency",
    "LedgerClient",
    "LedgerTransportError",
    "NetworkIdentifier",
    "Operation",
    "PublicKey",
    "Signature",
    "SigningPayload",
]
