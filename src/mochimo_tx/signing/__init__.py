"""Signing capabilities.

Provides the interfaces the construction pipeline consumes:
- Signer: one WOTS key (external implementation)
- Hasher: digest function applied to the unsigned transaction
- OneTimeSigner: enforces single use of a signer handle
"""

from mochimo_tx.signing.base import (
    Hasher,
    OneTimeSigner,
    Sha256Hasher,
    Signer,
    SignerConsumedError,
    SigningError,
)

__all__ = [
    "Hasher",
    "OneTimeSigner",
    "Sha256Hasher",
    "Signer",
    "SignerConsumedError",
    "SigningError",
]
