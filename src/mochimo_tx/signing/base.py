"""Capability interfaces for hashing and one-time signing.

Signing flow:
1. Node returns the unsigned transaction bytes
2. Bytes are hashed with the ledger's hasher
3. Signer signs the digest (the WOTS key is never exposed)
4. Signature is combined with the unsigned transaction by the node

A WOTS key may sign exactly one message. ``OneTimeSigner`` turns that rule into
state on the handle: after one successful ``sign`` the handle is consumed and
any further use raises ``SignerConsumedError``.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Union

logger = logging.getLogger(__name__)


class SigningError(Exception):
    """Exception raised when signing fails."""
    pass


class SignerConsumedError(SigningError):
    """Exception raised when a one-time signer is used a second time."""
    pass


class Signer(ABC):
    """Abstract signer backed by one WOTS key."""

    @abstractmethod
    def sign(self, digest: bytes) -> bytes:
        """Sign a message digest.

        Args:
            digest: Hash of the unsigned transaction

        Returns:
            Raw signature bytes
        """
        pass

    @abstractmethod
    def address_hex(self) -> str:
        """Public address (WOTS public key) as a hex string."""
        pass


class Hasher(ABC):
    """Deterministic, pure hash function."""

    @abstractmethod
    def hash(self, data: bytes) -> bytes:
        pass


class Sha256Hasher(Hasher):
    """SHA-256, the digest the ledger signs over."""

    def hash(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()


def normalize_hex(value: str) -> str:
    """Lower-case hex without a ``0x`` prefix."""
    value = value.strip().lower()
    return value[2:] if value.startswith("0x") else value


class OneTimeSigner(Signer):
    """Wraps a signer and refuses to sign twice.

    Example:
        signer = OneTimeSigner(wallet)
        sig = signer.sign(digest)
        signer.sign(other_digest)  # raises SignerConsumedError
    """

    def __init__(self, signer: Signer):
        if isinstance(signer, OneTimeSigner):
            raise TypeError("signer is already one-time wrapped")
        self._signer = signer
        self._consumed = False

    @classmethod
    def wrap(cls, signer: Union[Signer, "OneTimeSigner"]) -> "OneTimeSigner":
        """Return ``signer`` itself if already wrapped, else a new wrapper."""
        if isinstance(signer, OneTimeSigner):
            return signer
        return cls(signer)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def address_hex(self) -> str:
        return self._signer.address_hex()

    def sign(self, digest: bytes) -> bytes:
        if self._consumed:
            raise SignerConsumedError(
                f"One-time key {self.address_hex()[:16]}... has already signed a payload"
            )

        try:
            signature = self._signer.sign(digest)
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Signer failed: {e}") from e

        # Consumed only once a signature was produced.
        self._consumed = True
        logger.info(f"One-time key {self.address_hex()[:16]}... consumed")
        return bytes(signature)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(consumed={self._consumed})"
