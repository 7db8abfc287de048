"""Factory for the shared ledger client.

The client is safe to share between orchestrators, so one instance per
process is built from settings and reused.
"""

import logging
from typing import Optional

from mochimo_tx.config import get_settings
from mochimo_tx.rosetta.client import LedgerClient

logger = logging.getLogger(__name__)

_client_instance: Optional[LedgerClient] = None


def get_ledger_client() -> LedgerClient:
    """Get the configured ledger client.

    Returns singleton instance built from settings.
    """
    global _client_instance

    if _client_instance is not None:
        return _client_instance

    settings = get_settings()
    _client_instance = LedgerClient(
        base_url=settings.ledger_api_url,
        network_identifier=settings.network_identifier,
        timeout=settings.request_timeout,
    )
    logger.info(f"Initialized {_client_instance!r}")
    return _client_instance


async def reset_ledger_client() -> None:
    """Close and drop the client instance (for testing)."""
    global _client_instance

    if _client_instance is not None:
        await _client_instance.close()
    _client_instance = None
