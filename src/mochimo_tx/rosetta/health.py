"""Node health probe and balance lookup."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from mochimo_tx.rosetta.client import LedgerClient, LedgerTransportError

logger = logging.getLogger(__name__)


@dataclass
class HealthResult:
    """Outcome of a health probe."""
    ok: bool
    height: Optional[int] = None
    latency_ms: Optional[int] = None
    error: Optional[str] = None


async def check_service_health(client: LedgerClient, timeout: float = 4.0) -> HealthResult:
    """Probe ``/network/status`` within ``timeout`` seconds.

    Never raises; failures are reported in the result.
    """
    start = time.perf_counter()
    try:
        status = await asyncio.wait_for(client.get_network_status(), timeout=timeout)
        height = status.current_block_identifier.index
        if height is None or height < 0:
            raise ValueError("Invalid height")
        latency = round((time.perf_counter() - start) * 1000)
        return HealthResult(ok=True, height=height, latency_ms=latency)
    except asyncio.TimeoutError:
        error = "Timeout"
    except (LedgerTransportError, ValueError) as e:
        error = str(e)

    latency = round((time.perf_counter() - start) * 1000)
    logger.warning(f"Health check failed for {client.base_url}: {error}")
    return HealthResult(ok=False, latency_ms=latency, error=error)


async def get_balance(client: LedgerClient, address: str) -> int:
    """Balance of ``address`` in base units; 0 for unknown accounts."""
    try:
        response = await client.get_account_balance(address)
    except LedgerTransportError as e:
        if "account not found" in e.message.lower():
            return 0
        raise

    if not response.balances:
        return 0
    return response.balances[0].as_int
