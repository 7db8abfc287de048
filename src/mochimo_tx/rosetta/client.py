"""Async client for the Mochimo Construction API.

Every call is a single JSON POST that carries ``network_identifier``. The
client never retries and never caches, and it does not interpret ledger error
codes: any non-2xx status, network failure or non-JSON body is raised as a
``LedgerTransportError`` with the remote body attached.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Sequence, TypeVar

import httpx
from pydantic import ValidationError

from mochimo_tx.rosetta.types import (
    AccountBalanceResponse,
    BlockIdentifier,
    BlockResponse,
    ConstructionCombineResponse,
    ConstructionDeriveResponse,
    ConstructionMetadataResponse,
    ConstructionParseResponse,
    ConstructionPayloadsResponse,
    ConstructionPreprocessResponse,
    MempoolResponse,
    NetworkIdentifier,
    NetworkInfo,
    NetworkOptions,
    NetworkStatus,
    Operation,
    PublicKey,
    Signature,
    TransactionIdentifierResponse,
    WireModel,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://ip.leonapp.it:8081"
DEFAULT_NETWORK = NetworkIdentifier(blockchain="mochimo", network="mainnet")

ResponseT = TypeVar("ResponseT", bound=WireModel)


class LedgerTransportError(Exception):
    """HTTP/network failure or unparseable response from the ledger node.

    Attributes:
        endpoint: Path that was called
        status_code: HTTP status, or None if no response was received
        body: Parsed JSON body when available, raw text otherwise
    """

    def __init__(
        self,
        endpoint: str,
        status_code: Optional[int] = None,
        body: Any = None,
        reason: str = "",
    ):
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        self.reason = reason
        super().__init__(self._describe())

    @property
    def message(self) -> str:
        """Remote error message if the body carries one, else the raw body."""
        if isinstance(self.body, dict) and self.body.get("message"):
            return str(self.body["message"])
        if self.body:
            return self.body if isinstance(self.body, str) else json.dumps(self.body)
        return self.reason

    def _describe(self) -> str:
        status = f"HTTP {self.status_code}" if self.status_code is not None else "no response"
        detail = self.message or self.reason
        return f"{self.endpoint} failed ({status}): {detail}"


class LedgerClient:
    """Typed transport to one Construction API endpoint.

    The underlying ``httpx.AsyncClient`` is created lazily and may be shared by
    any number of concurrent orchestrators; base URL and network identifier are
    read-only after construction.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        network_identifier: Optional[NetworkIdentifier] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Node base URL, without trailing slash
            network_identifier: Network sent with every request
            timeout: Per-request timeout in seconds (None = wait indefinitely)
            transport: Optional httpx transport (used to fake the node in tests)
        """
        self._base_url = base_url.rstrip("/")
        self._network_identifier = network_identifier or DEFAULT_NETWORK
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def network_identifier(self) -> NetworkIdentifier:
        return self._network_identifier

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _post(self, endpoint: str, payload: dict, model: type[ResponseT]) -> ResponseT:
        body = {"network_identifier": self._network_identifier.to_wire(), **payload}
        logger.debug(f"POST {endpoint}: {list(body)}")

        try:
            response = await self._get_client().post(endpoint, json=body)
        except httpx.HTTPError as e:
            logger.error(f"Ledger request {endpoint} failed: {e}")
            raise LedgerTransportError(endpoint, reason=str(e) or type(e).__name__) from e

        try:
            data = response.json()
        except ValueError as e:
            raise LedgerTransportError(
                endpoint,
                status_code=response.status_code,
                body=response.text,
                reason="response is not JSON",
            ) from e

        if not response.is_success:
            logger.warning(f"Ledger {endpoint} returned HTTP {response.status_code}: {data}")
            raise LedgerTransportError(endpoint, status_code=response.status_code, body=data)

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise LedgerTransportError(
                endpoint,
                status_code=response.status_code,
                body=data,
                reason=f"unexpected response shape: {e.error_count()} error(s)",
            ) from e

    # ======================
    # Network / data API
    # ======================

    async def initialize(self) -> NetworkInfo:
        """Fetch network status and options concurrently and join them.

        Both requests are awaited to completion before the first failure is
        raised, so no request is left running unobserved.
        """
        status, options = await asyncio.gather(
            self.get_network_status(),
            self.get_network_options(),
            return_exceptions=True,
        )
        for result in (status, options):
            if isinstance(result, BaseException):
                raise result
        return NetworkInfo(status=status, options=options)

    async def get_network_status(self) -> NetworkStatus:
        return await self._post("/network/status", {}, NetworkStatus)

    async def get_network_options(self) -> NetworkOptions:
        return await self._post("/network/options", {}, NetworkOptions)

    async def get_block(self, identifier: BlockIdentifier) -> BlockResponse:
        return await self._post(
            "/block", {"block_identifier": identifier.to_wire()}, BlockResponse
        )

    async def get_account_balance(self, address: str) -> AccountBalanceResponse:
        return await self._post(
            "/account/balance",
            {"account_identifier": {"address": address}},
            AccountBalanceResponse,
        )

    async def get_mempool(self) -> MempoolResponse:
        return await self._post("/mempool", {}, MempoolResponse)

    # ======================
    # Construction API
    # ======================

    async def construction_derive(
        self, public_key_hex: str, curve_type: str = "wotsp"
    ) -> ConstructionDeriveResponse:
        """Resolve a public key to its ledger account identifier."""
        public_key = PublicKey(hex_bytes=public_key_hex, curve_type=curve_type)
        return await self._post(
            "/construction/derive",
            {"public_key": public_key.to_wire()},
            ConstructionDeriveResponse,
        )

    async def construction_preprocess(
        self,
        operations: Sequence[Operation],
        metadata: Optional[dict[str, Any]] = None,
    ) -> ConstructionPreprocessResponse:
        payload: dict[str, Any] = {"operations": [op.to_wire() for op in operations]}
        if metadata is not None:
            payload["metadata"] = metadata
        return await self._post(
            "/construction/preprocess", payload, ConstructionPreprocessResponse
        )

    async def construction_metadata(
        self,
        options: Optional[dict[str, Any]] = None,
        public_keys: Optional[Sequence[PublicKey]] = None,
    ) -> ConstructionMetadataResponse:
        """Fetch source balance, nonce and suggested fee."""
        payload: dict[str, Any] = {}
        if options is not None:
            payload["options"] = options
        if public_keys is not None:
            payload["public_keys"] = [key.to_wire() for key in public_keys]
        return await self._post(
            "/construction/metadata", payload, ConstructionMetadataResponse
        )

    async def construction_payloads(
        self,
        operations: Sequence[Operation],
        metadata: Optional[dict[str, Any]] = None,
        public_keys: Optional[Sequence[PublicKey]] = None,
    ) -> ConstructionPayloadsResponse:
        """Request the unsigned transaction and its signing payloads."""
        payload: dict[str, Any] = {"operations": [op.to_wire() for op in operations]}
        if metadata is not None:
            payload["metadata"] = metadata
        if public_keys is not None:
            payload["public_keys"] = [key.to_wire() for key in public_keys]
        return await self._post(
            "/construction/payloads", payload, ConstructionPayloadsResponse
        )

    async def construction_parse(
        self, transaction: str, signed: bool
    ) -> ConstructionParseResponse:
        """Decode a signed or unsigned transaction back into operations."""
        return await self._post(
            "/construction/parse",
            {"signed": signed, "transaction": transaction},
            ConstructionParseResponse,
        )

    async def construction_combine(
        self, unsigned_transaction: str, signatures: Sequence[Signature]
    ) -> ConstructionCombineResponse:
        return await self._post(
            "/construction/combine",
            {
                "unsigned_transaction": unsigned_transaction,
                "signatures": [sig.to_wire() for sig in signatures],
            },
            ConstructionCombineResponse,
        )

    async def construction_hash(self, signed_transaction: str) -> TransactionIdentifierResponse:
        """Compute the transaction identifier without submitting."""
        return await self._post(
            "/construction/hash",
            {"signed_transaction": signed_transaction},
            TransactionIdentifierResponse,
        )

    async def construction_submit(self, signed_transaction: str) -> TransactionIdentifierResponse:
        return await self._post(
            "/construction/submit",
            {"signed_transaction": signed_transaction},
            TransactionIdentifierResponse,
        )

    def __repr__(self) -> str:
        net = self._network_identifier
        return f"{self.__class__.__name__}(url={self._base_url}, network={net.blockchain}/{net.network})"

