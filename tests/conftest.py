"""Pytest configuration and fixtures.

The ledger node is faked in memory and mounted on ``httpx.MockTransport`` so
no test touches the network.
"""

import copy
import hashlib
import json
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio

from mochimo_tx.config import Settings
from mochimo_tx.rosetta.client import LedgerClient
from mochimo_tx.signing.base import Signer
from mochimo_tx.transaction.codec import ADDRESS_SIZE, SIGNATURE_SIZE, SignedTransaction

SENDER_HEX = "a1" * ADDRESS_SIZE
CHANGE_HEX = "c2" * ADDRESS_SIZE
RECEIVER_TAG = "0123456789abcdef01234567"
TIP_INDEX = 812345


def address_block(address: str) -> bytes:
    """Deterministic 2208-byte stand-in for an address."""
    return hashlib.sha256(address.lower().encode()).digest() * (ADDRESS_SIZE // 32)


def strip_0x(value: str) -> str:
    value = value.lower()
    return value[2:] if value.startswith("0x") else value


class FakeSigner(Signer):
    """Signer that records digests and returns a digest-derived signature."""

    def __init__(self, address: str):
        self._address = address
        self.calls: list[bytes] = []

    def sign(self, digest: bytes) -> bytes:
        self.calls.append(digest)
        return digest * (SIGNATURE_SIZE // 32)

    def address_hex(self) -> str:
        return self._address


class FakeLedgerNode:
    """In-memory Construction API node."""

    def __init__(self, balance: int = 1_000_000_000, suggested_fee: Optional[int] = None):
        self.balance = balance
        self.suggested_fee = suggested_fee
        self.requests: list[tuple[str, dict]] = []
        # path -> (status, body); a str body is sent as raw text
        self.overrides: dict[str, tuple[int, Any]] = {}
        self.metadata_override: Optional[dict] = None
        self.payload_hex_override: Optional[str] = None
        self.signed_hex_override: Optional[str] = None
        self.parse_hook: Optional[Callable[[list, bool], list]] = None
        self.operations: list[dict] = []
        self.unsigned_hex: Optional[str] = None

    @property
    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]

    def bodies(self, path: str) -> list[dict]:
        return [body for p, body in self.requests if p == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content)
        self.requests.append((path, body))

        if path in self.overrides:
            status, data = self.overrides[path]
            if isinstance(data, str):
                return httpx.Response(status, text=data)
            return httpx.Response(status, json=data)

        route = getattr(self, "_" + path.strip("/").replace("/", "_"), None)
        if route is None:
            return httpx.Response(404, json={"code": 404, "message": f"no route {path}"})
        return httpx.Response(200, json=route(body))

    # ======================
    # Routes
    # ======================

    def _network_status(self, body):
        return {
            "current_block_identifier": {"index": TIP_INDEX, "hash": "0x" + "11" * 32},
            "genesis_block_identifier": {"index": 0, "hash": "0x" + "00" * 32},
            "current_block_timestamp": 1_700_000_000_000,
        }

    def _network_options(self, body):
        return {
            "version": {"rosetta_version": "1.4.13", "node_version": "2.4.3"},
            "allow": {
                "operation_statuses": [{"status": "SUCCESS", "successful": True}],
                "operation_types": ["TRANSFER"],
                "errors": [{"code": 12, "message": "bad signature", "retriable": False}],
                "mempool_coins": False,
                "transaction_hash_case": "lower_case",
            },
        }

    def _block(self, body):
        index = body["block_identifier"]["index"]
        return {
            "block": {
                "block_identifier": {"index": index, "hash": "0x" + "33" * 32},
                "parent_block_identifier": {"index": index - 1, "hash": "0x" + "32" * 32},
                "timestamp": 1_700_000_000_000,
                "transactions": [],
            }
        }

    def _account_balance(self, body):
        return {
            "block_identifier": {"index": TIP_INDEX, "hash": "0x" + "11" * 32},
            "balances": [{"value": str(self.balance), "currency": {"symbol": "MCM", "decimals": 0}}],
        }

    def _mempool(self, body):
        return {"transaction_identifiers": [{"hash": "0x" + "22" * 32}]}

    def _construction_derive(self, body):
        digest = hashlib.sha256(strip_0x(body["public_key"]["hex_bytes"]).encode()).hexdigest()
        return {
            "account_identifier": {
                "address": "0x" + digest[:40],
                "metadata": {"tag": "0x" + digest[:24]},
            }
        }

    def _construction_preprocess(self, body):
        ops = body["operations"]
        return {
            "options": {
                "source_address": ops[0]["account"]["address"],
                "destination_tag": ops[1]["account"]["address"],
                "change_address": ops[2]["account"]["address"],
            },
            "required_public_keys": [ops[0]["account"]],
        }

    def _construction_metadata(self, body):
        if self.metadata_override is not None:
            return self.metadata_override
        metadata = {"source_balance": str(self.balance), "source_nonce": 7}
        if self.suggested_fee is not None:
            metadata["suggested_fee"] = str(self.suggested_fee)
        return {"metadata": metadata}

    def _construction_payloads(self, body):
        ops = body["operations"]
        self.operations = ops
        by_index = {op["operation_identifier"]["index"]: op for op in ops}
        unsigned = SignedTransaction(
            source_address=address_block(by_index[0]["account"]["address"]),
            destination_address=address_block(by_index[1]["account"]["address"]),
            change_address=address_block(by_index[2]["account"]["address"]),
            amount=int(by_index[1]["amount"]["value"]),
            change=int(by_index[2]["amount"]["value"]),
            fee=int(by_index[3]["amount"]["value"]),
            signature=bytes(SIGNATURE_SIZE),
        ).unsigned_bytes()
        self.unsigned_hex = unsigned.hex()
        return {
            "unsigned_transaction": self.unsigned_hex,
            "payloads": [
                {
                    "address": by_index[0]["account"]["address"],
                    "hex_bytes": self.payload_hex_override or self.unsigned_hex,
                    "signature_type": "wotsp",
                }
            ],
        }

    def _construction_parse(self, body):
        ops = copy.deepcopy(self.operations)
        if self.parse_hook is not None:
            ops = self.parse_hook(ops, body["signed"])
        response = {"operations": ops}
        if body["signed"]:
            response["account_identifier_signers"] = [ops[0]["account"]] if ops else []
        return response

    def _construction_combine(self, body):
        signed = body["unsigned_transaction"] + body["signatures"][0]["hex_bytes"]
        return {"signed_transaction": self.signed_hex_override or signed}

    def _construction_hash(self, body):
        digest = hashlib.sha256(bytes.fromhex(body["signed_transaction"])).hexdigest()
        return {"transaction_identifier": {"hash": "0x" + digest}}

    def _construction_submit(self, body):
        return self._construction_hash(body)


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only (no .env file)."""
    return Settings(_env_file=None)


@pytest.fixture
def node() -> FakeLedgerNode:
    return FakeLedgerNode()


@pytest_asyncio.fixture
async def client(node: FakeLedgerNode):
    """Ledger client wired to the fake node."""
    ledger = LedgerClient(base_url="http://node.test", transport=httpx.MockTransport(node.handler))
    yield ledger
    await ledger.close()


@pytest.fixture
def sender() -> FakeSigner:
    return FakeSigner(SENDER_HEX)


@pytest.fixture
def change() -> FakeSigner:
    return FakeSigner(CHANGE_HEX)
