"""Command-line access to the ledger node.

Usage:
    mochimo-tx status
    mochimo-tx health
    mochimo-tx balance 0x<tag>
    mochimo-tx hash <signed-hex>
    mochimo-tx decode <signed-hex>      # local, no network
"""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal
from typing import Optional

from mochimo_tx.config import Settings, get_settings
from mochimo_tx.rosetta.client import LedgerClient, LedgerTransportError
from mochimo_tx.rosetta.factory import get_ledger_client, reset_ledger_client
from mochimo_tx.rosetta.health import check_service_health, get_balance
from mochimo_tx.rosetta.types import BlockIdentifier
from mochimo_tx.transaction.codec import SignedTransaction, TransactionDecodeError

logger = logging.getLogger(__name__)


def format_amount(value: int, decimals: int) -> str:
    """Format base units as a decimal string, e.g. 1500000000 -> '1.500000000'."""
    return f"{Decimal(value).scaleb(-decimals):.{decimals}f}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mochimo-tx", description="Mochimo Construction API client")
    parser.add_argument("--url", help="Node base URL (overrides LEDGER_API_URL)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Current network status")
    sub.add_parser("options", help="Supported operations and errors")
    sub.add_parser("health", help="Probe node health")
    sub.add_parser("mempool", help="List mempool transaction identifiers")
    sub.add_parser("config", help="Show effective configuration")

    balance = sub.add_parser("balance", help="Account balance")
    balance.add_argument("address", help="Account address or tag (0x...)")

    block = sub.add_parser("block", help="Fetch a block by index")
    block.add_argument("index", type=int)

    tx_hash = sub.add_parser("hash", help="Transaction identifier of a signed transaction")
    tx_hash.add_argument("signed_transaction")

    decode = sub.add_parser("decode", help="Decode a signed transaction locally")
    decode.add_argument("signed_transaction")

    return parser


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run_command(args: argparse.Namespace, client: LedgerClient, settings: Settings) -> int:
    """Run one network command. Returns the process exit code."""
    if args.command == "status":
        _print((await client.get_network_status()).to_wire())
    elif args.command == "options":
        _print((await client.get_network_options()).to_wire())
    elif args.command == "mempool":
        _print((await client.get_mempool()).to_wire())
    elif args.command == "block":
        _print((await client.get_block(BlockIdentifier(index=args.index))).to_wire())
    elif args.command == "hash":
        _print((await client.construction_hash(args.signed_transaction)).to_wire())
    elif args.command == "balance":
        value = await get_balance(client, args.address)
        _print({
            "address": args.address,
            "balance": str(value),
            "display": f"{format_amount(value, settings.display_decimals)} {settings.currency_symbol}",
        })
    elif args.command == "health":
        result = await check_service_health(client, timeout=settings.health_timeout)
        _print(result.__dict__)
        return 0 if result.ok else 1
    return 0


def decode_command(signed_hex: str) -> int:
    try:
        tx = SignedTransaction.from_hex(signed_hex)
    except TransactionDecodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _print(tx.describe())
    return 0


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    if args.url:
        client = LedgerClient(
            base_url=args.url,
            network_identifier=settings.network_identifier,
            timeout=settings.request_timeout,
        )
    else:
        client = get_ledger_client()

    try:
        return await run_command(args, client, settings)
    except LedgerTransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if args.url:
            await client.close()
        else:
            await reset_ledger_client()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    log_level = logging.DEBUG if (args.debug or settings.debug) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "config":
        _print(settings.get_safe_dict())
        return 0
    if args.command == "decode":
        return decode_command(args.signed_transaction)

    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
