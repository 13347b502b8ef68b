"""
OKX Trading Gateway - Command Line Entry Point

Runs a single gateway operation and prints the result as JSON.

Usage:
    python -m okx_gateway.main balance
    python -m okx_gateway.main positions
    python -m okx_gateway.main price BTC-USDT-SWAP
    python -m okx_gateway.main precision BTC-USDT-SWAP
    python -m okx_gateway.main open BTC-USDT-SWAP long 0.01 10
    python -m okx_gateway.main close BTC-USDT-SWAP long          # size from positions
    python -m okx_gateway.main stop-loss BTC-USDT-SWAP long 0.01 58000
    python -m okx_gateway.main take-profit BTC-USDT-SWAP long 0.01 72000
    python -m okx_gateway.main cancel BTC-USDT-SWAP

Configuration:
    Credentials and gateway settings come from OKX_* environment variables
    or a .env file (see okx_gateway.config).

    LOG_LEVEL                 Logging level (DEBUG/INFO/WARNING/ERROR)

Exit codes:
    0   success
    1   the exchange or the gateway reported an error, or the
        configuration is invalid
    2   missing credentials
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from decimal import Decimal
from typing import Any, Optional, Sequence

from pydantic import ValidationError

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

from okx_gateway.config import Settings  # noqa: E402
from okx_gateway.execution import GatewayError, TradingGateway  # noqa: E402

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_CREDENTIALS = 2

# Commands that only touch public endpoints
PUBLIC_COMMANDS = {"price", "precision"}


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="okx-gateway",
        description="OKX Trading Gateway",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("balance", help="Account balance")
    sub.add_parser("positions", help="Open positions")

    price = sub.add_parser("price", help="Last traded price")
    price.add_argument("symbol")

    precision = sub.add_parser("precision", help="Quantity precision")
    precision.add_argument("symbol")

    open_ = sub.add_parser("open", help="Open a position with a market order")
    open_.add_argument("symbol")
    open_.add_argument("side", choices=["long", "short"])
    open_.add_argument("quantity", type=Decimal)
    open_.add_argument("leverage", type=int)

    close = sub.add_parser("close", help="Close a position")
    close.add_argument("symbol")
    close.add_argument("side", choices=["long", "short"])
    close.add_argument("quantity", type=Decimal, nargs="?", default=Decimal("0"))

    for name, help_text in (
        ("stop-loss", "Attach a stop-loss trigger"),
        ("take-profit", "Attach a take-profit trigger"),
    ):
        trigger = sub.add_parser(name, help=help_text)
        trigger.add_argument("symbol")
        trigger.add_argument("side", choices=["long", "short"])
        trigger.add_argument("quantity", type=Decimal)
        trigger.add_argument("price", type=Decimal)

    cancel = sub.add_parser("cancel", help="Cancel pending algo orders")
    cancel.add_argument("symbol")

    return parser.parse_args(argv)


async def run_command(gateway: TradingGateway, args: argparse.Namespace) -> Any:
    """Run one command and return a JSON-serializable result."""
    command = args.command

    if command == "balance":
        return (await gateway.get_balance()).to_dict()
    if command == "positions":
        return [p.to_dict() for p in await gateway.get_positions()]
    if command == "price":
        return {"symbol": args.symbol, "price": str(await gateway.get_market_price(args.symbol))}
    if command == "precision":
        return {"symbol": args.symbol, "precision": await gateway.get_precision(args.symbol)}
    if command == "open":
        result = await gateway.open_position(args.symbol, args.quantity, args.leverage, args.side)
        return result.to_dict()
    if command == "close":
        result = await gateway.close_position(args.symbol, args.quantity, args.side)
        return result.to_dict()
    if command == "stop-loss":
        result = await gateway.set_stop_loss(args.symbol, args.side, args.quantity, args.price)
        return result.to_dict()
    if command == "take-profit":
        result = await gateway.set_take_profit(args.symbol, args.side, args.quantity, args.price)
        return result.to_dict()
    if command == "cancel":
        return (await gateway.cancel_all_orders(args.symbol)).to_dict()

    raise ValueError(f"Unknown command: {command}")


async def main_async(args: argparse.Namespace, settings: Optional[Settings] = None) -> int:
    """Async main function."""
    if settings is None:
        try:
            settings = Settings()
        except ValidationError as e:
            logger.error(f"Invalid OKX_* configuration: {e}")
            return EXIT_ERROR

    if args.command not in PUBLIC_COMMANDS and not settings.has_credentials:
        logger.error("OKX_API_KEY, OKX_SECRET_KEY and OKX_PASSPHRASE are required")
        return EXIT_NO_CREDENTIALS

    async with TradingGateway.from_settings(settings) as gateway:
        try:
            result = await run_command(gateway, args)
        except (GatewayError, ValueError) as e:
            logger.error(f"{args.command} failed: {e}")
            return EXIT_ERROR

    print(json.dumps(result, indent=2))
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Override log level if specified
    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
