"""Command-line entry point.

Usage:
    python -m dexroute quote <from> <to> <amount> [--mode contract+odos]
    python -m dexroute route <from> <to> <amount>
    python -m dexroute compile <from> <to> <amount> [--slippage-bps 50]

Amounts are in the input token's smallest unit. Settings come from
DEXROUTE_* environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import structlog

from dexroute.config import Settings
from dexroute.context import CoreContext
from dexroute.errors import DexRouteError
from dexroute.execution import CompiledCall, TradeContext, compile_execution_plan
from dexroute.models.quote import Protocol, Quote
from dexroute.models.route import Route, SplitRoute
from dexroute.models.tokens import Token
from dexroute.sources import BundlerSource

logger = structlog.get_logger()


def configure_logging(verbose: bool = False) -> None:
    """Console logging to stderr so stdout carries only the JSON result."""
    log_level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def route_to_dict(route: Route | SplitRoute) -> dict[str, Any]:
    """JSON-ready view of a route; amounts are strings to keep uint256 precision."""
    if isinstance(route, SplitRoute):
        return {
            "type": "split",
            "amountOut": str(route.amount_out),
            "fractions": list(route.fractions),
            "routes": [route_to_dict(r) for r in route.routes],
        }
    return {
        "type": "single",
        "amountIn": str(route.amount_in),
        "amountOut": str(route.amount_out),
        "legs": [
            {
                "pool": leg.pool_id,
                "protocol": leg.kind.value,
                "tokenIn": leg.token_in.address,
                "tokenOut": leg.token_out.address,
                "amountIn": str(leg.amount_in),
                "expectedOutput": str(leg.expected_output),
            }
            for leg in route.legs
        ],
    }


def quote_to_dict(quote: Quote) -> dict[str, Any]:
    data: dict[str, Any] = {
        "protocol": quote.protocol.value,
        "outputAmount": str(quote.output_amount),
        "gasEstimate": quote.gas_estimate,
        "gasCostInToken": str(quote.gas_cost_in_token),
        "netOutput": str(quote.net_output),
    }
    if isinstance(quote.trade_data, (Route, SplitRoute)):
        data["route"] = route_to_dict(quote.trade_data)
    return data


def compiled_to_dict(compiled: CompiledCall) -> dict[str, Any]:
    """Bundler call arguments, calldata hex-encoded."""
    return {
        "fromToken": compiled.from_token,
        "fromAmount": str(compiled.from_amount),
        "toToken": compiled.to_token,
        "encoderTargets": list(compiled.encoder_targets),
        "encoderCalldata": ["0x" + data.hex() for data in compiled.encoder_calldata],
        "wrapOperations": list(compiled.wrap_operations),
        "useAllBalance": [step.use_all_balance for step in compiled.plan.steps],
    }


async def find_route(
    context: CoreContext, from_token: Token, to_token: Token, amount: int
) -> Route | SplitRoute:
    """Search every configured pool source directly (no aggregator APIs)."""
    source = BundlerSource(context.pool_sources(), context.settings)
    pools = await source.fetch_pools(from_token, to_token)
    return source.search.best_route(pools, from_token.address, to_token.address, amount)


async def run_quote(context: CoreContext, args: argparse.Namespace) -> dict[str, Any]:
    from_token = Token(args.from_token, decimals=args.from_decimals)
    to_token = Token(args.to_token, decimals=args.to_decimals)
    protocols = [Protocol(p) for p in args.protocol] if args.protocol else None
    context.set_gas_price(args.gas_price)
    best = await context.aggregator.quote_or_raise(
        from_token,
        to_token,
        args.amount,
        gas_price_wei=context.gas_price_wei,
        native_price_usd=args.native_price,
        token_price_usd=args.token_price,
        wallet_mode=args.mode,
        protocols=protocols,
    )
    return quote_to_dict(best)


async def run_route(context: CoreContext, args: argparse.Namespace) -> dict[str, Any]:
    from_token = Token(args.from_token, decimals=args.from_decimals)
    to_token = Token(args.to_token, decimals=args.to_decimals)
    route = await find_route(context, from_token, to_token, args.amount)
    return route_to_dict(route)


async def run_compile(context: CoreContext, args: argparse.Namespace) -> dict[str, Any]:
    from_token = Token(args.from_token, decimals=args.from_decimals)
    to_token = Token(args.to_token, decimals=args.to_decimals)
    route = await find_route(context, from_token, to_token, args.amount)
    trade = TradeContext(from_token, to_token, args.amount, args.slippage_bps)
    compiled = compile_execution_plan(route, trade, context.settings)
    return {"route": route_to_dict(route), "call": compiled_to_dict(compiled)}


COMMANDS = {"quote": run_quote, "route": run_route, "compile": run_compile}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dexroute", description="DEX quote, route and execution-plan tool"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("quote", "Best quote across the allowed sources"),
        ("route", "Best route over indexed pools"),
        ("compile", "Route and compile the bundler call"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("from_token", help="Address of the token sold (0x0 for native)")
        cmd.add_argument("to_token", help="Address of the token bought")
        cmd.add_argument("amount", type=int, help="Input amount in smallest units")
        cmd.add_argument("--from-decimals", type=int, default=18)
        cmd.add_argument("--to-decimals", type=int, default=18)

    quote = sub.choices["quote"]
    quote.add_argument("--mode", default=None, help="Wallet mode, e.g. contract+odos")
    quote.add_argument(
        "--protocol",
        action="append",
        choices=[p.value for p in Protocol],
        help="Query only this source (repeatable)",
    )
    quote.add_argument("--gas-price", type=float, default=0.0, help="Gas price in gwei")
    quote.add_argument("--native-price", type=float, default=None, help="Native USD price")
    quote.add_argument("--token-price", type=float, default=None, help="Output token USD price")

    sub.choices["compile"].add_argument("--slippage-bps", type=int, default=None)
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    if getattr(args, "slippage_bps", "unset") is None:
        args.slippage_bps = settings.slippage_bps
    context = CoreContext.create(settings)
    try:
        return await COMMANDS[args.command](context, args)
    finally:
        await context.aclose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        result = asyncio.run(run(args, Settings.from_env()))
    except (DexRouteError, ValueError) as e:
        logger.error("command_failed", command=args.command, error=str(e))
        return 1
    print(json.dumps(result, indent=2))
    return 0


__all__ = ["build_parser", "configure_logging", "main"]
