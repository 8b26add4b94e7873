"""Tests for the command-line entry point."""

import json

import pytest
import structlog

from dexroute import cli
from dexroute.errors import NoRoute
from dexroute.routing.pathfinding import Hop
from dexroute.routing.search import build_route
from tests.helpers import NATIVE, USDC, WETH, make_weighted_pool


@pytest.fixture(autouse=True)
def reset_logging():
    """main() reconfigures structlog; restore the defaults afterwards."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fixed_route(monkeypatch):
    """Replace pool discovery with a single weighted WETH -> USDC hop."""
    pool = make_weighted_pool({WETH: 1_000 * 10**18, USDC: 2_000_000 * 10**6})
    route = build_route((Hop(pool, WETH, USDC),), 10**18)

    async def find_route(context, from_token, to_token, amount):
        return route

    monkeypatch.setattr(cli, "find_route", find_route)
    return route


class TestParser:
    """Tests for argument parsing."""

    def test_quote_arguments(self):
        args = cli.build_parser().parse_args(
            ["quote", WETH, USDC, "1000", "--mode", "odos", "--protocol", "odos"]
        )
        assert args.command == "quote"
        assert args.amount == 1000
        assert args.mode == "odos"
        assert args.protocol == ["odos"]

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_unknown_protocol_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["quote", WETH, USDC, "1", "--protocol", "curve"])


class TestMain:
    """Tests for cli.main."""

    def test_route(self, fixed_route, capsys):
        assert cli.main(["route", WETH, USDC, str(10**18), "--to-decimals", "6"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["type"] == "single"
        assert output["amountOut"] == str(fixed_route.amount_out)
        assert output["legs"][0]["protocol"] == "weighted"

    def test_compile_native_input(self, fixed_route, capsys):
        argv = ["compile", NATIVE, USDC, str(10**18), "--to-decimals", "6", "--slippage-bps", "100"]
        assert cli.main(argv) == 0
        call = json.loads(capsys.readouterr().out)["call"]
        assert call["fromToken"] == NATIVE
        assert call["fromAmount"] == str(10**18)
        assert call["wrapOperations"] == [1]
        assert call["useAllBalance"] == [True]
        assert call["encoderCalldata"][0].startswith("0x")

    def test_failure_exit_code(self, monkeypatch, capsys):
        async def no_route(context, from_token, to_token, amount):
            raise NoRoute("nothing")

        monkeypatch.setattr(cli, "find_route", no_route)
        assert cli.main(["route", WETH, USDC, "1"]) == 1
        assert capsys.readouterr().out == ""
