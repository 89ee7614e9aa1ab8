#!/usr/bin/env python3
"""
YT Moonshot Calculator -- Pendle YT-alUSD Points Projection
===========================================================

Projects Almanak points, underlying yield and ROI for YT-alUSD
positions across FDV scenarios, using live Pendle and on-chain TVL data.

Usage:
  python run.py info                                   Program parameters + markets
  python run.py markets                                APYs, liquidity, countdown
  python run.py tvl                                    TVL sources + points distribution
  python run.py trade 1000                             Quote 1,000 alUSD → YT and project it
  python run.py trade 1000 --market oct23              Quote on a specific market
  python run.py project --yt 25000 --cost 1000         Project an existing YT position
  python run.py minfunds                               Minimum funds for 1 point/day

Sources:
  Pendle API    : https://api-v2.pendle.finance/core/docs
  Etherscan V2  : https://docs.etherscan.io/etherscan-v2
  Pendle docs   : https://docs.pendle.finance/ProtocolMechanics/YieldTokenization
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Imports ───────────────────────────────────────────────────────────────

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from moonshot_cli.central_config import PROJECT_NAME, PROJECT_VERSION
from moonshot_cli.commands import (
    cmd_info,
    cmd_markets,
    cmd_minfunds,
    cmd_project,
    cmd_trade,
    cmd_tvl,
)
from moonshot_cli.market_registry import DEFAULT_MARKET, market_keys


# ── CLI Parser ────────────────────────────────────────────────────────────


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yt-moonshot",
        description=f"{PROJECT_NAME} v{PROJECT_VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py trade 1000                         Quote and project 1,000 alUSD
  python run.py project --yt 25000 --cost 1000     Project a YT position you hold
  python run.py tvl --verbose                      TVL breakdown with fetch logs

Environment:
  ETHERSCAN_API_KEY        Etherscan V2 API key (required for TVL data)
  MOONSHOT_MARKET_<KEY>    Override a market address (e.g. MOONSHOT_MARKET_DEC11)
""",
    )
    parser.add_argument(
        "--version", action="version", version=f"{PROJECT_NAME} v{PROJECT_VERSION}"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log data-source activity (INFO)"
    )

    sub = parser.add_subparsers(dest="command", help="Available commands")

    sub.add_parser("info", help="Points program parameters and markets")
    sub.add_parser("markets", help="Live APYs, liquidity and maturity countdown")
    sub.add_parser("tvl", help="TVL sources and daily points distribution")
    sub.add_parser("minfunds", help="Minimum funds to earn 1 point/day per pool")

    trade_p = sub.add_parser("trade", help="Swap quote alUSD → YT plus projection")
    trade_p.add_argument("amount", help="alUSD amount to swap (max 10,000,000)")
    trade_p.add_argument(
        "--market",
        choices=market_keys(),
        default=DEFAULT_MARKET,
        help=f"Market key (default: {DEFAULT_MARKET})",
    )

    project_p = sub.add_parser("project", help="Project an existing YT position")
    project_p.add_argument("--yt", type=float, required=True, help="YT tokens held")
    project_p.add_argument("--cost", type=float, required=True, help="Cost basis in USD")
    project_p.add_argument(
        "--market",
        choices=market_keys(),
        default=DEFAULT_MARKET,
        help=f"Market key (default: {DEFAULT_MARKET})",
    )

    return parser


# ── Main ──────────────────────────────────────────────────────────────────


def main(argv=None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "info":
        cmd_info()
        return 0
    if args.command == "markets":
        return asyncio.run(cmd_markets())
    if args.command == "tvl":
        return asyncio.run(cmd_tvl())
    if args.command == "minfunds":
        return asyncio.run(cmd_minfunds())
    if args.command == "trade":
        return asyncio.run(cmd_trade(args.amount, args.market))
    if args.command == "project":
        return asyncio.run(cmd_project(args.yt, args.cost, args.market))

    parser.print_help()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n❌ Cancelled.")
        sys.exit(130)
