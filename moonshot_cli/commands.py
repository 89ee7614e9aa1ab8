"""
YT Moonshot — Command Implementations
======================================

All CLI command handlers live here, keeping run.py as a thin
argparse dispatcher.  Each public function corresponds to a
subcommand (info, markets, tvl, trade, project, minfunds).

Network-backed commands return an exit status: 0 on success, 1 when a
MoonshotError (data source down, bad input, empty TVL) was reported.
"""

from __future__ import annotations

import math
from typing import Sequence

from moonshot_cli.central_config import PROJECT_NAME, PROJECT_VERSION, config
from moonshot_cli.errors import MoonshotError
from moonshot_cli.formatting import (
    format_currency,
    format_fdv,
    format_number,
    format_trade_quote,
)
from moonshot_cli.market_registry import DEFAULT_MARKET, MARKETS
from moonshot_cli.pendle_client import PendleClient, validate_trade_amount
from moonshot_cli.refresher import CalculatorState, SnapshotStore
from points_math import (
    EarningsProjection,
    MaturityClock,
    analyze_position,
    minimum_funds,
    points_distribution,
)


# ── Helpers ──────────────────────────────────────────────────────────────


async def _load_state() -> CalculatorState:
    print("⏳ Fetching Pendle markets and on-chain TVL…")
    return await SnapshotStore().refresh()


def _fail(exc: MoonshotError) -> int:
    print(f"\n❌ {exc}")
    return 1


def _pct(value: float) -> str:
    return f"{value * 100:.2f}%"


def _print_points(analysis: dict) -> None:
    daily, total = analysis["daily_points"], analysis["total_points"]
    print(f"\n  🎯 Daily points : {format_number(daily.net)} net")
    print(f"                   ({format_number(daily.gross)} gross − {format_number(daily.fee)} Pendle fee 5%)")
    print(f"  📅 To maturity  : {format_number(total.net)} net over {analysis['days_to_maturity']} days")

    earnings = analysis["maturity_earnings"]
    print(f"  💧 Yield only   : {format_currency(earnings['earnings'])} "
          f"(ROI {earnings['roi_pct']:.2f}%, APY {_pct(analysis['underlying_apy'])})")


def _print_scenarios(rows: Sequence[EarningsProjection], breakeven_fdv: float | None) -> None:
    print(f"\n  {'FDV':>7} {'Price':>8} {'Points $':>14} {'Yield $':>12} {'Total $':>14} {'ROI':>9}  Breakeven")
    print("  " + "─" * 80)
    for p in rows:
        icon = "🟢" if p.is_profit else "🔴"
        print(
            f"  {format_fdv(p.fdv):>7} {p.token_price:>8.3f} {format_currency(p.points_usd_value):>14} "
            f"{format_currency(p.underlying_yield_usd):>12} {format_currency(p.total_earnings):>14} "
            f"{p.roi_pct:>8.1f}% {icon} {p.breakeven_status}"
        )
    if breakeven_fdv is None:
        print("\n  ✅ Underlying yield alone covers the cost (no breakeven FDV needed)")
    else:
        price = config.points.token_price(breakeven_fdv)
        print(f"\n  ⚖️  Breakeven FDV: {format_fdv(breakeven_fdv)} (${price:.4f}/token)")


# ── Commands ─────────────────────────────────────────────────────────────


def cmd_info() -> None:
    """Display points program parameters and tracked markets."""
    points = config.points
    print(f"\n🚀 {PROJECT_NAME} v{PROJECT_VERSION}")
    print("=" * 55)
    print("🔗 Protocol   : Pendle V2 (YT-alUSD) × Almanak points")
    print("📡 Data       : Pendle API, Etherscan V2, Lagoon, CoinGecko")
    print()
    print("🎁 Points program:")
    print(f"   Daily emission   : {format_number(points.gross_daily_emission)} "
          f"({format_number(points.daily_emission)} pro-rata + {format_number(points.referral_reserve)} referral)")
    print(f"   Pendle fee       : {points.fee_rate * 100:.0f}% of YT points")
    print(f"   Token supply     : {format_number(points.total_token_supply)}")
    print(f"   FDV scenarios    : {', '.join(format_fdv(f) for f in points.fdv_scenarios)}")
    print()
    print("⚡ Boosts:")
    print(f"   YT {points.yt_boost:g}x │ LP {points.lp_boost_multi:g}x "
          f"({points.lp_boost_single:g}x single market) │ Curve {points.curve_boost:g}x │ "
          f"Other {points.other_boost:g}x │ PT 0x")
    print()
    print("📅 Markets:")
    for m in MARKETS.values():
        days = MaturityClock.days_to_maturity(m)
        addr = m.address or f"(set MOONSHOT_MARKET_{m.key.upper()})"
        label = MaturityClock.countdown_label(days, MaturityClock.is_matured(m))
        print(f"   {m.key:<6} {m.label:<18} {label:<10} {addr}")
    print()
    print("🔗 Quick Start:")
    print("   python run.py trade 1000")
    print("   python run.py project --yt 25000 --cost 1000")
    print("   python run.py tvl")


async def cmd_markets() -> int:
    """Show APYs, liquidity and countdown for every market."""
    try:
        markets = await PendleClient().fetch_all_markets()
    except MoonshotError as exc:
        return _fail(exc)

    print("\n📊 Pendle Markets")
    print("=" * 55)
    for key, static in MARKETS.items():
        m = markets.get(key, static)
        days = MaturityClock.days_to_maturity(m)
        matured = MaturityClock.is_matured(m)
        status = "⚪ Matured" if matured else "🟢 Active"
        print(f"\n  {m.label} ({key}) {status}")
        print(f"    ⏳ Countdown   : {MaturityClock.countdown_label(days, matured)}")
        if key not in markets:
            print("    ⚠️  No live data")
            continue
        print(f"    📈 Underlying  : {_pct(m.underlying_apy)}")
        print(f"    📉 Implied     : {_pct(m.implied_apy)}")
        print(f"    💰 Liquidity   : {format_currency(m.liquidity_usd)}")
    return 0


async def cmd_tvl() -> int:
    """Show TVL sources and the daily points distribution."""
    try:
        state = await _load_state()
        dist = points_distribution(state.weighted)
    except MoonshotError as exc:
        return _fail(exc)

    snap, raw = state.snapshot, state.raw
    print("\n🏦 TVL Sources")
    print("=" * 65)
    print(f"  alUSD supply      : {format_number(raw.alusd_supply)} @ ${raw.alusd_price:.4f}")
    print(f"  alpUSD supply     : {format_number(raw.alpusd_supply)} @ ${raw.alpusd_price:.4f}")
    print(f"  Gross TVL         : {format_currency(snap.gross_tvl)}")
    print(f"  SY vault (locked) : {format_currency(snap.vault_usd)}")
    print(f"  Total TVL         : {format_currency(snap.total_tvl)}")
    print(f"  Curve pool        : {format_currency(snap.venue_usd)}")
    print(f"  Other TVL         : {format_currency(snap.other_tvl)}")

    print(f"\n🎁 Daily Points Distribution ({format_number(dist['daily_emission'])} pro-rata)")
    print("=" * 65)
    print(f"  {'Pool':<28} {'TVL':>14} {'Boost':>6} {'Share':>8} {'Points':>10}")
    for row in dist["rows"]:
        flag = " (matured)" if row["matured"] else ""
        print(
            f"  {row['label'] + flag:<28} {format_currency(row['raw_usd']):>14} "
            f"{row['boost']:>5g}x {row['share_pct']:>7.2f}% {format_number(row['gross_points']):>10}"
        )
    print(f"  {'Referral reserve':<28} {'':>14} {'':>6} {'':>8} {format_number(dist['referral_points']):>10}")
    print(f"\n  Pendle fee on YT: {format_number(dist['total_fee_points'])} points/day "
          f"({dist['fee_share_pct']:.2f}% of emission)")
    for name, usd in dist["excluded_usd"].items():
        if usd > 0:
            print(f"  PT excluded ({name}): {format_currency(usd)}")
    return 0


async def cmd_trade(amount: str, market_key: str = DEFAULT_MARKET) -> int:
    """Quote alUSD → YT on a market and project the resulting position."""
    try:
        value = validate_trade_amount(amount)
        state = await _load_state()
        market = state.market(market_key)
        print(f"⏳ Requesting swap quote for {value:,.2f} alUSD → YT ({market.label})…")
        response = await PendleClient().quote_trade(amount, market)
        quote = format_trade_quote(response, amount)
        analysis = analyze_position(quote.yt_received, value, market, state.weighted)
    except MoonshotError as exc:
        return _fail(exc)

    print(f"\n🔄 Swap Quote — {market.label}")
    print("=" * 55)
    print(f"  Input        : {quote.input_amount}")
    print(f"  Net paid     : {quote.net_from_taker}")
    print(f"  YT received  : {quote.net_to_taker}")
    print(f"  Fee          : {quote.fee}")
    _print_points(analysis)
    _print_scenarios(analysis["visible_scenarios"], analysis["breakeven_fdv"])
    return 0


async def cmd_project(yt_amount: float, cost: float, market_key: str = DEFAULT_MARKET) -> int:
    """Project an existing YT position across FDV scenarios."""
    try:
        state = await _load_state()
        market = state.market(market_key)
        analysis = analyze_position(yt_amount, cost, market, state.weighted)
    except MoonshotError as exc:
        return _fail(exc)

    print(f"\n📈 Position Projection — {analysis['market_label']}")
    print("=" * 55)
    print(f"  YT held      : {format_number(yt_amount)}")
    print(f"  Cost basis   : {format_currency(cost)}")
    print(f"  Countdown    : {analysis['countdown']}")
    if analysis["is_matured"]:
        print("\n  ⚪ Market matured: YT no longer earns points or yield.")
        return 0
    _print_points(analysis)
    _print_scenarios(analysis["scenarios"], analysis["breakeven_fdv"])
    return 0


async def cmd_minfunds() -> int:
    """Minimum position per pool to earn one point per day."""
    try:
        state = await _load_state()
        rows = minimum_funds(state.weighted)
    except MoonshotError as exc:
        return _fail(exc)

    print("\n🪙 Minimum Funds for 1 Point/Day")
    print("=" * 65)
    print(f"  {'Pool':<28} {'Boost':>6} {'Pool pts/day':>13} {'Min USD':>14}")
    for row in rows:
        min_usd = "—" if math.isinf(row["min_usd"]) else format_currency(row["min_usd"])
        print(
            f"  {row['label']:<28} {row['boost']:>5g}x "
            f"{format_number(row['daily_pool_net']):>13} {min_usd:>14}"
        )
    print("\n  YT pool points shown net of the 5% Pendle fee.")
    return 0
