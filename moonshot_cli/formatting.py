"""
Display formatting for quotes, currency and FDV labels.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

from moonshot_cli.errors import DataSourceError
from moonshot_cli.units import WEI_DECIMALS, YT_DECIMALS, format_from_wei, from_wei


@dataclass(frozen=True)
class TradeQuote:
    """A swap quote in display units (alUSD in, YT out)."""

    input_amount: str
    net_from_taker: str
    net_to_taker: str
    fee: str
    raw_net_from_taker: float
    raw_net_to_taker: float
    raw_fee: float

    @property
    def yt_received(self) -> float:
        return from_wei(self.raw_net_to_taker, YT_DECIMALS)


def format_trade_quote(response: Dict[str, Any], input_amount: Any) -> TradeQuote:
    """
    Turn a market-order response into display strings.

    Prefers `totalTrade` (limit orders + AMM) and falls back to
    `marketTrade`.  Amounts in alUSD have 18 decimals, YT has 6.
    """
    trade = response.get("totalTrade") or response.get("marketTrade")
    if not isinstance(trade, dict):
        raise DataSourceError("Pendle API", "quote has neither totalTrade nor marketTrade")

    net_from = trade.get("netFromTaker", "0")
    net_to = trade.get("netToTaker", "0")
    fee = trade.get("fee", "0")
    return TradeQuote(
        input_amount=f"{input_amount} alUSD",
        net_from_taker=f"{format_from_wei(net_from, WEI_DECIMALS)} alUSD",
        net_to_taker=f"{format_from_wei(net_to, YT_DECIMALS)} YT",
        fee=f"{format_from_wei(fee, WEI_DECIMALS)} alUSD",
        raw_net_from_taker=float(net_from),
        raw_net_to_taker=float(net_to),
        raw_fee=float(fee),
    )


def format_currency(value: float) -> str:
    """USD with thousands separators and 2 decimals: -$1,234.50"""
    if not math.isfinite(value):
        return "∞" if value > 0 else "-∞"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_number(value: float) -> str:
    """Whole number with thousands separators."""
    if not math.isfinite(value):
        return "∞" if value > 0 else "-∞"
    return f"{value:,.0f}"


def format_fdv(fdv_millions: float) -> str:
    """
    FDV label: billions from 1,000M up, else millions with ≤ 1 decimal.

    >>> format_fdv(1500), format_fdv(2000), format_fdv(200), format_fdv(92.25)
    ('1.5B', '2B', '200M', '92.3M')
    """
    rounded = math.floor(fdv_millions * 10 + 0.5) / 10
    if rounded >= 1000:
        billions = f"{rounded / 1000:.1f}"
        return f"{billions[:-2] if billions.endswith('.0') else billions}B"
    text = f"{rounded:.1f}"
    return f"{text[:-2] if text.endswith('.0') else text}M"
