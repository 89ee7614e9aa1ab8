#!/usr/bin/env python3
"""
Market Registry — Fixed-Maturity YT-alUSD Markets
==================================================

Maps each tracked Pendle market key to its on-chain identifiers and
maturity instant.  Live market fields (APYs, liquidity, pool reserves)
are filled in by the Pendle gateway on each fetch cycle; the registry
itself only carries the static definition.

Every consumer iterates MARKETS; a new market only needs an entry here.

Contract Address Sources:
  Pendle markets : https://app.pendle.finance/trade/markets
  YT tokens      : https://etherscan.io (token tracker, 6 decimals)

Environment overrides:
  MOONSHOT_MARKET_<KEY>   market address for <KEY> (e.g. MOONSHOT_MARKET_DEC11)
"""

import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, List, Optional

# Router cap for alUSD market orders (wei, 18 decimals)
DEFAULT_CAPPED_AMOUNT = "138107596043615446631225"


@dataclass(frozen=True)
class Market:
    """
    A fixed-maturity Pendle market.

    Identity fields (key, address) and the maturity instant never change.
    The remaining fields are a read-only snapshot from the market gateway:
      - underlying_apy / implied_apy → decimal fractions (0.08 = 8%)
      - liquidity_usd                → pool liquidity in USD
      - total_pt / total_sy          → pool reserves in token units
      - asset_price_usd              → reference asset price
    """

    key: str
    label: str
    address: str
    yt_token: str
    maturity: datetime
    yt_decimals: int = 6
    capped_amount: str = DEFAULT_CAPPED_AMOUNT

    underlying_apy: float = 0.0
    implied_apy: float = 0.0
    liquidity_usd: float = 0.0
    total_pt: float = 0.0
    total_sy: float = 0.0
    asset_price_usd: float = 0.0

    def with_market_data(self, **fields) -> "Market":
        """Return a copy carrying fresh gateway fields (identity is preserved)."""
        for frozen_field in ("key", "address", "maturity"):
            fields.pop(frozen_field, None)
        return replace(self, **fields)

    @property
    def has_pool_composition(self) -> bool:
        """True when the gateway reported separate PT/SY pool reserves."""
        return self.total_pt > 0 or self.total_sy > 0


def _address(key: str, default: str) -> str:
    return os.environ.get(f"MOONSHOT_MARKET_{key.upper()}", default).strip()


# ── Registry ────────────────────────────────────────────────────────────
#
# MARKETS[key] = Market(...); iteration order is display order.

MARKETS: "MappingProxyType[str, Market]" = MappingProxyType(
    {
        # First alUSD market, matured; kept for TVL history
        "oct23": Market(
            key="oct23",
            label="October 23, 2025",
            address=_address("oct23", "0x79f06a8dc564717a9ad418049d0be9a60f2646c0"),
            yt_token="0xd7c3fc198Bd7A50B99629cfe302006E9224f087b",
            maturity=datetime(2025, 10, 23, tzinfo=timezone.utc),
        ),
        # Market address supplied via MOONSHOT_MARKET_DEC11
        "dec11": Market(
            key="dec11",
            label="December 11, 2025",
            address=_address("dec11", ""),
            yt_token="0xBA31C7c0189E9B6ab6CF6b27CD3D1A4D6d3d0Fd6",
            maturity=datetime(2025, 12, 11, tzinfo=timezone.utc),
        ),
    }
)

DEFAULT_MARKET = "dec11"


def get_market(key: str, markets: Optional[Dict[str, Market]] = None) -> Optional[Market]:
    """Look up a market by key (case-insensitive)."""
    registry = MARKETS if markets is None else markets
    return registry.get(key.strip().lower())


def market_keys(markets: Optional[Dict[str, Market]] = None) -> List[str]:
    """All market keys in display order."""
    return list(MARKETS if markets is None else markets)


def addressed_markets(markets: Optional[Dict[str, Market]] = None) -> List[Market]:
    """Markets that have an address and can be queried."""
    registry = MARKETS if markets is None else markets
    return [m for m in registry.values() if m.address]
