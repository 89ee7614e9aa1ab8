"""
Project Configuration: API endpoints, version, points program constants
=========================================================================

Contains Pendle / Etherscan / price-feed configuration, token addresses,
the points emission program and project metadata.

Every configuration object is a frozen dataclass: live prices never
patch these values, they travel inside each fetch cycle's snapshot.

Sources:
  Pendle API    : https://api-v2.pendle.finance/core/docs
  Etherscan V2  : https://docs.etherscan.io/etherscan-v2
  Lagoon vaults : https://app.lagoon.finance
  CoinGecko     : https://docs.coingecko.com/reference/simple-price
"""

import math
import os
import re
from dataclasses import dataclass, field
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path
from types import MappingProxyType
from typing import Tuple

from moonshot_cli.errors import InvalidInputError

# Version: pyproject.toml is the single source
try:
    PROJECT_VERSION = version("yt-moonshot")
except PackageNotFoundError:
    # Uninstalled checkout: read pyproject.toml directly
    _toml = Path(__file__).resolve().parent.parent / "pyproject.toml"
    _m = (
        re.search(r'version\s*=\s*"([^"]+)"', _toml.read_text())
        if _toml.exists()
        else None
    )
    PROJECT_VERSION = _m.group(1) if _m else "0.0.0-dev"
PROJECT_NAME = "YT Moonshot Calculator"


@dataclass(frozen=True)
class PendleAPI:
    """Pendle V2 API configuration (market data + limit-order router)."""

    BASE_URL: str = "https://api-v2.pendle.finance"
    MARKET_ENDPOINT: str = "/core/v2/{chain_id}/markets/{market}/data"
    TRADE_ENDPOINT: str = "/limit-order/v2/limit-order/market-order"

    CHAIN_ID: int = 1  # Ethereum mainnet
    ORDER_TYPE: int = 2  # token → YT swap
    TIMEOUT_SECONDS: int = 15

    # Swap-size guard (alUSD)
    MAX_TRADE_AMOUNT: float = 10_000_000

    def market_data_url(self, market_address: str) -> str:
        """URL to fetch a market's live data."""
        path = self.MARKET_ENDPOINT.format(chain_id=self.CHAIN_ID, market=market_address)
        return f"{self.BASE_URL}{path}"

    def trade_url(self) -> str:
        """URL for a market-order swap quote."""
        return f"{self.BASE_URL}{self.TRADE_ENDPOINT}"


@dataclass(frozen=True)
class EtherscanAPI:
    """Etherscan V2 API configuration (token supplies and balances)."""

    BASE_URL: str = "https://api.etherscan.io/v2/api"
    CHAIN_ID: int = 1
    TIMEOUT_SECONDS: int = 20

    # Free tier allows 5 calls/second; stay one under it.
    MAX_REQUESTS: int = 4
    PERIOD_SECONDS: float = 1.0

    API_KEY: str = field(
        default_factory=lambda: os.environ.get("ETHERSCAN_API_KEY", ""), repr=False
    )

    def token_supply_params(self, token: str) -> dict:
        return {
            "chainid": self.CHAIN_ID,
            "module": "stats",
            "action": "tokensupply",
            "contractaddress": token,
            "apikey": self.API_KEY,
        }

    def token_balance_params(self, token: str, holder: str) -> dict:
        return {
            "chainid": self.CHAIN_ID,
            "module": "account",
            "action": "tokenbalance",
            "contractaddress": token,
            "address": holder,
            "tag": "latest",
            "apikey": self.API_KEY,
        }


@dataclass(frozen=True)
class PriceFeeds:
    """Live price sources and the fallbacks used when a feed is down."""

    LAGOON_URL: str = "https://app.lagoon.finance/api/vaults"
    COINGECKO_URL: str = "https://api.coingecko.com/api/v3/simple/price"
    COINGECKO_USDC_ID: str = "usd-coin"
    TIMEOUT_SECONDS: int = 10

    FALLBACK_ALUSD_PRICE: float = 1.0243
    FALLBACK_ALPUSD_PRICE: float = 1.01
    FALLBACK_USDC_PRICE: float = 1.00

    def lagoon_params(self, vault: str) -> dict:
        return {"chainId": 1, "vault": vault}


@dataclass(frozen=True)
class TokenAddresses:
    """Mainnet contracts read by the TVL gateway."""

    ALUSD: str = "0xDCD0f5ab30856F28385F641580Bbd85f88349124"
    ALPUSD: str = "0x5a97b0b97197299456af841f8605543b13b12ee3"
    USDC: str = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
    # Pendle SY contract holding alUSD (the "yield-bearing vault")
    SY_VAULT: str = "0x8e5e017d6b3F567623B5d4a690a2a686bF7BA515"
    # Curve alUSD/USDC pool (the pooled external venue)
    CURVE_POOL: str = "0x463626cF9028d96eAd5084954FF634f813D5fFB9"

    ALUSD_DECIMALS: int = 18
    ALPUSD_DECIMALS: int = 18
    USDC_DECIMALS: int = 6


# Categories that may be subtracted from gross TVL to obtain "other" TVL
OTHER_TVL_DEDUCTIONS = frozenset({"vault", "venue", "lp"})


@dataclass(frozen=True)
class PointsProgramConfig:
    """
    Almanak points emission program.

    333,333 points are emitted per day; 5% (16,667) is reserved for the
    referral program and never enters the pro-rata pool, leaving 316,666
    points distributed by boost-weighted TVL.  1 point = 1 token; the
    token has a fixed 1B supply used to turn an FDV into a token price.
    """

    daily_emission: float = 316_666
    referral_reserve: float = 16_667
    fee_rate: float = 0.05  # platform take on YT-category points only
    total_token_supply: float = 1_000_000_000
    fdv_scenarios: Tuple[float, ...] = (90, 200, 250, 300, 350, 400, 450, 500)

    # Boost table
    yt_boost: float = 5.0
    lp_boost_multi: float = 1.25  # more than one market active
    lp_boost_single: float = 1.5  # exactly one market active
    curve_boost: float = 3.0
    other_boost: float = 1.0

    # PT held in the LP is valued at peg
    pt_reference_price: float = 1.0

    # FDV row always shown next to the rows at/above breakeven
    breakeven_anchor_fdv: float = 90

    other_tvl_excludes: frozenset = frozenset({"vault", "venue"})

    def __post_init__(self):
        if not 0 <= self.fee_rate <= 1:
            raise InvalidInputError(f"fee_rate must be in [0, 1], got {self.fee_rate}")
        for name in ("daily_emission", "total_token_supply"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise InvalidInputError(f"{name} must be positive, got {value}")
        unknown = set(self.other_tvl_excludes) - OTHER_TVL_DEDUCTIONS
        if unknown:
            raise InvalidInputError(f"Unknown other-TVL deductions: {sorted(unknown)}")

    @property
    def gross_daily_emission(self) -> float:
        """Emission including the referral reserve (333,333)."""
        return self.daily_emission + self.referral_reserve

    @property
    def boosts(self) -> "MappingProxyType[str, float]":
        """Boost table keyed by category name."""
        return MappingProxyType(
            {
                "yt": self.yt_boost,
                "lp": self.lp_boost_multi,
                "lp_single": self.lp_boost_single,
                "curve": self.curve_boost,
                "other": self.other_boost,
                "pt": 0.0,
            }
        )

    def token_price(self, fdv_millions: float) -> float:
        """Per-token USD price implied by an FDV (in millions)."""
        return (fdv_millions * 1_000_000) / self.total_token_supply


# Unified configuration
class MoonshotConfig:
    """Unified read-only configuration."""

    pendle = PendleAPI()
    etherscan = EtherscanAPI()
    prices = PriceFeeds()
    tokens = TokenAddresses()
    points = PointsProgramConfig()


# Global instance
config = MoonshotConfig()
