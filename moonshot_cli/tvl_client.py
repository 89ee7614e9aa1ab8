#!/usr/bin/env python3
"""
TVL Client: On-Chain Balances and Live Prices
=============================================

Reads the raw inputs of the TVL classification:

  • Etherscan V2 tokensupply   → alUSD, alpUSD and each market's YT supply
  • Etherscan V2 tokenbalance  → SY vault alUSD, Curve pool USDC + alUSD
  • Lagoon vaults API          → alUSD / alpUSD price per share
  • CoinGecko simple/price     → USDC price

Etherscan calls go out concurrently through one RateLimiter (4 req/s).
The alUSD supply is mandatory; every other balance falls back to 0 and
every price to its configured fallback, with a warning.
"""

import asyncio
import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, Optional

import httpx

from moonshot_cli.central_config import config
from moonshot_cli.errors import DataSourceError
from moonshot_cli.http_helpers import RateLimiter, get_json, unwrap_proxy_payload
from moonshot_cli.market_registry import MARKETS, Market
from moonshot_cli.units import from_wei
from points_math import RawBalances

logger = logging.getLogger(__name__)

ETHERSCAN = "Etherscan"
LAGOON = "Lagoon"
COINGECKO = "CoinGecko"
PROXY = "TVL proxy"


def parse_etherscan_result(data: Any, decimals: int) -> float:
    """Decode an Etherscan {status, result} body into a token amount."""
    if not isinstance(data, dict):
        raise DataSourceError(ETHERSCAN, "unexpected response shape")
    if str(data.get("status")) != "1" or not data.get("result"):
        raise DataSourceError(ETHERSCAN, str(data.get("message") or data.get("result") or "call failed"))
    return from_wei(data["result"], decimals)


def parse_lagoon_price(data: Any, vault: str) -> Optional[float]:
    """Find `vault` in a Lagoon {vaults: [...]} body and return its share price."""
    if not isinstance(data, dict) or not isinstance(data.get("vaults"), list):
        return None
    for entry in data["vaults"]:
        if str(entry.get("address", "")).lower() != vault.lower():
            continue
        price = (entry.get("state") or {}).get("pricePerShareUsd")
        try:
            price = float(price)
        except (TypeError, ValueError):
            return None
        return price if price > 0 else None
    return None


class TvlClient:
    """Etherscan + price-feed reader producing RawBalances."""

    def __init__(self):
        self.etherscan = config.etherscan
        self.prices = config.prices
        self.tokens = config.tokens
        self._limiter = RateLimiter(
            max_requests=self.etherscan.MAX_REQUESTS,
            period_seconds=self.etherscan.PERIOD_SECONDS,
        )

    # ── Prices ──────────────────────────────────────────────────────────

    async def _lagoon_price(self, client: httpx.AsyncClient, vault: str, fallback: float, name: str) -> float:
        try:
            data = await get_json(client, LAGOON, self.prices.LAGOON_URL, self.prices.lagoon_params(vault))
        except DataSourceError as exc:
            logger.warning("%s price unavailable (%s); using fallback %.4f", name, exc, fallback)
            return fallback
        price = parse_lagoon_price(data, vault)
        if price is None:
            logger.warning("%s vault not found in Lagoon response; using fallback %.4f", name, fallback)
            return fallback
        return price

    async def _usdc_price(self, client: httpx.AsyncClient) -> float:
        fallback = self.prices.FALLBACK_USDC_PRICE
        params = {"ids": self.prices.COINGECKO_USDC_ID, "vs_currencies": "usd"}
        try:
            data = await get_json(client, COINGECKO, self.prices.COINGECKO_URL, params)
            return float(data[self.prices.COINGECKO_USDC_ID]["usd"])
        except DataSourceError as exc:
            logger.warning("USDC price unavailable (%s); using fallback %.2f", exc, fallback)
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed CoinGecko response; using fallback %.2f", fallback)
        return fallback

    async def fetch_live_prices(self, client: Optional[httpx.AsyncClient] = None) -> Dict[str, float]:
        """Live alUSD, alpUSD and USDC prices; never raises."""
        if client is None:
            async with httpx.AsyncClient(timeout=self.prices.TIMEOUT_SECONDS, verify=True) as owned:
                return await self.fetch_live_prices(owned)

        alusd, alpusd, usdc = await asyncio.gather(
            self._lagoon_price(client, self.tokens.ALUSD, self.prices.FALLBACK_ALUSD_PRICE, "alUSD"),
            self._lagoon_price(client, self.tokens.ALPUSD, self.prices.FALLBACK_ALPUSD_PRICE, "alpUSD"),
            self._usdc_price(client),
        )
        logger.info("Prices: alUSD %.4f, alpUSD %.4f, USDC %.4f", alusd, alpusd, usdc)
        return {"alusd": alusd, "alpusd": alpusd, "usdc": usdc}

    # ── Balances ────────────────────────────────────────────────────────

    async def _etherscan(self, client: httpx.AsyncClient, params: dict, decimals: int) -> float:
        data = await get_json(client, ETHERSCAN, self.etherscan.BASE_URL, params, limiter=self._limiter)
        return parse_etherscan_result(data, decimals)

    async def fetch_raw_balances(self, markets: Optional[Iterable[Market]] = None) -> RawBalances:
        """
        One complete TVL reading.

        Raises DataSourceError when the alUSD supply cannot be read.
        """
        targets = list(markets if markets is not None else MARKETS.values())
        es, tk = self.etherscan, self.tokens
        if not es.API_KEY:
            logger.warning("ETHERSCAN_API_KEY is not set; Etherscan may reject requests")

        calls = {
            "alusd_supply": (es.token_supply_params(tk.ALUSD), tk.ALUSD_DECIMALS),
            "alpusd_supply": (es.token_supply_params(tk.ALPUSD), tk.ALPUSD_DECIMALS),
            "vault_alusd_balance": (es.token_balance_params(tk.ALUSD, tk.SY_VAULT), tk.ALUSD_DECIMALS),
            "curve_usdc_balance": (es.token_balance_params(tk.USDC, tk.CURVE_POOL), tk.USDC_DECIMALS),
            "curve_alusd_balance": (es.token_balance_params(tk.ALUSD, tk.CURVE_POOL), tk.ALUSD_DECIMALS),
        }
        for m in targets:
            calls[f"yt:{m.key}"] = (es.token_supply_params(m.yt_token), m.yt_decimals)

        async with httpx.AsyncClient(timeout=es.TIMEOUT_SECONDS, verify=True) as client:
            prices = await self.fetch_live_prices(client)
            results = await asyncio.gather(
                *(self._etherscan(client, params, decimals) for params, decimals in calls.values()),
                return_exceptions=True,
            )

        values: Dict[str, float] = {}
        for name, result in zip(calls, results):
            if isinstance(result, Exception):
                if name == "alusd_supply":
                    raise DataSourceError(ETHERSCAN, f"alUSD supply unavailable: {result}")
                logger.warning("%s unavailable (%s); defaulting to 0", name, result)
                values[name] = 0.0
            else:
                values[name] = result

        yt_supply = {m.key: values.pop(f"yt:{m.key}") for m in targets}
        balances = RawBalances(
            yt_supply=MappingProxyType(yt_supply),
            alusd_price=prices["alusd"],
            alpusd_price=prices["alpusd"],
            usdc_price=prices["usdc"],
            timestamp=datetime.now(timezone.utc).isoformat(),
            **values,
        )
        logger.info(
            "Balances: alUSD %.2f, alpUSD %.2f, SY %.2f, YT %s",
            balances.alusd_supply,
            balances.alpusd_supply,
            balances.vault_alusd_balance,
            yt_supply,
        )
        return balances

    async def fetch_from_proxy(self, url: str, markets: Optional[Iterable[Market]] = None) -> RawBalances:
        """Read a pre-aggregated {success, data} TVL payload instead of Etherscan."""
        keys = [m.key for m in (markets if markets is not None else MARKETS.values())]
        async with httpx.AsyncClient(timeout=self.etherscan.TIMEOUT_SECONDS, verify=True) as client:
            payload = await get_json(client, PROXY, url)
        data = unwrap_proxy_payload(PROXY, payload)
        if not data.get("alUsdSupply"):
            raise DataSourceError(PROXY, "alUSD supply missing from payload")
        return RawBalances.from_payload(data, keys, self.prices)
