#!/usr/bin/env python3
"""
Pendle Client — Market Data and Swap Quotes
============================================
Based on the Pendle V2 API: https://api-v2.pendle.finance/core/docs

  • fetch_market()       GET  /core/v2/{chainId}/markets/{market}/data
  • fetch_all_markets()  fan-out over every addressed market, fan-in by key
  • quote_trade()        POST /limit-order/v2/limit-order/market-order

Every failure surfaces as DataSourceError; nothing is retried here.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Iterable, Optional

import httpx

from moonshot_cli.central_config import config
from moonshot_cli.errors import DataSourceError, InvalidInputError
from moonshot_cli.http_helpers import RateLimiter, get_json, post_json
from moonshot_cli.market_registry import MARKETS, Market
from moonshot_cli.units import to_wei

logger = logging.getLogger(__name__)

SOURCE = "Pendle API"


def _num(value: Any) -> float:
    """Coerce an optional numeric field; absent or malformed → 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_market_data(market: Market, data: Dict[str, Any]) -> Market:
    """Apply a Pendle market-data payload to a registry market.

    `liquidity` arrives either as {"usd": ...} or as a bare number.
    """
    liquidity = data.get("liquidity")
    if isinstance(liquidity, dict):
        liquidity_usd = _num(liquidity.get("usd"))
    else:
        liquidity_usd = _num(liquidity)

    return market.with_market_data(
        underlying_apy=_num(data.get("underlyingApy")),
        implied_apy=_num(data.get("impliedApy")),
        liquidity_usd=liquidity_usd,
        total_pt=_num(data.get("totalPt")),
        total_sy=_num(data.get("totalSy")),
        asset_price_usd=_num(data.get("assetPriceUsd")),
    )


def validate_trade_amount(amount: Any) -> float:
    """Trade amounts must be positive, finite and at most MAX_TRADE_AMOUNT."""
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidInputError("Please enter a valid amount") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError("Please enter a valid positive amount")
    if value > config.pendle.MAX_TRADE_AMOUNT:
        raise InvalidInputError(
            f"Amount too large (max {config.pendle.MAX_TRADE_AMOUNT:,.0f} alUSD)"
        )
    return value


class PendleClient:
    """Pendle V2 API client (market data + swap quotes)."""

    def __init__(self, max_requests: int = 100, period_seconds: float = 60):
        self.api = config.pendle
        self.timeout = config.pendle.TIMEOUT_SECONDS
        self._limiter = RateLimiter(max_requests=max_requests, period_seconds=period_seconds)

    async def fetch_market(
        self, market: Market, client: Optional[httpx.AsyncClient] = None
    ) -> Market:
        """Fetch live data for one market and return an updated copy."""
        if not market.address:
            raise DataSourceError(SOURCE, f"market '{market.key}' has no address configured")

        if client is None:
            async with httpx.AsyncClient(timeout=self.timeout, verify=True) as owned:
                return await self.fetch_market(market, owned)

        url = self.api.market_data_url(market.address)
        data = await get_json(client, SOURCE, url, limiter=self._limiter)
        if not isinstance(data, dict):
            raise DataSourceError(SOURCE, "unexpected market payload")
        updated = parse_market_data(market, data)
        logger.info(
            "Market %s: underlying %.4f, implied %.4f, liquidity $%.2f",
            market.key,
            updated.underlying_apy,
            updated.implied_apy,
            updated.liquidity_usd,
        )
        return updated

    async def fetch_all_markets(
        self, markets: Optional[Iterable[Market]] = None
    ) -> Dict[str, Market]:
        """Fetch every addressed market concurrently.

        A failing market is logged and left out; the others still return.
        """
        targets = [m for m in (markets if markets is not None else MARKETS.values())]
        addressed = [m for m in targets if m.address]
        for m in targets:
            if not m.address:
                logger.warning("Skipping market %s: no address configured", m.key)

        async with httpx.AsyncClient(timeout=self.timeout, verify=True) as client:
            results = await asyncio.gather(
                *(self.fetch_market(m, client) for m in addressed),
                return_exceptions=True,
            )

        fetched: Dict[str, Market] = {}
        for market, result in zip(addressed, results):
            if isinstance(result, Exception):
                logger.error("Market %s fetch failed: %s", market.key, result)
                continue
            fetched[market.key] = result
        return fetched

    async def quote_trade(self, amount: Any, market: Market) -> Dict[str, Any]:
        """Request a swap quote for `amount` alUSD → YT on `market`.

        Returns the raw router response; see formatting.format_trade_quote().
        """
        validate_trade_amount(amount)
        if not market.address:
            raise DataSourceError(SOURCE, f"market '{market.key}' has no address configured")

        payload = {
            "chainId": self.api.CHAIN_ID,
            "market": market.address,
            "netFromTaker": to_wei(amount),
            "type": self.api.ORDER_TYPE,
            "cappedAmountToMarket": market.capped_amount,
        }
        async with httpx.AsyncClient(timeout=self.timeout, verify=True) as client:
            data = await post_json(
                client, SOURCE, self.api.trade_url(), payload, limiter=self._limiter
            )

        if not isinstance(data, dict) or not (data.get("totalTrade") or data.get("marketTrade")):
            raise DataSourceError(SOURCE, "invalid response structure from trade API")
        return data
