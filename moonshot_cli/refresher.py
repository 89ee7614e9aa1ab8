"""
Snapshot Store: Periodic Refresh of Market and TVL Data
=======================================================

Each refresh cycle fans out to the Pendle and TVL gateways, runs the
classification on the results and publishes a new CalculatorState.  The
previous state stays in place until a cycle completes, so readers always
see one whole snapshot.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from moonshot_cli.errors import InvalidInputError, MoonshotError
from moonshot_cli.market_registry import MARKETS, Market
from moonshot_cli.pendle_client import PendleClient
from moonshot_cli.tvl_client import TvlClient
from points_math import (
    DEFAULT_PROGRAM,
    RawBalances,
    TvlEngine,
    TvlSnapshot,
    WeightedTvl,
)

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SECONDS = 600


@dataclass(frozen=True)
class CalculatorState:
    """Everything one refresh cycle produced."""

    markets: Mapping[str, Market]
    raw: RawBalances
    snapshot: TvlSnapshot
    weighted: WeightedTvl
    fetched_at: datetime

    def market(self, key: str) -> Market:
        try:
            return self.markets[key]
        except KeyError:
            raise InvalidInputError(
                f"Unknown market '{key}'. Available: {', '.join(self.markets)}"
            ) from None


class SnapshotStore:
    def __init__(
        self,
        pendle: Optional[PendleClient] = None,
        tvl: Optional[TvlClient] = None,
        markets: Optional[Iterable[Market]] = None,
        program=DEFAULT_PROGRAM,
    ):
        self.pendle = pendle or PendleClient()
        self.tvl = tvl or TvlClient()
        self.markets = list(markets if markets is not None else MARKETS.values())
        self.program = program
        self._state: Optional[CalculatorState] = None

    def current(self) -> Optional[CalculatorState]:
        """Most recently completed state, or None before the first refresh."""
        return self._state

    async def refresh(self, now: Optional[datetime] = None) -> CalculatorState:
        """Run one fetch cycle and publish its state.

        A DataSourceError from the TVL gateway propagates and leaves the
        previous state untouched.  Markets whose data could not be fetched
        are kept with their registry defaults (no APY, no liquidity).
        """
        fetched, raw = await asyncio.gather(
            self.pendle.fetch_all_markets(self.markets),
            self.tvl.fetch_raw_balances(self.markets),
        )
        merged = {}
        for m in self.markets:
            if m.key not in fetched:
                logger.warning("Market %s has no live data; using registry defaults", m.key)
            merged[m.key] = fetched.get(m.key, m)

        snapshot = TvlEngine.classify(raw, merged, self.program, now)
        weighted = TvlEngine.weight(snapshot, program=self.program)
        state = CalculatorState(
            markets=MappingProxyType(merged),
            raw=raw,
            snapshot=snapshot,
            weighted=weighted,
            fetched_at=now or datetime.now(timezone.utc),
        )
        self._state = state
        logger.info(
            "Snapshot refreshed: total TVL $%.2f, weighted $%.2f, %d active market(s)",
            snapshot.total_tvl,
            weighted.total_weighted_tvl,
            weighted.active_market_count,
        )
        return state

    async def run_periodic(
        self, interval: float = DEFAULT_REFRESH_SECONDS, cycles: Optional[int] = None
    ) -> Optional[CalculatorState]:
        """Refresh every `interval` seconds; forever when `cycles` is None.

        A failed cycle is logged and the previous state is kept.
        """
        completed = 0
        while cycles is None or completed < cycles:
            try:
                await self.refresh()
            except MoonshotError as exc:
                logger.error("Refresh failed, keeping previous snapshot: %s", exc)
            completed += 1
            if cycles is None or completed < cycles:
                await asyncio.sleep(interval)
        return self._state
