#!/usr/bin/env python3
"""
Points Math Engine
==================

Boost-weighted TVL classification, pro-rata points accrual and FDV
scenario projection for YT-alUSD positions on Pendle.

FORMULA SOURCES (every formula is traceable):
──────────────────────────────────────────────
1. Almanak points program
   - 333,333 points/day, 5% referral reserve → 316,666 pro-rata pool
   - Boosts: YT 5x, LP 1.25x (1.5x when a single market is active),
     Curve 3x, wallet/other 1x, PT 0x
   - 1 point = 1 token, 1B total supply

2. Pendle V2 yield tokenization
   https://docs.pendle.finance/ProtocolMechanics/YieldTokenization
   - YT accrues the underlying yield until maturity, then is worth 0
   - PT redeems 1:1 for the underlying at maturity (no points)
   - Pendle takes 5% of points earned by YT holders

3. Pro-rata allocation
   share_i  = amount_i × boost_i / Σ_j (tvl_j × boost_j)
   points_i = share_i × daily_emission

4. FDV → token price
   price = FDV × 10^6 / total_supply   (FDV in millions)
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from moonshot_cli.central_config import PointsProgramConfig, PriceFeeds, config
from moonshot_cli.errors import DivisionByZeroError, InvalidInputError
from moonshot_cli.market_registry import Market

DEFAULT_PROGRAM = config.points
DAYS_PER_YEAR = 365
NO_BREAKEVEN = "No breakeven"


def _check_amount(name: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        raise InvalidInputError(f"{name} must be a finite, non-negative number, got {value}")
    return float(value)


# ── Maturity Clock ───────────────────────────────────────────────────────


class MaturityClock:
    """
    Maturity status and remaining accrual days, in UTC.

    Days are counted on calendar-day granularity: both "now" and the
    maturity instant are floored to UTC midnight before subtracting.
    Points accrue through the day before maturity; on the maturity date
    itself zero days remain.
    """

    @staticmethod
    def _utc(now: Optional[datetime]) -> datetime:
        if now is None:
            return datetime.now(timezone.utc)
        if now.tzinfo is None:
            return now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc)

    @staticmethod
    def is_matured(market: Union[Market, datetime], now: Optional[datetime] = None) -> bool:
        """True when now ≥ maturity (the maturity instant itself counts)."""
        maturity = market if isinstance(market, datetime) else market.maturity
        return MaturityClock._utc(now) >= MaturityClock._utc(maturity)

    @staticmethod
    def days_to_maturity(market: Union[Market, datetime], now: Optional[datetime] = None) -> int:
        """Whole UTC calendar days left; 0 on or after the maturity date."""
        maturity = market if isinstance(market, datetime) else market.maturity
        today = MaturityClock._utc(now).date()
        maturity_day = MaturityClock._utc(maturity).date()
        if today >= maturity_day:
            return 0
        return (maturity_day - today).days

    @staticmethod
    def maturity_flags(
        markets: Mapping[str, Market], now: Optional[datetime] = None
    ) -> Dict[str, bool]:
        return {key: MaturityClock.is_matured(m, now) for key, m in markets.items()}

    @staticmethod
    def countdown_label(days: int, matured: Optional[bool] = None) -> str:
        """Countdown text; `matured` overrides the days <= 0 test when given."""
        if matured is None:
            matured = days <= 0
        if matured:
            return "Matured"
        return f"{days} {'day' if days == 1 else 'days'}"


# ── Underlying Yield ─────────────────────────────────────────────────────


class UnderlyingYield:
    """Yield earned by YT on the underlying (principal is never returned)."""

    @staticmethod
    def daily(yt_amount: float, underlying_apy: float) -> float:
        """Simple daily accrual: amount × APY / 365."""
        return yt_amount * (underlying_apy / DAYS_PER_YEAR)

    @staticmethod
    def compounded_return(underlying_apy: float, days: int) -> float:
        """
        Projected return to maturity with daily compounding.

        Formula: (1 + APY/365)^days − 1,  0 when days ≤ 0
        Used for the APY-at-maturity display only; points projections use
        the simple daily accrual above.
        """
        if days <= 0:
            return 0.0
        return (1 + underlying_apy / DAYS_PER_YEAR) ** days - 1

    @staticmethod
    def maturity_earnings(
        yt_amount: float, underlying_apy: float, days: int, cost_basis: float
    ) -> Dict[str, Any]:
        """Yield-only earnings at maturity (YT → 0, no points)."""
        maturity_return = UnderlyingYield.compounded_return(underlying_apy, days)
        earnings = yt_amount * maturity_return
        roi = (earnings / cost_basis) * 100 if cost_basis > 0 else 0.0
        daily_yield = UnderlyingYield.daily(yt_amount, underlying_apy)
        breakeven_days = cost_basis / daily_yield if daily_yield > 0 else math.inf
        return {
            "yt_amount": yt_amount,
            "cost_basis": cost_basis,
            "earnings": earnings,
            "total_value": earnings,
            "roi_pct": roi,
            "breakeven_days": breakeven_days,
            "maturity_return_pct": maturity_return * 100,
        }


# ── Categories ───────────────────────────────────────────────────────────


class Category(Enum):
    """Points-eligible TVL categories; PT is listed only to pin its boost at 0."""

    YT = "yt"
    LP = "lp"
    CURVE = "curve"
    OTHER = "other"
    PT = "pt"

    @classmethod
    def parse(cls, value: Union[str, "Category"]) -> "Category":
        if isinstance(value, Category):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInputError(f"Unknown category: {value!r}") from None

    @property
    def market_scoped(self) -> bool:
        return self in (Category.YT, Category.LP, Category.PT)

    @property
    def pays_fee(self) -> bool:
        return self is Category.YT

    def boost(
        self, program: PointsProgramConfig, matured: bool = False, active_markets: int = 1
    ) -> float:
        """Effective boost for this category."""
        if self is Category.PT:
            return 0.0
        if self is Category.YT:
            return 0.0 if matured else program.yt_boost
        if self is Category.LP:
            if matured:
                return 0.0
            if active_markets == 1:
                return program.lp_boost_single
            return program.lp_boost_multi
        if self is Category.CURVE:
            return program.curve_boost
        return program.other_boost


# ── Data Model ───────────────────────────────────────────────────────────


def _payload_num(data: Mapping[str, Any], key: str, default: float = 0.0) -> float:
    try:
        value = float(data.get(key) or 0)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) and value > 0 else default


@dataclass(frozen=True)
class RawBalances:
    """
    One TVL gateway reading (token units, not USD).

    Fields mirror the TVL proxy payload:
      - alusd_supply / alpusd_supply → total supply of the two stable tokens
      - vault_alusd_balance          → alUSD locked in the Pendle SY contract
      - yt_supply                    → YT total supply per market key
      - curve_usdc / curve_alusd     → Curve pool reserves
      - *_price                      → live USD prices
    """

    alusd_supply: float = 0.0
    alpusd_supply: float = 0.0
    vault_alusd_balance: float = 0.0
    yt_supply: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    curve_usdc_balance: float = 0.0
    curve_alusd_balance: float = 0.0
    alusd_price: float = PriceFeeds.FALLBACK_ALUSD_PRICE
    alpusd_price: float = PriceFeeds.FALLBACK_ALPUSD_PRICE
    usdc_price: float = PriceFeeds.FALLBACK_USDC_PRICE
    timestamp: str = ""

    @classmethod
    def from_payload(
        cls, data: Mapping[str, Any], market_keys: Sequence[str] = (), prices: PriceFeeds = config.prices
    ) -> "RawBalances":
        """
        Factory: build RawBalances from a TVL proxy `data` object.

        YT supply is read from `ytSupply` ({key: amount}) or the per-market
        keys `ytTotalSupply<Key>` (e.g. ytTotalSupplyDec11).  Absent
        sub-fields default to 0; absent prices fall back to config.
        """
        yt_supply: Dict[str, float] = {}
        nested = data.get("ytSupply")
        if isinstance(nested, Mapping):
            for key, value in nested.items():
                yt_supply[str(key).lower()] = _payload_num(nested, key)
        for key in market_keys:
            legacy = f"ytTotalSupply{key[:1].upper()}{key[1:]}"
            if legacy in data:
                yt_supply[key] = _payload_num(data, legacy)

        return cls(
            alusd_supply=_payload_num(data, "alUsdSupply"),
            alpusd_supply=_payload_num(data, "alpUsdSupply"),
            vault_alusd_balance=_payload_num(data, "syAlUsdBalance"),
            yt_supply=MappingProxyType(yt_supply),
            curve_usdc_balance=_payload_num(data, "curveUsdcBalance"),
            curve_alusd_balance=_payload_num(data, "curveAlUsdBalance"),
            alusd_price=_payload_num(data, "liveAlUsdPrice", prices.FALLBACK_ALUSD_PRICE),
            alpusd_price=_payload_num(data, "liveAlpUsdPrice", prices.FALLBACK_ALPUSD_PRICE),
            usdc_price=_payload_num(data, "liveUsdcPrice", prices.FALLBACK_USDC_PRICE),
            timestamp=str(data.get("timestamp", "")),
        )


@dataclass(frozen=True)
class MarketTvl:
    """Per-market USD amounts (PT amounts are informational only)."""

    key: str
    label: str
    yt_usd: float
    lp_usd: float
    lp_yield_usd: float
    lp_principal_usd: float
    pt_usd: float
    matured: bool


@dataclass(frozen=True)
class TvlSnapshot:
    """Point-in-time protocol TVL in USD, partitioned into categories."""

    gross_tvl: float
    vault_usd: float
    total_tvl: float
    venue_usd: float
    other_tvl: float
    markets: Tuple[MarketTvl, ...]
    alusd_price: float

    def market(self, key: str) -> Optional[MarketTvl]:
        return next((m for m in self.markets if m.key == key), None)


@dataclass(frozen=True)
class WeightedBucket:
    """One boost-weighted category (per market for YT and LP)."""

    category: Category
    market_key: Optional[str]
    label: str
    raw_usd: float
    boost: float
    matured: bool = False

    @property
    def weighted_usd(self) -> float:
        return self.raw_usd * self.boost


@dataclass(frozen=True)
class WeightedTvl:
    """
    Boost-weighted TVL: the denominator of every points share.

    `excluded_usd` records the PT amounts (standalone PT and the PT half
    of each LP) that never enter any bucket.
    """

    buckets: Tuple[WeightedBucket, ...]
    excluded_usd: Mapping[str, float]
    total_tvl: float
    active_market_count: int
    alusd_price: float
    program: PointsProgramConfig = DEFAULT_PROGRAM

    @property
    def total_weighted_tvl(self) -> float:
        return sum(b.weighted_usd for b in self.buckets)

    def bucket(self, category: Union[str, Category], market_key: Optional[str] = None) -> Optional[WeightedBucket]:
        cat = Category.parse(category)
        return next(
            (b for b in self.buckets if b.category is cat and b.market_key == market_key),
            None,
        )

    def weighted_for(self, category: Union[str, Category]) -> float:
        """Sum of weighted USD across every market for a category."""
        cat = Category.parse(category)
        return sum(b.weighted_usd for b in self.buckets if b.category is cat)

    def boost_for(self, category: Union[str, Category], market_key: Optional[str] = None) -> float:
        """Boost a new position in `category` (optionally on a market) receives."""
        cat = Category.parse(category)
        if cat.market_scoped and market_key is not None:
            found = self.bucket(cat, market_key)
            return found.boost if found is not None else 0.0
        return cat.boost(
            self.program,
            matured=self.active_market_count == 0,
            active_markets=self.active_market_count,
        )


@dataclass(frozen=True)
class PointsBreakdown:
    """Daily points for one position: gross = fee + net."""

    gross: float
    fee: float
    net: float

    def scaled(self, days: int) -> "PointsBreakdown":
        return PointsBreakdown(self.gross * days, self.fee * days, self.net * days)


@dataclass(frozen=True)
class EarningsProjection:
    """One FDV scenario evaluated against one YT position."""

    fdv: float
    token_price: float
    daily_points: PointsBreakdown
    total_points: PointsBreakdown
    points_usd_value: float
    fee_usd_value: float
    underlying_yield_usd: float
    total_earnings: float
    roi_pct: float
    breakeven_days: float
    breakeven_status: str
    is_profit: bool


# ── TVL Classification & Weighting ───────────────────────────────────────


class TvlEngine:
    """
    Partition gross TVL into mutually exclusive categories and weight them.

    classify():
        gross  = alUSD supply × alUSD price + alpUSD supply × alpUSD price
        total  = gross − vault alUSD × alUSD price
        YT     = YT supply × alUSD price        (YT priced 1:1 in alUSD)
        LP     = SY reserve × alUSD price + PT reserve × peg   (if split known)
        venue  = Curve USDC × USDC price + Curve alUSD × alUSD price
        other  = max(0, gross − Σ configured deductions)

    weight():
        weighted = raw × boost,  PT always 0, matured YT/LP 0
    """

    @staticmethod
    def classify(
        raw: RawBalances,
        markets: Mapping[str, Market],
        program: PointsProgramConfig = DEFAULT_PROGRAM,
        now: Optional[datetime] = None,
    ) -> TvlSnapshot:
        gross = raw.alusd_supply * raw.alusd_price + raw.alpusd_supply * raw.alpusd_price
        vault_usd = raw.vault_alusd_balance * raw.alusd_price
        total = max(0.0, gross - vault_usd)
        venue_usd = raw.curve_usdc_balance * raw.usdc_price + raw.curve_alusd_balance * raw.alusd_price

        market_tvls = []
        for key, market in markets.items():
            lp_usd = market.liquidity_usd
            if market.has_pool_composition:
                lp_yield = market.total_sy * raw.alusd_price
                lp_principal = market.total_pt * program.pt_reference_price
            else:
                lp_yield, lp_principal = lp_usd, 0.0
            pt_price = market.asset_price_usd or raw.alusd_price
            market_tvls.append(
                MarketTvl(
                    key=key,
                    label=market.label,
                    yt_usd=raw.yt_supply.get(key, 0.0) * raw.alusd_price,
                    lp_usd=lp_usd,
                    lp_yield_usd=lp_yield,
                    lp_principal_usd=lp_principal,
                    pt_usd=market.total_pt * pt_price,
                    matured=MaturityClock.is_matured(market, now),
                )
            )

        deductions = {
            "vault": vault_usd,
            "venue": venue_usd,
            "lp": sum(m.lp_usd for m in market_tvls),
        }
        other = gross - sum(deductions[name] for name in program.other_tvl_excludes)

        return TvlSnapshot(
            gross_tvl=gross,
            vault_usd=vault_usd,
            total_tvl=total,
            venue_usd=venue_usd,
            other_tvl=max(0.0, other),
            markets=tuple(market_tvls),
            alusd_price=raw.alusd_price,
        )

    @staticmethod
    def weight(
        snapshot: TvlSnapshot,
        maturity_flags: Optional[Mapping[str, bool]] = None,
        program: PointsProgramConfig = DEFAULT_PROGRAM,
    ) -> WeightedTvl:
        flags = {m.key: m.matured for m in snapshot.markets}
        if maturity_flags:
            flags.update(maturity_flags)
        active = sum(1 for m in snapshot.markets if not flags[m.key])

        buckets: List[WeightedBucket] = []
        excluded: Dict[str, float] = {}
        for m in snapshot.markets:
            matured = flags[m.key]
            buckets.append(
                WeightedBucket(
                    category=Category.YT,
                    market_key=m.key,
                    label=f"YT {m.label}",
                    raw_usd=m.yt_usd,
                    boost=Category.YT.boost(program, matured, active),
                    matured=matured,
                )
            )
            buckets.append(
                WeightedBucket(
                    category=Category.LP,
                    market_key=m.key,
                    label=f"LP {m.label}",
                    raw_usd=m.lp_yield_usd,
                    boost=Category.LP.boost(program, matured, active),
                    matured=matured,
                )
            )
            excluded[f"pt:{m.key}"] = m.pt_usd

        buckets.append(
            WeightedBucket(Category.CURVE, None, "Curve Pool", snapshot.venue_usd, program.curve_boost)
        )
        buckets.append(
            WeightedBucket(Category.OTHER, None, "Other TVL", snapshot.other_tvl, program.other_boost)
        )

        return WeightedTvl(
            buckets=tuple(buckets),
            excluded_usd=MappingProxyType(excluded),
            total_tvl=snapshot.total_tvl,
            active_market_count=active,
            alusd_price=snapshot.alusd_price,
            program=program,
        )


def classify_and_weight(
    raw: RawBalances,
    markets: Mapping[str, Market],
    maturity_flags: Optional[Mapping[str, bool]] = None,
    program: PointsProgramConfig = DEFAULT_PROGRAM,
    now: Optional[datetime] = None,
) -> WeightedTvl:
    """classify() then weight() in one call."""
    snapshot = TvlEngine.classify(raw, markets, program, now)
    return TvlEngine.weight(snapshot, maturity_flags, program)


# ── Points Accrual & Projection ──────────────────────────────────────────


class PointsEngine:
    """Pro-rata daily points, FDV scenarios and the breakeven-FDV solve."""

    @staticmethod
    def daily_points(
        amount: float,
        weighted: WeightedTvl,
        category: Union[str, Category] = Category.YT,
        market_key: Optional[str] = None,
    ) -> PointsBreakdown:
        """
        Daily points for `amount` in `category`.

        Formula:
            share = amount × boost / total_weighted_tvl
            gross = share × daily_emission
            fee   = gross × fee_rate   (YT only, after allocation)
            net   = gross − fee
        """
        amount = _check_amount("amount", amount)
        total = weighted.total_weighted_tvl
        if not math.isfinite(total) or total <= 0:
            raise DivisionByZeroError("Total weighted TVL is zero; TVL data unavailable")

        cat = Category.parse(category)
        program = weighted.program
        share = amount * weighted.boost_for(cat, market_key) / total
        gross = share * program.daily_emission
        if cat.pays_fee:
            return PointsBreakdown(gross, gross * program.fee_rate, gross * (1 - program.fee_rate))
        return PointsBreakdown(gross, 0.0, gross)

    @staticmethod
    def project_earnings(
        yt_amount: float,
        days_to_maturity: int,
        weighted: WeightedTvl,
        underlying_apy: float,
        cost_basis: float,
        market_key: Optional[str] = None,
        fdv_scenarios: Optional[Sequence[float]] = None,
    ) -> List[EarningsProjection]:
        """
        Project points + underlying yield across FDV scenarios.

        Per scenario:
            token_price   = FDV × 10^6 / total_supply
            earnings      = net_points_total × token_price + yield_total
            ROI %         = (earnings − cost) / cost × 100     (0 if cost = 0)
            breakeven d   = cost / (daily_net × token_price + daily_yield)
        """
        if days_to_maturity is None or days_to_maturity < 0:
            raise InvalidInputError(f"days_to_maturity must be ≥ 0, got {days_to_maturity}")
        cost_basis = _check_amount("cost_basis", cost_basis)
        program = weighted.program

        daily = PointsEngine.daily_points(yt_amount, weighted, Category.YT, market_key)
        totals = daily.scaled(days_to_maturity)
        daily_yield = UnderlyingYield.daily(yt_amount, underlying_apy)
        total_yield = daily_yield * days_to_maturity

        scenarios = program.fdv_scenarios if fdv_scenarios is None else fdv_scenarios
        projections = []
        for fdv in scenarios:
            token_price = program.token_price(fdv)
            points_usd = totals.net * token_price
            total_earnings = points_usd + total_yield
            roi = ((total_earnings - cost_basis) / cost_basis) * 100 if cost_basis > 0 else 0.0

            daily_earnings = daily.net * token_price + daily_yield
            breakeven_days = cost_basis / daily_earnings if daily_earnings > 0 else math.inf
            if roi < 0 or math.isinf(breakeven_days) or breakeven_days <= 0:
                status = NO_BREAKEVEN
            else:
                status = f"{math.ceil(breakeven_days)} days"

            projections.append(
                EarningsProjection(
                    fdv=fdv,
                    token_price=token_price,
                    daily_points=daily,
                    total_points=totals,
                    points_usd_value=points_usd,
                    fee_usd_value=totals.fee * token_price,
                    underlying_yield_usd=total_yield,
                    total_earnings=total_earnings,
                    roi_pct=roi,
                    breakeven_days=breakeven_days,
                    breakeven_status=status,
                    is_profit=roi >= 0,
                )
            )
        return projections

    @staticmethod
    def solve_breakeven_fdv(
        yt_amount: float,
        days_to_maturity: int,
        weighted: WeightedTvl,
        underlying_apy: float,
        cost_basis: float,
        market_key: Optional[str] = None,
    ) -> Optional[float]:
        """
        FDV (millions) at which total earnings equal the cost basis.

        Formula:
            token_price = (cost − yield_total) / net_points_total
            FDV         = token_price × total_supply / 10^6

        None when yield alone already covers the cost or no net points accrue.
        """
        program = weighted.program
        daily = PointsEngine.daily_points(yt_amount, weighted, Category.YT, market_key)
        total_net = daily.net * days_to_maturity
        total_yield = UnderlyingYield.daily(yt_amount, underlying_apy) * days_to_maturity

        needed = cost_basis - total_yield
        if needed <= 0 or total_net <= 0:
            return None
        token_price = needed / total_net
        return token_price * program.total_token_supply / 1_000_000


def visible_scenarios(
    projections: Sequence[EarningsProjection],
    breakeven_fdv: Optional[float],
    anchor_fdv: float = DEFAULT_PROGRAM.breakeven_anchor_fdv,
) -> List[EarningsProjection]:
    """Keep the anchor row and every scenario at or above breakeven."""
    if breakeven_fdv is None:
        return list(projections)
    return [p for p in projections if p.fdv == anchor_fdv or p.fdv >= breakeven_fdv]


# ── Distribution Tables ──────────────────────────────────────────────────


def points_distribution(weighted: WeightedTvl) -> Dict[str, Any]:
    """
    Daily emission split per bucket.

    Gross points across the buckets add up to the daily emission; the
    referral reserve sits outside the pro-rata pool.
    """
    program = weighted.program
    total = weighted.total_weighted_tvl
    if total <= 0:
        raise DivisionByZeroError("Total weighted TVL is zero; TVL data unavailable")

    rows = []
    for b in weighted.buckets:
        share = b.weighted_usd / total
        gross = share * program.daily_emission
        fee = gross * program.fee_rate if b.category.pays_fee else 0.0
        rows.append(
            {
                "label": b.label,
                "category": b.category.value,
                "market": b.market_key,
                "raw_usd": b.raw_usd,
                "boost": b.boost,
                "weighted_usd": b.weighted_usd,
                "share_pct": share * 100,
                "gross_points": gross,
                "fee_points": fee,
                "net_points": gross - fee,
                "matured": b.matured,
            }
        )

    total_fee = sum(r["fee_points"] for r in rows)
    return {
        "rows": rows,
        "excluded_usd": dict(weighted.excluded_usd),
        "total_weighted_tvl": total,
        "daily_emission": program.daily_emission,
        "referral_points": program.referral_reserve,
        "total_fee_points": total_fee,
        "fee_share_pct": total_fee / program.gross_daily_emission * 100,
    }


def minimum_funds(weighted: WeightedTvl) -> List[Dict[str, Any]]:
    """
    Smallest position earning one point per day, per active bucket.

    Formula:
        weighted_needed = total_weighted_tvl / daily_emission
        min_usd         = weighted_needed / boost     (∞ when boost = 0)
    """
    program = weighted.program
    total = weighted.total_weighted_tvl
    if total <= 0:
        raise DivisionByZeroError("Total weighted TVL is zero; TVL data unavailable")
    weighted_needed = total / program.daily_emission

    rows = []
    for b in weighted.buckets:
        if b.matured:
            continue
        min_usd = weighted_needed / b.boost if b.boost > 0 else math.inf
        pool_gross = b.weighted_usd / total * program.daily_emission
        pool_fee = pool_gross * program.fee_rate if b.category.pays_fee else 0.0
        rows.append(
            {
                "label": b.label,
                "category": b.category.value,
                "market": b.market_key,
                "boost": b.boost,
                "daily_pool_points": pool_gross,
                "daily_pool_fee": pool_fee,
                "daily_pool_net": pool_gross - pool_fee,
                "min_usd": min_usd,
                "min_tokens": min_usd / weighted.alusd_price if weighted.alusd_price > 0 else math.inf,
            }
        )
    return rows


# ── Full Analysis ────────────────────────────────────────────────────────


def analyze_position(
    yt_amount: float,
    cost_basis: float,
    market: Market,
    weighted: WeightedTvl,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Full projection for a YT position on one market.

    Combines maturity status, daily/total points, yield-only maturity
    earnings, FDV scenarios and the breakeven FDV into one dict.
    """
    yt_amount = _check_amount("yt_amount", yt_amount)
    days = MaturityClock.days_to_maturity(market, now)
    matured = MaturityClock.is_matured(market, now)

    daily = PointsEngine.daily_points(yt_amount, weighted, Category.YT, market.key)
    scenarios = PointsEngine.project_earnings(
        yt_amount, days, weighted, market.underlying_apy, cost_basis, market.key
    )
    breakeven_fdv = PointsEngine.solve_breakeven_fdv(
        yt_amount, days, weighted, market.underlying_apy, cost_basis, market.key
    )

    return {
        "market": market.key,
        "market_label": market.label,
        "yt_amount": yt_amount,
        "cost_basis": cost_basis,
        "days_to_maturity": days,
        "is_matured": matured,
        "countdown": MaturityClock.countdown_label(days, matured),
        "underlying_apy": market.underlying_apy,
        "implied_apy": market.implied_apy,
        "daily_points": daily,
        "total_points": daily.scaled(days),
        "maturity_earnings": UnderlyingYield.maturity_earnings(
            yt_amount, market.underlying_apy, days, cost_basis
        ),
        "scenarios": scenarios,
        "breakeven_fdv": breakeven_fdv,
        "visible_scenarios": visible_scenarios(
            scenarios, breakeven_fdv, weighted.program.breakeven_anchor_fdv
        ),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Module-level interface ───────────────────────────────────────────────

is_matured = MaturityClock.is_matured
days_to_maturity = MaturityClock.days_to_maturity
countdown_label = MaturityClock.countdown_label
maturity_return = UnderlyingYield.compounded_return
maturity_earnings = UnderlyingYield.maturity_earnings
daily_points = PointsEngine.daily_points
project_earnings = PointsEngine.project_earnings
solve_breakeven_fdv = PointsEngine.solve_breakeven_fdv
