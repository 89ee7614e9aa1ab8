"""
Unit Tests for YT Moonshot Modules
===================================

Covers every module outside the math engine:
  - units.py            (wei conversion)
  - formatting.py       (trade quote, currency, FDV labels)
  - errors.py           (taxonomy)
  - central_config.py   (API config, URL builders, points program)
  - market_registry.py  (lookup, env override)
  - http_helpers.py     (rate limiter, JSON requests, proxy envelope)
  - pendle_client.py    (market data, swap quotes)
  - tvl_client.py       (Etherscan balances, price feeds)
  - refresher.py        (snapshot store)
  - commands.py / run.py (handlers, argparse parser)

All tests are offline — no network calls. Mock-based where needed.
"""

import asyncio
import dataclasses
import math
from datetime import datetime, timezone
from types import MappingProxyType
from unittest.mock import patch, MagicMock, AsyncMock

import httpx
import pytest

UTC = timezone.utc
NOW = datetime(2025, 11, 1, 12, 0, tzinfo=UTC)


def _response(payload, status=200):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    return response


def _mock_async_client(MockClient, mock_client):
    MockClient.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    MockClient.return_value.__aexit__ = AsyncMock(return_value=False)


# ═══════════════════════════════════════════════════════════════════════════
# 1. units.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli.units import to_wei, from_wei, format_from_wei
from moonshot_cli.errors import (
    MoonshotError,
    DataSourceError,
    DivisionByZeroError,
    InvalidInputError,
)


class TestToWei:
    @pytest.mark.parametrize("amount,decimals,expected", [
        ("1.5", 18, "1500000000000000000"),
        (0, 18, "0"),
        ("0", 18, "0"),
        (1000, 18, "1000" + "0" * 18),
        (0.1, 18, "100000000000000000"),
        ("2.1234567", 6, "2123456"),
        ("1e-7", 18, "100000000000"),
        ("0.0000000000000000001", 18, "0"),
        ("007.25", 6, "7250000"),
        ("-0", 18, "0"),
        (-0.0, 18, "0"),
        ("-0.000", 6, "0"),
    ])
    def test_known_values(self, amount, decimals, expected):
        assert to_wei(amount, decimals) == expected

    def test_large_amount_exact(self):
        assert to_wei("10000000") == "1" + "0" * 25

    @pytest.mark.parametrize("bad", ["-1", -0.5, "abc", float("nan"), float("inf"), "Infinity"])
    def test_invalid_raises(self, bad):
        with pytest.raises(InvalidInputError):
            to_wei(bad)


class TestFromWei:
    def test_from_wei(self):
        assert from_wei("1500000000000000000") == pytest.approx(1.5)
        assert from_wei(2_500_000, 6) == pytest.approx(2.5)

    def test_empty_is_zero(self):
        assert from_wei("") == 0.0

    def test_garbage_raises(self):
        with pytest.raises(InvalidInputError):
            from_wei("0xzz")

    def test_format_from_wei(self):
        assert format_from_wei("1500000000000000000") == "1.500000"
        assert format_from_wei("2500000", 6, 2) == "2.50"


# ═══════════════════════════════════════════════════════════════════════════
# 2. errors.py
# ═══════════════════════════════════════════════════════════════════════════


class TestErrors:
    def test_data_source_error_carries_source(self):
        err = DataSourceError("Etherscan", "Invalid API Key")
        assert err.source == "Etherscan"
        assert err.message == "Invalid API Key"
        assert str(err) == "Etherscan: Invalid API Key"

    def test_builtin_bases(self):
        assert issubclass(DataSourceError, RuntimeError)
        assert issubclass(DivisionByZeroError, ZeroDivisionError)
        assert issubclass(InvalidInputError, ValueError)

    def test_common_base(self):
        for cls in (DataSourceError, DivisionByZeroError, InvalidInputError):
            assert issubclass(cls, MoonshotError)


# ═══════════════════════════════════════════════════════════════════════════
# 3. formatting.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli.formatting import (
    format_currency,
    format_fdv,
    format_number,
    format_trade_quote,
)


class TestFormatFdv:
    @pytest.mark.parametrize("fdv,label", [
        (90, "90M"),
        (200, "200M"),
        (92.25, "92.3M"),
        (999.94, "999.9M"),
        (999.96, "1B"),
        (1234.5, "1.2B"),
        (1000, "1B"),
        (1500, "1.5B"),
        (2000, "2B"),
    ])
    def test_labels(self, fdv, label):
        assert format_fdv(fdv) == label


class TestFormatCurrency:
    def test_positive(self):
        assert format_currency(1234.5) == "$1,234.50"

    def test_negative(self):
        assert format_currency(-1234.5) == "-$1,234.50"

    def test_infinite(self):
        assert format_currency(math.inf) == "∞"

    def test_format_number(self):
        assert format_number(316666.4) == "316,666"
        assert format_number(0) == "0"


class TestFormatTradeQuote:
    TRADE = {
        "netFromTaker": "1000000000000000000000",
        "netToTaker": "25000000000",
        "fee": "1500000000000000000",
    }

    def test_total_trade_preferred(self):
        response = {"totalTrade": self.TRADE, "marketTrade": {"netToTaker": "1"}}
        quote = format_trade_quote(response, "1000")
        assert quote.input_amount == "1000 alUSD"
        assert quote.net_from_taker == "1000.000000 alUSD"
        assert quote.net_to_taker == "25000.000000 YT"
        assert quote.fee == "1.500000 alUSD"
        assert quote.yt_received == pytest.approx(25_000)

    def test_falls_back_to_market_trade(self):
        quote = format_trade_quote({"marketTrade": self.TRADE}, 1000)
        assert quote.net_to_taker == "25000.000000 YT"

    def test_missing_trade_raises(self):
        with pytest.raises(DataSourceError):
            format_trade_quote({"foo": 1}, 1000)


# ═══════════════════════════════════════════════════════════════════════════
# 4. central_config.py / market_registry.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli.central_config import (
    PROJECT_NAME,
    PROJECT_VERSION,
    EtherscanAPI,
    PointsProgramConfig,
    config,
)
from moonshot_cli.market_registry import (
    DEFAULT_MARKET,
    MARKETS,
    Market,
    _address,
    addressed_markets,
    get_market,
    market_keys,
)


class TestCentralConfig:
    def test_version_string(self):
        assert isinstance(PROJECT_VERSION, str) and PROJECT_VERSION
        assert PROJECT_NAME == "YT Moonshot Calculator"

    def test_market_data_url(self):
        url = config.pendle.market_data_url("0xabc")
        assert url == "https://api-v2.pendle.finance/core/v2/1/markets/0xabc/data"

    def test_trade_url(self):
        assert config.pendle.trade_url().endswith("/limit-order/v2/limit-order/market-order")

    def test_etherscan_params(self):
        params = config.etherscan.token_balance_params("0xT", "0xH")
        assert params["module"] == "account"
        assert params["action"] == "tokenbalance"
        assert params["contractaddress"] == "0xT"
        assert params["address"] == "0xH"
        assert config.etherscan.token_supply_params("0xT")["action"] == "tokensupply"

    def test_etherscan_key_from_env(self, monkeypatch):
        monkeypatch.setenv("ETHERSCAN_API_KEY", "secret-key")
        api = EtherscanAPI()
        assert api.API_KEY == "secret-key"
        assert "secret-key" not in repr(api)

    def test_points_program_defaults(self):
        p = config.points
        assert p.daily_emission == 316_666
        assert p.gross_daily_emission == 333_333
        assert p.fee_rate == 0.05
        assert p.fdv_scenarios == (90, 200, 250, 300, 350, 400, 450, 500)
        assert p.boosts["yt"] == 5.0
        assert p.boosts["pt"] == 0.0

    def test_token_price(self):
        assert config.points.token_price(200) == pytest.approx(0.2)
        assert config.points.token_price(1500) == pytest.approx(1.5)

    def test_config_is_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.points.fee_rate = 0.1

    @pytest.mark.parametrize("kwargs", [
        {"fee_rate": -0.1},
        {"fee_rate": 1.5},
        {"daily_emission": 0},
        {"total_token_supply": float("inf")},
    ])
    def test_invalid_program_rejected(self, kwargs):
        with pytest.raises(InvalidInputError):
            PointsProgramConfig(**kwargs)


class TestMarketRegistry:
    def test_keys_in_display_order(self):
        assert market_keys() == ["oct23", "dec11"]
        assert DEFAULT_MARKET in MARKETS

    def test_get_market_case_insensitive(self):
        assert get_market(" OCT23 ").key == "oct23"
        assert get_market("mar26") is None

    def test_registry_read_only(self):
        with pytest.raises(TypeError):
            MARKETS["new"] = MARKETS["oct23"]

    def test_address_env_override(self, monkeypatch):
        monkeypatch.setenv("MOONSHOT_MARKET_DEC11", " 0xfeed ")
        assert _address("dec11", "") == "0xfeed"

    def test_addressed_markets_skips_empty(self):
        markets = {
            "a": MARKETS["oct23"],
            "b": dataclasses.replace(MARKETS["dec11"], address=""),
        }
        assert [m.key for m in addressed_markets(markets)] == ["oct23"]

    def test_with_market_data_keeps_identity(self):
        m = MARKETS["oct23"].with_market_data(key="zzz", underlying_apy=0.07)
        assert m.key == "oct23"
        assert m.underlying_apy == 0.07

    def test_pool_composition_flag(self):
        assert not MARKETS["oct23"].has_pool_composition
        assert MARKETS["oct23"].with_market_data(total_sy=1).has_pool_composition


# ═══════════════════════════════════════════════════════════════════════════
# 5. http_helpers.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli.http_helpers import RateLimiter, get_json, post_json, unwrap_proxy_payload


class TestRateLimiter:
    def test_no_wait_under_limit(self):
        limiter = RateLimiter(max_requests=3, period_seconds=60)
        with patch("moonshot_cli.http_helpers.asyncio.sleep", new=AsyncMock()) as sleep:
            async def run():
                for _ in range(3):
                    await limiter.acquire()
            asyncio.run(run())
            sleep.assert_not_awaited()

    def test_waits_when_window_full(self):
        limiter = RateLimiter(max_requests=2, period_seconds=60)
        with patch("moonshot_cli.http_helpers.asyncio.sleep", new=AsyncMock()) as sleep:
            async def run():
                for _ in range(3):
                    await limiter.acquire()
            asyncio.run(run())
            assert sleep.await_count == 1
            assert 0 < sleep.await_args.args[0] <= 60


class TestJsonRequests:
    def test_get_json_ok(self):
        client = AsyncMock()
        client.get.return_value = _response({"a": 1})
        assert asyncio.run(get_json(client, "Src", "http://fake", {"q": 1})) == {"a": 1}
        client.get.assert_awaited_once_with("http://fake", params={"q": 1})

    def test_rate_limited(self):
        client = AsyncMock()
        client.get.return_value = _response({}, status=429)
        with pytest.raises(DataSourceError, match="rate limit"):
            asyncio.run(get_json(client, "Src", "http://fake"))

    def test_http_error_status(self):
        client = AsyncMock()
        client.post.return_value = _response({}, status=500)
        with pytest.raises(DataSourceError, match="HTTP 500"):
            asyncio.run(post_json(client, "Src", "http://fake", {}))

    def test_invalid_json(self):
        response = _response(None)
        response.json.side_effect = ValueError("bad json")
        client = AsyncMock()
        client.get.return_value = response
        with pytest.raises(DataSourceError, match="not valid JSON"):
            asyncio.run(get_json(client, "Src", "http://fake"))

    def test_timeout(self):
        client = AsyncMock()
        client.get.side_effect = httpx.ConnectTimeout("slow")
        with pytest.raises(DataSourceError, match="timed out"):
            asyncio.run(get_json(client, "Src", "http://fake"))

    def test_transport_error(self):
        client = AsyncMock()
        client.post.side_effect = httpx.ConnectError("refused")
        with pytest.raises(DataSourceError, match="ConnectError"):
            asyncio.run(post_json(client, "Src", "http://fake", {}))


class TestUnwrapProxyPayload:
    def test_success(self):
        assert unwrap_proxy_payload("Proxy", {"success": True, "data": {"x": 1}}) == {"x": 1}

    def test_failure_carries_upstream_message(self):
        with pytest.raises(DataSourceError, match="Etherscan down"):
            unwrap_proxy_payload("Proxy", {"success": False, "error": "Etherscan down"})

    def test_missing_data(self):
        with pytest.raises(DataSourceError):
            unwrap_proxy_payload("Proxy", {"success": True})

    def test_not_a_dict(self):
        with pytest.raises(DataSourceError):
            unwrap_proxy_payload("Proxy", ["nope"])


# ═══════════════════════════════════════════════════════════════════════════
# 6. pendle_client.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli.pendle_client import PendleClient, parse_market_data, validate_trade_amount


MARKET_A = Market(
    key="a", label="Market A", address="0xaaa", yt_token="0xyta",
    maturity=datetime(2025, 12, 11, tzinfo=UTC),
)
MARKET_B = Market(
    key="b", label="Market B", address="0xbbb", yt_token="0xytb",
    maturity=datetime(2026, 3, 26, tzinfo=UTC),
)
MARKET_NO_ADDR = Market(
    key="c", label="Market C", address="", yt_token="0xytc",
    maturity=datetime(2026, 6, 25, tzinfo=UTC),
)

MARKET_PAYLOAD = {
    "underlyingApy": 0.08,
    "impliedApy": 0.11,
    "liquidity": {"usd": 2_000_000},
    "totalPt": 1_200_000,
    "totalSy": 800_000,
    "assetPriceUsd": 1.02,
}


class TestParseMarketData:
    def test_fields(self):
        m = parse_market_data(MARKET_A, MARKET_PAYLOAD)
        assert m.underlying_apy == 0.08
        assert m.implied_apy == 0.11
        assert m.liquidity_usd == 2_000_000
        assert m.total_pt == 1_200_000
        assert m.total_sy == 800_000
        assert m.asset_price_usd == 1.02
        assert m.address == "0xaaa"

    def test_bare_liquidity_and_missing_fields(self):
        m = parse_market_data(MARKET_A, {"liquidity": "1500.5", "impliedApy": None})
        assert m.liquidity_usd == 1500.5
        assert m.implied_apy == 0.0
        assert m.total_pt == 0.0


class TestValidateTradeAmount:
    def test_valid(self):
        assert validate_trade_amount("1000") == 1000.0

    @pytest.mark.parametrize("bad", ["abc", "0", -5, "nan", 10_000_001])
    def test_invalid(self, bad):
        with pytest.raises(InvalidInputError):
            validate_trade_amount(bad)


class TestPendleClientMocked:
    def test_fetch_market(self):
        with patch("moonshot_cli.pendle_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.return_value = _response(MARKET_PAYLOAD)
            _mock_async_client(MockClient, mock_client)

            m = asyncio.run(PendleClient().fetch_market(MARKET_A))
            assert m.underlying_apy == 0.08
            url = mock_client.get.await_args.args[0]
            assert url.endswith("/markets/0xaaa/data")

    def test_fetch_market_without_address(self):
        with pytest.raises(DataSourceError, match="no address"):
            asyncio.run(PendleClient().fetch_market(MARKET_NO_ADDR))

    def test_fetch_all_markets_omits_failures(self):
        def fake_get(url, params=None):
            if "0xbbb" in url:
                return _response({}, status=500)
            return _response(MARKET_PAYLOAD)

        with patch("moonshot_cli.pendle_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.side_effect = fake_get
            _mock_async_client(MockClient, mock_client)

            result = asyncio.run(
                PendleClient().fetch_all_markets([MARKET_A, MARKET_B, MARKET_NO_ADDR])
            )
            assert list(result) == ["a"]
            assert result["a"].liquidity_usd == 2_000_000

    def test_quote_trade_payload(self):
        trade = {"netFromTaker": "1", "netToTaker": "2", "fee": "0"}
        with patch("moonshot_cli.pendle_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response({"totalTrade": trade})
            _mock_async_client(MockClient, mock_client)

            data = asyncio.run(PendleClient().quote_trade("1000", MARKET_A))
            assert data["totalTrade"] == trade
            payload = mock_client.post.await_args.kwargs["json"]
            assert payload == {
                "chainId": 1,
                "market": "0xaaa",
                "netFromTaker": "1000" + "0" * 18,
                "type": 2,
                "cappedAmountToMarket": "138107596043615446631225",
            }

    def test_quote_trade_rejects_empty_response(self):
        with patch("moonshot_cli.pendle_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response({"error": "no route"})
            _mock_async_client(MockClient, mock_client)

            with pytest.raises(DataSourceError, match="invalid response"):
                asyncio.run(PendleClient().quote_trade("1000", MARKET_A))

    def test_quote_trade_validates_before_request(self):
        with patch("moonshot_cli.pendle_client.httpx.AsyncClient") as MockClient:
            with pytest.raises(InvalidInputError):
                asyncio.run(PendleClient().quote_trade("-1", MARKET_A))
            MockClient.assert_not_called()


# ═══════════════════════════════════════════════════════════════════════════
# 7. tvl_client.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli.http_helpers import RateLimiter as _Limiter
from moonshot_cli.tvl_client import TvlClient, parse_etherscan_result, parse_lagoon_price

TOKENS = config.tokens
E18 = 10 ** 18
E6 = 10 ** 6

ETHERSCAN_RESULTS = {
    ("tokensupply", TOKENS.ALUSD, None): 10_000_000 * E18,
    ("tokensupply", TOKENS.ALPUSD, None): 2_000_000 * E18,
    ("tokenbalance", TOKENS.ALUSD, TOKENS.SY_VAULT): 3_000_000 * E18,
    ("tokenbalance", TOKENS.USDC, TOKENS.CURVE_POOL): 500_000 * E6,
    ("tokenbalance", TOKENS.ALUSD, TOKENS.CURVE_POOL): 500_000 * E18,
    ("tokensupply", "0xyta", None): 4_000_000 * E6,
}


def _fake_get(failing=()):
    def fake_get(url, params=None):
        params = params or {}
        if url == config.prices.LAGOON_URL:
            vault = params["vault"]
            price = 1.03 if vault == TOKENS.ALUSD else 1.011
            return _response({"vaults": [
                {"address": "0x0000", "state": {"pricePerShareUsd": 9.9}},
                {"address": vault.upper().replace("0X", "0x"), "state": {"pricePerShareUsd": price}},
            ]})
        if url == config.prices.COINGECKO_URL:
            return _response({"usd-coin": {"usd": 0.9998}})
        key = (params["action"], params["contractaddress"], params.get("address"))
        if key in failing or key not in ETHERSCAN_RESULTS:
            return _response({"status": "0", "message": "NOTOK", "result": "Invalid API Key"})
        return _response({"status": "1", "message": "OK", "result": str(ETHERSCAN_RESULTS[key])})
    return fake_get


def _tvl_client():
    client = TvlClient()
    client._limiter = _Limiter(max_requests=100, period_seconds=1.0)
    return client


class TestParseEtherscan:
    def test_ok(self):
        assert parse_etherscan_result({"status": "1", "result": str(5 * E18)}, 18) == 5.0

    def test_not_ok(self):
        with pytest.raises(DataSourceError, match="NOTOK"):
            parse_etherscan_result({"status": "0", "message": "NOTOK", "result": ""}, 18)


class TestParseLagoon:
    def test_matches_address_case_insensitive(self):
        data = {"vaults": [{"address": "0xABC", "state": {"pricePerShareUsd": "1.05"}}]}
        assert parse_lagoon_price(data, "0xabc") == 1.05

    def test_missing_vault(self):
        assert parse_lagoon_price({"vaults": []}, "0xabc") is None
        assert parse_lagoon_price({"unexpected": True}, "0xabc") is None


class TestTvlClientMocked:
    def test_fetch_raw_balances(self):
        with patch("moonshot_cli.tvl_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.side_effect = _fake_get()
            _mock_async_client(MockClient, mock_client)

            raw = asyncio.run(_tvl_client().fetch_raw_balances([MARKET_A]))

        assert raw.alusd_supply == pytest.approx(10_000_000)
        assert raw.alpusd_supply == pytest.approx(2_000_000)
        assert raw.vault_alusd_balance == pytest.approx(3_000_000)
        assert raw.curve_usdc_balance == pytest.approx(500_000)
        assert raw.curve_alusd_balance == pytest.approx(500_000)
        assert raw.yt_supply == {"a": pytest.approx(4_000_000)}
        assert raw.alusd_price == 1.03
        assert raw.alpusd_price == 1.011
        assert raw.usdc_price == 0.9998

    def test_optional_field_defaults_to_zero(self):
        failing = {("tokenbalance", TOKENS.ALUSD, TOKENS.SY_VAULT)}
        with patch("moonshot_cli.tvl_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.side_effect = _fake_get(failing)
            _mock_async_client(MockClient, mock_client)

            raw = asyncio.run(_tvl_client().fetch_raw_balances([MARKET_A, MARKET_B]))

        assert raw.vault_alusd_balance == 0.0
        assert raw.yt_supply["b"] == 0.0
        assert raw.alusd_supply == pytest.approx(10_000_000)

    def test_alusd_supply_failure_raises(self):
        failing = {("tokensupply", TOKENS.ALUSD, None)}
        with patch("moonshot_cli.tvl_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.side_effect = _fake_get(failing)
            _mock_async_client(MockClient, mock_client)

            with pytest.raises(DataSourceError, match="alUSD supply"):
                asyncio.run(_tvl_client().fetch_raw_balances([MARKET_A]))

    def test_price_fallbacks(self):
        def broken(url, params=None):
            return _response({}, status=503)

        with patch("moonshot_cli.tvl_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.side_effect = broken
            _mock_async_client(MockClient, mock_client)

            prices = asyncio.run(_tvl_client().fetch_live_prices())

        assert prices == {"alusd": 1.0243, "alpusd": 1.01, "usdc": 1.00}

    def test_fetch_from_proxy(self):
        payload = {
            "success": True,
            "data": {"alUsdSupply": 1_000, "ytTotalSupplyA": 40, "liveUsdcPrice": 0.999},
        }
        with patch("moonshot_cli.tvl_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.return_value = _response(payload)
            _mock_async_client(MockClient, mock_client)

            raw = asyncio.run(_tvl_client().fetch_from_proxy("http://proxy", [MARKET_A]))

        assert raw.alusd_supply == 1_000
        assert raw.yt_supply == {"a": 40}
        assert raw.usdc_price == 0.999

    def test_proxy_failure(self):
        with patch("moonshot_cli.tvl_client.httpx.AsyncClient") as MockClient:
            mock_client = AsyncMock()
            mock_client.get.return_value = _response({"success": False, "error": "Etherscan down"})
            _mock_async_client(MockClient, mock_client)

            with pytest.raises(DataSourceError, match="Etherscan down"):
                asyncio.run(_tvl_client().fetch_from_proxy("http://proxy"))


# ═══════════════════════════════════════════════════════════════════════════
# 8. refresher.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli.refresher import CalculatorState, SnapshotStore
from points_math import RawBalances

RAW = RawBalances(
    alusd_supply=10_000_000,
    alpusd_supply=2_000_000,
    vault_alusd_balance=3_000_000,
    yt_supply=MappingProxyType({"oct23": 1_000_000, "dec11": 4_000_000}),
    curve_usdc_balance=500_000,
    curve_alusd_balance=500_000,
    alusd_price=1.0,
    alpusd_price=1.0,
    usdc_price=1.0,
)


class FakePendle:
    def __init__(self, markets):
        self.markets = markets

    async def fetch_all_markets(self, markets=None):
        return dict(self.markets)


class FakeTvl:
    def __init__(self, raw=RAW, error=None):
        self.raw = raw
        self.error = error

    async def fetch_raw_balances(self, markets=None):
        if self.error:
            raise self.error
        return self.raw


def _store(error=None):
    live = {"dec11": MARKETS["dec11"].with_market_data(
        underlying_apy=0.08, liquidity_usd=2_000_000, total_sy=800_000, total_pt=1_200_000,
    )}
    return SnapshotStore(pendle=FakePendle(live), tvl=FakeTvl(error=error))


class TestSnapshotStore:
    def test_empty_before_refresh(self):
        assert _store().current() is None

    def test_refresh_publishes_state(self):
        store = _store()
        state = asyncio.run(store.refresh(now=NOW))
        assert store.current() is state
        assert state.fetched_at == NOW
        assert state.snapshot.total_tvl == pytest.approx(9_000_000)
        assert state.weighted.total_weighted_tvl == pytest.approx(32_200_000)
        assert state.market("dec11").underlying_apy == 0.08
        # oct23 had no live data: registry defaults are kept
        assert state.market("oct23").underlying_apy == 0.0

    def test_unknown_market(self):
        state = asyncio.run(_store().refresh(now=NOW))
        with pytest.raises(InvalidInputError):
            state.market("mar26")

    def test_failed_refresh_keeps_previous_state(self):
        store = _store()
        first = asyncio.run(store.refresh(now=NOW))
        store.tvl = FakeTvl(error=DataSourceError("Etherscan", "down"))
        with pytest.raises(DataSourceError):
            asyncio.run(store.refresh(now=NOW))
        assert store.current() is first

    def test_run_periodic_survives_failures(self):
        store = _store(error=DataSourceError("Etherscan", "down"))
        with patch("moonshot_cli.refresher.asyncio.sleep", new=AsyncMock()) as sleep:
            result = asyncio.run(store.run_periodic(interval=600, cycles=3))
        assert result is None
        assert sleep.await_count == 2

    def test_run_periodic_returns_latest(self):
        store = _store()
        with patch("moonshot_cli.refresher.asyncio.sleep", new=AsyncMock()):
            result = asyncio.run(store.run_periodic(interval=1, cycles=2))
        assert isinstance(result, CalculatorState)
        assert result is store.current()


# ═══════════════════════════════════════════════════════════════════════════
# 9. commands.py / run.py
# ═══════════════════════════════════════════════════════════════════════════

from moonshot_cli import commands
from run import create_parser, main


def _patched_store(state=None, error=None):
    store = MagicMock()
    store.return_value.refresh = AsyncMock(return_value=state, side_effect=error)
    return patch("moonshot_cli.commands.SnapshotStore", store)


class TestCliParser:
    def test_trade_defaults(self):
        args = create_parser().parse_args(["trade", "1000"])
        assert args.command == "trade"
        assert args.amount == "1000"
        assert args.market == DEFAULT_MARKET
        assert args.verbose is False

    def test_project_args(self):
        args = create_parser().parse_args(
            ["--verbose", "project", "--yt", "25000", "--cost", "1000", "--market", "oct23"]
        )
        assert args.yt == 25000.0
        assert args.cost == 1000.0
        assert args.market == "oct23"
        assert args.verbose is True

    def test_unknown_market_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["trade", "1000", "--market", "mar26"])

    def test_project_requires_cost(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["project", "--yt", "1"])

    @pytest.mark.parametrize("command", ["info", "markets", "tvl", "minfunds"])
    def test_simple_commands(self, command):
        assert create_parser().parse_args([command]).command == command


class TestCommands:
    def test_info(self, capsys):
        assert main(["info"]) == 0
        out = capsys.readouterr().out
        assert "333,333" in out
        assert "oct23" in out and "dec11" in out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_project(self, capsys):
        state = asyncio.run(_store().refresh(now=datetime.now(UTC)))
        with _patched_store(state):
            code = asyncio.run(commands.cmd_project(25_000, 1_000, "dec11"))
        assert code == 0
        assert "Position Projection" in capsys.readouterr().out

    def test_tvl(self, capsys):
        state = asyncio.run(_store().refresh(now=NOW))
        with _patched_store(state):
            code = asyncio.run(commands.cmd_tvl())
        out = capsys.readouterr().out
        assert code == 0
        assert "Referral reserve" in out
        assert "$9,000,000.00" in out

    def test_minfunds(self, capsys):
        state = asyncio.run(_store().refresh(now=NOW))
        with _patched_store(state):
            assert asyncio.run(commands.cmd_minfunds()) == 0
        assert "Minimum Funds" in capsys.readouterr().out

    def test_data_source_failure_reported(self, capsys):
        with _patched_store(error=DataSourceError("Etherscan", "Invalid API Key")):
            code = asyncio.run(commands.cmd_tvl())
        assert code == 1
        assert "❌ Etherscan: Invalid API Key" in capsys.readouterr().out

    def test_trade_invalid_amount(self, capsys):
        with _patched_store() as store:
            code = asyncio.run(commands.cmd_trade("abc"))
        assert code == 1
        store.assert_not_called()
        assert "valid amount" in capsys.readouterr().out
