"""Tests for the DexScreener client and pair selection."""

from decimal import Decimal

import httpx
import pytest

from pulse_portfolio_tracker.core.exceptions import NotFound, RateLimited
from pulse_portfolio_tracker.data.addresses import NATIVE_TOKEN_ADDRESS, WPLS_CONTRACT_ADDRESS
from pulse_portfolio_tracker.integrations.dexscreener import DexScreenerClient, select_best_pair
from pulse_portfolio_tracker.rpc.rate_limit import RateLimiter

TOKEN = "0x95b303987a60c71504d99aa1b13b4da07b0790ab"


def _pair(price, liquidity, chain="pulsechain", volume=0, change=None, dex="pulsex"):
    pair = {
        "chainId": chain,
        "dexId": dex,
        "priceUsd": str(price),
        "liquidity": {"usd": liquidity},
        "volume": {"h24": volume},
        "txns": {"h24": {"buys": 10, "sells": 5}},
    }
    if change is not None:
        pair["priceChange"] = {"h24": change}
    return pair


def _client(handler, clock, capacity=30):
    limiter = RateLimiter(capacity=capacity, refill_rate=0.5, cooldown=60, clock=clock)
    client = DexScreenerClient(limiter, client=httpx.Client(transport=httpx.MockTransport(handler)))
    return client, limiter


def test_select_best_pair_prefers_liquidity():
    """Test the deepest pair on the right chain wins."""
    pairs = [
        _pair(0.01, 5_000),
        _pair(0.011, 900_000, dex="pulsex-v2"),
        _pair(0.02, 9_000_000, chain="ethereum"),
    ]
    assert select_best_pair(pairs)["dexId"] == "pulsex-v2"


def test_select_best_pair_filters_low_liquidity():
    """Test illiquid pairs never price a token."""
    assert select_best_pair([_pair(1.0, 999)]) is None
    assert select_best_pair([{"chainId": "pulsechain", "liquidity": None, "priceUsd": "1"}]) is None


def test_outlier_price_penalized():
    """Test a pair priced far from the median loses to a sane one."""
    pairs = [_pair(1.0, 100_000), _pair(1.05, 90_000), _pair(500.0, 120_000, dex="scam")]
    assert select_best_pair(pairs)["dexId"] == "pulsex"


def test_get_token_price(clock):
    """Test price, signed change and logo are parsed."""

    def handler(request):
        assert request.url.path.endswith(f"/tokens/{TOKEN}")
        pair = _pair("0.00042", 250_000, change="-3.5")
        pair["info"] = {"imageUrl": "https://img/plsx.png"}
        return httpx.Response(200, json={"pairs": [pair]})

    client, _ = _client(handler, clock)
    quote = client.get_token_price(TOKEN.upper().replace("0X", "0x"))

    assert quote.token_address == TOKEN
    assert quote.usd_price == Decimal("0.00042")
    assert quote.price_change_24h == Decimal("-3.5")
    assert quote.logo == "https://img/plsx.png"
    assert quote.source == "dexscreener"


def test_native_priced_through_wrapped_token(clock):
    """Test PLS asks DexScreener for WPLS pairs."""
    requested = []

    def handler(request):
        requested.append(request.url.path)
        return httpx.Response(200, json={"pairs": [_pair("0.00005", 5_000_000)]})

    client, _ = _client(handler, clock)
    quote = client.get_token_price(NATIVE_TOKEN_ADDRESS)

    assert requested[0].endswith(f"/tokens/{WPLS_CONTRACT_ADDRESS}")
    assert quote.token_address == NATIVE_TOKEN_ADDRESS


def test_stablecoin_pinned_without_request(clock):
    """Test bridged stablecoins are priced at $1 locally."""

    def handler(request):
        raise AssertionError("no request expected")

    client, limiter = _client(handler, clock)
    quote = client.get_token_price("0xefd766ccb38eaf1dfd701853bfce31359239f305")

    assert quote.usd_price == Decimal("1")
    assert limiter.tokens == 30


def test_unlisted_token_not_found(clock):
    """Test no pairs means NotFound."""
    client, _ = _client(lambda request: httpx.Response(200, json={"pairs": None}), clock)
    with pytest.raises(NotFound):
        client.get_token_price(TOKEN)


def test_429_starts_cooldown(clock):
    """Test a 429 empties the bucket and blocks further calls without network."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429)

    client, limiter = _client(handler, clock)

    with pytest.raises(RateLimited):
        client.get_token_price(TOKEN)
    assert not limiter.can_make_request()

    with pytest.raises(RateLimited) as exc_info:
        client.get_token_price(TOKEN)
    assert len(calls) == 1
    assert exc_info.value.retry_after_ms == 60_000


def test_empty_bucket_rejects_locally(clock):
    """Test requests beyond capacity are refused before reaching the network."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"pairs": [_pair(1, 10_000)]})

    client, _ = _client(handler, clock, capacity=2)
    client.get_token_price(TOKEN)
    client.get_token_price(TOKEN)

    with pytest.raises(RateLimited):
        client.get_token_price(TOKEN)
    assert len(calls) == 2
