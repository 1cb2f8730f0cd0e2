"""Tests for the Moralis and PulseChain Scan clients."""

import json
from decimal import Decimal

import httpx
import pytest

from pulse_portfolio_tracker.core.exceptions import MalformedResponse, NotFound, ProviderUnavailable, RateLimited
from pulse_portfolio_tracker.data.addresses import NATIVE_TOKEN_ADDRESS
from pulse_portfolio_tracker.integrations.moralis import MoralisClient, parse_price
from pulse_portfolio_tracker.integrations.pulsechain_scan import PulseChainScanClient

WALLET = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2b591e99afe9f32eaa6214f7b7629768c40eeb39"


def _moralis(handler):
    return MoralisClient("test-key", client=httpx.Client(transport=httpx.MockTransport(handler)))


def _scan(handler):
    return PulseChainScanClient(client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_parse_price_signed_change():
    """Test both percent-change field spellings."""
    quote = parse_price({"usdPrice": 0.0123, "usdPrice24hrPercentChange": "-7.5"}, TOKEN)
    assert quote.usd_price == Decimal("0.0123")
    assert quote.price_change_24h == Decimal("-7.5")

    quote = parse_price({"usdPrice": "2", "24hrPercentChange": "4.2", "securityScore": 88}, TOKEN)
    assert quote.price_change_24h == Decimal("4.2")
    assert quote.security_score == 88

    with pytest.raises(NotFound):
        parse_price({"usdPrice": None}, TOKEN)


def test_wallet_token_balances():
    """Test spam filtering, native flag and string decimals."""

    def handler(request):
        assert request.headers["X-API-Key"] == "test-key"
        assert request.url.params["chain"] == "0x171"
        return httpx.Response(
            200,
            json={
                "result": [
                    {
                        "token_address": "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee",
                        "symbol": "PLS",
                        "decimals": 18,
                        "balance": "5000000000000000000",
                        "native_token": True,
                        "usd_price": 0.00005,
                    },
                    {
                        "token_address": TOKEN.upper().replace("0X", "0x"),
                        "symbol": "HEX",
                        "decimals": "8",
                        "balance": "12345678900",
                        "usd_price": "0.004",
                        "usd_price_24hr_percent_change": "-1.25",
                    },
                    {"token_address": "0x9999999999999999999999999999999999999999", "possible_spam": True},
                ]
            },
        )

    balances = _moralis(handler).get_wallet_token_balances(WALLET)

    assert [b.symbol for b in balances] == ["PLS", "HEX"]
    assert balances[0].address == NATIVE_TOKEN_ADDRESS
    assert balances[0].is_native
    assert balances[1].address == TOKEN
    assert balances[1].decimals == 8
    assert balances[1].price_change_24h == Decimal("-1.25")


def test_batch_prices_skip_unpriced():
    """Test the batch endpoint body and partial results."""

    def handler(request):
        body = json.loads(request.content)
        assert body == {"tokens": [{"token_address": TOKEN}, {"token_address": WALLET}]}
        return httpx.Response(200, json=[{"tokenAddress": TOKEN, "usdPrice": 0.004}, {"tokenAddress": WALLET}])

    quotes = _moralis(handler).get_batch_prices([TOKEN, WALLET])

    assert list(quotes) == [TOKEN]


def test_status_mapping():
    """Test HTTP failures map onto the error taxonomy."""
    responses = {
        "429": httpx.Response(429, headers={"retry-after": "3"}),
        "404": httpx.Response(404),
        "503": httpx.Response(503),
        "400": httpx.Response(400),
        "html": httpx.Response(200, text="<html>"),
    }
    expected = {
        "429": RateLimited,
        "404": NotFound,
        "503": ProviderUnavailable,
        "400": MalformedResponse,
        "html": MalformedResponse,
    }
    for key, response in responses.items():
        client = _moralis(lambda request, response=response: response)
        with pytest.raises(expected[key]) as exc_info:
            client.get_token_price(TOKEN)
        if key == "429":
            assert exc_info.value.retry_after_ms == 3000


def test_timeout_is_unavailable():
    """Test transport timeouts are transient."""

    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderUnavailable):
        _moralis(handler).get_native_balance(WALLET)


def test_wallet_history_cursor_and_malformed_items():
    """Test history parsing keeps good rows and the next cursor."""

    def handler(request):
        assert request.url.params["cursor"] == "abc"
        return httpx.Response(
            200,
            json={
                "cursor": "def",
                "result": [
                    {
                        "hash": "0x01",
                        "from_address": WALLET,
                        "to_address": TOKEN,
                        "block_number": "123",
                        "method_label": "transfer",
                        "erc20_transfers": [
                            {
                                "address": TOKEN,
                                "from_address": WALLET,
                                "to_address": TOKEN,
                                "value": "100",
                                "token_decimals": "8",
                                "token_symbol": "HEX",
                            }
                        ],
                    },
                    {"hash": "0x02", "from_address": WALLET, "block_number": "not-a-number"},
                    {"from_address": WALLET},
                ],
            },
        )

    page = _moralis(handler).get_wallet_history(WALLET, limit=10, cursor="abc")

    assert page.cursor == "def"
    assert [tx.hash for tx in page.transactions] == ["0x01"]
    assert page.transactions[0].token_transfers[0].token_decimals == 8
    assert page.transactions[0].block_number == 123


def test_scan_balances_and_native():
    """Test Blockscout token balances and coin balance."""

    def handler(request):
        if request.url.path.endswith("/token-balances"):
            return httpx.Response(
                200,
                json=[
                    {
                        "value": "100000000",
                        "token": {
                            "address": TOKEN,
                            "symbol": "HEX",
                            "decimals": "8",
                            "type": "ERC-20",
                            "exchange_rate": "0.004",
                        },
                    },
                    {"value": "1", "token": {"address": WALLET, "type": "ERC-721"}},
                ],
            )
        return httpx.Response(200, json={"coin_balance": "42"})

    scan = _scan(handler)
    balances = scan.get_token_balances(WALLET)

    assert len(balances) == 1
    assert balances[0].decimals == 8
    assert balances[0].usd_price == Decimal("0.004")
    assert scan.get_native_balance(WALLET) == 42


def test_scan_transactions_cursor_round_trip():
    """Test next_page_params become an opaque cursor and are sent back."""
    seen = []

    def handler(request):
        seen.append(dict(request.url.params))
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "hash": "0xaa",
                        "from": {"hash": WALLET},
                        "to": {"hash": TOKEN},
                        "value": "0",
                        "block": 10,
                        "method": "transfer",
                        "token_transfers": [
                            {
                                "from": {"hash": WALLET},
                                "to": {"hash": TOKEN},
                                "token": {"address": TOKEN, "symbol": "HEX", "decimals": "8"},
                                "total": {"value": "5", "decimals": "8"},
                            }
                        ],
                    }
                ],
                "next_page_params": {"block_number": 9, "index": 3},
            },
        )

    scan = _scan(handler)
    first = scan.get_transactions(WALLET, limit=50)
    scan.get_transactions(WALLET, limit=50, cursor=first.cursor)

    assert first.transactions[0].from_address == WALLET
    assert first.transactions[0].token_transfers[0].token_decimals == 8
    assert seen[0] == {}
    assert seen[1] == {"block_number": "9", "index": "3"}
