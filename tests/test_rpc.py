"""Tests for the JSON-RPC provider and ERC-20 call batching."""

import json

import httpx
import pytest
from eth_abi import encode

from pulse_portfolio_tracker.core.exceptions import MalformedResponse, NotFound, ProviderUnavailable
from pulse_portfolio_tracker.rpc.multicall import MulticallBatcher, decode_result, encode_call
from pulse_portfolio_tracker.rpc.provider import MultiRPCProvider
from pulse_portfolio_tracker.rpc.retry import RetryConfig, RetryPolicy

OWNER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2b591e99afe9f32eaa6214f7b7629768c40eeb39"


def _provider(handler, endpoints=("https://rpc-a", "https://rpc-b"), sleep=None):
    policy = RetryPolicy(RetryConfig(max_attempts=len(endpoints), base_delay=0), sleep=sleep or (lambda _: None))
    return MultiRPCProvider(
        list(endpoints),
        retry_policy=policy,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def _result(request, result):
    payload = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


def test_requires_endpoints():
    """Test an empty endpoint list is rejected."""
    with pytest.raises(ValueError):
        MultiRPCProvider([])


def test_failover_to_next_endpoint():
    """Test a failing endpoint is skipped."""
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        if request.url.host == "rpc-a":
            return httpx.Response(502)
        return _result(request, "0x10")

    provider = _provider(handler)

    assert provider.get_balance(OWNER) == 16
    assert hosts == ["rpc-a", "rpc-b"]
    assert provider.current_endpoint == "https://rpc-b"


def test_all_endpoints_down():
    """Test the last error surfaces when every endpoint fails."""
    provider = _provider(lambda request: httpx.Response(503))
    with pytest.raises(ProviderUnavailable):
        provider.block_number()


def test_jsonrpc_error_and_bad_body():
    """Test JSON-RPC errors are transient and shapeless bodies are malformed."""
    provider = _provider(
        lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "busy"}}),
        endpoints=("https://rpc-a",),
    )
    with pytest.raises(ProviderUnavailable):
        provider.block_number()

    provider = _provider(lambda request: httpx.Response(200, json=[1, 2]), endpoints=("https://rpc-a",))
    with pytest.raises(MalformedResponse):
        provider.block_number()


def test_encode_and_decode_erc20_calls():
    """Test calldata layout and return decoding."""
    data = encode_call("balanceOf", [OWNER])
    assert data.startswith("0x70a08231")
    assert len(data) == 10 + 64

    assert decode_result("decimals", "0x" + encode(["uint8"], [8]).hex()) == 8
    assert decode_result("symbol", "0x" + encode(["string"], ["HEX"]).hex()) == "HEX"
    assert decode_result("symbol", "0x" + b"MKR".ljust(32, b"\x00").hex()) == "MKR"
    assert decode_result("balanceOf", "0x") is None


def test_batcher_reads_metadata_and_survives_reverts():
    """Test failed calls yield None without failing the batch."""
    returns = {
        "0x313ce567": "0x" + encode(["uint8"], [8]).hex(),
        "0x95d89b41": "0x" + encode(["string"], ["HEX"]).hex(),
    }

    def handler(request):
        payload = json.loads(request.content)
        selector = payload["params"][0]["data"][:10]
        if selector not in returns:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": {"message": "revert"}})
        return _result(request, returns[selector])

    batcher = MulticallBatcher(_provider(handler, endpoints=("https://rpc-a",)))
    metadata = batcher.read_token_metadata(TOKEN)

    assert metadata == {"decimals": 8, "symbol": "HEX", "name": None}
    assert batcher.read_pair_tokens(TOKEN) == (None, None)
    assert batcher.call_count == 0


def test_null_result_is_malformed():
    """Test a null quantity is reported as a provider error, not a TypeError."""
    provider = _provider(lambda request: _result(request, None), endpoints=("https://rpc-a",))

    with pytest.raises(MalformedResponse):
        provider.get_balance(OWNER)
    with pytest.raises(MalformedResponse):
        provider.block_number()


def test_revert_is_not_retried():
    """Test reverted calls fail fast instead of rotating through every endpoint."""
    requests = []
    delays = []

    def handler(request):
        requests.append(request)
        payload = json.loads(request.content)
        error = {"code": 3, "message": "execution reverted"}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "error": error})

    batcher = MulticallBatcher(_provider(handler, sleep=delays.append))

    assert batcher.read_pair_tokens(TOKEN) == (None, None)
    assert len(requests) == 2
    assert delays == []

    with pytest.raises(NotFound):
        _provider(handler).eth_call(TOKEN, encode_call("token0", []))
