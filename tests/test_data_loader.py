"""Tests for data loading and configuration."""

from pulse_portfolio_tracker.data import (
    HEX_CONTRACT_ADDRESS,
    get_chain_config,
    get_important_tokens,
    get_method_selectors,
    get_protocol_addresses,
    get_provider_config,
    get_rpc_endpoints,
    load_config,
)


def test_get_chain_config():
    """Test getting chain configuration."""
    config = get_chain_config()

    assert config["chain_id"] == 369
    assert config["name"] == "pulsechain"
    assert len(config["rpc_endpoints"]) >= 1


def test_get_rpc_endpoints(monkeypatch):
    """Test packaged endpoints and the environment override."""
    monkeypatch.delenv("PULSECHAIN_RPC_URLS", raising=False)
    endpoints = get_rpc_endpoints()

    assert isinstance(endpoints, list)
    assert all(url.startswith("https://") for url in endpoints)

    monkeypatch.setenv("PULSECHAIN_RPC_URLS", "https://one.example,,https://two.example ")
    assert get_rpc_endpoints() == ["https://one.example", "https://two.example"]


def test_get_provider_config():
    """Test provider sections and an unknown provider."""
    dexscreener = get_provider_config("dexscreener")

    assert dexscreener["rate_limit"] == {"capacity": 30, "refill_rate": 0.5, "cooldown": 60.0}
    assert get_provider_config("nonexistent") == {}


def test_cache_and_batching_defaults():
    """Test the packaged cache TTLs and batching settings."""
    config = load_config()

    assert config["cache"]["price_ttl"] == 300
    assert config["cache"]["balance_ttl"] == 180
    assert config["cache"]["tx_page_ttl"] == 600
    assert config["batching"]["batch_size"] == 15
    assert config["batching"]["batch_delay"] == 0.3


def test_get_method_selectors():
    """Test selector groups are keyed by lowercase selector."""
    swap = get_method_selectors("swap")

    assert swap["0x38ed1739"] == "Swap Exact Tokens For Tokens"
    assert all(selector == selector.lower() and len(selector) == 10 for selector in swap)
    assert get_method_selectors("approval")["0x095ea7b3"] == "Approve"
    assert get_method_selectors("nonexistent") == {}


def test_get_protocol_addresses():
    """Test getting protocol addresses."""
    addresses = get_protocol_addresses("pulsex")

    assert set(addresses) == {"router_v1", "router_v2"}
    assert all(address == address.lower() and address.startswith("0x") for address in addresses.values())
    assert get_protocol_addresses("hex")["token"] == HEX_CONTRACT_ADDRESS

    # Non-existent protocol
    assert get_protocol_addresses("nonexistent") == {}


def test_get_important_tokens():
    """Test the important-token allow-list is lowercase."""
    tokens = get_important_tokens()

    assert tokens
    assert all(token == token.lower() for token in tokens)
