"""Network and provider configuration loader."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml


@lru_cache(maxsize=1)
def load_config() -> dict[str, Any]:
    """
    Load the packaged PulseChain configuration from pulsechain.yaml.

    Returns
    -------
    dict[str, Any]
        Chain, provider, cache, batching and classifier configuration

    """
    path = Path(__file__).parent / "pulsechain.yaml"
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def get_chain_config() -> dict[str, Any]:
    """
    Get the chain section of the configuration.

    Returns
    -------
    dict[str, Any]
        Chain name, chain id and RPC endpoints

    """
    return load_config()["chain"]


def get_provider_config(provider: str) -> dict[str, Any]:
    """
    Get configuration for a specific upstream provider.

    Parameters
    ----------
    provider : str
        Provider key (e.g., 'moralis', 'dexscreener')

    Returns
    -------
    dict[str, Any]
        Provider configuration, empty if the provider is unknown

    """
    return load_config()["providers"].get(provider, {})


def get_rpc_endpoints() -> list[str]:
    """
    Get the RPC endpoints in failover order.

    ``PULSECHAIN_RPC_URLS`` (comma separated) overrides the packaged list.

    Returns
    -------
    list[str]
        RPC endpoint URLs

    """
    override = os.environ.get("PULSECHAIN_RPC_URLS")
    if override:
        return [url.strip() for url in override.split(",") if url.strip()]
    return list(get_chain_config()["rpc_endpoints"])


@lru_cache(maxsize=None)
def get_method_selectors(group: str) -> dict[str, str]:
    """
    Get the method selectors of one classifier group.

    Parameters
    ----------
    group : str
        Selector group (e.g., 'swap', 'approval', 'add_liquidity')

    Returns
    -------
    dict[str, str]
        Mapping of lowercase 4-byte selector to human-readable label

    """
    selectors = load_config().get("method_selectors", {}).get(group, {})
    return {selector.lower(): label for selector, label in selectors.items()}


def get_important_tokens() -> list[str]:
    """
    Get the allow-list of tokens that are always cross-checked on-chain.

    Returns
    -------
    list[str]
        Lowercase token addresses

    """
    return [address.lower() for address in load_config()["aggregation"].get("important_tokens", [])]


def get_protocol_addresses(protocol: str) -> dict[str, str]:
    """
    Get contract addresses for a specific protocol.

    Parameters
    ----------
    protocol : str
        Protocol identifier (e.g., 'pulsex', 'hex')

    Returns
    -------
    dict[str, str]
        Mapping of contract names to lowercase addresses, empty if unknown

    """
    addresses = load_config().get("protocols", {}).get(protocol, {})
    return {name: address.lower() for name, address in addresses.items()}
