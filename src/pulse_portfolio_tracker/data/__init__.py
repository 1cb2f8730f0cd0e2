"""Data loading and configuration management."""

from pulse_portfolio_tracker.data.addresses import (
    HEX_CONTRACT_ADDRESS,
    NATIVE_TOKEN_ADDRESS,
    STABLECOIN_ADDRESSES,
    WPLS_CONTRACT_ADDRESS,
)
from pulse_portfolio_tracker.data.loader import (
    get_chain_config,
    get_important_tokens,
    get_method_selectors,
    get_protocol_addresses,
    get_provider_config,
    get_rpc_endpoints,
    load_config,
)

__all__ = [
    # Centralized address constants
    "HEX_CONTRACT_ADDRESS",
    "NATIVE_TOKEN_ADDRESS",
    "STABLECOIN_ADDRESSES",
    "WPLS_CONTRACT_ADDRESS",
    "get_chain_config",
    "get_important_tokens",
    "get_method_selectors",
    "get_protocol_addresses",
    "get_provider_config",
    "get_rpc_endpoints",
    # Loader functions
    "load_config",
]
