"""Centralized PulseChain address constants."""

PULSECHAIN_CHAIN_ID = 369
PULSECHAIN_CHAIN_HEX = "0x171"

# Canonical identity for the native asset. Providers use either sentinel.
NATIVE_TOKEN_ADDRESS = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE_SENTINEL_ADDRESSES = frozenset({NATIVE_TOKEN_ADDRESS, ZERO_ADDRESS})

NATIVE_SYMBOL = "PLS"
NATIVE_NAME = "PulseChain"
NATIVE_DECIMALS = 18

WPLS_CONTRACT_ADDRESS = "0xa1077a294dde1b09bb078844df40758a5d0f9a27"

HEX_CONTRACT_ADDRESS = "0x2b591e99afe9f32eaa6214f7b7629768c40eeb39"

# Ethereum-bridged stablecoins pinned to $1 by the market-data client
STABLECOIN_ADDRESSES = {
    "0xefd766ccb38eaf1dfd701853bfce31359239f305": "DAI",
    "0xdac17f958d2ee523a2206206994597c13d831ec7": "USDT",
    "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "USDC",
}

# keccak256("Transfer(address,address,uint256)")
TRANSFER_EVENT_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

DEFAULT_LOGO = "/assets/100xfrenlogo.png"

TOKEN_LOGOS = {
    "pls": "https://cryptologos.cc/logos/pulse-pls-logo.png",
    "wpls": "https://cryptologos.cc/logos/pulse-pls-logo.png",
    "hex": "https://cryptologos.cc/logos/hex-hex-logo.png",
    "plsx": "https://cryptologos.cc/logos/pulsex-plsx-logo.png",
}
