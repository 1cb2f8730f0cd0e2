"""Single source of truth for native-asset identity."""

from pulse_portfolio_tracker.data.addresses import (
    NATIVE_DECIMALS,
    NATIVE_NAME,
    NATIVE_SENTINEL_ADDRESSES,
    NATIVE_SYMBOL,
    NATIVE_TOKEN_ADDRESS,
    WPLS_CONTRACT_ADDRESS,
)


def is_native_token(address: str | None, *, flagged_native: bool = False) -> bool:
    """
    Check whether a balance or price entry refers to the native asset.

    Parameters
    ----------
    address : str | None
        Token address as reported by a provider
    flagged_native : bool
        Provider-side native flag (e.g. Moralis ``native_token``)

    Returns
    -------
    bool
        True if the entry is PLS itself (not WPLS)

    """
    if flagged_native:
        return True
    if not address:
        return False
    return address.lower() in NATIVE_SENTINEL_ADDRESSES


def price_source_address(address: str) -> str:
    """Return the contract whose liquidity prices ``address`` (WPLS for PLS)."""
    if is_native_token(address):
        return WPLS_CONTRACT_ADDRESS
    return address.lower()


def canonical_native_identity() -> dict[str, object]:
    """Return the canonical address, symbol, name and decimals of the native asset."""
    return {
        "address": NATIVE_TOKEN_ADDRESS,
        "symbol": NATIVE_SYMBOL,
        "name": NATIVE_NAME,
        "decimals": NATIVE_DECIMALS,
    }
