"""DexScreener client for pool-derived token prices."""

import logging
from decimal import Decimal
from typing import Any

import httpx

from pulse_portfolio_tracker.core.exceptions import MalformedResponse, NotFound, RateLimited
from pulse_portfolio_tracker.core.models import PriceQuote
from pulse_portfolio_tracker.core.native import price_source_address
from pulse_portfolio_tracker.core.units import parse_percent_change, to_decimal
from pulse_portfolio_tracker.data.addresses import STABLECOIN_ADDRESSES
from pulse_portfolio_tracker.integrations.base import BaseAPIClient, expect_dict
from pulse_portfolio_tracker.rpc.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def score_pair(pair: dict[str, Any], median_price: float | None) -> float:
    """
    Score a trading pair by liquidity, volume and activity.

    Parameters
    ----------
    pair : dict[str, Any]
        DexScreener pair object
    median_price : float | None
        Median USD price over all candidate pairs, None if there is only one

    Returns
    -------
    float
        Higher is better

    """
    score = min(_as_float((pair.get("liquidity") or {}).get("usd")) / 1000, 1000)

    volume = _as_float((pair.get("volume") or {}).get("h24"))
    if volume > 0:
        score += min(volume / 100, 100)

    txns = (pair.get("txns") or {}).get("h24") or {}
    score += min(_as_float(txns.get("buys")) + _as_float(txns.get("sells")), 50)

    if median_price:
        ratio = _as_float(pair.get("priceUsd")) / median_price
        if ratio > 100 or ratio < 0.01:
            score *= 0.1
        elif ratio > 10 or ratio < 0.1:
            score *= 0.5
    return score


def select_best_pair(
    pairs: list[dict[str, Any]],
    chain_id: str = "pulsechain",
    min_liquidity_usd: float = 1000.0,
) -> dict[str, Any] | None:
    """
    Pick the most trustworthy pair for pricing.

    Only pairs on ``chain_id`` with a USD price and at least
    ``min_liquidity_usd`` of liquidity are considered. Pairs whose price is
    far from the median are penalized.

    Parameters
    ----------
    pairs : list[dict[str, Any]]
        Pairs from the ``/tokens`` endpoint
    chain_id : str
        DexScreener chain identifier
    min_liquidity_usd : float
        Liquidity floor in USD

    Returns
    -------
    dict[str, Any] | None
        Best pair, None if no pair qualifies

    """
    valid = [
        pair
        for pair in pairs
        if isinstance(pair, dict)
        and pair.get("chainId") == chain_id
        and pair.get("priceUsd")
        and _as_float((pair.get("liquidity") or {}).get("usd")) >= min_liquidity_usd
    ]
    if not valid:
        return None

    median_price = None
    if len(valid) > 1:
        prices = sorted(_as_float(pair["priceUsd"]) for pair in valid)
        median_price = prices[len(prices) // 2] or None

    best, best_score = None, 0.0
    for pair in valid:
        score = score_pair(pair, median_price)
        if score > best_score:
            best, best_score = pair, score
    return best


class DexScreenerClient(BaseAPIClient):
    """
    Client for the DexScreener REST API.

    Every network call first takes a token from the injected rate limiter.
    A 429 response empties the bucket and starts its cooldown.

    Parameters
    ----------
    rate_limiter : RateLimiter
        Limiter dedicated to this provider
    base_url : str
        API base URL
    timeout : float
        Request timeout in seconds
    chain_id : str
        DexScreener chain identifier
    min_liquidity_usd : float
        Minimum pair liquidity for a usable price
    client : httpx.Client | None
        Preconfigured HTTP client

    """

    name = "dexscreener"
    BASE_URL = "https://api.dexscreener.com/latest/dex"

    def __init__(
        self,
        rate_limiter: RateLimiter,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        chain_id: str = "pulsechain",
        min_liquidity_usd: float = 1000.0,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)
        self.rate_limiter = rate_limiter
        self.chain_id = chain_id
        self.min_liquidity_usd = min_liquidity_usd

    def _limited_get(self, path: str) -> Any:
        if not self.rate_limiter.consume_token():
            wait_ms = self.rate_limiter.get_wait_time()
            msg = f"DexScreener rate limit reached, retry in {wait_ms}ms"
            raise RateLimited(msg, provider=self.name, retry_after_ms=wait_ms)
        try:
            return self._get(path)
        except RateLimited:
            self.rate_limiter.handle_rate_limit()
            raise

    def get_token_pairs(self, token_address: str) -> list[dict[str, Any]]:
        """
        Fetch all pairs that trade a token.

        Parameters
        ----------
        token_address : str
            Token address

        Returns
        -------
        list[dict[str, Any]]
            Raw pair objects (empty if the token is not listed)

        """
        data = expect_dict(self._limited_get(f"tokens/{token_address}"), self.name, "pairs")
        pairs = data.get("pairs") or []
        if not isinstance(pairs, list):
            msg = f"DexScreener pairs for {token_address} is not a list"
            raise MalformedResponse(msg, provider=self.name)
        return pairs

    def get_token_price(self, token_address: str) -> PriceQuote:
        """
        Get a USD price from the best PulseChain pair.

        Native PLS is priced through WPLS. Bridged stablecoins are pinned to $1
        without a network call.

        Parameters
        ----------
        token_address : str
            Token address

        Returns
        -------
        PriceQuote
            Price quote for ``token_address``

        Raises
        ------
        NotFound
            If no pair qualifies
        RateLimited
            If the local bucket is empty or the API answered 429

        """
        normalized = token_address.lower()
        if normalized in STABLECOIN_ADDRESSES:
            return PriceQuote(
                token_address=normalized,
                usd_price=Decimal("1"),
                price_change_24h=Decimal("0"),
                exchange_name="pinned",
                source=self.name,
            )

        pairs = self.get_token_pairs(price_source_address(normalized))
        best = select_best_pair(pairs, self.chain_id, self.min_liquidity_usd)
        if best is None:
            msg = f"No qualifying DexScreener pair for {normalized}"
            raise NotFound(msg, provider=self.name)

        price = to_decimal(best.get("priceUsd"))
        if price is None or price <= 0:
            msg = f"Invalid DexScreener price for {normalized}: {best.get('priceUsd')!r}"
            raise MalformedResponse(msg, provider=self.name)

        logger.debug("DexScreener price for %s: $%s via %s", normalized, price, best.get("dexId"))
        return PriceQuote(
            token_address=normalized,
            usd_price=price,
            price_change_24h=parse_percent_change((best.get("priceChange") or {}).get("h24")),
            exchange_name=best.get("dexId"),
            logo=(best.get("info") or {}).get("imageUrl"),
            source=self.name,
        )
