"""RPC layer with endpoint failover, retry policy, caching, rate limiting and ERC-20 calls."""

from pulse_portfolio_tracker.rpc.cache import CacheConfig, CacheEntry, CacheNamespace, CacheSweeper, TTLCache, tx_page_key
from pulse_portfolio_tracker.rpc.multicall import MulticallBatcher
from pulse_portfolio_tracker.rpc.provider import MultiRPCProvider
from pulse_portfolio_tracker.rpc.rate_limit import RateLimiter
from pulse_portfolio_tracker.rpc.retry import RetryConfig, RetryManager, RetryPolicy

__all__ = [
    "CacheConfig",
    "CacheEntry",
    "CacheNamespace",
    "CacheSweeper",
    "MultiRPCProvider",
    "MulticallBatcher",
    "RateLimiter",
    "RetryConfig",
    "RetryManager",
    "RetryPolicy",
    "TTLCache",
    "tx_page_key",
]
