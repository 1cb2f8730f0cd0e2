"""Public entrypoints for wallet snapshots, transaction history and prices."""

import logging
import os
from typing import Any

from pydantic import BaseModel, Field

# Import all protocol handlers to trigger auto-registration
from pulse_portfolio_tracker import protocols  # noqa: F401
from pulse_portfolio_tracker.core.aggregator import AggregationConfig, BalanceAggregator
from pulse_portfolio_tracker.core.classifier import TokenMetadataResolver, TransactionClassifier
from pulse_portfolio_tracker.core.collaborators import InMemoryLogoStore, LoggingProgressSink, LogoStore, ProgressSink
from pulse_portfolio_tracker.core.gateway import ProviderGateway
from pulse_portfolio_tracker.core.models import (
    PriceQuote,
    SnapshotStatus,
    TransactionHistory,
    TransactionPage,
    WalletSnapshot,
)
from pulse_portfolio_tracker.core.scanner import TransferScanner
from pulse_portfolio_tracker.core.scheduler import BatchConfig, BatchScheduler
from pulse_portfolio_tracker.data.loader import get_important_tokens, get_provider_config, get_rpc_endpoints, load_config
from pulse_portfolio_tracker.integrations.dexscreener import DexScreenerClient
from pulse_portfolio_tracker.integrations.moralis import MoralisClient
from pulse_portfolio_tracker.integrations.pulsechain_scan import PulseChainScanClient
from pulse_portfolio_tracker.rpc.cache import CacheConfig, CacheNamespace, CacheSweeper, TTLCache, tx_page_key
from pulse_portfolio_tracker.rpc.provider import MultiRPCProvider
from pulse_portfolio_tracker.rpc.rate_limit import RateLimiter
from pulse_portfolio_tracker.rpc.retry import RetryConfig, RetryPolicy

logger = logging.getLogger(__name__)


class TrackerSettings(BaseModel):
    """
    Runtime settings assembled from pulsechain.yaml and the environment.

    Attributes
    ----------
    moralis_api_key : str | None
        Moralis API key; the indexed provider is disabled without one
    rpc_endpoints : list[str]
        JSON-RPC endpoints in failover order
    scan_api_url : str
        PulseChain Scan API base URL
    cache : dict[str, Any]
        Cache TTLs and sweep interval
    batching : dict[str, Any]
        Batch size, inter-batch delay and retry settings
    aggregation : dict[str, Any]
        Optional aggregation steps
    providers : dict[str, dict[str, Any]]
        Per-provider settings
    start_sweeper : bool
        Run the background cache sweeper

    """

    moralis_api_key: str | None = None
    rpc_endpoints: list[str] = Field(default_factory=list)
    scan_api_url: str = PulseChainScanClient.BASE_URL
    cache: dict[str, Any] = Field(default_factory=dict)
    batching: dict[str, Any] = Field(default_factory=dict)
    aggregation: dict[str, Any] = Field(default_factory=dict)
    providers: dict[str, dict[str, Any]] = Field(default_factory=dict)
    start_sweeper: bool = True

    @classmethod
    def from_env(cls, **overrides: Any) -> "TrackerSettings":
        """
        Build settings from the packaged YAML plus environment variables.

        ``MORALIS_API_KEY``, ``PULSECHAIN_RPC_URLS`` (comma separated) and
        ``PULSECHAIN_SCAN_API_URL`` override the packaged defaults.

        Parameters
        ----------
        **overrides : Any
            Field values taking precedence over both

        Returns
        -------
        TrackerSettings
            Settings

        """
        config = load_config()
        values: dict[str, Any] = {
            "moralis_api_key": os.environ.get("MORALIS_API_KEY") or None,
            "rpc_endpoints": get_rpc_endpoints(),
            "scan_api_url": os.environ.get("PULSECHAIN_SCAN_API_URL")
            or get_provider_config("pulsechain_scan").get("base_url", PulseChainScanClient.BASE_URL),
            "cache": config.get("cache", {}),
            "batching": config.get("batching", {}),
            "aggregation": {**config.get("aggregation", {}), "important_tokens": get_important_tokens()},
            "providers": config.get("providers", {}),
        }
        values.update(overrides)
        return cls(**values)


class WalletService:
    """
    Facade consumed by outer layers (HTTP routes, CLI).

    Snapshot and history calls never raise; failures come back as a
    well-formed result with ``status`` set to ``error``.

    Parameters
    ----------
    gateway : ProviderGateway
        Provider facade
    cache : TTLCache
        Shared cache
    aggregator : BalanceAggregator
        Balance pipeline
    scheduler : BatchScheduler
        Price resolver
    classifier : TransactionClassifier
        Transaction classifier
    sweeper : CacheSweeper | None
        Background sweeper owned by the service

    """

    def __init__(
        self,
        gateway: ProviderGateway,
        cache: TTLCache,
        aggregator: BalanceAggregator,
        scheduler: BatchScheduler,
        classifier: TransactionClassifier,
        sweeper: CacheSweeper | None = None,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.aggregator = aggregator
        self.scheduler = scheduler
        self.classifier = classifier
        self.sweeper = sweeper

    def get_wallet_snapshot(
        self,
        address: str,
        page: int = 1,
        limit: int = 100,
        force_refresh: bool = False,
    ) -> WalletSnapshot:
        """
        Get a page of a wallet's priced holdings.

        Parameters
        ----------
        address : str
            Wallet address
        page : int
            1-based page number
        limit : int
            Page size, 0 for all tokens
        force_refresh : bool
            Bypass and invalidate the cached snapshot

        Returns
        -------
        WalletSnapshot
            Snapshot page, empty with an error status on failure

        """
        try:
            return self.aggregator.get_wallet_snapshot(address, page=page, limit=limit, force_refresh=force_refresh)
        except Exception as e:
            logger.exception("Wallet snapshot for %s failed", address)
            return WalletSnapshot.empty(address.lower(), error=str(e) or type(e).__name__)

    def get_transaction_history(self, address: str, limit: int = 100, cursor: str | None = None) -> TransactionHistory:
        """
        Get one classified page of a wallet's transactions.

        Parameters
        ----------
        address : str
            Wallet address
        limit : int
            Page size
        cursor : str | None
            Cursor returned with the previous page

        Returns
        -------
        TransactionHistory
            Classified page, empty with an error status on failure

        """
        wallet = address.lower()
        try:
            key = tx_page_key(wallet, limit, cursor)
            page: TransactionPage | None = self.cache.get(CacheNamespace.TX_PAGE, key)
            if page is None:
                page = self.gateway.fetch_transaction_page(wallet, limit, cursor)
                if page is None:
                    return TransactionHistory(
                        address=wallet,
                        status=SnapshotStatus.ERROR,
                        error="No transaction data available from any provider",
                    )
                self.cache.set(CacheNamespace.TX_PAGE, key, page)

            classified = self.classifier.classify_many(page.transactions, wallet)
            return TransactionHistory(
                address=wallet,
                transactions=classified,
                cursor=page.cursor,
                total=page.total if page.total is not None else len(classified),
            )
        except Exception as e:
            logger.exception("Transaction history for %s failed", address)
            return TransactionHistory(address=wallet, status=SnapshotStatus.ERROR, error=str(e) or type(e).__name__)

    def get_token_price(self, token_address: str) -> PriceQuote | None:
        """Get a token's USD price, served from cache within its TTL."""
        try:
            return self.scheduler.resolve_price(token_address.lower())
        except Exception:
            logger.exception("Price lookup for %s failed", token_address)
            return None

    def get_batch_token_prices(self, token_addresses: list[str]) -> dict[str, PriceQuote]:
        """Get prices for several tokens; unpriced tokens are absent from the result."""
        try:
            return self.scheduler.resolve_prices(token_addresses)
        except Exception:
            logger.exception("Batch price lookup failed")
            return {}

    def invalidate_wallet_cache(self, address: str) -> None:
        """Drop the cached snapshot and transaction pages of a wallet."""
        wallet = address.lower()
        self.cache.invalidate(CacheNamespace.BALANCE, wallet)
        self.cache.invalidate_prefix(CacheNamespace.TX_PAGE, f"{wallet}_")

    def clear_all_caches(self, namespace: CacheNamespace | str | None = None) -> None:
        """Clear one cache namespace, or all of them."""
        self.cache.clear(CacheNamespace(namespace) if namespace is not None else None)

    def close(self) -> None:
        """Stop the sweeper and close every HTTP client."""
        if self.sweeper is not None:
            self.sweeper.stop()
        self.scheduler.close()
        for client in (self.gateway.moralis, self.gateway.scan, self.gateway.dexscreener, self.gateway.rpc):
            if client is not None:
                client.close()

    def __enter__(self) -> "WalletService":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()


def build_service(
    settings: TrackerSettings | None = None,
    logo_store: LogoStore | None = None,
    progress: ProgressSink | None = None,
) -> WalletService:
    """
    Wire a ``WalletService`` from settings.

    Parameters
    ----------
    settings : TrackerSettings | None
        Settings, ``TrackerSettings.from_env()`` if None
    logo_store : LogoStore | None
        Logo collaborator, in-memory if None
    progress : ProgressSink | None
        Progress collaborator, logging sink if None

    Returns
    -------
    WalletService
        Ready-to-use service

    """
    settings = settings or TrackerSettings.from_env()
    providers = settings.providers
    batching = settings.batching

    retry_policy = RetryPolicy(
        RetryConfig(
            max_attempts=int(batching.get("max_attempts", 3)),
            base_delay=float(batching.get("retry_base_delay", 1.0)),
        )
    )

    moralis_config = providers.get("moralis", {})
    moralis = None
    if settings.moralis_api_key:
        moralis = MoralisClient(
            settings.moralis_api_key,
            base_url=moralis_config.get("base_url", MoralisClient.BASE_URL),
            chain=moralis_config.get("chain", "0x171"),
            timeout=float(moralis_config.get("timeout", 30.0)),
        )
    else:
        logger.info("MORALIS_API_KEY not set, indexed provider disabled")

    scan = PulseChainScanClient(
        base_url=settings.scan_api_url,
        timeout=float(providers.get("pulsechain_scan", {}).get("timeout", 15.0)),
    )

    dex_config = providers.get("dexscreener", {})
    limits = dex_config.get("rate_limit", {})
    dexscreener = DexScreenerClient(
        RateLimiter(
            capacity=int(limits.get("capacity", 30)),
            refill_rate=float(limits.get("refill_rate", 0.5)),
            cooldown=float(limits.get("cooldown", 60.0)),
        ),
        base_url=dex_config.get("base_url", DexScreenerClient.BASE_URL),
        timeout=float(dex_config.get("timeout", 10.0)),
        chain_id=dex_config.get("chain_id", "pulsechain"),
        min_liquidity_usd=float(dex_config.get("min_liquidity_usd", 1000)),
    )

    rpc = None
    if settings.rpc_endpoints:
        rpc = MultiRPCProvider(settings.rpc_endpoints, timeout=float(providers.get("rpc", {}).get("timeout", 10.0)))

    cache = TTLCache(CacheConfig.from_dict(settings.cache))
    gateway = ProviderGateway(
        moralis=moralis,
        scan=scan,
        dexscreener=dexscreener,
        rpc=rpc,
        retry_policy=retry_policy,
        cache=cache,
    )
    progress = progress or LoggingProgressSink()
    scheduler = BatchScheduler(
        gateway,
        cache,
        retry_policy=retry_policy,
        config=BatchConfig(
            batch_size=int(batching.get("batch_size", 15)),
            batch_delay=float(batching.get("batch_delay", 0.3)),
        ),
        progress=progress,
    )

    aggregation = settings.aggregation
    aggregator = BalanceAggregator(
        gateway,
        scheduler,
        cache,
        logo_store=logo_store or InMemoryLogoStore(),
        progress=progress,
        scanner=TransferScanner(rpc, int(aggregation.get("recent_blocks_to_scan", 1000))) if rpc else None,
        config=AggregationConfig(
            important_tokens=aggregation.get("important_tokens", []),
            rescan_recent_blocks=bool(aggregation.get("rescan_recent_blocks", True)),
            detect_liquidity_pools=bool(aggregation.get("detect_liquidity_pools", True)),
        ),
    )
    classifier = TransactionClassifier(TokenMetadataResolver(gateway.fetch_token_metadata))

    sweeper = None
    if settings.start_sweeper:
        sweeper = CacheSweeper(cache)
        sweeper.start()

    return WalletService(gateway, cache, aggregator, scheduler, classifier, sweeper=sweeper)
