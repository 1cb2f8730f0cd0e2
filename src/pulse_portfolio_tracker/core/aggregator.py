"""Balance aggregator orchestrating providers, pricing, caching and pagination."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from decimal import Decimal
from typing import Any

from pulse_portfolio_tracker.core.collaborators import LogoStore, ProgressSink
from pulse_portfolio_tracker.core.gateway import ProviderGateway
from pulse_portfolio_tracker.core.models import LoadingProgress, PriceQuote, RawBalance, Token, WalletSnapshot
from pulse_portfolio_tracker.core.native import canonical_native_identity, is_native_token
from pulse_portfolio_tracker.core.pagination import page_snapshot, sort_tokens
from pulse_portfolio_tracker.core.scanner import TransferScanner
from pulse_portfolio_tracker.core.scheduler import BatchScheduler
from pulse_portfolio_tracker.core.units import to_human_amount
from pulse_portfolio_tracker.data.addresses import DEFAULT_LOGO, NATIVE_TOKEN_ADDRESS, TOKEN_LOGOS
from pulse_portfolio_tracker.rpc.cache import CacheNamespace, TTLCache

logger = logging.getLogger(__name__)

TOTAL_STEPS = 9


class AggregationConfig:
    """
    Optional enrichment steps of the aggregation pipeline.

    Parameters
    ----------
    important_tokens : list[str] | None
        Tokens always cross-checked with a direct balance read
    rescan_recent_blocks : bool
        Recover tokens from recent Transfer logs
    detect_liquidity_pools : bool
        Flag LP pair tokens by reading ``token0``/``token1``
    max_workers : int
        Thread pool size for contract reads

    """

    def __init__(
        self,
        important_tokens: list[str] | None = None,
        rescan_recent_blocks: bool = True,
        detect_liquidity_pools: bool = True,
        max_workers: int = 8,
    ) -> None:
        self.important_tokens = [address.lower() for address in important_tokens or []]
        self.rescan_recent_blocks = rescan_recent_blocks
        self.detect_liquidity_pools = detect_liquidity_pools
        self.max_workers = max_workers


class BalanceAggregator:
    """
    Builds a deduplicated, priced and sorted wallet snapshot.

    Workflow:
    1. Native balance read first
    2. Indexed balances from the primary provider
    3. Chain-scan balances when the primary has nothing usable
    4. Deduplication by address, preferring the step 1 native entry
    5. Important-token cross-check, recent-block rescan, LP detection
    6. Pricing, values and logos
    7. Sort
    8. Cache the full snapshot
    9. Return the requested page

    Parameters
    ----------
    gateway : ProviderGateway
        Provider facade
    scheduler : BatchScheduler
        Price resolver
    cache : TTLCache
        Shared cache (balance namespace)
    logo_store : LogoStore | None
        Logo collaborator
    progress : ProgressSink | None
        Progress collaborator
    scanner : TransferScanner | None
        Recent-block rescanner
    config : AggregationConfig | None
        Enrichment options

    """

    def __init__(
        self,
        gateway: ProviderGateway,
        scheduler: BatchScheduler,
        cache: TTLCache,
        logo_store: LogoStore | None = None,
        progress: ProgressSink | None = None,
        scanner: TransferScanner | None = None,
        config: AggregationConfig | None = None,
    ) -> None:
        self.gateway = gateway
        self.scheduler = scheduler
        self.cache = cache
        self.logo_store = logo_store
        self.progress = progress
        self.scanner = scanner
        self.config = config or AggregationConfig()

    def _report(self, step: int, message: str, status: str = "loading") -> None:
        if self.progress is not None:
            self.progress.update_progress(
                LoadingProgress(status=status, current_batch=step, total_batches=TOTAL_STEPS, message=message)
            )

    def get_wallet_snapshot(
        self,
        address: str,
        page: int = 1,
        limit: int = 100,
        force_refresh: bool = False,
    ) -> WalletSnapshot:
        """
        Get one page of a wallet's priced token holdings.

        Parameters
        ----------
        address : str
            Wallet address
        page : int
            1-based page number
        limit : int
            Page size, 0 for every token
        force_refresh : bool
            Skip and invalidate the cached snapshot

        Returns
        -------
        WalletSnapshot
            Paged snapshot; ``status`` is error only if no provider returned any balance data

        """
        key = address.lower()
        if force_refresh:
            self.cache.invalidate(CacheNamespace.BALANCE, key)
        else:
            cached = self.cache.get(CacheNamespace.BALANCE, key)
            if cached is not None:
                logger.debug("Serving cached snapshot for %s", key)
                return page_snapshot(cached, page, limit)

        snapshot = self.build_snapshot(key)
        if snapshot.error is None:
            self.cache.set(CacheNamespace.BALANCE, key, snapshot)
        return page_snapshot(snapshot, page, limit)

    def build_snapshot(self, address: str) -> WalletSnapshot:
        """
        Run the full aggregation pipeline without touching the cache.

        Parameters
        ----------
        address : str
            Lowercase wallet address

        Returns
        -------
        WalletSnapshot
            Full, sorted snapshot

        """
        self._report(1, "Fetching native balance")
        native_wei = self.gateway.fetch_native_balance(address)

        self._report(2, "Fetching token balances")
        balances = [b for b in self.gateway.fetch_indexed_balances(address) if b.balance > 0]

        if not balances:
            self._report(3, "Falling back to chain scan balances")
            balances = [b for b in self.gateway.fetch_scan_balances(address) if b.balance > 0]

        self._report(4, "Merging balances")
        merged = self._merge(native_wei, balances)

        self._report(5, "Cross-checking recent activity")
        self._recover_missing_tokens(address, merged)
        lp_addresses = self._find_liquidity_pools(merged) if self.config.detect_liquidity_pools else set()

        if native_wei is None and not merged:
            logger.warning("No balance data available for %s", address)
            self._report(TOTAL_STEPS, "No balance data available", status="error")
            return WalletSnapshot.empty(address, error="No balance data available from any provider")

        self._report(6, "Resolving prices")
        unpriced = [b.address for b in merged.values() if b.usd_price is None]
        quotes = self.scheduler.resolve_prices(unpriced) if unpriced else {}
        tokens = [
            self._build_token(balance, quotes.get(balance.address), balance.address in lp_addresses)
            for balance in merged.values()
        ]

        self._report(7, "Sorting tokens")
        tokens = sort_tokens(tokens)

        native = next((t for t in tokens if t.is_native), None)
        snapshot = WalletSnapshot(
            address=address,
            tokens=tokens,
            total_value=sum((t.value for t in tokens), Decimal("0")),
            token_count=len(tokens),
            native_balance=native.balance_formatted if native else Decimal("0"),
            native_price_change=native.price_change_24h if native else None,
            network_count=1,
        )
        self._report(8, "Caching snapshot")
        self._report(TOTAL_STEPS, f"Loaded {len(tokens)} tokens", status="complete")
        return snapshot

    def _merge(self, native_wei: int | None, balances: list[RawBalance]) -> dict[str, RawBalance]:
        merged: dict[str, RawBalance] = {}
        if native_wei:
            merged[NATIVE_TOKEN_ADDRESS] = RawBalance(
                **canonical_native_identity(),
                balance=native_wei,
                is_native=True,
                source="native",
            )

        for balance in balances:
            native = is_native_token(balance.address, flagged_native=balance.is_native)
            key = NATIVE_TOKEN_ADDRESS if native else balance.address.lower()
            existing = merged.get(key)
            if existing is None:
                merged[key] = balance
            elif existing.usd_price is None and balance.usd_price is not None:
                # Keep the first entry's balance but borrow the duplicate's pricing.
                merged[key] = existing.model_copy(
                    update={
                        "usd_price": balance.usd_price,
                        "price_change_24h": balance.price_change_24h,
                        "logo": existing.logo or balance.logo,
                    }
                )
        return merged

    def _recover_missing_tokens(self, address: str, merged: dict[str, RawBalance]) -> None:
        candidates = set(self.config.important_tokens)
        if self.config.rescan_recent_blocks and self.scanner is not None:
            candidates |= self.scanner.recent_token_addresses(address)
        candidates -= set(merged)
        if not candidates:
            return

        recovered = self._parallel(lambda token: self.gateway.fetch_rpc_balance(address, token), sorted(candidates))
        for token_address, balance in recovered.items():
            if balance is not None and balance.balance > 0:
                logger.info("Recovered %s (%s) missed by the indexer", balance.symbol, token_address)
                merged[token_address] = balance

    def _find_liquidity_pools(self, merged: dict[str, RawBalance]) -> set[str]:
        candidates = [key for key, balance in merged.items() if not balance.is_native]
        pairs = self._parallel(self.gateway.fetch_pair_tokens, candidates)
        return {key for key, (token0, token1) in pairs.items() if token0 and token1}

    def _parallel(self, func: Any, keys: list[str]) -> dict[str, Any]:
        results: dict[str, Any] = {}
        if not keys:
            return results
        with ThreadPoolExecutor(max_workers=min(len(keys), self.config.max_workers)) as executor:
            futures = {executor.submit(func, key): key for key in keys}
            for future in as_completed(futures):
                key = futures[future]
                try:
                    results[key] = future.result()
                except Exception as e:
                    logger.debug("Contract read for %s failed: %s", key, e)
        return results

    def _build_token(self, balance: RawBalance, quote: PriceQuote | None, is_liquidity_pool: bool = False) -> Token:
        price = balance.usd_price
        change = balance.price_change_24h
        exchange = None
        security_score = None
        if price is None and quote is not None:
            price = quote.usd_price
            change = quote.price_change_24h
            exchange = quote.exchange_name
            security_score = quote.security_score

        token = Token(
            address=balance.address,
            symbol=balance.symbol,
            name=balance.name,
            decimals=balance.decimals,
            balance=str(balance.balance),
            balance_formatted=to_human_amount(balance.balance, balance.decimals),
            price=price,
            price_change_24h=change if change is not None else Decimal("0"),
            logo=self._resolve_logo(balance, quote),
            exchange=exchange,
            verified=balance.verified,
            security_score=security_score,
            is_native=balance.is_native,
            is_liquidity_pool=is_liquidity_pool,
        )
        token.compute_value()
        return token

    def _resolve_logo(self, balance: RawBalance, quote: PriceQuote | None) -> str:
        provided = balance.logo or (quote.logo if quote else None)
        stored = None
        if self.logo_store is not None:
            try:
                stored = self.logo_store.get_logo(balance.address)
                if provided and not stored:
                    self.logo_store.save_logo(balance.address, provided, balance.symbol)
            except Exception as e:
                logger.debug("Logo store unavailable for %s: %s", balance.address, e)
        return stored or provided or TOKEN_LOGOS.get(balance.symbol.lower(), DEFAULT_LOGO)
