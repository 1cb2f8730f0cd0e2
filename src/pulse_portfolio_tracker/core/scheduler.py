"""Batched, cache-first price resolution with bounded concurrency."""

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed

from pulse_portfolio_tracker.core.collaborators import ProgressSink
from pulse_portfolio_tracker.core.exceptions import PartialFailure, ProviderError
from pulse_portfolio_tracker.core.gateway import ProviderGateway
from pulse_portfolio_tracker.core.models import LoadingProgress, PriceQuote
from pulse_portfolio_tracker.rpc.cache import CacheNamespace, TTLCache
from pulse_portfolio_tracker.rpc.retry import RetryPolicy

logger = logging.getLogger(__name__)


class BatchConfig:
    """
    Configuration for price batching.

    Parameters
    ----------
    batch_size : int
        Maximum number of tokens per batch
    batch_delay : float
        Seconds to wait between consecutive batches
    max_workers : int | None
        Thread pool size, ``batch_size`` if None

    """

    def __init__(self, batch_size: int = 15, batch_delay: float = 0.3, max_workers: int | None = None) -> None:
        if batch_size < 1:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_workers = max_workers or batch_size


def chunked(items: list[str], size: int) -> list[list[str]]:
    """Split ``items`` into consecutive chunks of at most ``size`` elements."""
    return [items[i : i + size] for i in range(0, len(items), size)]


class BatchScheduler:
    """
    Resolves prices for many tokens without overwhelming upstream providers.

    Batches run one after another with a fixed delay between them. Inside a
    batch, cached prices are served first; the misses go to the gateway's
    batch endpoint and whatever is still missing is fetched individually in
    parallel, each under the retry policy.

    Parameters
    ----------
    gateway : ProviderGateway
        Provider facade
    cache : TTLCache
        Shared cache (price namespace)
    retry_policy : RetryPolicy | None
        Retry policy for individual price fetches
    config : BatchConfig | None
        Batch size and delay
    progress : ProgressSink | None
        Receiver of per-batch progress reports
    sleep : Callable[[float], None] | None
        Sleep function, ``time.sleep`` by default

    """

    def __init__(
        self,
        gateway: ProviderGateway,
        cache: TTLCache,
        retry_policy: RetryPolicy | None = None,
        config: BatchConfig | None = None,
        progress: ProgressSink | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()
        self.config = config or BatchConfig()
        self.progress = progress
        self._sleep = sleep or time.sleep
        self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="price")

    def _report(self, status: str, current: int, total: int, message: str) -> None:
        if self.progress is not None:
            self.progress.update_progress(
                LoadingProgress(status=status, current_batch=current, total_batches=total, message=message)
            )

    def get_cached_price(self, token_address: str) -> PriceQuote | None:
        return self.cache.get(CacheNamespace.PRICE, token_address)

    def resolve_price(self, token_address: str) -> PriceQuote | None:
        """
        Resolve one price, cache first.

        Parameters
        ----------
        token_address : str
            Token address

        Returns
        -------
        PriceQuote | None
            Quote, None if no provider could price the token

        """
        cached = self.get_cached_price(token_address)
        if cached is not None:
            return cached
        try:
            quote = self._fetch_with_retry(token_address)
        except ProviderError as e:
            logger.debug("No price for %s: %s", token_address, e)
            return None
        return quote

    def _fetch_with_retry(self, token_address: str) -> PriceQuote:
        quote = self.retry_policy.call(self.gateway.quote_price, token_address)
        self.cache.set(CacheNamespace.PRICE, token_address, quote)
        return quote

    def resolve_prices(self, token_addresses: list[str]) -> dict[str, PriceQuote]:
        """
        Resolve prices for many tokens in sequential batches.

        Failed items are left out of the result. A summary of failures is
        logged as a ``PartialFailure``; it is never raised.

        Parameters
        ----------
        token_addresses : list[str]
            Token addresses (duplicates and casing differences are collapsed)

        Returns
        -------
        dict[str, PriceQuote]
            Quotes keyed by lowercase address

        """
        unique = list(dict.fromkeys(address.lower() for address in token_addresses))
        if not unique:
            return {}

        batches = chunked(unique, self.config.batch_size)
        results: dict[str, PriceQuote] = {}
        failed: dict[str, Exception] = {}

        for index, batch in enumerate(batches, start=1):
            if index > 1 and self.config.batch_delay > 0:
                self._sleep(self.config.batch_delay)
            self._report("loading", index, len(batches), f"Pricing batch {index}/{len(batches)}")
            self._run_batch(batch, results, failed)

        if failed:
            error = PartialFailure(f"{len(failed)} of {len(unique)} prices could not be resolved", failed)
            logger.info("%s: %s", error, ", ".join(sorted(failed)))
        self._report("complete", len(batches), len(batches), f"Priced {len(results)}/{len(unique)} tokens")
        return results

    def _run_batch(
        self,
        batch: list[str],
        results: dict[str, PriceQuote],
        failed: dict[str, Exception],
    ) -> None:
        misses = []
        for address in batch:
            cached = self.get_cached_price(address)
            if cached is not None:
                results[address] = cached
            else:
                misses.append(address)
        if not misses:
            return

        for address, quote in self.gateway.fetch_batch_prices(misses).items():
            if address in misses:
                self.cache.set(CacheNamespace.PRICE, address, quote)
                results[address] = quote
        remaining = [address for address in misses if address not in results]

        futures = {self._executor.submit(self._fetch_with_retry, address): address for address in remaining}
        for future in as_completed(futures):
            address = futures[future]
            try:
                results[address] = future.result()
            except ProviderError as e:
                failed[address] = e
            except Exception as e:
                logger.exception("Unexpected error pricing %s", address)
                failed[address] = e

    def close(self) -> None:
        """Shut down the worker pool without cancelling dispatched work."""
        self._executor.shutdown(wait=False)
