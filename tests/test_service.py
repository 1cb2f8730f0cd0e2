"""Tests for the public wallet service."""

from decimal import Decimal

import pytest

from pulse_portfolio_tracker.core.aggregator import AggregationConfig, BalanceAggregator
from pulse_portfolio_tracker.core.classifier import TokenMetadataResolver, TransactionClassifier
from pulse_portfolio_tracker.core.models import (
    RawBalance,
    RawTransaction,
    SnapshotStatus,
    TransactionCategory,
    TransactionPage,
)
from pulse_portfolio_tracker.core.scheduler import BatchScheduler
from pulse_portfolio_tracker.core.service import TrackerSettings, WalletService, build_service
from pulse_portfolio_tracker.data.addresses import NATIVE_TOKEN_ADDRESS
from pulse_portfolio_tracker.rpc.cache import CacheNamespace, TTLCache, tx_page_key
from pulse_portfolio_tracker.rpc.retry import RetryConfig, RetryPolicy

WALLET = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
TOKEN = "0x3333333333333333333333333333333333333333"


@pytest.fixture
def service(fake_gateway, clock, no_sleep, registered_protocols):
    sleep, _ = no_sleep
    cache = TTLCache(clock=clock)
    scheduler = BatchScheduler(
        fake_gateway,
        cache,
        retry_policy=RetryPolicy(RetryConfig(max_attempts=1), sleep=sleep),
        sleep=sleep,
    )
    aggregator = BalanceAggregator(
        fake_gateway,
        scheduler,
        cache,
        config=AggregationConfig(rescan_recent_blocks=False, detect_liquidity_pools=False),
    )
    classifier = TransactionClassifier(TokenMetadataResolver(fake_gateway.fetch_token_metadata))
    with WalletService(fake_gateway, cache, aggregator, scheduler, classifier) as wallet_service:
        yield wallet_service


def _send(tx_hash: str) -> RawTransaction:
    return RawTransaction(
        hash=tx_hash,
        from_address=WALLET,
        to_address=OTHER,
        value=str(10**18),
    )


def test_snapshot_failure_returns_error_snapshot(service, monkeypatch):
    """Test an unexpected pipeline error never escapes the service."""

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(service.aggregator, "get_wallet_snapshot", explode)
    snapshot = service.get_wallet_snapshot(WALLET)

    assert snapshot.status == SnapshotStatus.ERROR
    assert snapshot.error == "boom"
    assert snapshot.address == WALLET
    assert snapshot.tokens == []
    assert snapshot.total_value == Decimal("0")


def test_snapshot_ok(service, fake_gateway):
    """Test a priced snapshot goes through the service unchanged."""
    fake_gateway.indexed = [
        RawBalance(address=TOKEN, symbol="USDC", decimals=6, balance=2_000_000, usd_price=Decimal("1")),
    ]

    snapshot = service.get_wallet_snapshot(WALLET, limit=0)

    assert snapshot.status == SnapshotStatus.OK
    assert snapshot.total_value == Decimal("2")


def test_history_classified_and_cached(service, fake_gateway):
    """Test pages are classified and fetched once per key within the TTL."""
    fake_gateway.pages[None] = TransactionPage(transactions=[_send("0xaa"), _send("0xbb")], cursor="next-1")

    first = service.get_transaction_history(WALLET, limit=2)
    second = service.get_transaction_history(WALLET, limit=2)

    assert first.status == SnapshotStatus.OK
    assert [item.category for item in first.transactions] == [TransactionCategory.SEND] * 2
    assert first.cursor == "next-1"
    assert first.total == 2
    assert second.transactions == first.transactions
    assert len(fake_gateway.page_calls) == 1
    assert service.cache.get(CacheNamespace.TX_PAGE, tx_page_key(WALLET, 2, None)) is not None


def test_history_cursor_passthrough(service, fake_gateway):
    """Test the cursor reaches the gateway and keys its own cache entry."""
    fake_gateway.pages[None] = TransactionPage(transactions=[_send("0xaa")], cursor="next-1")
    fake_gateway.pages["next-1"] = TransactionPage(transactions=[_send("0xcc")], cursor=None, total=40)

    service.get_transaction_history(WALLET, limit=1)
    history = service.get_transaction_history(WALLET, limit=1, cursor="next-1")

    assert fake_gateway.page_calls[-1] == (WALLET, 1, "next-1")
    assert [item.transaction.hash for item in history.transactions] == ["0xcc"]
    assert history.cursor is None
    assert history.total == 40


def test_history_unavailable(service):
    """Test a history with no provider data is an error result, not an exception."""
    history = service.get_transaction_history(WALLET)

    assert history.status == SnapshotStatus.ERROR
    assert history.transactions == []
    assert history.error


def test_invalidate_wallet_cache(service, fake_gateway):
    """Test invalidation drops the snapshot and every history page of one wallet."""
    fake_gateway.native = 10**18
    fake_gateway.prices[NATIVE_TOKEN_ADDRESS] = Decimal("0.0001")
    fake_gateway.pages[None] = TransactionPage(transactions=[_send("0xaa")])

    service.get_wallet_snapshot(WALLET)
    service.get_transaction_history(WALLET, limit=5)
    service.cache.set(CacheNamespace.TX_PAGE, tx_page_key(OTHER, 5, None), TransactionPage())

    service.invalidate_wallet_cache(WALLET)

    assert service.cache.get(CacheNamespace.BALANCE, WALLET) is None
    assert service.cache.get(CacheNamespace.TX_PAGE, tx_page_key(WALLET, 5, None)) is None
    assert service.cache.get(CacheNamespace.TX_PAGE, tx_page_key(OTHER, 5, None)) is not None

    service.get_wallet_snapshot(WALLET)
    assert fake_gateway.native_calls == 2


def test_token_price_idempotent(service, fake_gateway):
    """Test repeated price lookups hit the provider once."""
    fake_gateway.prices[TOKEN] = Decimal("0.25")

    first = service.get_token_price(TOKEN)
    second = service.get_token_price(TOKEN)

    assert first.usd_price == Decimal("0.25")
    assert second is first
    assert len(fake_gateway.quote_calls) == 1


def test_unpriced_tokens_absent_from_batch(service, fake_gateway):
    """Test the batch lookup leaves unpriced tokens out."""
    fake_gateway.prices[TOKEN] = Decimal("2")

    quotes = service.get_batch_token_prices([TOKEN, OTHER])

    assert set(quotes) == {TOKEN}


def test_clear_all_caches(service, fake_gateway):
    """Test clearing one namespace leaves the others alone."""
    fake_gateway.prices[TOKEN] = Decimal("2")
    service.get_token_price(TOKEN)
    service.cache.set(CacheNamespace.BALANCE, WALLET, "snapshot")

    service.clear_all_caches("price")
    assert service.cache.get(CacheNamespace.PRICE, TOKEN) is None
    assert service.cache.get(CacheNamespace.BALANCE, WALLET) == "snapshot"

    service.clear_all_caches()
    assert service.cache.get(CacheNamespace.BALANCE, WALLET) is None


def test_settings_from_env(monkeypatch):
    """Test environment variables override the packaged configuration."""
    monkeypatch.setenv("MORALIS_API_KEY", "secret")
    monkeypatch.setenv("PULSECHAIN_RPC_URLS", "https://a.example, https://b.example")
    monkeypatch.setenv("PULSECHAIN_SCAN_API_URL", "https://scan.example/api/v2")

    settings = TrackerSettings.from_env(start_sweeper=False)

    assert settings.moralis_api_key == "secret"
    assert settings.rpc_endpoints == ["https://a.example", "https://b.example"]
    assert settings.scan_api_url == "https://scan.example/api/v2"
    assert settings.batching["batch_size"] == 15
    assert settings.start_sweeper is False
    assert all(address == address.lower() for address in settings.aggregation["important_tokens"])


def test_build_service_without_moralis_key():
    """Test the indexed provider is skipped when no API key is configured."""
    settings = TrackerSettings(rpc_endpoints=["https://rpc.example"], start_sweeper=False)

    service = build_service(settings)
    try:
        assert service.gateway.moralis is None
        assert service.gateway.scan is not None
        assert service.gateway.dexscreener is not None
        assert service.gateway.rpc.endpoints == ["https://rpc.example"]
        assert service.aggregator.scanner is not None
        assert service.sweeper is None
    finally:
        service.close()


def test_build_service_starts_sweeper():
    """Test the background sweeper runs until the service is closed."""
    with build_service(TrackerSettings(cache={"sweep_interval": 3600})) as service:
        assert service.sweeper.running
    assert not service.sweeper.running
