"""Pytest configuration for pulse-portfolio-tracker tests."""

import pytest

from pulse_portfolio_tracker.core.exceptions import NotFound
from pulse_portfolio_tracker.core.models import PriceQuote
from pulse_portfolio_tracker.core.registry import ProtocolRegistry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: list[float] = []
    return delays.append, delays


@pytest.fixture
def registered_protocols():
    """Make sure every protocol handler is registered."""
    # Import triggers registration
    from pulse_portfolio_tracker import protocols

    for handler_class in (
        protocols.HexHandler,
        protocols.PLDEXHandler,
        protocols.PulseXHandler,
        protocols.PulseXIFOHandler,
        protocols.ThorSwapHandler,
        protocols.VelocityHandler,
    ):
        if ProtocolRegistry.get_handler(handler_class.name) is None:
            ProtocolRegistry.register(handler_class)
    return ProtocolRegistry


class FakeGateway:
    """In-memory stand-in for ``ProviderGateway`` that records upstream calls."""

    moralis = None
    scan = None
    dexscreener = None
    rpc = None

    def __init__(
        self,
        native=None,
        indexed=None,
        scan_balances=None,
        rpc_balances=None,
        pairs=None,
        prices=None,
        batch_prices=None,
        metadata=None,
        pages=None,
    ):
        self.native = native
        self.indexed = indexed or []
        self.scan_balances = scan_balances or []
        self.rpc_balances = rpc_balances or {}
        self.pairs = pairs or {}
        self.prices = prices or {}
        self.batch_prices = batch_prices or {}
        self.metadata = metadata or {}
        self.pages = pages or {}
        self.price_errors = {}
        self.quote_calls = []
        self.batch_calls = []
        self.page_calls = []
        self.native_calls = 0

    def fetch_native_balance(self, address):
        self.native_calls += 1
        return self.native

    def fetch_indexed_balances(self, address):
        return list(self.indexed)

    def fetch_scan_balances(self, address):
        return list(self.scan_balances)

    def fetch_rpc_balance(self, address, token_address):
        return self.rpc_balances.get(token_address)

    def fetch_pair_tokens(self, token_address):
        return self.pairs.get(token_address, (None, None))

    def quote_price(self, token_address):
        self.quote_calls.append(token_address)
        errors = self.price_errors.get(token_address)
        if errors:
            raise errors.pop(0)
        if token_address not in self.prices:
            msg = f"No price for {token_address}"
            raise NotFound(msg, provider="fake")
        return PriceQuote(token_address=token_address, usd_price=self.prices[token_address], source="fake")

    def fetch_batch_prices(self, token_addresses):
        self.batch_calls.append(list(token_addresses))
        return {
            address: PriceQuote(token_address=address, usd_price=self.batch_prices[address], source="batch")
            for address in token_addresses
            if address in self.batch_prices
        }

    def fetch_token_metadata(self, token_address):
        return self.metadata.get(token_address)

    def fetch_transaction_page(self, address, limit=100, cursor=None):
        self.page_calls.append((address, limit, cursor))
        return self.pages.get(cursor)


@pytest.fixture
def fake_gateway():
    return FakeGateway()
