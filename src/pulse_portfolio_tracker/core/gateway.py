"""Uniform access to balance, price, metadata and history providers with fallback."""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pulse_portfolio_tracker.core.exceptions import MalformedResponse, NotFound, ProviderError, ProviderUnavailable
from pulse_portfolio_tracker.core.models import PriceQuote, RawBalance, TokenMetadata, TransactionPage
from pulse_portfolio_tracker.core.native import canonical_native_identity, is_native_token, price_source_address
from pulse_portfolio_tracker.core.units import parse_decimals
from pulse_portfolio_tracker.data.addresses import NATIVE_TOKEN_ADDRESS
from pulse_portfolio_tracker.integrations.dexscreener import DexScreenerClient
from pulse_portfolio_tracker.integrations.moralis import MoralisClient
from pulse_portfolio_tracker.integrations.pulsechain_scan import PulseChainScanClient
from pulse_portfolio_tracker.rpc.cache import CacheNamespace, TTLCache
from pulse_portfolio_tracker.rpc.multicall import MulticallBatcher
from pulse_portfolio_tracker.rpc.provider import MultiRPCProvider
from pulse_portfolio_tracker.rpc.retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCAN_CURSOR_PREFIX = "scan:"


def relabel_native(balance: RawBalance) -> RawBalance:
    """
    Give a native-asset balance its canonical identity.

    Providers sometimes report PLS under the WPLS contract or the zero
    address; the returned row always carries the canonical address, symbol,
    name and decimals.

    Parameters
    ----------
    balance : RawBalance
        Balance flagged as native

    Returns
    -------
    RawBalance
        Relabeled copy

    """
    identity = canonical_native_identity()
    return balance.model_copy(update={**identity, "is_native": True})


class ProviderGateway:
    """
    Facade over the indexed provider, the chain-scan provider, the market-data
    provider and direct RPC.

    Every public ``fetch_*`` method swallows provider errors and reports them
    as None or an empty result, meaning "try the next source". The ``quote_*``
    methods raise so callers with their own retry policy can tell transient
    failures from permanent ones.

    Parameters
    ----------
    moralis : MoralisClient | None
        Indexed balance/price provider (skipped when None, e.g. no API key)
    scan : PulseChainScanClient | None
        Chain-scan provider
    dexscreener : DexScreenerClient | None
        Market-data provider
    rpc : MultiRPCProvider | None
        JSON-RPC provider for contract reads
    retry_policy : RetryPolicy | None
        Policy applied to REST provider calls made by ``fetch_*`` methods; the
        RPC provider retries through its own endpoint rotation
    cache : TTLCache | None
        Shared cache; the native price looked up while relabeling balances
        goes through its price namespace

    """

    def __init__(
        self,
        moralis: MoralisClient | None = None,
        scan: PulseChainScanClient | None = None,
        dexscreener: DexScreenerClient | None = None,
        rpc: MultiRPCProvider | None = None,
        retry_policy: RetryPolicy | None = None,
        cache: TTLCache | None = None,
    ) -> None:
        self.moralis = moralis
        self.scan = scan
        self.dexscreener = dexscreener
        self.rpc = rpc
        self.retry_policy = retry_policy or RetryPolicy()
        self.cache = cache

    def _attempt(self, source: str, func: Callable[..., T], *args: Any, retry: bool = True) -> T | None:
        try:
            if not retry:
                return func(*args)
            return self.retry_policy.call(func, *args)
        except NotFound as e:
            logger.debug("%s: %s", source, e)
        except ProviderError as e:
            logger.warning("%s failed: %s", source, e)
        except ValueError as e:
            logger.warning("%s returned malformed data: %s", source, e)
        return None

    # Balances

    def fetch_native_balance(self, address: str) -> int | None:
        """
        Get the native PLS balance in wei from the first source that answers.

        Parameters
        ----------
        address : str
            Wallet address

        Returns
        -------
        int | None
            Balance in wei, None if every source failed

        """
        sources: list[tuple[str, Callable[[str], int] | None]] = [
            ("rpc", self.rpc.get_balance if self.rpc else None),
            ("moralis", self.moralis.get_native_balance if self.moralis else None),
            ("pulsechain_scan", self.scan.get_native_balance if self.scan else None),
        ]
        for name, func in sources:
            if func is None:
                continue
            balance = self._attempt(f"{name} native balance", func, address, retry=name != "rpc")
            if balance is not None:
                return balance
        return None

    def _cached_price(self, token_address: str) -> PriceQuote | None:
        if self.cache is not None:
            cached = self.cache.get(CacheNamespace.PRICE, token_address)
            if cached is not None:
                return cached
        quote = self.fetch_price(token_address)
        if quote is not None and self.cache is not None:
            self.cache.set(CacheNamespace.PRICE, token_address, quote)
        return quote

    def _with_native_identity(self, balances: list[RawBalance]) -> list[RawBalance]:
        result = []
        for balance in balances:
            if is_native_token(balance.address, flagged_native=balance.is_native):
                balance = relabel_native(balance)
                quote = self._cached_price(NATIVE_TOKEN_ADDRESS)
                if quote is not None:
                    balance = balance.model_copy(
                        update={"usd_price": quote.usd_price, "price_change_24h": quote.price_change_24h}
                    )
            result.append(balance)
        return result

    def fetch_indexed_balances(self, address: str) -> list[RawBalance]:
        """Get priced balances from the indexed provider, empty on failure."""
        if self.moralis is None:
            return []
        balances = self._attempt("moralis balances", self.moralis.get_wallet_token_balances, address)
        return self._with_native_identity(balances or [])

    def fetch_scan_balances(self, address: str) -> list[RawBalance]:
        """Get raw balances from the chain-scan provider, empty on failure."""
        if self.scan is None:
            return []
        balances = self._attempt("pulsechain_scan balances", self.scan.get_token_balances, address)
        return self._with_native_identity(balances or [])

    def fetch_balances(self, address: str) -> list[RawBalance]:
        """
        Get token balances, trying the indexed provider then the chain-scan provider.

        Parameters
        ----------
        address : str
            Wallet address

        Returns
        -------
        list[RawBalance]
            Balances from the first provider with usable rows

        """
        balances = [b for b in self.fetch_indexed_balances(address) if b.balance > 0]
        if balances:
            return balances
        return [b for b in self.fetch_scan_balances(address) if b.balance > 0]

    def fetch_rpc_balance(self, address: str, token_address: str) -> RawBalance | None:
        """
        Read a token balance and its metadata straight from the contract.

        Parameters
        ----------
        address : str
            Wallet address
        token_address : str
            Token contract address

        Returns
        -------
        RawBalance | None
            Unpriced balance, None if the balance could not be read

        """
        if self.rpc is None:
            return None
        batcher = MulticallBatcher(self.rpc)
        raw = batcher.read_balance(token_address, address)
        if raw is None:
            return None
        metadata = batcher.read_token_metadata(token_address)
        return RawBalance(
            address=token_address.lower(),
            symbol=metadata["symbol"] or "UNKNOWN",
            name=metadata["name"] or "Unknown Token",
            decimals=parse_decimals(metadata["decimals"]),
            balance=int(raw),
            source="rpc",
        )

    def fetch_pair_tokens(self, token_address: str) -> tuple[str | None, str | None]:
        """Read ``token0``/``token1`` of a possible LP pair, (None, None) if unavailable."""
        if self.rpc is None:
            return None, None
        return MulticallBatcher(self.rpc).read_pair_tokens(token_address)

    # Prices

    def quote_price(self, token_address: str) -> PriceQuote:
        """
        Get a price from the first provider that has one, raising on failure.

        Native PLS is priced from WPLS liquidity and re-keyed to the canonical
        native address.

        Parameters
        ----------
        token_address : str
            Token address

        Returns
        -------
        PriceQuote
            Price quote keyed by ``token_address`` (lowercase)

        Raises
        ------
        ProviderUnavailable
            If no provider had a price and at least one failed transiently
        ProviderError
            The last permanent error otherwise

        """
        requested = NATIVE_TOKEN_ADDRESS if is_native_token(token_address) else token_address.lower()
        source_address = price_source_address(requested)
        getters: list[tuple[str, Callable[[str], PriceQuote]]] = []
        if self.moralis is not None:
            getters.append(("moralis", self.moralis.get_token_price))
        if self.dexscreener is not None:
            getters.append(("dexscreener", self.dexscreener.get_token_price))

        errors: list[ProviderError] = []
        for name, getter in getters:
            try:
                quote = getter(source_address)
            except ProviderError as e:
                logger.debug("%s price for %s failed: %s", name, requested, e)
                errors.append(e)
                continue
            except ValueError as e:
                msg = f"{name} returned an invalid price for {requested}: {e}"
                errors.append(MalformedResponse(msg, provider=name))
                continue
            if quote.token_address != requested:
                quote = quote.model_copy(update={"token_address": requested})
            return quote

        transient = [e for e in errors if isinstance(e, ProviderUnavailable)]
        if transient:
            raise transient[-1]
        if errors:
            raise errors[-1]
        msg = f"No price provider configured for {requested}"
        raise NotFound(msg)

    def fetch_price(self, token_address: str) -> PriceQuote | None:
        """Get a price, None if no provider has one."""
        return self._attempt(f"price for {token_address}", self.quote_price, token_address)

    def quote_batch_prices(self, token_addresses: list[str]) -> dict[str, PriceQuote]:
        """
        Get prices through the indexed provider's batch endpoint, raising on failure.

        Parameters
        ----------
        token_addresses : list[str]
            Token addresses

        Returns
        -------
        dict[str, PriceQuote]
            Quotes keyed by requested lowercase address; unpriced tokens are absent

        """
        if self.moralis is None or not token_addresses:
            return {}
        requested_by_source: dict[str, list[str]] = {}
        for address in token_addresses:
            requested = NATIVE_TOKEN_ADDRESS if is_native_token(address) else address.lower()
            requested_by_source.setdefault(price_source_address(requested), []).append(requested)

        quotes = self.moralis.get_batch_prices(list(requested_by_source))
        result: dict[str, PriceQuote] = {}
        for source_address, quote in quotes.items():
            for requested in requested_by_source.get(source_address, []):
                result[requested] = (
                    quote if quote.token_address == requested else quote.model_copy(update={"token_address": requested})
                )
        return result

    def fetch_batch_prices(self, token_addresses: list[str]) -> dict[str, PriceQuote]:
        """Get prices in one batch request, empty on failure."""
        return self._attempt("moralis batch prices", self.quote_batch_prices, token_addresses) or {}

    # Metadata and history

    def fetch_token_metadata(self, token_address: str) -> TokenMetadata | None:
        """
        Get symbol, name and decimals of a token.

        Tries the indexed provider, the chain-scan provider and finally
        direct contract reads.

        Parameters
        ----------
        token_address : str
            Token address

        Returns
        -------
        TokenMetadata | None
            Metadata, None if no source knows the token

        """
        if is_native_token(token_address):
            return TokenMetadata(**canonical_native_identity())

        if self.moralis is not None:
            items = self._attempt("moralis metadata", self.moralis.get_token_metadata, [token_address])
            if items:
                return items[0]
        if self.scan is not None:
            metadata = self._attempt("pulsechain_scan metadata", self.scan.get_token_metadata, token_address)
            if metadata is not None:
                return metadata
        if self.rpc is not None:
            values = MulticallBatcher(self.rpc).read_token_metadata(token_address)
            if any(value is not None for value in values.values()):
                return TokenMetadata(
                    address=token_address.lower(),
                    symbol=values["symbol"] or "UNKNOWN",
                    name=values["name"] or "Unknown Token",
                    decimals=parse_decimals(values["decimals"]),
                )
        return None

    def fetch_transaction_page(self, address: str, limit: int = 100, cursor: str | None = None) -> TransactionPage | None:
        """
        Get one page of raw transactions.

        Scan cursors carry a ``scan:`` prefix so a follow-up page goes back to
        the provider that issued the cursor.

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
        TransactionPage | None
            Page of transactions, None if every provider failed

        """
        scan_cursor = cursor[len(SCAN_CURSOR_PREFIX) :] if cursor and cursor.startswith(SCAN_CURSOR_PREFIX) else None

        if self.moralis is not None and scan_cursor is None:
            page = self._attempt("moralis history", self.moralis.get_wallet_history, address, limit, cursor)
            if page is not None:
                return page
            if cursor:
                return None

        if self.scan is not None:
            page = self._attempt("pulsechain_scan transactions", self.scan.get_transactions, address, limit, scan_cursor)
            if page is not None:
                next_cursor = f"{SCAN_CURSOR_PREFIX}{page.cursor}" if page.cursor else None
                return page.model_copy(update={"cursor": next_cursor})
        return None
