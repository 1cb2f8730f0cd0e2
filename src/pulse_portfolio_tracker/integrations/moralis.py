"""Moralis Web3 Data API client for indexed balances, prices and wallet history."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from pulse_portfolio_tracker.core.exceptions import MalformedResponse, NotFound
from pulse_portfolio_tracker.core.models import (
    NativeTransfer,
    PriceQuote,
    RawBalance,
    RawTransaction,
    TokenMetadata,
    TokenTransferLog,
    TransactionPage,
)
from pulse_portfolio_tracker.core.native import is_native_token
from pulse_portfolio_tracker.core.units import (
    parse_decimals,
    parse_percent_change,
    parse_raw_amount,
    to_decimal,
)
from pulse_portfolio_tracker.data.addresses import NATIVE_TOKEN_ADDRESS, PULSECHAIN_CHAIN_HEX
from pulse_portfolio_tracker.integrations.base import BaseAPIClient, expect_dict, expect_list

logger = logging.getLogger(__name__)


def _result_list(data: Any, what: str) -> list[Any]:
    """Moralis wraps some lists in ``{"result": [...]}`` and returns others bare."""
    if isinstance(data, dict):
        data = data.get("result", [])
    return expect_list(data, MoralisClient.name, what)


def parse_price(data: dict[str, Any], requested_address: str) -> PriceQuote:
    """
    Normalize a Moralis price object.

    Parameters
    ----------
    data : dict[str, Any]
        Price payload (single-price or batch-price item)
    requested_address : str
        Address the caller asked about

    Returns
    -------
    PriceQuote
        Normalized quote

    Raises
    ------
    NotFound
        If the payload carries no usable price

    """
    price = to_decimal(data.get("usdPrice"))
    if price is None:
        msg = f"Moralis has no USD price for {requested_address}"
        raise NotFound(msg, provider=MoralisClient.name)

    change = data.get("usdPrice24hrPercentChange")
    if change is None:
        change = data.get("24hrPercentChange")

    score = data.get("securityScore")
    return PriceQuote(
        token_address=requested_address.lower(),
        usd_price=price,
        price_change_24h=parse_percent_change(change),
        exchange_name=data.get("exchangeName"),
        security_score=int(score) if isinstance(score, (int, float)) else None,
        logo=data.get("tokenLogo"),
        source=MoralisClient.name,
    )


def parse_balance(item: dict[str, Any]) -> RawBalance | None:
    """Normalize one ``/wallets/{address}/tokens`` row, None for spam or unusable rows."""
    if item.get("possible_spam"):
        return None
    native = is_native_token(item.get("token_address"), flagged_native=bool(item.get("native_token")))
    address = NATIVE_TOKEN_ADDRESS if native else (item.get("token_address") or "").lower()
    if not address:
        return None
    try:
        balance = parse_raw_amount(item.get("balance"))
    except ValueError:
        logger.debug("Skipping Moralis balance with invalid amount: %r", item.get("balance"))
        return None
    return RawBalance(
        address=address,
        symbol=item.get("symbol") or "UNKNOWN",
        name=item.get("name") or "Unknown Token",
        decimals=parse_decimals(item.get("decimals")),
        balance=balance,
        usd_price=to_decimal(item.get("usd_price")),
        price_change_24h=parse_percent_change(item.get("usd_price_24hr_percent_change")),
        logo=item.get("logo") or item.get("thumbnail"),
        verified=item.get("verified_contract") is True,
        is_native=native,
        source=MoralisClient.name,
    )


def parse_history_item(item: dict[str, Any]) -> RawTransaction:
    """Normalize one ``/wallets/{address}/history`` row."""
    token_transfers = [
        TokenTransferLog(
            token_address=(transfer.get("address") or transfer.get("token_address") or "").lower(),
            from_address=(transfer.get("from_address") or "").lower(),
            to_address=(transfer.get("to_address") or "").lower(),
            value=str(transfer.get("value") or "0"),
            token_symbol=transfer.get("token_symbol"),
            token_name=transfer.get("token_name"),
            token_decimals=parse_decimals(transfer.get("token_decimals"))
            if transfer.get("token_decimals") not in (None, "")
            else None,
            log_index=transfer.get("log_index"),
        )
        for transfer in item.get("erc20_transfers") or []
        if isinstance(transfer, dict)
    ]
    native_transfers = [
        NativeTransfer(
            from_address=(transfer.get("from_address") or "").lower(),
            to_address=(transfer.get("to_address") or "").lower(),
            value=str(transfer.get("value") or "0"),
            internal=bool(transfer.get("internal_transaction")),
        )
        for transfer in item.get("native_transfers") or []
        if isinstance(transfer, dict)
    ]
    block_number = item.get("block_number")
    return RawTransaction(
        hash=item.get("hash") or "",
        from_address=(item.get("from_address") or "").lower(),
        to_address=(item.get("to_address") or "").lower() or None,
        value=str(item.get("value") or "0"),
        gas=item.get("gas"),
        gas_price=item.get("gas_price"),
        gas_used=item.get("receipt_gas_used"),
        block_number=int(block_number) if block_number not in (None, "") else None,
        block_timestamp=item.get("block_timestamp"),
        input=item.get("input") or "0x",
        method_label=item.get("method_label"),
        category=item.get("category"),
        status=item.get("receipt_status"),
        token_transfers=token_transfers,
        native_transfers=native_transfers,
    )


class MoralisClient(BaseAPIClient):
    """
    Client for the Moralis Web3 Data API on PulseChain.

    Parameters
    ----------
    api_key : str
        Moralis API key
    base_url : str
        API base URL
    chain : str
        Hex chain identifier
    timeout : float
        Request timeout in seconds
    client : httpx.Client | None
        Preconfigured HTTP client

    """

    name = "moralis"
    BASE_URL = "https://deep-index.moralis.io/api/v2.2"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        chain: str = PULSECHAIN_CHAIN_HEX,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            headers={"X-API-Key": api_key, "accept": "application/json"},
            client=client,
        )
        self.chain = chain

    def get_wallet_token_balances(self, wallet_address: str) -> list[RawBalance]:
        """
        Fetch token balances with prices, including the native asset.

        Parameters
        ----------
        wallet_address : str
            Wallet address

        Returns
        -------
        list[RawBalance]
            Normalized balances, spam filtered out

        """
        data = self._get(f"wallets/{wallet_address}/tokens", params={"chain": self.chain})
        balances = []
        for item in _result_list(data, "token balances"):
            if not isinstance(item, dict):
                continue
            balance = parse_balance(item)
            if balance is not None:
                balances.append(balance)
        return balances

    def get_native_balance(self, wallet_address: str) -> int:
        """
        Fetch the native PLS balance.

        Returns
        -------
        int
            Balance in wei

        """
        data = expect_dict(
            self._get(f"{wallet_address}/balance", params={"chain": self.chain}),
            self.name,
            "native balance",
        )
        try:
            return parse_raw_amount(data.get("balance"))
        except ValueError as e:
            msg = f"Invalid native balance from Moralis: {data.get('balance')!r}"
            raise MalformedResponse(msg, provider=self.name) from e

    def get_token_price(self, token_address: str) -> PriceQuote:
        """
        Fetch the USD price of one token.

        Parameters
        ----------
        token_address : str
            Token address

        Returns
        -------
        PriceQuote
            Price quote

        """
        data = self._get(
            f"erc20/{token_address}/price",
            params={"chain": self.chain, "include": "percent_change"},
        )
        return parse_price(expect_dict(data, self.name, "token price"), token_address)

    def get_batch_prices(self, token_addresses: list[str]) -> dict[str, PriceQuote]:
        """
        Fetch prices for several tokens in one request.

        Tokens Moralis cannot price are absent from the result.

        Parameters
        ----------
        token_addresses : list[str]
            Token addresses

        Returns
        -------
        dict[str, PriceQuote]
            Quotes keyed by lowercase address

        """
        if not token_addresses:
            return {}
        body = {"tokens": [{"token_address": address} for address in token_addresses]}
        data = self._post("erc20/prices", json=body, params={"chain": self.chain, "include": "percent_change"})
        quotes: dict[str, PriceQuote] = {}
        for item in _result_list(data, "batch prices"):
            if not isinstance(item, dict) or not item.get("tokenAddress"):
                continue
            try:
                quote = parse_price(item, item["tokenAddress"])
            except NotFound:
                continue
            quotes[quote.token_address] = quote
        return quotes

    def get_token_metadata(self, token_addresses: list[str]) -> list[TokenMetadata]:
        """
        Fetch ERC-20 metadata for one or more tokens.

        Returns
        -------
        list[TokenMetadata]
            Metadata with decimals parsed to int

        """
        params: list[tuple[str, Any]] = [("chain", self.chain)]
        params.extend(("addresses[]", address) for address in token_addresses)
        data = self._get("erc20/metadata", params=params)
        return [
            TokenMetadata(
                address=(item.get("address") or "").lower(),
                symbol=item.get("symbol") or "UNKNOWN",
                name=item.get("name") or "Unknown Token",
                decimals=parse_decimals(item.get("decimals")),
            )
            for item in _result_list(data, "token metadata")
            if isinstance(item, dict) and item.get("address")
        ]

    def get_wallet_history(
        self,
        wallet_address: str,
        limit: int = 100,
        cursor: str | None = None,
    ) -> TransactionPage:
        """
        Fetch one page of decoded wallet history.

        Parameters
        ----------
        wallet_address : str
            Wallet address
        limit : int
            Page size
        cursor : str | None
            Cursor from the previous page

        Returns
        -------
        TransactionPage
            Transactions and the next cursor

        """
        params: dict[str, Any] = {
            "chain": self.chain,
            "limit": limit,
            "order": "DESC",
            "include_internal_transactions": "true",
        }
        if cursor:
            params["cursor"] = cursor
        data = expect_dict(self._get(f"wallets/{wallet_address}/history", params=params), self.name, "history")
        transactions = []
        for item in expect_list(data.get("result", []), self.name, "history result"):
            if not isinstance(item, dict) or not item.get("hash"):
                continue
            try:
                transactions.append(parse_history_item(item))
            except (ValueError, ValidationError) as e:
                logger.debug("Skipping malformed Moralis history item %s: %s", item.get("hash"), e)
        return TransactionPage(transactions=transactions, cursor=data.get("cursor") or None)
