"""PulseChain Scan (Blockscout v2) client for raw balances and transactions."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from pulse_portfolio_tracker.core.exceptions import MalformedResponse
from pulse_portfolio_tracker.core.models import (
    RawBalance,
    RawTransaction,
    TokenMetadata,
    TokenTransferLog,
    TransactionPage,
)
from pulse_portfolio_tracker.core.units import parse_decimals, parse_raw_amount, to_decimal
from pulse_portfolio_tracker.integrations.base import BaseAPIClient, expect_dict, expect_list

logger = logging.getLogger(__name__)


def _hash_of(value: Any) -> str:
    """Blockscout encodes addresses either as plain strings or ``{"hash": ...}`` objects."""
    if isinstance(value, dict):
        value = value.get("hash")
    return (value or "").lower()


def _token_address(token: dict[str, Any]) -> str:
    return (token.get("address") or token.get("address_hash") or "").lower()


def parse_token_balance(item: dict[str, Any]) -> RawBalance | None:
    """Normalize one ``token-balances`` row. Non ERC-20 rows yield None."""
    token = item.get("token") or {}
    if token.get("type") not in (None, "ERC-20"):
        return None
    address = _token_address(token)
    if not address:
        return None
    try:
        balance = parse_raw_amount(item.get("value"))
    except ValueError:
        logger.debug("Skipping scan balance with invalid amount: %r", item.get("value"))
        return None
    return RawBalance(
        address=address,
        symbol=token.get("symbol") or "UNKNOWN",
        name=token.get("name") or "Unknown Token",
        decimals=parse_decimals(token.get("decimals")),
        balance=balance,
        usd_price=to_decimal(token.get("exchange_rate")),
        logo=token.get("icon_url"),
        source=PulseChainScanClient.name,
    )


def parse_transaction(item: dict[str, Any]) -> RawTransaction:
    """Normalize one ``/addresses/{address}/transactions`` row."""
    transfers = []
    for transfer in item.get("token_transfers") or []:
        if not isinstance(transfer, dict):
            continue
        token = transfer.get("token") or {}
        total = transfer.get("total") or {}
        decimals = total.get("decimals", token.get("decimals"))
        transfers.append(
            TokenTransferLog(
                token_address=_token_address(token),
                from_address=_hash_of(transfer.get("from")),
                to_address=_hash_of(transfer.get("to")),
                value=str(total.get("value") or "0"),
                token_symbol=token.get("symbol"),
                token_name=token.get("name"),
                token_decimals=parse_decimals(decimals) if decimals not in (None, "") else None,
                log_index=transfer.get("log_index"),
            )
        )
    block = item.get("block") if item.get("block") is not None else item.get("block_number")
    return RawTransaction(
        hash=item.get("hash") or "",
        from_address=_hash_of(item.get("from")),
        to_address=_hash_of(item.get("to")) or None,
        value=str(item.get("value") or "0"),
        gas=item.get("gas_limit"),
        gas_price=item.get("gas_price"),
        gas_used=item.get("gas_used"),
        block_number=int(block) if block not in (None, "") else None,
        block_timestamp=item.get("timestamp"),
        input=item.get("raw_input") or "0x",
        method_label=item.get("method"),
        status=item.get("status") or item.get("result"),
        token_transfers=transfers,
    )


class PulseChainScanClient(BaseAPIClient):
    """
    Client for the PulseChain Scan REST API (v2).

    Parameters
    ----------
    base_url : str
        API base URL
    timeout : float
        Request timeout in seconds
    client : httpx.Client | None
        Preconfigured HTTP client

    """

    name = "pulsechain_scan"
    BASE_URL = "https://api.scan.pulsechain.com/api/v2"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)

    def get_token_balances(self, wallet_address: str) -> list[RawBalance]:
        """
        Fetch ERC-20 balances of a wallet.

        Parameters
        ----------
        wallet_address : str
            Wallet address

        Returns
        -------
        list[RawBalance]
            Normalized balances

        """
        data = self._get(f"addresses/{wallet_address}/token-balances")
        balances = []
        for item in expect_list(data, self.name, "token balances"):
            if not isinstance(item, dict):
                continue
            balance = parse_token_balance(item)
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
        data = expect_dict(self._get(f"addresses/{wallet_address}"), self.name, "address")
        try:
            return parse_raw_amount(data.get("coin_balance"))
        except ValueError as e:
            msg = f"Invalid coin balance from PulseChain Scan: {data.get('coin_balance')!r}"
            raise MalformedResponse(msg, provider=self.name) from e

    def get_token_metadata(self, token_address: str) -> TokenMetadata:
        """Fetch symbol, name and decimals of a token."""
        data = expect_dict(self._get(f"tokens/{token_address}"), self.name, "token")
        return TokenMetadata(
            address=(_token_address(data) or token_address).lower(),
            symbol=data.get("symbol") or "UNKNOWN",
            name=data.get("name") or "Unknown Token",
            decimals=parse_decimals(data.get("decimals")),
        )

    def get_transactions(
        self,
        wallet_address: str,
        limit: int = 100,
        cursor: str | None = None,
    ) -> TransactionPage:
        """
        Fetch one page of transactions of a wallet.

        The next page cursor is Blockscout's ``next_page_params`` encoded as a
        query string.

        Parameters
        ----------
        wallet_address : str
            Wallet address
        limit : int
            Maximum number of transactions to return
        cursor : str | None
            Cursor from the previous page

        Returns
        -------
        TransactionPage
            Transactions and the next cursor

        """
        params = dict(httpx.QueryParams(cursor)) if cursor else {}
        data = expect_dict(
            self._get(f"addresses/{wallet_address}/transactions", params=params or None),
            self.name,
            "transactions",
        )
        transactions = []
        for item in expect_list(data.get("items", []), self.name, "transaction items"):
            if not isinstance(item, dict) or not item.get("hash"):
                continue
            try:
                transactions.append(parse_transaction(item))
            except (ValueError, ValidationError) as e:
                logger.debug("Skipping malformed scan transaction %s: %s", item.get("hash"), e)
        next_params = data.get("next_page_params")
        next_cursor = str(httpx.QueryParams(next_params)) if next_params else None
        return TransactionPage(transactions=transactions[:limit], cursor=next_cursor)
