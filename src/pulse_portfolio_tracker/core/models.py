"""Data models for tokens, prices, wallet snapshots and transactions."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class SnapshotStatus(StrEnum):
    """Outcome of a top-level request."""

    OK = "ok"
    ERROR = "error"


class TransactionCategory(StrEnum):
    """Human-meaningful transaction category."""

    UNKNOWN = "unknown"
    SEND = "send"
    RECEIVE = "receive"
    SWAP = "swap"
    APPROVAL = "approval"
    LIQUIDITY_ADD = "liquidity_add"
    LIQUIDITY_REMOVE = "liquidity_remove"
    STAKE = "stake"
    UNSTAKE = "unstake"
    CONTRACT = "contract"


class TransferDirection(StrEnum):
    """Direction of a transfer relative to the queried wallet."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    SELF = "self"
    UNRELATED = "unrelated"


class Token(BaseModel):
    """
    Token holding with pricing.

    Attributes
    ----------
    address : str
        Lowercase token contract address (canonical sentinel for PLS)
    symbol : str
        Token symbol
    name : str
        Full token name
    decimals : int
        Number of decimal places
    balance : str
        Smallest-unit balance as a decimal string
    balance_formatted : Decimal
        Human balance (balance / 10**decimals)
    price : Decimal | None
        USD unit price, None when unknown
    value : Decimal
        price * balance_formatted, 0 when the price is unknown
    price_change_24h : Decimal | None
        24h percent change
    logo : str | None
        Logo reference
    exchange : str | None
        Exchange the price was taken from
    verified : bool
        Verified contract flag
    security_score : int | None
        Provider security/confidence score
    is_native : bool
        True for the chain's native asset
    is_liquidity_pool : bool
        True for LP pair tokens

    """

    address: str
    symbol: str = "UNKNOWN"
    name: str = "Unknown Token"
    decimals: int = 18
    balance: str = "0"
    balance_formatted: Decimal = Decimal("0")
    price: Decimal | None = None
    value: Decimal = Decimal("0")
    price_change_24h: Decimal | None = None
    logo: str | None = None
    exchange: str | None = None
    verified: bool = False
    security_score: int | None = None
    is_native: bool = False
    is_liquidity_pool: bool = False

    def compute_value(self) -> Decimal:
        """Recompute and store ``value`` from price and balance."""
        self.value = (self.price or Decimal("0")) * self.balance_formatted
        return self.value


class RawBalance(BaseModel):
    """Balance row normalized from any provider, before pricing."""

    address: str
    symbol: str = "UNKNOWN"
    name: str = "Unknown Token"
    decimals: int = 18
    balance: int = 0
    usd_price: Decimal | None = None
    price_change_24h: Decimal | None = None
    logo: str | None = None
    verified: bool = False
    is_native: bool = False
    source: str = ""


class PriceQuote(BaseModel):
    """
    Immutable USD price observation for one token.

    Attributes
    ----------
    token_address : str
        Lowercase token address the quote is for
    usd_price : Decimal
        USD unit price
    price_change_24h : Decimal | None
        24h percent change (sign preserved)
    exchange_name : str | None
        Exchange or DEX the price came from
    security_score : int | None
        Provider confidence/security score
    logo : str | None
        Logo URL reported alongside the price
    source : str
        Provider that produced the quote
    timestamp : datetime
        Creation time

    """

    model_config = ConfigDict(frozen=True)

    token_address: str
    usd_price: Decimal
    price_change_24h: Decimal | None = None
    exchange_name: str | None = None
    security_score: int | None = None
    logo: str | None = None
    source: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Pagination(BaseModel):
    """Pagination descriptor for a wallet snapshot page."""

    page: int
    limit: int
    total_items: int
    total_pages: int


class WalletSnapshot(BaseModel):
    """
    Aggregated wallet view.

    The cached form holds every token; a page is a derived copy.

    """

    address: str
    tokens: list[Token] = Field(default_factory=list)
    total_value: Decimal = Decimal("0")
    token_count: int = 0
    native_balance: Decimal | None = None
    native_price_change: Decimal | None = None
    network_count: int = 0
    pagination: Pagination | None = None
    status: SnapshotStatus = SnapshotStatus.OK
    error: str | None = None

    @classmethod
    def empty(cls, address: str, error: str | None = None) -> "WalletSnapshot":
        """Build an empty snapshot, flagged as an error when ``error`` is given."""
        return cls(
            address=address,
            status=SnapshotStatus.ERROR if error else SnapshotStatus.OK,
            error=error,
        )


class TokenTransferLog(BaseModel):
    """Token transfer already decoded by a provider."""

    model_config = ConfigDict(frozen=True)

    token_address: str
    from_address: str
    to_address: str
    value: str = "0"
    token_symbol: str | None = None
    token_name: str | None = None
    token_decimals: int | None = None
    log_index: int | None = None


class NativeTransfer(BaseModel):
    """Native-asset movement, including internal transfers made by contracts."""

    model_config = ConfigDict(frozen=True)

    from_address: str
    to_address: str
    value: str = "0"
    internal: bool = False


class RawLog(BaseModel):
    """Undecoded event log (address, topics, data)."""

    model_config = ConfigDict(frozen=True)

    address: str
    topics: list[str] = Field(default_factory=list)
    data: str = "0x"
    log_index: int | None = None


class RawTransaction(BaseModel):
    """Transaction as received from a provider. Never mutated."""

    model_config = ConfigDict(frozen=True)

    hash: str
    from_address: str
    to_address: str | None = None
    value: str = "0"
    gas: str | None = None
    gas_price: str | None = None
    gas_used: str | None = None
    block_number: int | None = None
    block_timestamp: str | None = None
    input: str = "0x"
    method_label: str | None = None
    category: str | None = None
    status: str | None = None
    token_transfers: list[TokenTransferLog] = Field(default_factory=list)
    native_transfers: list[NativeTransfer] = Field(default_factory=list)
    logs: list[RawLog] = Field(default_factory=list)


class TransferEvent(BaseModel):
    """Token transfer decoded relative to the queried wallet."""

    token_address: str
    from_address: str
    to_address: str
    raw_value: int
    direction: TransferDirection
    symbol: str = "UNKNOWN"
    name: str | None = None
    decimals: int = 18


class TokenDetail(BaseModel):
    """One leg of a classified transaction."""

    address: str
    symbol: str
    name: str | None = None
    amount: str
    amount_formatted: str
    decimals: int


class ClassifiedTransaction(BaseModel):
    """Raw transaction annotated with category, label and token legs."""

    transaction: RawTransaction
    category: TransactionCategory
    method_label: str
    sent: list[TokenDetail] = Field(default_factory=list)
    received: list[TokenDetail] = Field(default_factory=list)
    protocol_name: str | None = None
    error: str | None = None

    @property
    def swap_detail(self) -> tuple[TokenDetail, TokenDetail] | None:
        """First outgoing and first incoming leg of a swap."""
        if self.category != TransactionCategory.SWAP or not self.sent or not self.received:
            return None
        return self.sent[0], self.received[0]


class TransactionPage(BaseModel):
    """One page of raw transactions from a provider."""

    transactions: list[RawTransaction] = Field(default_factory=list)
    cursor: str | None = None
    total: int | None = None


class TransactionHistory(BaseModel):
    """Classified transaction page returned to callers."""

    address: str
    transactions: list[ClassifiedTransaction] = Field(default_factory=list)
    cursor: str | None = None
    total: int = 0
    status: SnapshotStatus = SnapshotStatus.OK
    error: str | None = None


class TokenMetadata(BaseModel):
    """ERC-20 metadata."""

    address: str
    symbol: str = "UNKNOWN"
    name: str = "Unknown Token"
    decimals: int = 18


class LoadingProgress(BaseModel):
    """Progress report polled by UI layers."""

    status: str = "idle"
    current_batch: int = 0
    total_batches: int = 0
    message: str = ""
