"""Core functionality including models, exceptions and the protocol registry."""

from pulse_portfolio_tracker.core.exceptions import (
    MalformedResponse,
    NotFound,
    PartialFailure,
    ProviderError,
    ProviderUnavailable,
    RateLimited,
)
from pulse_portfolio_tracker.core.models import (
    ClassifiedTransaction,
    PriceQuote,
    SnapshotStatus,
    Token,
    TransactionCategory,
    TransactionHistory,
    WalletSnapshot,
)
from pulse_portfolio_tracker.core.registry import ProtocolRegistry

__all__ = [
    "ClassifiedTransaction",
    "MalformedResponse",
    "NotFound",
    "PartialFailure",
    "PriceQuote",
    "ProtocolRegistry",
    "ProviderError",
    "ProviderUnavailable",
    "RateLimited",
    "SnapshotStatus",
    "Token",
    "TransactionCategory",
    "TransactionHistory",
    "WalletSnapshot",
]
