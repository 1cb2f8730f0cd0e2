"""Value-ordered sorting and page slicing of wallet tokens."""

import math
from decimal import Decimal

from pulse_portfolio_tracker.core.models import Pagination, Token, WalletSnapshot

_ZERO = Decimal("0")


def sort_key(token: Token) -> tuple[Decimal, Decimal]:
    return (token.value if token.value is not None else _ZERO, token.balance_formatted or _ZERO)


def sort_tokens(tokens: list[Token]) -> list[Token]:
    """
    Sort tokens by value, then human balance, both descending.

    Parameters
    ----------
    tokens : list[Token]
        Tokens to sort

    Returns
    -------
    list[Token]
        New sorted list; ties keep their input order

    """
    return sorted(tokens, key=sort_key, reverse=True)


def paginate(items: list, page: int, limit: int) -> list:
    """
    Slice one page out of ``items``.

    Parameters
    ----------
    items : list
        Full ordered list
    page : int
        1-based page number (values below 1 are treated as 1)
    limit : int
        Page size; 0 returns every item

    Returns
    -------
    list
        Items of the requested page

    """
    if limit <= 0:
        return list(items)
    start = (max(page, 1) - 1) * limit
    end = min(start + limit, len(items))
    return items[start:end]


def page_snapshot(snapshot: WalletSnapshot, page: int, limit: int) -> WalletSnapshot:
    """
    Derive a paged view of a full snapshot.

    The returned copy carries the page's tokens while ``token_count`` and
    ``total_value`` keep describing the whole wallet. A pagination descriptor
    is attached whenever ``limit`` is positive.

    Parameters
    ----------
    snapshot : WalletSnapshot
        Full, sorted snapshot (left untouched)
    page : int
        1-based page number
    limit : int
        Page size; 0 returns every token

    Returns
    -------
    WalletSnapshot
        Paged copy

    """
    total = len(snapshot.tokens)
    pagination = None
    if limit > 0:
        pagination = Pagination(
            page=max(page, 1),
            limit=limit,
            total_items=total,
            total_pages=math.ceil(total / limit) if total else 0,
        )
    return snapshot.model_copy(
        update={
            "tokens": paginate(snapshot.tokens, page, limit),
            "token_count": total,
            "pagination": pagination,
        }
    )
