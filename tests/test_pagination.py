"""Tests for token sorting and page slicing."""

from decimal import Decimal

from pulse_portfolio_tracker.core.models import Token, WalletSnapshot
from pulse_portfolio_tracker.core.pagination import page_snapshot, paginate, sort_tokens


def _token(symbol: str, value: str, balance: str) -> Token:
    return Token(
        address=f"0x{symbol.lower():0>40}",
        symbol=symbol,
        value=Decimal(value),
        balance_formatted=Decimal(balance),
    )


def _assert_sorted(tokens: list[Token]) -> None:
    for a, b in zip(tokens, tokens[1:]):
        assert a.value > b.value or (a.value == b.value and a.balance_formatted >= b.balance_formatted)


def test_zero_value_tokens_ordered_by_balance():
    """Test unpriced tokens fall back to human balance, largest first."""
    tokens = [
        _token("aaa", "0", "5"),
        _token("bbb", "12.5", "1"),
        _token("ccc", "0", "900"),
        _token("ddd", "0", "0.001"),
        _token("eee", "3", "40"),
    ]

    ordered = sort_tokens(tokens)

    assert [t.symbol for t in ordered] == ["bbb", "eee", "ccc", "aaa", "ddd"]
    _assert_sorted(ordered)
    assert tokens[0].symbol == "aaa"


def test_full_ties_keep_input_order():
    """Test tokens equal on value and balance stay in their original order."""
    tokens = [_token("aaa", "1", "2"), _token("bbb", "1", "2"), _token("ccc", "1", "2")]

    assert [t.symbol for t in sort_tokens(tokens)] == ["aaa", "bbb", "ccc"]


def test_paginate_bounds():
    """Test limit 0, pages below 1 and pages past the end."""
    items = list(range(7))

    assert paginate(items, 1, 0) == items
    assert paginate(items, 3, 0) == items
    assert paginate(items, 0, 3) == [0, 1, 2]
    assert paginate(items, -2, 3) == [0, 1, 2]
    assert paginate(items, 3, 3) == [6]
    assert paginate(items, 4, 3) == []


def test_pages_concatenate_to_full_list():
    """Test every page respects the limit and together they rebuild the list."""
    items = list(range(11))
    for limit in (1, 3, 4, 11, 20):
        pages = [paginate(items, page, limit) for page in range(1, len(items) // limit + 2)]
        assert all(len(page) <= limit for page in pages)
        assert [item for page in pages for item in page] == items


def test_page_snapshot_keeps_full_counts():
    """Test a paged copy reports wallet-wide totals and leaves the source untouched."""
    tokens = sort_tokens([_token(f"t{i}", str(i), "1") for i in range(5)])
    snapshot = WalletSnapshot(address="0xabc", tokens=tokens, total_value=Decimal("10"), token_count=5)

    page = page_snapshot(snapshot, 2, 2)

    assert [t.symbol for t in page.tokens] == ["t2", "t1"]
    assert page.token_count == 5
    assert page.total_value == Decimal("10")
    assert page.pagination.model_dump() == {"page": 2, "limit": 2, "total_items": 5, "total_pages": 3}
    assert len(snapshot.tokens) == 5

    unpaged = page_snapshot(snapshot, 1, 0)
    assert unpaged.pagination is None
    assert len(unpaged.tokens) == 5
