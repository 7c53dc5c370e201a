"""Tests for the checkout summary."""

from decimal import Decimal

from sale_summary import summarize_sale
from voice_types import MatchedLineItem


def _item(id_, name, qty, price):
    price = Decimal(price)
    return MatchedLineItem(id=id_, name=name, quantity=qty, price=price, total=price * qty, matched=True)


ITEMS = [
    _item("p2", "Coca Cola", 2, "25.00"),
    MatchedLineItem.unmatched("Durian", 1),
    _item("p3", "Piattos", 1, "19.99"),
]


def test_totals_and_change():
    summary = summarize_sale(ITEMS, Decimal("100"))
    assert summary.total_amount == Decimal("69.99")
    assert summary.change == Decimal("30.01")
    assert [i.name for i in summary.items] == ["Coca Cola", "Piattos"]
    assert [i.name for i in summary.unmatched] == ["Durian"]
    assert summary.can_checkout


def test_checkout_blocked_when_paid_less_than_total():
    summary = summarize_sale(ITEMS, Decimal("50"))
    assert summary.change == Decimal("-19.99")
    assert not summary.can_checkout


def test_checkout_blocked_without_payment():
    assert not summarize_sale(ITEMS, 0).can_checkout


def test_checkout_blocked_without_matched_items():
    summary = summarize_sale([MatchedLineItem.unmatched("Durian", 1)], Decimal("100"))
    assert summary.total_amount == 0
    assert not summary.can_checkout


def test_exact_payment_is_enough():
    summary = summarize_sale(ITEMS, "69.99")
    assert summary.change == 0
    assert summary.can_checkout


def test_transaction_items():
    summary = summarize_sale(ITEMS, Decimal("100"))
    assert summary.transaction_items() == [
        {"productId": "p2", "productName": "Coca Cola", "quantity": 2, "price": "25.00", "total": "50.00"},
        {"productId": "p3", "productName": "Piattos", "quantity": 1, "price": "19.99", "total": "19.99"},
    ]


def test_to_dict():
    data = summarize_sale(ITEMS, Decimal("100")).to_dict()
    assert data["totalAmount"] == "69.99"
    assert data["change"] == "30.01"
    assert data["canCheckout"] is True
    assert data["unmatched"][0]["matched"] is False
