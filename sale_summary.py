"""
Checkout summary for a voice sale: totals, change and whether checkout is allowed.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from voice_types import MatchedLineItem, to_decimal


@dataclass(frozen=True)
class SaleSummary:
    items: List[MatchedLineItem] = field(default_factory=list)
    unmatched: List[MatchedLineItem] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")

    @property
    def change(self) -> Decimal:
        return self.amount_paid - self.total_amount

    @property
    def can_checkout(self) -> bool:
        # Tendered amount must cover the matched items
        return bool(self.items) and self.amount_paid > 0 and self.change >= 0

    def transaction_items(self) -> List[Dict[str, Any]]:
        """Line items in the shape the sales history stores them."""
        return [
            {
                "productId": item.id,
                "productName": item.name,
                "quantity": item.quantity,
                "price": str(item.price),
                "total": str(item.total),
            }
            for item in self.items
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.transaction_items(),
            "unmatched": [item.to_dict() for item in self.unmatched],
            "totalAmount": str(self.total_amount),
            "amountPaid": str(self.amount_paid),
            "change": str(self.change),
            "canCheckout": self.can_checkout,
        }


def summarize_sale(items: Iterable[MatchedLineItem], amount_paid: Any = 0) -> SaleSummary:
    items = list(items)
    matched = [i for i in items if i.matched]
    unmatched = [i for i in items if not i.matched]
    total = sum((i.total for i in matched), Decimal("0"))

    return SaleSummary(
        items=matched,
        unmatched=unmatched,
        total_amount=total,
        amount_paid=to_decimal(amount_paid),
    )
