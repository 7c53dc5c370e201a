"""
Data types shared by the voice sale parser, catalog matcher and API.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping


def to_decimal(value: Any) -> Decimal:
    """Convert int/float/str/Decimal to a finite, non-negative Decimal without float drift."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid price: {value!r}") from None

    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Price must be a finite, non-negative number: {value!r}")
    return amount


@dataclass(frozen=True)
class ParsedLineItem:
    name: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParsedLineItem":
        return cls(name=str(data["name"]), quantity=int(data["quantity"]))


@dataclass(frozen=True)
class VoiceTransactionData:
    """Result of parsing one utterance."""
    products: List[ParsedLineItem] = field(default_factory=list)
    amount_paid: Decimal = Decimal("0")
    raw_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": [p.to_dict() for p in self.products],
            "amountPaid": str(self.amount_paid),
            "rawText": self.raw_text,
        }


@dataclass(frozen=True)
class CatalogProduct:
    id: str
    name: str
    price: Decimal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogProduct":
        return cls(
            id=str(data.get("id", "")),
            name=str(data["name"]),
            price=to_decimal(data.get("price", 0)),
        )


@dataclass(frozen=True)
class MatchedLineItem:
    id: str
    name: str
    quantity: int
    price: Decimal
    total: Decimal
    matched: bool

    @classmethod
    def unmatched(cls, name: str, quantity: int) -> "MatchedLineItem":
        return cls(id="", name=name, quantity=quantity,
                   price=Decimal("0"), total=Decimal("0"), matched=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "price": str(self.price),
            "total": str(self.total),
            "matched": self.matched,
        }
