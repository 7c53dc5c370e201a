"""
Match parsed voice products against the store catalog.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import openpyxl

from voice_parser import ProcessingStage
from voice_types import CatalogProduct, MatchedLineItem, ParsedLineItem

logger = logging.getLogger(__name__)

ProductLike = Union[ParsedLineItem, Mapping[str, Any]]
CatalogLike = Union[CatalogProduct, Mapping[str, Any]]


class CatalogError(Exception):
    """Raised when a catalog file can't be read."""


def _as_parsed(item: ProductLike) -> ParsedLineItem:
    if isinstance(item, ParsedLineItem):
        return item
    return ParsedLineItem.from_dict(item)


def _as_catalog(entry: CatalogLike) -> CatalogProduct:
    if isinstance(entry, CatalogProduct):
        return entry
    return CatalogProduct.from_dict(entry)


class CatalogMatcher:
    """Exact-then-partial name matching against a catalog"""

    def __init__(self, catalog: Iterable[CatalogLike], min_partial_length: int = 0, debug: bool = False):
        self.catalog: List[CatalogProduct] = [_as_catalog(c) for c in catalog]
        # Partial matching is skipped for names shorter than this; 0 keeps plain substring matching
        self.min_partial_length = min_partial_length
        self.debug = debug

    def find(self, name: str) -> Optional[CatalogProduct]:
        name_lower = name.lower()

        for entry in self.catalog:
            if entry.name.lower() == name_lower:
                if self.debug:
                    logger.debug("  [%s] Exact match: '%s'", ProcessingStage.CATALOG_MATCHING.value, entry.name)
                return entry

        if len(name_lower) < self.min_partial_length:
            return None

        for entry in self.catalog:
            entry_lower = entry.name.lower()
            if name_lower in entry_lower or entry_lower in name_lower:
                if self.debug:
                    logger.debug("  [%s] Partial match: '%s' -> '%s'",
                                 ProcessingStage.CATALOG_MATCHING.value, name, entry.name)
                return entry

        return None

    def match_one(self, item: ProductLike) -> MatchedLineItem:
        item = _as_parsed(item)
        entry = self.find(item.name)

        if entry is None:
            if self.debug:
                logger.debug("  [%s] No match for '%s'", ProcessingStage.CATALOG_MATCHING.value, item.name)
            return MatchedLineItem.unmatched(item.name, item.quantity)

        return MatchedLineItem(
            id=entry.id,
            name=entry.name,
            quantity=item.quantity,
            price=entry.price,
            total=entry.price * item.quantity,
            matched=True,
        )

    def match(self, products: Iterable[ProductLike]) -> List[MatchedLineItem]:
        return [self.match_one(p) for p in products]


def match_products_with_database(products: Iterable[ProductLike],
                                 catalog: Iterable[CatalogLike]) -> List[MatchedLineItem]:
    """Match voice input products with catalog products, preserving spoken order."""
    return CatalogMatcher(catalog).match(products)


def load_catalog_from_excel(excel_file: Union[str, Path]) -> List[CatalogProduct]:
    """Load the product catalog from an Excel sheet with id / name / price header columns."""
    path = Path(excel_file)
    if not path.exists():
        raise CatalogError(f"Catalog file not found: {path}")

    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.active
        rows = ws.iter_rows(values_only=True)

        header = next(rows, None)
        if header is None:
            raise CatalogError(f"Catalog file is empty: {path}")

        columns = _header_columns(header)
        missing = [c for c in ("id", "name", "price") if c not in columns]
        if missing:
            raise CatalogError(f"Catalog {path} is missing column(s): {', '.join(missing)}")

        catalog = []
        for row in rows:
            name = _cell(row, columns["name"])
            if not name:
                continue
            try:
                catalog.append(CatalogProduct.from_dict({
                    "id": _cell(row, columns["id"]),
                    "name": name,
                    "price": _cell(row, columns["price"]),
                }))
            except ValueError as e:
                raise CatalogError(f"Bad row in {path}: {row!r} ({e})") from e
    finally:
        wb.close()

    logger.info("Loaded %d catalog products from %s", len(catalog), path)
    return catalog


def _header_columns(header: Sequence[Any]) -> dict:
    columns = {}
    for idx, value in enumerate(header):
        if value is not None:
            columns.setdefault(str(value).strip().lower(), idx)
    return columns


def _cell(row: Sequence[Any], idx: int) -> str:
    if idx >= len(row) or row[idx] is None:
        return ""
    return str(row[idx]).strip()
