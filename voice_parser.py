#!/usr/bin/env python3
"""
Voice sale parser
Layered pipeline that turns a transcribed utterance such as
"2 Coke and 1 Piattos, 100 pesos" into products, quantities and the amount paid.
"""

import logging
import re
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from word2number import w2n

from voice_types import ParsedLineItem, VoiceTransactionData

logger = logging.getLogger(__name__)


class ProcessingStage(Enum):
    """Enumeration for processing stages"""
    UTTERANCE_NORMALIZATION = "Stage 1: Utterance Normalization"
    SPOKEN_NUMBERS = "Stage 2: Spoken Numbers"
    AMOUNT_EXTRACTION = "Stage 3: Amount Extraction"
    SEGMENT_SPLITTING = "Stage 4: Segment Splitting"
    ITEM_PARSING = "Stage 5: Item Parsing"
    NAME_NORMALIZATION = "Stage 6: Name Normalization"
    CATALOG_MATCHING = "Stage 7: Catalog Matching"


# Currency markers that may follow the tendered amount
CURRENCY_PATTERN = r'(?:pesos?|php|₱|p\b)'
AMOUNT_PATTERN = r'(\d+(?:\.\d{1,2})?)\s*' + CURRENCY_PATTERN

AMOUNT_RE = re.compile(AMOUNT_PATTERN, re.IGNORECASE)
AMOUNT_TAIL_RE = re.compile(r',?\s*' + AMOUNT_PATTERN + r'.*$', re.IGNORECASE | re.DOTALL)
SEGMENT_SEPARATOR_RE = re.compile(r'\s*(?:\band\b|,|\+)\s*', re.IGNORECASE)
ITEM_RE = re.compile(r'(\d+)\s+(.+)')

NUMBER_WORDS = [
    'zero', 'one', 'two', 'three', 'four', 'five', 'six', 'seven', 'eight', 'nine',
    'ten', 'eleven', 'twelve', 'thirteen', 'fourteen', 'fifteen', 'sixteen',
    'seventeen', 'eighteen', 'nineteen',
    'twenty', 'thirty', 'forty', 'fifty', 'sixty', 'seventy', 'eighty', 'ninety',
    'hundred', 'thousand',
]
_NUMBER_WORD = r'(?:' + '|'.join(sorted(NUMBER_WORDS, key=len, reverse=True)) + r')'
# "and" only joins a run after hundred/thousand ("one hundred and fifty")
NUMBER_RUN_PATTERN = (r'\b' + _NUMBER_WORD
                      + r'(?:(?:(?:(?<=hundred)|(?<=thousand))\s+and)?\s+' + _NUMBER_WORD + r')*\b')

SPOKEN_AMOUNT_RE = re.compile(r'(' + NUMBER_RUN_PATTERN + r')(?=\s*' + CURRENCY_PATTERN + r')', re.IGNORECASE)
# The whole run must be followed by a non-number word, never a backtracked prefix
LEADING_NUMBER_RUN_RE = re.compile(
    r'^(' + NUMBER_RUN_PATTERN + r')(?=\s+(?!' + _NUMBER_WORD + r'\b|and\b)\S)', re.IGNORECASE)


# Colloquial names heard at the counter -> names used in the inventory
PRODUCT_ALIASES: Mapping[str, str] = MappingProxyType({
    'coke': 'Coca Cola',
    'coca cola': 'Coca Cola',
    'pepsi': 'Pepsi',
    'sprite': 'Sprite',
    'piattos': 'Piattos',
    'chips': 'Chips',
    'water': 'Water',
    'bottle water': 'Bottled Water',
    'bottled water': 'Bottled Water',
    'juice': 'Juice',
    'biscuit': 'Biscuit',
    'biscuits': 'Biscuit',
    'candy': 'Candy',
    'candies': 'Candy',
    'chocolate': 'Chocolate',
    'gum': 'Gum',
    'crackers': 'Crackers',
    'nuts': 'Nuts',
    'coffee': 'Coffee',
    'tea': 'Tea',
})


def normalize_utterance(text: str) -> str:
    """Stage 1: lower-case and trim the transcript"""
    return text.lower().strip()


def capitalize_words(name: str) -> str:
    """Capitalize the first letter of every whitespace-delimited word."""
    return re.sub(r'(^|\s)(\S)', lambda m: m.group(1) + m.group(2).upper(), name.strip())


class SpokenNumberNormalizer:
    """Stage 2: turn spelled-out quantities and amounts into digits"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    @staticmethod
    def _to_digits(words: str) -> Optional[str]:
        try:
            return str(w2n.word_to_num(re.sub(r'\s+and\s+', ' ', words)))
        except (ValueError, IndexError):
            # w2n fails on fragments such as "thousand two"
            return None

    def _replace_run(self, match: re.Match) -> str:
        digits = self._to_digits(match.group(1))
        if digits is None:
            return match.group(0)
        if self.debug:
            logger.debug("  [%s] '%s' -> '%s'", ProcessingStage.SPOKEN_NUMBERS.value, match.group(1), digits)
        return digits

    def process_amount(self, text: str) -> str:
        """Convert "one hundred and fifty pesos" -> "150 pesos" (first phrase only)"""
        return SPOKEN_AMOUNT_RE.sub(self._replace_run, text, count=1)

    def process_segment(self, segment: str) -> str:
        """Convert a leading quantity "two coke" -> "2 coke" """
        return LEADING_NUMBER_RUN_RE.sub(self._replace_run, segment, count=1)


class AmountExtractor:
    """Stage 3: isolate the tendered amount"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def process(self, text: str) -> Decimal:
        match = AMOUNT_RE.search(text)
        amount = Decimal(match.group(1)) if match else Decimal("0")

        if self.debug:
            logger.debug("  [%s] '%s' -> %s", ProcessingStage.AMOUNT_EXTRACTION.value, text, amount)

        return amount


class SegmentSplitter:
    """Stage 4: drop the amount phrase and split the rest into item phrases"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def strip_amount(self, text: str) -> str:
        return AMOUNT_TAIL_RE.sub('', text, count=1)

    def process(self, text: str) -> List[str]:
        remainder = self.strip_amount(text)
        segments = [s.strip() for s in SEGMENT_SEPARATOR_RE.split(remainder)]
        segments = [s for s in segments if s]

        if self.debug:
            logger.debug("  [%s] Segments: %s", ProcessingStage.SEGMENT_SPLITTING.value, segments)

        return segments


class ItemParser:
    """Stage 5: pull <quantity> <name> out of a segment"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def process(self, segment: str) -> Optional[Tuple[int, str]]:
        match = ITEM_RE.search(segment)
        if not match:
            if self.debug:
                logger.debug("  [%s] No quantity in '%s'", ProcessingStage.ITEM_PARSING.value, segment)
            return None

        quantity = int(match.group(1))
        name = match.group(2).strip()
        if quantity <= 0 or not name:
            return None

        return quantity, name


class NameNormalizer:
    """Stage 6: map spoken product names to inventory names"""

    def __init__(self, extra_aliases: Optional[Mapping[str, str]] = None, debug: bool = False):
        self.debug = debug
        if extra_aliases:
            merged = dict(PRODUCT_ALIASES)
            merged.update({k.lower().strip(): v for k, v in extra_aliases.items()})
            self.aliases: Mapping[str, str] = MappingProxyType(merged)
        else:
            self.aliases = PRODUCT_ALIASES

    def process(self, name: str) -> str:
        key = name.lower().strip()
        canonical = self.aliases.get(key)
        if canonical is None:
            canonical = capitalize_words(name)

        if self.debug:
            logger.debug("  [%s] '%s' -> '%s'", ProcessingStage.NAME_NORMALIZATION.value, name, canonical)

        return canonical


class VoiceTransactionParser:
    """Main parser orchestrating all stages"""

    def __init__(self, spoken_numbers: bool = False,
                 extra_aliases: Optional[Mapping[str, str]] = None,
                 debug: bool = False):
        self.debug = debug
        self.spoken_numbers = SpokenNumberNormalizer(debug) if spoken_numbers else None
        self.amount_extractor = AmountExtractor(debug)
        self.splitter = SegmentSplitter(debug)
        self.item_parser = ItemParser(debug)
        self.name_normalizer = NameNormalizer(extra_aliases, debug)

    def parse(self, text: str) -> VoiceTransactionData:
        normalized = normalize_utterance(text)
        if self.debug:
            logger.debug("  [%s] '%s'", ProcessingStage.UTTERANCE_NORMALIZATION.value, normalized)

        if self.spoken_numbers:
            normalized = self.spoken_numbers.process_amount(normalized)

        amount_paid = self.amount_extractor.process(normalized)

        products: List[ParsedLineItem] = []
        for segment in self.splitter.process(normalized):
            if self.spoken_numbers:
                segment = self.spoken_numbers.process_segment(segment)

            parsed = self.item_parser.process(segment)
            if parsed is None:
                continue

            quantity, raw_name = parsed
            products.append(ParsedLineItem(name=self.name_normalizer.process(raw_name), quantity=quantity))

        return VoiceTransactionData(products=products, amount_paid=amount_paid, raw_text=text)


_default_parser = VoiceTransactionParser(spoken_numbers=False)
_default_normalizer = NameNormalizer()


def parse_voice_input(text: str) -> VoiceTransactionData:
    """Parse voice input like "2 Coke and 1 Piattos, 100 pesos"."""
    return _default_parser.parse(text)


def normalize_product_name(name: str) -> str:
    return _default_normalizer.process(name)
