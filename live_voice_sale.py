#!/usr/bin/env python3
"""
Live voice sale
Listen for "2 Coke and 1 Piattos, 100 pesos", match it against the catalog
and print the cart with totals and change.
"""

import argparse
import asyncio
import logging
import sys
from typing import List

from catalog_matcher import CatalogError, CatalogMatcher, load_catalog_from_excel
from sale_summary import SaleSummary, summarize_sale
from voice_config import configure_logging, load_config
from voice_parser import ProcessingStage, VoiceTransactionParser
from voice_recognition import RecognitionError, VoiceRecognizer, create_recognizer
from voice_types import CatalogProduct

logger = logging.getLogger(__name__)


class ErrorHandler:
    """Unified error handling and logging"""

    @staticmethod
    def log_error(stage: ProcessingStage, error: Exception, context: str = ""):
        """Log error with context"""
        logger.error("ERROR in %s: %s: %s%s", stage.value, type(error).__name__, error,
                     f" ({context})" if context else "")
        logger.debug("Traceback", exc_info=error)


def print_sale(text: str, parser: VoiceTransactionParser, catalog: List[CatalogProduct]) -> SaleSummary:
    """Parse, match and print one utterance"""
    parsed = parser.parse(text)
    items = CatalogMatcher(catalog, debug=parser.debug).match(parsed.products)
    summary = summarize_sale(items, parsed.amount_paid)

    print(f"\n{'─' * 70}")
    print(f"🗣️ Heard: {text}")
    print(f"{'─' * 70}")

    if not items:
        print("❌ No products were recognized from your voice input")
        return summary

    for item in items:
        if item.matched:
            print(f"✅ {item.quantity} x {item.name} @ {item.price} = {item.total}")
        else:
            print(f"⚠️  {item.quantity} x {item.name} - not in inventory")

    print(f"\n   Total: {summary.total_amount}")
    print(f"   Paid:  {summary.amount_paid}")
    print(f"   Change: {summary.change}")
    print("🧾 Ready for checkout" if summary.can_checkout else "🛑 Checkout blocked")
    return summary


def test_mode(sample_texts: List[str], catalog: List[CatalogProduct], debug: bool = True):
    """Test mode: process sample texts without audio"""
    print("\n" + "=" * 70)
    print("🧪 TEST MODE - Processing sample texts")
    print("=" * 70)

    parser = VoiceTransactionParser(spoken_numbers=True, debug=debug)
    for sample in sample_texts:
        print_sale(sample, parser, catalog)


async def listen_loop(recognizer: VoiceRecognizer, catalog: List[CatalogProduct],
                      debug: bool = False, once: bool = False) -> None:
    parser = VoiceTransactionParser(spoken_numbers=True, debug=debug)

    print("\n" + "=" * 70)
    print("🎤 LIVE VOICE SALE - speak the items and the amount paid")
    print("=" * 70)
    print("Press CTRL+C to stop\n")

    while True:
        try:
            transcript = await recognizer.start_listening()
        except RecognitionError as e:
            if e.reason == "not-supported":
                raise
            print(f"🔇 {e}")
            if once:
                return
            continue

        try:
            print_sale(transcript, parser, catalog)
        except Exception as e:
            ErrorHandler.log_error(ProcessingStage.CATALOG_MATCHING, e, f"Transcript: {transcript!r}")

        if once:
            return


def load_catalog(path: str) -> List[CatalogProduct]:
    try:
        return load_catalog_from_excel(path)
    except CatalogError as e:
        logger.warning("%s - every item will be unmatched", e)
        return []


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Live voice sale transcriber")
    parser.add_argument("--test", action="store_true", help="Run in test mode with sample texts")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--text", type=str, help="Test with specific text")
    parser.add_argument("--catalog", type=str, help="Excel catalog with id, name, price columns")
    parser.add_argument("--backend", choices=["deepgram", "google"], help="Speech-to-text backend")
    parser.add_argument("--once", action="store_true", help="Stop after one utterance")
    args = parser.parse_args()

    config = load_config()
    if args.backend:
        config.backend = args.backend
    configure_logging("DEBUG" if args.debug else config.log_level)

    catalog = load_catalog(args.catalog or config.catalog_file)

    if args.test or args.text:
        if args.text:
            test_texts = [args.text]
        else:
            test_texts = [
                "2 Coke and 1 Piattos, 100 pesos",
                "3 water, 50 php",
                "two sprite + 1 bottle water, one hundred pesos",
                "1 chips and 2 candies 20.50 p",
                "give me 4 coffee",
            ]
        test_mode(test_texts, catalog, debug=args.debug)
        return

    recognizer = create_recognizer(config)
    if not recognizer.is_supported():
        print(f"❌ Voice recognition is not supported with backend '{config.backend}'. "
              "Check the API key / credentials and the audio device.")
        sys.exit(1)

    try:
        asyncio.run(listen_loop(recognizer, catalog, debug=args.debug, once=args.once))
    except KeyboardInterrupt:
        recognizer.stop_listening()
        print("\n" + "=" * 70)
        print("🛑 STOPPED")
        print("=" * 70 + "\n")


if __name__ == "__main__":
    main()
