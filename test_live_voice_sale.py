"""Tests for the command line voice sale loop."""

import asyncio
from decimal import Decimal

import pytest

from live_voice_sale import listen_loop, load_catalog, print_sale, test_mode as run_test_mode
from voice_parser import VoiceTransactionParser
from voice_recognition import RecognitionError, VoiceRecognizer
from voice_types import CatalogProduct

CATALOG = [
    CatalogProduct(id="p1", name="Coca Cola", price=Decimal("25.00")),
    CatalogProduct(id="p2", name="Piattos", price=Decimal("19.99")),
]


class EndOfScript(Exception):
    pass


class ScriptedRecognizer(VoiceRecognizer):
    """Plays back a list of transcripts / errors, one per session."""

    def __init__(self, script):
        super().__init__()
        self.script = list(script)

    def is_supported(self):
        return True

    async def _listen(self):
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def test_print_sale(capsys):
    summary = print_sale("2 Coke and 1 Durian, 100 pesos", VoiceTransactionParser(), CATALOG)
    out = capsys.readouterr().out

    assert "2 x Coca Cola @ 25.00 = 50.00" in out
    assert "Durian - not in inventory" in out
    assert "Change: 50.00" in out
    assert summary.can_checkout


def test_print_sale_nothing_recognized(capsys):
    summary = print_sale("hello there", VoiceTransactionParser(), CATALOG)
    assert "No products were recognized" in capsys.readouterr().out
    assert not summary.can_checkout


def test_test_mode(capsys):
    run_test_mode(["3 coke, 100 pesos", "1 piattos"], CATALOG, debug=False)
    out = capsys.readouterr().out
    assert "TEST MODE" in out
    assert "3 x Coca Cola" in out
    assert "1 x Piattos" in out


def test_listen_loop_once(capsys):
    rec = ScriptedRecognizer(["1 piattos, 20 pesos"])
    asyncio.run(listen_loop(rec, CATALOG, once=True))
    out = capsys.readouterr().out
    assert "1 x Piattos @ 19.99 = 19.99" in out
    assert "Ready for checkout" in out


def test_listen_loop_reports_recognition_errors(capsys):
    rec = ScriptedRecognizer([RecognitionError("no-speech", "No speech detected")])
    asyncio.run(listen_loop(rec, CATALOG, once=True))
    assert "No speech detected" in capsys.readouterr().out


def test_listen_loop_keeps_going_after_errors(capsys):
    rec = ScriptedRecognizer([RecognitionError("no-speech"), "2 coke, 40 pesos", EndOfScript()])
    with pytest.raises(EndOfScript):
        asyncio.run(listen_loop(rec, CATALOG))
    assert "Checkout blocked" in capsys.readouterr().out


def test_load_catalog_missing_file(tmp_path):
    assert load_catalog(str(tmp_path / "missing.xlsx")) == []
