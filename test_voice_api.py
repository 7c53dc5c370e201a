"""Tests for the Flask voice sale API."""

from decimal import Decimal

import pytest

from voice_api import create_app
from voice_recognition import RecognitionError, VoiceRecognizer
from voice_types import CatalogProduct

CATALOG = [
    CatalogProduct(id="p1", name="Coca Cola", price=Decimal("25.00")),
    CatalogProduct(id="p2", name="Piattos", price=Decimal("19.99")),
]


class StubRecognizer(VoiceRecognizer):
    def __init__(self, transcript="", error=None, supported=True):
        super().__init__()
        self.transcript = transcript
        self.error = error
        self.supported = supported

    def is_supported(self):
        return self.supported

    async def _listen(self):
        if self.error:
            raise self.error
        return self.transcript


@pytest.fixture
def client():
    app = create_app(catalog=CATALOG)
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "voiceSupported": False, "catalogSize": 2}


def test_parse(client):
    resp = client.post("/parse", json={"text": "2 Coke and 1 Piattos, 100 pesos"})
    assert resp.status_code == 200
    assert resp.get_json() == {
        "products": [{"name": "Coca Cola", "quantity": 2}, {"name": "Piattos", "quantity": 1}],
        "amountPaid": "100",
        "rawText": "2 Coke and 1 Piattos, 100 pesos",
    }


@pytest.mark.parametrize("body", [{}, {"text": 5}])
def test_parse_requires_text(client, body):
    resp = client.post("/parse", json=body)
    assert resp.status_code == 400
    assert "text" in resp.get_json()["error"]


def test_parse_rejects_non_json(client):
    resp = client.post("/parse", data="2 coke", content_type="text/plain")
    assert resp.status_code == 400


def test_match_uses_app_catalog(client):
    resp = client.post("/match", json={"products": [{"name": "coca cola", "quantity": 2},
                                                    {"name": "Durian", "quantity": 1}]})
    items = resp.get_json()["items"]
    assert items[0] == {"id": "p1", "name": "Coca Cola", "quantity": 2,
                        "price": "25.00", "total": "50.00", "matched": True}
    assert items[1] == {"id": "", "name": "Durian", "quantity": 1,
                        "price": "0", "total": "0", "matched": False}


def test_match_with_catalog_in_body(client):
    resp = client.post("/match", json={
        "products": [{"name": "Durian", "quantity": 1}],
        "catalog": [{"id": "d1", "name": "Durian Candy", "price": 5}],
    })
    assert resp.get_json()["items"][0]["id"] == "d1"


@pytest.mark.parametrize("body", [
    {"products": "coke"},
    {"products": [{"name": "coke"}]},
    {"products": [], "catalog": "x"},
    {"products": [], "catalog": [{"id": "1"}]},
    {"products": [], "catalog": [{"id": "1", "name": "Coke", "price": -1}]},
    {"products": [], "catalog": [{"id": "1", "name": "Coke", "price": "NaN"}]},
])
def test_match_bad_requests(client, body):
    assert client.post("/match", json=body).status_code == 400


def test_voice_sale(client):
    resp = client.post("/voice-sale", json={"text": "2 Coke and 1 Piattos, 100 pesos"})
    data = resp.get_json()
    assert data["transaction"]["amountPaid"] == "100"
    assert [i["matched"] for i in data["items"]] == [True, True]
    assert data["summary"]["totalAmount"] == "69.99"
    assert data["summary"]["change"] == "30.01"
    assert data["summary"]["canCheckout"] is True


def test_voice_sale_blocked_when_underpaid(client):
    resp = client.post("/voice-sale", json={"text": "2 Coke and 1 Piattos, 50 pesos"})
    assert resp.get_json()["summary"]["canCheckout"] is False


def test_transcribe_without_recognizer(client):
    resp = client.get("/transcribe")
    assert resp.status_code == 503
    assert resp.get_json()["reason"] == "not-supported"


def test_transcribe():
    app = create_app(catalog=CATALOG, recognizer=StubRecognizer("3 coke, 100 pesos"))
    resp = app.test_client().get("/transcribe")
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["transaction"]["rawText"] == "3 coke, 100 pesos"
    assert data["summary"]["totalAmount"] == "75.00"


def test_transcribe_no_speech():
    app = create_app(recognizer=StubRecognizer(error=RecognitionError("no-speech")))
    resp = app.test_client().get("/transcribe")
    assert resp.status_code == 422
    assert resp.get_json()["reason"] == "no-speech"
