import asyncio
import logging
import os
from typing import List, Optional

from flask import Flask, jsonify, request

from catalog_matcher import CatalogError, CatalogMatcher, load_catalog_from_excel
from sale_summary import summarize_sale
from voice_config import configure_logging, load_config
from voice_parser import VoiceTransactionParser
from voice_recognition import RecognitionError, VoiceRecognizer, create_recognizer
from voice_types import CatalogProduct

logger = logging.getLogger(__name__)


# =====================================================
# === HELPERS ===
# =====================================================

class BadRequest(Exception):
    pass


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def _catalog_from_body(data: dict, default: List[CatalogProduct]) -> List[CatalogProduct]:
    if "catalog" not in data:
        return default
    raw = data["catalog"]
    if not isinstance(raw, list):
        raise BadRequest("'catalog' must be a list")
    try:
        return [CatalogProduct.from_dict(c) for c in raw]
    except (KeyError, TypeError, ValueError) as e:
        raise BadRequest(f"Invalid catalog entry: {e}") from e


def _voice_sale_payload(parser: VoiceTransactionParser, text: str, catalog: List[CatalogProduct]) -> dict:
    parsed = parser.parse(text)
    items = CatalogMatcher(catalog).match(parsed.products)
    summary = summarize_sale(items, parsed.amount_paid)
    return {
        "transaction": parsed.to_dict(),
        "items": [i.to_dict() for i in items],
        "summary": summary.to_dict(),
    }


# =====================================================
# === APP FACTORY ===
# =====================================================

def create_app(catalog: Optional[List[CatalogProduct]] = None,
               recognizer: Optional[VoiceRecognizer] = None,
               parser: Optional[VoiceTransactionParser] = None) -> Flask:
    app = Flask(__name__)
    app.config["CATALOG"] = list(catalog or [])
    app.config["RECOGNIZER"] = recognizer
    voice_parser = parser or VoiceTransactionParser(spoken_numbers=True)

    @app.errorhandler(BadRequest)
    def handle_bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(RecognitionError)
    def handle_recognition_error(e):
        status = 503 if e.reason == "not-supported" else 422
        logger.warning("Recognition failed (%s): %s", e.reason, e)
        return jsonify({"error": str(e), "reason": e.reason}), status

    @app.route('/health', methods=['GET'])
    def health():
        rec = app.config["RECOGNIZER"]
        return jsonify({
            "status": "ok",
            "voiceSupported": bool(rec is not None and rec.is_supported()),
            "catalogSize": len(app.config["CATALOG"]),
        })

    @app.route('/parse', methods=['POST'])
    def parse():
        data = _json_body()
        text = data.get("text")
        if not isinstance(text, str):
            raise BadRequest("'text' must be a string")
        return jsonify(voice_parser.parse(text).to_dict())

    @app.route('/match', methods=['POST'])
    def match():
        data = _json_body()
        products = data.get("products")
        if not isinstance(products, list):
            raise BadRequest("'products' must be a list")
        catalog = _catalog_from_body(data, app.config["CATALOG"])
        try:
            items = CatalogMatcher(catalog).match(products)
        except (KeyError, TypeError, ValueError) as e:
            raise BadRequest(f"Invalid product entry: {e}") from e
        return jsonify({"items": [i.to_dict() for i in items]})

    @app.route('/voice-sale', methods=['POST'])
    def voice_sale():
        data = _json_body()
        text = data.get("text")
        if not isinstance(text, str):
            raise BadRequest("'text' must be a string")
        catalog = _catalog_from_body(data, app.config["CATALOG"])
        return jsonify(_voice_sale_payload(voice_parser, text, catalog))

    @app.route('/transcribe', methods=['GET'])
    def transcribe_once():
        rec = app.config["RECOGNIZER"]
        if rec is None:
            raise RecognitionError("not-supported", "No voice recognizer configured")
        transcript = asyncio.run(rec.start_listening())
        logger.info("Transcript: %s", transcript)
        return jsonify(_voice_sale_payload(voice_parser, transcript, app.config["CATALOG"]))

    return app


# =====================================================
# === MAIN ENTRY POINT ===
# =====================================================

def main() -> None:
    config = load_config()
    configure_logging(config.log_level)

    catalog: List[CatalogProduct] = []
    try:
        catalog = load_catalog_from_excel(config.catalog_file)
    except CatalogError as e:
        logger.warning("Starting without a catalog: %s", e)

    app = create_app(catalog=catalog, recognizer=create_recognizer(config))
    port = int(os.environ.get("PORT", "5000"))
    print(f"🚀 voice_api running on http://localhost:{port}/voice-sale")
    app.run(host="0.0.0.0", port=port)


if __name__ == '__main__':
    main()
