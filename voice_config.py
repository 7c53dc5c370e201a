"""
Configuration for the voice sale tools.
Values come from environment variables first, then from files under keys/.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# AUDIO PARAMETERS
SAMPLE_RATE = 16000
CHANNELS = 1
DTYPE = "int16"
SILENCE_SECONDS = 1.5
SILENCE_AMPLITUDE = 300
MAX_LISTEN_SECONDS = 15.0

KEYS_DIR = Path(os.path.dirname(os.path.abspath(__file__))) / "keys"

DEEPGRAM_URL = "https://api.deepgram.com/v1/listen"

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_logging_configured = False


@dataclass
class VoiceConfig:
    backend: str = "deepgram"
    language_code: str = "en-US"
    deepgram_api_key: str = ""
    deepgram_model: str = "nova-2"
    catalog_file: str = "productlist.xlsx"
    log_level: str = "INFO"


def load_api_key(name: str, env_var: str, keys_dir: Optional[Path] = None) -> str:
    """Read an API key from env var, falling back to keys/<name>.key"""
    api_key = os.environ.get(env_var, "").strip()
    if api_key:
        return api_key

    key_path = Path(keys_dir or KEYS_DIR) / f"{name}.key"
    if key_path.exists():
        return key_path.read_text().strip()

    return ""


def load_config(keys_dir: Optional[Path] = None) -> VoiceConfig:
    return VoiceConfig(
        backend=os.environ.get("VOICE_BACKEND", "deepgram").strip().lower(),
        language_code=os.environ.get("VOICE_LANGUAGE", "en-US"),
        deepgram_api_key=load_api_key("deepgram", "DEEPGRAM_API_KEY", keys_dir),
        deepgram_model=os.environ.get("DEEPGRAM_MODEL", "nova-2"),
        catalog_file=os.environ.get("VOICE_CATALOG_FILE", "productlist.xlsx"),
        log_level=os.environ.get("VOICE_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a stderr handler to the root logger once."""
    global _logging_configured

    if _logging_configured:
        return

    level_name = (level or os.environ.get("VOICE_LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_DEBUG if log_level == logging.DEBUG else LOG_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(log_level)

    _logging_configured = True
