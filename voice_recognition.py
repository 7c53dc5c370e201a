"""
Speech capture boundary for voice sales.
One listening session records the microphone until the speaker pauses,
then sends the audio to a speech-to-text service.
"""

import asyncio
import io
import logging
import threading
import time
import wave
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import numpy as np
import requests

from catalog_matcher import CatalogLike, ProductLike, match_products_with_database
from voice_config import (
    CHANNELS,
    DEEPGRAM_URL,
    DTYPE,
    MAX_LISTEN_SECONDS,
    SAMPLE_RATE,
    SILENCE_AMPLITUDE,
    SILENCE_SECONDS,
    VoiceConfig,
)
from voice_parser import VoiceTransactionParser
from voice_types import MatchedLineItem, VoiceTransactionData

logger = logging.getLogger(__name__)


class RecognitionError(Exception):
    """Listening failed; `reason` names the platform-reported cause."""

    REASONS = (
        "not-supported",
        "no-speech",
        "audio-capture",
        "not-allowed",
        "aborted",
        "busy",
        "network",
    )

    def __init__(self, reason: str, message: str = ""):
        if reason not in self.REASONS:
            raise ValueError(f"Unknown recognition error reason: {reason!r}")
        self.reason = reason
        super().__init__(message or f"Voice recognition error: {reason}")


class VoiceRecognizer(ABC):
    """Abstract base for single-shot, cancelable listening sessions."""

    def __init__(self) -> None:
        self._active = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        # Set when the awaiting task is cancelled; the capture is then discarded
        self._cancel_event = threading.Event()

    @abstractmethod
    def is_supported(self) -> bool:
        ...

    @abstractmethod
    async def _listen(self) -> str:
        ...

    @property
    def is_listening(self) -> bool:
        return self._active

    async def start_listening(self) -> str:
        if not self.is_supported():
            raise RecognitionError("not-supported", "Voice recognition not supported")

        with self._lock:
            if self._active:
                raise RecognitionError("busy", "A listening session is already active")
            self._active = True
            self._stop_event.clear()
            self._cancel_event.clear()

        try:
            return await self._listen()
        except asyncio.CancelledError:
            logger.info("Listening session cancelled")
            self._cancel_event.set()
            self._stop_event.set()
            raise
        finally:
            self._active = False

    def stop_listening(self) -> None:
        if self._active:
            logger.info("Stop requested for active listening session")
            self._stop_event.set()


class MicrophoneRecognizer(VoiceRecognizer):
    """Records from the default input device, transcription left to subclasses."""

    def __init__(self, max_seconds: float = MAX_LISTEN_SECONDS) -> None:
        super().__init__()
        self.max_seconds = max_seconds
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            # OSError when the PortAudio library is missing
            logger.warning("sounddevice unavailable, microphone capture disabled: %s", e)
            sd = None
        self._sd = sd

    def _microphone_available(self) -> bool:
        return self._sd is not None

    @staticmethod
    def _silence_detector(audio_data: np.ndarray) -> bool:
        """Detect if audio is silence"""
        if audio_data.size == 0:
            return True
        rms = np.sqrt(np.mean(audio_data.astype(np.float32) ** 2))
        return rms < SILENCE_AMPLITUDE

    def _record(self) -> np.ndarray:
        """Blocking capture until trailing silence, max duration or stop request."""
        chunks: List[np.ndarray] = []
        state = {"heard": False, "last_voice": time.time()}

        def audio_callback(indata: np.ndarray, frames: int, _time, status) -> None:
            if status:
                logger.debug("Audio status: %s", status)
            chunks.append(indata.copy())
            if not self._silence_detector(indata):
                state["heard"] = True
                state["last_voice"] = time.time()

        started = time.time()
        try:
            with self._sd.InputStream(
                samplerate=SAMPLE_RATE,
                channels=CHANNELS,
                dtype=DTYPE,
                callback=audio_callback,
                blocksize=int(SAMPLE_RATE * 0.1)  # 100ms blocks
            ):
                while not self._stop_event.is_set():
                    now = time.time()
                    if state["heard"] and now - state["last_voice"] >= SILENCE_SECONDS:
                        break
                    if now - started >= self.max_seconds:
                        break
                    time.sleep(0.1)
        except self._sd.PortAudioError as e:
            raise RecognitionError("audio-capture", f"Audio capture failed: {e}") from e

        if not state["heard"]:
            if self._stop_event.is_set():
                raise RecognitionError("aborted", "Listening stopped before any speech")
            raise RecognitionError("no-speech", "No speech detected")

        return np.concatenate(chunks).flatten()

    @staticmethod
    def _to_wav_bytes(audio: np.ndarray) -> bytes:
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wav_file:
            wav_file.setnchannels(CHANNELS)
            wav_file.setsampwidth(2)  # 16-bit
            wav_file.setframerate(SAMPLE_RATE)
            wav_file.writeframes(audio.astype(np.int16).tobytes())
        return buf.getvalue()

    @abstractmethod
    def _transcribe(self, wav_bytes: bytes) -> str:
        ...

    def _record_and_transcribe(self) -> str:
        audio = self._record()
        if self._cancel_event.is_set():
            raise RecognitionError("aborted", "Listening cancelled")
        logger.info("Captured %.1fs of audio, transcribing...", audio.size / SAMPLE_RATE)
        transcript = self._transcribe(self._to_wav_bytes(audio)).strip()
        if not transcript:
            raise RecognitionError("no-speech", "Transcript was empty")
        logger.info("Transcript: %s", transcript)
        return transcript

    async def _listen(self) -> str:
        return await asyncio.to_thread(self._record_and_transcribe)


class DeepgramRecognizer(MicrophoneRecognizer):
    """Deepgram REST transcription of the recorded utterance."""

    def __init__(self, api_key: str, model: str = "nova-2", language_code: str = "en-US",
                 max_seconds: float = MAX_LISTEN_SECONDS) -> None:
        super().__init__(max_seconds)
        self.api_key = api_key
        self.model = model
        self.language_code = language_code
        self._supported = bool(api_key) and self._microphone_available()

    def is_supported(self) -> bool:
        return self._supported

    def _transcribe(self, wav_bytes: bytes) -> str:
        headers = {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "audio/wav",
        }
        params = {
            "model": self.model,
            "language": self.language_code,
            "smart_format": "true",
        }

        try:
            response = requests.post(DEEPGRAM_URL, headers=headers, params=params, data=wav_bytes, timeout=30)
        except requests.RequestException as e:
            raise RecognitionError("network", f"Deepgram request failed: {e}") from e

        if response.status_code in (401, 403):
            raise RecognitionError("not-allowed", f"Deepgram rejected the API key: {response.status_code}")
        if response.status_code != 200:
            raise RecognitionError("network", f"Deepgram API error: {response.status_code} - {response.text}")

        return _deepgram_transcript(response.json())


def _deepgram_transcript(payload: dict) -> str:
    try:
        return payload["results"]["channels"][0]["alternatives"][0].get("transcript", "")
    except (KeyError, IndexError, TypeError):
        return ""


class GoogleRecognizer(MicrophoneRecognizer):
    """Google Cloud Speech-to-Text transcription of the recorded utterance."""

    def __init__(self, language_code: str = "en-US", max_seconds: float = MAX_LISTEN_SECONDS) -> None:
        super().__init__(max_seconds)
        self.language_code = language_code
        self._speech = None
        self._client = None

        try:
            from google.cloud import speech
            self._client = speech.SpeechClient()
            self._speech = speech
        except ImportError as e:
            logger.warning("google-cloud-speech is not installed: %s", e)
        except Exception as e:
            # Missing or invalid GOOGLE_APPLICATION_CREDENTIALS
            logger.warning("Google Speech client unavailable: %s", e)

        self._supported = self._client is not None and self._microphone_available()

    def is_supported(self) -> bool:
        return self._supported

    def _transcribe(self, wav_bytes: bytes) -> str:
        from google.api_core import exceptions as google_exceptions

        speech = self._speech
        audio = speech.RecognitionAudio(content=wav_bytes)
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=SAMPLE_RATE,
            language_code=self.language_code,
            enable_automatic_punctuation=True,
        )

        try:
            response = self._client.recognize(config=config, audio=audio)
        except google_exceptions.PermissionDenied as e:
            raise RecognitionError("not-allowed", f"Google Speech denied the request: {e}") from e
        except google_exceptions.GoogleAPICallError as e:
            raise RecognitionError("network", f"Google Speech request failed: {e}") from e

        return " ".join(r.alternatives[0].transcript for r in response.results if r.alternatives).strip()


def create_recognizer(config: VoiceConfig) -> VoiceRecognizer:
    """Create a recognizer based on configuration."""
    backend = config.backend

    if backend == "deepgram":
        return DeepgramRecognizer(
            api_key=config.deepgram_api_key,
            model=config.deepgram_model,
            language_code=config.language_code,
        )
    if backend == "google":
        return GoogleRecognizer(language_code=config.language_code)

    raise ValueError(f"Unknown voice backend: {backend!r} (choose deepgram or google)")


class VoiceRecognition:
    """Listening plus parsing and catalog matching behind one object."""

    def __init__(self, recognizer: Optional[VoiceRecognizer] = None,
                 parser: Optional[VoiceTransactionParser] = None) -> None:
        self.recognizer = recognizer
        self.parser = parser or VoiceTransactionParser()

    def is_voice_supported(self) -> bool:
        return self.recognizer is not None and self.recognizer.is_supported()

    async def start_listening(self) -> str:
        if self.recognizer is None:
            raise RecognitionError("not-supported", "Voice recognition not supported")
        return await self.recognizer.start_listening()

    def stop_listening(self) -> None:
        if self.recognizer is not None:
            self.recognizer.stop_listening()

    def parse_voice_input(self, text: str) -> VoiceTransactionData:
        return self.parser.parse(text)

    def match_products_with_database(self, products: Iterable[ProductLike],
                                     catalog: Iterable[CatalogLike]) -> List[MatchedLineItem]:
        return match_products_with_database(products, catalog)
