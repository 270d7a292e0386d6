"""Google Cloud Speech-to-Text streaming recognition engine."""

import asyncio
import logging
import queue
import threading
from typing import Iterator, Optional

from google.api_core import exceptions as gax_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from ..audio.capture import AudioCapture
from ..models.segment import DEFAULT_RECOGNITION_LANGUAGE
from .base import (
    AUDIO_CAPTURE,
    NETWORK,
    NOT_ALLOWED,
    AbstractRecognitionEngine,
    EngineAlreadyStartedError,
    EngineResult,
)

logger = logging.getLogger(__name__)


class GoogleStreamingEngine(AbstractRecognitionEngine):
    """Streams microphone audio to Google Speech-to-Text with interim results.

    Each session runs in its own worker thread; callbacks are handed to the
    event loop with call_soon_threadsafe. Google closes a stream after a few
    minutes, which ends the session like any other termination.
    """

    def __init__(self,
                 credentials_path: str,
                 language: str = DEFAULT_RECOGNITION_LANGUAGE,
                 sample_rate: int = 16000,
                 chunk_size: int = 1600,
                 channels: int = 1,
                 enable_automatic_punctuation: bool = True):
        """Initialize Google streaming engine.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            language: Language code (e.g., 'zh-CN', 'en-US')
            sample_rate: Microphone sample rate in Hz
            chunk_size: Samples per audio chunk sent to the API
            channels: Microphone channels
            enable_automatic_punctuation: Enable automatic punctuation
        """
        super().__init__(language)
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.client: Optional[speech.SpeechClient] = None

        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._session_active = False
        self._stop_event = threading.Event()
        self._aborted = False

    def initialize(self) -> bool:
        """Load credentials and create the Speech client."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        logger.info(f"Google Speech streaming engine initialized (project: {credentials.project_id})")
        return True

    def start(self) -> None:
        if self._session_active:
            raise EngineAlreadyStartedError("Google streaming session already active")
        if self.client is None:
            self.initialize()

        self.loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self._aborted = False
        self._session_active = True
        self._thread = threading.Thread(target=self._run_session, args=(self.language,), daemon=True)
        self._thread.name = "GoogleStreamingSession"
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def abort(self) -> None:
        self._aborted = True
        self._stop_event.set()

    def _dispatch(self, callback, *args) -> None:
        if callback and self.loop and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(callback, *args)

    def _streaming_config(self, language: str) -> speech.StreamingRecognitionConfig:
        return speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sample_rate,
                audio_channel_count=self.channels,
                language_code=language,
                enable_automatic_punctuation=self.enable_automatic_punctuation,
            ),
            interim_results=self.interim_results,
            single_utterance=not self.continuous,
        )

    def _audio_requests(self, audio_queue: "queue.Queue[bytes]") -> Iterator[speech.StreamingRecognizeRequest]:
        while not self._stop_event.is_set():
            try:
                chunk = audio_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _run_session(self, language: str) -> None:
        """Worker thread: one streaming_recognize call from start to end."""
        audio_queue: "queue.Queue[bytes]" = queue.Queue()
        capture = AudioCapture(
            callback=audio_queue.put,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            channels=self.channels,
        )
        try:
            capture.start_recording()
        except OSError as e:
            logger.error(f"Microphone unavailable: {e}")
            self._emit_error(AUDIO_CAPTURE)
            self._session_active = False
            self._emit_end()
            return

        self._emit_start()
        try:
            responses = self.client.streaming_recognize(
                config=self._streaming_config(language),
                requests=self._audio_requests(audio_queue),
            )
            for response in responses:
                if self._aborted:
                    break
                results = [
                    EngineResult(transcript=result.alternatives[0].transcript, is_final=result.is_final)
                    for result in response.results
                    if result.alternatives
                ]
                if results:
                    self._emit_result(0, results)
        except (gax_exceptions.PermissionDenied, gax_exceptions.Unauthenticated) as e:
            logger.error(f"Google STT permission denied: {e}")
            self._emit_error(NOT_ALLOWED)
        except (gax_exceptions.OutOfRange, gax_exceptions.DeadlineExceeded) as e:
            logger.info(f"Google STT stream limit reached: {e}")
        except gax_exceptions.GoogleAPICallError as e:
            logger.warning(f"Google STT API call error: {e}")
            self._emit_error(NETWORK)
        finally:
            self._stop_event.set()
            capture.stop_recording()
            # The worker is about to exit; a new session may start once on_end runs.
            self._session_active = False
            self._emit_end()
