"""Microphone capture in a background thread, delivering raw PCM16 chunks."""

import logging
import time
from threading import Event, Thread
from typing import Callable, Optional

import numpy as np
import pyaudio

from ..models.audio import AudioStats

logger = logging.getLogger(__name__)


class AudioCapture:
    """Reads the default input device and hands every chunk to a callback.

    One instance serves one recognition session: the Google engine opens it
    when a session starts and stops it when the session ends.
    """

    def __init__(
        self,
        callback: Callable[[bytes], None],
        sample_rate: int = 16000,
        chunk_size: int = 1600,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize microphone capture.

        Args:
            callback: Receives each chunk of little-endian PCM16 audio
            sample_rate: Input sample rate in Hz
            chunk_size: Frames read per chunk (1600 frames = 100ms at 16kHz)
            channels: Input channels
            format: PyAudio sample format
        """
        self.audio_callback = callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        self.is_recording = False
        self.total_chunks = 0
        self.peak_level = 0.0

        self._pyaudio: Optional[pyaudio.PyAudio] = None
        self._stream = None
        self._reader: Optional[Thread] = None
        self._started_at: Optional[float] = None
        self.stop_event = Event()

    @property
    def recording_thread(self) -> Optional[Thread]:
        return self._reader

    def start_recording(self) -> None:
        """Open the input device and start the reader thread.

        Raises:
            OSError: If the input device cannot be opened
        """
        if self.is_recording:
            logger.warning("Microphone capture already running")
            return

        self._stream = self._open_input()
        self.stop_event.clear()
        self.total_chunks = 0
        self.peak_level = 0.0
        self._started_at = time.monotonic()

        self._reader = Thread(target=self._record_continuously, name="MicrophoneReader", daemon=True)
        self._reader.start()
        self.is_recording = True
        logger.info("Microphone capture started")

    def stop_recording(self) -> None:
        """Signal the reader thread to finish and wait briefly for it."""
        if not self.is_recording:
            logger.warning("Microphone capture is not running")
            return

        self.stop_event.set()
        if self._reader and self._reader.is_alive():
            self._reader.join(timeout=2.0)
            if self._reader.is_alive():
                logger.warning("Microphone reader did not exit within 2s")

        self.is_recording = False
        logger.info(f"Microphone capture stopped after {self.total_chunks} chunks")

    def _open_input(self):
        self._pyaudio = pyaudio.PyAudio()
        try:
            stream = self._pyaudio.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
            )
        except OSError:
            self._release()
            raise
        logger.debug(f"Input opened: {self.sample_rate}Hz x{self.channels}, {self.chunk_size} frames/chunk")
        return stream

    def _release(self) -> None:
        if self._pyaudio:
            self._pyaudio.terminate()
            self._pyaudio = None

    def _measure_peak(self, chunk: bytes) -> None:
        samples = np.frombuffer(chunk, dtype=np.int16)
        if samples.size:
            self.peak_level = float(np.abs(samples.astype(np.int32)).max()) / 32768.0

    def _record_continuously(self) -> None:
        stream = self._stream
        try:
            while not self.stop_event.is_set():
                chunk = stream.read(self.chunk_size, exception_on_overflow=False)
                self.total_chunks += 1
                self._measure_peak(chunk)
                self.audio_callback(chunk)
        except OSError as e:
            logger.error(f"Microphone read failed: {e}")
        finally:
            stream.stop_stream()
            stream.close()
            self._stream = None
            self._release()

    def get_recording_stats(self) -> AudioStats:
        duration = time.monotonic() - self._started_at if self._started_at else 0.0
        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )
