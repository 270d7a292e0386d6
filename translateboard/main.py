"""Main application entry point for TranslateBoard."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

import aiohttp
from pubsub import pub

from translateboard.recognition.base import AbstractRecognitionEngine
from translateboard.recognition.google_engine import GoogleStreamingEngine
from translateboard.recognition.publisher import RecognitionPublisher
from translateboard.recognition.replay_engine import ReplayRecognitionEngine
from translateboard.recognition.source import RecognitionSource
from translateboard.relay.server import run_relay
from translateboard.storage.publisher import TranscriptPublisher
from translateboard.storage.segment_store import SegmentStore
from translateboard.translation.client import TranslationClient
from translateboard.translation.coordinator import TranslationCoordinator
from translateboard.ui.transcript_screen import TranscriptScreen

from .config import TranslateBoardConfig

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


class Server:

    def __init__(self, config_path: Optional[str] = None, log_level: Optional[str] = None):
        # Load configuration
        self.config = TranslateBoardConfig(config_path)
        # Set up logging (command line overrides config)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.exit_event: Optional[asyncio.Event] = None
        self.http_session: Optional[aiohttp.ClientSession] = None

    def init(self, language: Optional[str] = None, replay_file: Optional[str] = None,
             show_screen: bool = True):
        """Wire the recognition source, store, coordinator and screen together."""
        logger.info("Initializing services...")
        if language:
            self.set_language(language)

        self.recognition_publisher = RecognitionPublisher("recognition.result", "recognition.session")
        self.transcript_publisher = TranscriptPublisher("transcript.changed")

        self.store = SegmentStore(change_callback=self.transcript_publisher.get_callback())
        self.client = TranslationClient()
        self.coordinator = TranslationCoordinator(
            store=self.store,
            client=self.client,
            config_provider=self.config.translation_config,
        )
        pub.subscribe(self.coordinator.on_recognition_event, self.recognition_publisher.topic)

        self.engine = self._create_engine(replay_file)
        self.source = RecognitionSource(
            engine=self.engine,
            callback=self.recognition_publisher.publish_recognition_event,
            status_callback=self.recognition_publisher.publish_session_event,
            language=self.config.get('recognition.language'),
        )
        self.screen = TranscriptScreen("transcript.changed", "recognition.session") if show_screen else None

    def _create_engine(self, replay_file: Optional[str]) -> AbstractRecognitionEngine:
        language = self.config.get('recognition.language')
        replay_file = replay_file or self.config.get('recognition.replay_file')
        if replay_file or self.config.get('recognition.engine') == 'replay':
            if not replay_file:
                raise ValueError("Replay engine selected but recognition.replay_file is not set")
            interval = float(self.config.get('recognition.replay_interval_seconds', 1.0))
            logger.info(f"Using replay recognition engine: {replay_file}")
            return ReplayRecognitionEngine.from_file(replay_file, interval=interval, language=language)

        engine = GoogleStreamingEngine(
            credentials_path=self.config.get_google_credentials_path(),
            language=language,
            sample_rate=self.config.get('audio.sample_rate', 16000),
            chunk_size=self.config.get('audio.chunk_size', 1600),
            channels=self.config.get('audio.channels', 1),
        )
        engine.initialize()
        return engine

    def set_language(self, language: str) -> None:
        """Switch recognition language, persist it, and apply it to a running source."""
        self.config.set('recognition.language', language)
        self.config.save()
        if getattr(self, 'source', None):
            self.source.configure(language)

    def clear_transcript(self) -> None:
        self.store.clear()

    async def run(self, duration: Optional[int] = None):
        self.exit_event = asyncio.Event()
        self.http_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=float(self.config.get('translation.timeout_seconds', 60)))
        )
        self.client.session = self.http_session
        try:
            if self.screen:
                self.screen.start()
            self.source.start()
            if duration:
                try:
                    await asyncio.wait_for(self.exit_event.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
            else:
                await self.exit_event.wait()
        finally:
            await self.cleanup()

    def request_exit(self) -> None:
        if self.exit_event:
            self.exit_event.set()

    async def cleanup(self):
        self.source.stop()
        await self.coordinator.drain(timeout=10.0)
        if self.screen:
            self.screen.stop()

        try:
            pub.unsubscribe(self.coordinator.on_recognition_event, self.recognition_publisher.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")

        if self.http_session:
            await self.http_session.close()
            self.http_session = None
        logger.info(f"Shutdown complete: {self.coordinator.segments_committed} segments, "
                    f"{self.source.restart_count} recognition restarts")


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
CONSOLE_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(config, level: str = "INFO") -> None:
    """Route all loggers to the log file, and warnings to stdout when enabled."""
    log_path = Path(config.get('logging.file_path', 'data/logs/translateboard.log'))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers = [file_handler]

    if config.get('logging.console_output', True):
        # Warnings and above only
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info(f"TranslateBoard v{__version__} starting (log level {level})")
    logger.info(f"Writing log to {log_path}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for TranslateBoard application."""
    parser = argparse.ArgumentParser(
        description="TranslateBoard - Live speech translation between Chinese and English",
        epilog="Press Ctrl+C to stop listening"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: translateboard.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=None,
        help="Stop listening after this many seconds (default: run until Ctrl+C)"
    )

    parser.add_argument(
        "--language",
        type=str,
        choices=["zh-CN", "en-US"],
        help="Recognition language; saved as the new default"
    )

    parser.add_argument(
        "--replay",
        type=str,
        help="Replay a UTF-8 text file instead of listening to the microphone"
    )

    parser.add_argument(
        "--relay",
        action="store_true",
        help="Run the translation relay server instead of the translator"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"TranslateBoard v{__version__}"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
        if args.relay:
            run_relay(server.config.get('relay.host'), int(server.config.get('relay.port')))
            return
        server.init(language=args.language, replay_file=args.replay)
        asyncio.run(server.run(args.duration))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
