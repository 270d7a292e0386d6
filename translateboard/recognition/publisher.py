"""Recognition publisher module for pub/sub event publishing."""

import logging
from pubsub import pub
from ..models.events import RecognitionEvent, SessionEvent

logger = logging.getLogger(__name__)


class RecognitionPublisher:
    """Publishes recognition and session events using pubsub.pub."""

    def __init__(self, topic: str = "recognition.result", session_topic: str = "recognition.session"):
        """Initialize recognition publisher.

        Args:
            topic: Pub/sub topic name for interim and final recognition events
            session_topic: Pub/sub topic name for session lifecycle events
        """
        self.topic = topic
        self.session_topic = session_topic
        logger.info(f"RecognitionPublisher initialized with topics: {topic}, {session_topic}")

    def publish_recognition_event(self, event: RecognitionEvent) -> None:
        """Publish an interim or final recognition event."""
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published {event.kind} recognition event: {event.text[:50]}")

    def publish_session_event(self, event: SessionEvent) -> None:
        """Publish a session lifecycle event."""
        pub.sendMessage(self.session_topic, event=event)
