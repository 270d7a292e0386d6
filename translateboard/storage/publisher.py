"""Transcript publisher module for pub/sub event publishing."""

import logging
from typing import Callable
from pubsub import pub
from ..models.segment import TranscriptSnapshot

logger = logging.getLogger(__name__)


class TranscriptPublisher:
    """Publishes transcript snapshots using pubsub.pub for the presentation layer."""

    def __init__(self, topic: str = "transcript.changed"):
        """Initialize transcript publisher.

        Args:
            topic: Pub/sub topic name for transcript snapshots
        """
        self.topic = topic
        logger.info(f"TranscriptPublisher initialized with topic: {topic}")

    def publish_snapshot(self, snapshot: TranscriptSnapshot) -> None:
        """Publish a transcript snapshot to the pub/sub topic.

        Args:
            snapshot: TranscriptSnapshot to publish
        """
        pub.sendMessage(self.topic, snapshot=snapshot)

    def get_callback(self) -> Callable[[TranscriptSnapshot], None]:
        """Get callback function for SegmentStore to use."""
        return self.publish_snapshot
