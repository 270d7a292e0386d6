"""Terminal transcript screen with live-updating translations."""

import logging
from typing import Optional

from pubsub import pub
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.events import SessionEvent
from ..models.segment import CurrentUtterance, TranscriptSnapshot

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    "listening": ("🔴 LISTENING", "bold red"),
    "restarting": ("🔁 RESTARTING", "bold yellow"),
    "stopped": ("⏹️  STOPPED", "bold yellow"),
    "error": ("❌ ERROR", "bold red"),
}


class TranscriptScreen:
    """Renders transcript snapshots and recognition status with rich.live.Live."""

    def __init__(self,
                 transcript_topic: str = "transcript.changed",
                 session_topic: str = "recognition.session",
                 max_segments: int = 8,
                 console: Optional[Console] = None):
        """Initialize transcript screen.

        Args:
            transcript_topic: Topic carrying TranscriptSnapshots
            session_topic: Topic carrying recognition SessionEvents
            max_segments: Number of most recent segments to display
            console: Console to render to
        """
        self.transcript_topic = transcript_topic
        self.session_topic = session_topic
        self.max_segments = max_segments
        self.console = console or Console()

        self.snapshot = TranscriptSnapshot(segments=(), current=CurrentUtterance())
        self.status = "stopped"
        self.status_detail = ""
        self.live: Optional[Live] = None

        pub.subscribe(self._on_snapshot, transcript_topic)
        pub.subscribe(self._on_session_event, session_topic)

    def _on_snapshot(self, snapshot: TranscriptSnapshot) -> None:
        self.snapshot = snapshot
        self.refresh()

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.event_type == "started":
            self.status = "listening"
            self.status_detail = event.metadata.get("language") or ""
        else:
            self.status = event.event_type
            self.status_detail = event.metadata.get("error", "")
        self.refresh()

    def render(self) -> Panel:
        """Build the renderable for the current transcript and status."""
        label, style = STATUS_STYLES.get(self.status, (self.status.upper(), "bold"))
        header = Text.assemble((label, style), "  ", (self.status_detail, "dim"))

        table = Table(show_header=False, expand=True, box=None, padding=(0, 1))
        table.add_column("source", ratio=1)
        table.add_column("translation", ratio=1, style="cyan")
        for segment in self.snapshot.segments[-self.max_segments:]:
            table.add_row(
                Text(f"[{segment.source_language}] {segment.source_text}"),
                Text(segment.translation or "…"),
            )

        current = self.snapshot.current
        interim = Text(current.text, style="italic dim") if current.text else Text("")
        return Panel(Group(header, table, interim), title="Auto Translate Board", border_style="blue")

    def refresh(self) -> None:
        if self.live:
            self.live.update(self.render())

    def start(self) -> None:
        self.live = Live(self.render(), console=self.console, refresh_per_second=10, transient=False)
        self.live.start()

    def stop(self) -> None:
        if self.live:
            self.live.stop()
            self.live = None
        try:
            pub.unsubscribe(self._on_snapshot, self.transcript_topic)
            pub.unsubscribe(self._on_session_event, self.session_topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
