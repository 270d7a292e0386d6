"""Event models for pub/sub recognition processing."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

INTERIM = "interim"
FINAL = "final"


@dataclass(frozen=True)
class RecognitionEvent:
    """Recognized text emitted by a RecognitionSource."""
    kind: str  # INTERIM | FINAL
    text: str
    language: str  # recognition tag active when the event was produced, e.g. "zh-CN"
    timestamp: float = field(default_factory=time.time)

    @property
    def is_final(self) -> bool:
        return self.kind == FINAL


@dataclass
class SessionEvent:
    """Recognition session lifecycle event."""
    event_type: str  # "started", "stopped", "restarting", "error"
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
