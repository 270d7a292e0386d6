"""Transcript data models: segments, the interim utterance and translation config."""

import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

# Recognition language tag -> segment source language
RECOGNITION_LANGUAGES = {
    "zh-CN": "zh",
    "en-US": "en",
}
LANGUAGES = ("zh", "en")
DEFAULT_RECOGNITION_LANGUAGE = "zh-CN"


def source_language_for(recognition_language: str) -> str:
    """Map a recognition tag such as 'zh-CN' to its source language ('zh')."""
    try:
        return RECOGNITION_LANGUAGES[recognition_language]
    except KeyError:
        raise ValueError(
            f"Unsupported recognition language: {recognition_language!r} "
            f"(expected one of {sorted(RECOGNITION_LANGUAGES)})"
        )


def target_language_for(source_language: str) -> str:
    """Return the other language of the two-language set."""
    if source_language not in LANGUAGES:
        raise ValueError(f"Unsupported source language: {source_language!r}")
    return LANGUAGES[1] if source_language == LANGUAGES[0] else LANGUAGES[0]


@dataclass(frozen=True)
class Segment:
    """One finalized utterance and its (possibly in-progress) translation.

    Segments are immutable values; the store replaces a segment with an
    updated copy when its translation is patched.
    """
    id: str
    source_text: str
    source_language: str
    translation: str = ""
    created_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class CurrentUtterance:
    """The not-yet-finalized speech currently being recognized."""
    text: str = ""
    translation: str = ""


@dataclass(frozen=True)
class TranscriptSnapshot:
    """Read-only view of the whole transcript handed to the presentation layer."""
    segments: Tuple[Segment, ...]
    current: CurrentUtterance


@dataclass(frozen=True)
class TranslationConfig:
    """Credentials, endpoint and model captured when a translation run starts."""
    api_key: str
    base_url: str
    model: str
    relay_url: Optional[str] = None
    timeout_seconds: float = 60.0

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"
