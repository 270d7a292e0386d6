"""Server-sent-events decoder for streaming chat completion responses."""

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator, List, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class StreamingDecoder:
    """Turns event-stream bytes into content deltas.

    Bytes are decoded incrementally, so a multi-byte character split across
    two reads is reassembled. An incomplete trailing line is buffered until
    the next feed() or close().
    """

    def __init__(self):
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.malformed_lines = 0

    def feed(self, data: bytes) -> List[str]:
        """Consume one chunk of the body and return the deltas it completes."""
        self._buffer += self._text_decoder.decode(data)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def close(self) -> List[str]:
        """Flush the decoder at end of stream, parsing any unterminated last line."""
        self._buffer += self._text_decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        return self._parse_lines([remainder])

    def _parse_lines(self, lines: List[str]) -> List[str]:
        deltas = []
        for line in lines:
            content = self._parse_line(line)
            if content:
                deltas.append(content)
        return deltas

    def _parse_line(self, line: str) -> Optional[str]:
        line = line.strip()
        if not line or not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            return None

        try:
            message = json.loads(payload)
            choices = message.get("choices") or []
            if not choices:
                return None
            delta = choices[0].get("delta") or {}
            content = delta.get("content")
        except (ValueError, AttributeError, KeyError, TypeError, IndexError) as e:
            self.malformed_lines += 1
            logger.warning(f"Skipping malformed stream line {line[:80]!r}: {e}")
            return None

        if content is not None and not isinstance(content, str):
            self.malformed_lines += 1
            logger.warning(f"Skipping non-text delta content: {content!r}")
            return None
        return content


async def iter_deltas(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Decode an async iterable of body chunks into content deltas, in arrival order."""
    decoder = StreamingDecoder()
    async for chunk in chunks:
        for delta in decoder.feed(chunk):
            yield delta
    for delta in decoder.close():
        yield delta
