"""
Incremental framers: turn raw byte chunks into complete provider payloads.

Both framers decode bytes with an incremental UTF-8 decoder, so a code point
split across two chunks is reassembled rather than replaced. Genuinely invalid
sequences become U+FFFD; decoding never fails.

A framer owns its buffer for the lifetime of one response. Whatever is still
buffered when the stream ends is not a complete frame and is dropped.
"""

from __future__ import annotations
import codecs
import logging
from typing import List

from gitlog_reporter.core.errors import ProtocolError

_logger = logging.getLogger(__name__)

# A backend that never sends a boundary would otherwise grow the buffer
# until the overall timeout fires.
MAX_BUFFER_CHARS = 8 * 1024 * 1024

SSE_DATA_PREFIX = "data: "


class _BufferedFramer:
    def __init__(self, max_buffer: int = MAX_BUFFER_CHARS) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._max_buffer = max_buffer

    @property
    def pending(self) -> str:
        return self._buffer

    def _append(self, chunk: bytes, *, final: bool = False) -> None:
        self._buffer += self._decoder.decode(chunk, final=final)

    def feed(self, chunk: bytes) -> List[str]:
        self._append(chunk)
        payloads = self._drain()
        # only the unterminated remainder counts against the cap
        if len(self._buffer) > self._max_buffer:
            size = len(self._buffer)
            self._buffer = ""
            raise ProtocolError(f"No frame boundary within {size} buffered characters")
        return payloads

    def close(self) -> List[str]:
        """Flush the byte decoder and drop any incomplete trailing frame."""
        self._append(b"", final=True)
        payloads = self._drain()
        if self._buffer.strip():
            _logger.debug("Discarding %d chars of incomplete frame at end of stream", len(self._buffer))
        self._buffer = ""
        return payloads

    def _drain(self) -> List[str]:
        raise NotImplementedError


class SSEFramer(_BufferedFramer):
    """
    Event-stream framing: messages end with a blank line; each `data: ` line
    inside a message is one payload. Other fields (event:, id:, comments)
    carry nothing we need and are skipped.
    """

    def _append(self, chunk: bytes, *, final: bool = False) -> None:
        super()._append(chunk, final=final)
        # CRLF servers; a lone trailing \r waits for its \n in the next chunk
        if "\r\n" in self._buffer:
            self._buffer = self._buffer.replace("\r\n", "\n")

    def _drain(self) -> List[str]:
        payloads: List[str] = []
        while True:
            pos = self._buffer.find("\n\n")
            if pos < 0:
                return payloads
            message = self._buffer[:pos]
            self._buffer = self._buffer[pos + 2:]
            for line in message.split("\n"):
                if line.startswith(SSE_DATA_PREFIX):
                    payloads.append(line[len(SSE_DATA_PREFIX):])


class LineFramer(_BufferedFramer):
    """Newline-delimited JSON: one payload per non-blank line."""

    def _drain(self) -> List[str]:
        payloads: List[str] = []
        while True:
            pos = self._buffer.find("\n")
            if pos < 0:
                return payloads
            line = self._buffer[:pos].strip()
            self._buffer = self._buffer[pos + 1:]
            if line:
                payloads.append(line)
