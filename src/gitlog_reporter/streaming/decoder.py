from __future__ import annotations
import json
import logging
from typing import Any, Callable, Iterable, Iterator, List, Optional

from .framing import LineFramer, SSEFramer

_logger = logging.getLogger(__name__)

Extractor = Callable[[Any], List[str]]


class FrameDecoder:
    """
    Per-request decoder: bytes in, text deltas out.

    framer     -- SSEFramer or LineFramer, owned exclusively by this decoder
    extract    -- maps one parsed JSON fragment to zero or more text deltas
    done_token -- payload that marks intentional end of stream (consumed, not parsed)

    Payloads that are not valid JSON are dropped; one bad fragment never
    ends the stream.
    """

    def __init__(
        self,
        framer: "SSEFramer | LineFramer",
        extract: Extractor,
        *,
        done_token: Optional[str] = None,
    ) -> None:
        self._framer = framer
        self._extract = extract
        self._done_token = done_token
        self.done_seen = False
        self.frames = 0
        self.dropped = 0

    def feed(self, chunk: bytes) -> Iterator[str]:
        yield from self._handle(self._framer.feed(chunk))

    def close(self) -> Iterator[str]:
        yield from self._handle(self._framer.close())

    def decode_all(self, chunks: Iterable[bytes]) -> List[str]:
        out: List[str] = []
        for chunk in chunks:
            out.extend(self.feed(chunk))
        out.extend(self.close())
        return out

    def _handle(self, payloads: List[str]) -> Iterator[str]:
        for payload in payloads:
            if self._done_token is not None and payload.strip() == self._done_token:
                self.done_seen = True
                continue
            self.frames += 1
            try:
                fragment = json.loads(payload)
            except (ValueError, RecursionError):
                self.dropped += 1
                _logger.debug("Dropping malformed fragment (%d chars)", len(payload))
                continue
            for text in self._extract(fragment):
                if text:
                    yield text
