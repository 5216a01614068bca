from __future__ import annotations
from typing import List, Optional

from gitlog_reporter.core.errors import EmptyResponse
from gitlog_reporter.core.ports import NullSink, ProgressSink


class Aggregator:
    """
    Collects deltas into the final text and forwards each one to the sink,
    in order, once. Sink exceptions are not caught here.
    """

    def __init__(self, sink: Optional[ProgressSink] = None) -> None:
        self._sink = sink if sink is not None else NullSink()
        self._parts: List[str] = []
        self._chars = 0

    def add(self, delta: str) -> None:
        if not delta:
            return
        self._parts.append(delta)
        self._chars += len(delta)
        self._sink.on_delta(delta)

    @property
    def count(self) -> int:
        return len(self._parts)

    @property
    def chars(self) -> int:
        return self._chars

    def result(self) -> str:
        if not self._parts:
            raise EmptyResponse()
        return "".join(self._parts)
