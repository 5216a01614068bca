from __future__ import annotations
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from .models import Commit


class ProgressSink(Protocol):
    """
    Observer the caller hands to the engine. Receives each non-empty text delta
    synchronously, in stream order, exactly once. May be called zero times.
    """

    def on_delta(self, text: str) -> None:
        ...


class CommitSource(Protocol):
    """
    Supplies commits for a closed time interval. Repository access and diffing
    live outside this package; we only consume the records.
    """

    def commits_between(self, start: datetime, end: datetime) -> List[Commit]:
        ...


class PromptRenderer(Protocol):
    """Turns a report context into the single prompt string sent to the backend."""

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        ...


class ResponseCache(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, content: str) -> None:
        ...


class NullSink:
    def on_delta(self, text: str) -> None:
        return None


class CallbackSink:
    """Adapts a plain callable to the ProgressSink interface."""

    def __init__(self, fn: Callable[[str], None]):
        self._fn = fn

    def on_delta(self, text: str) -> None:
        self._fn(text)


class CollectingSink:
    """Keeps every delta it sees; handy for tests and for replaying a stream."""

    def __init__(self) -> None:
        self.deltas: List[str] = []

    def on_delta(self, text: str) -> None:
        self.deltas.append(text)

    @property
    def text(self) -> str:
        return "".join(self.deltas)


class NullResponseCache:
    """Caching is intentionally disabled: every lookup misses, every store is dropped."""

    def get(self, key: str) -> Optional[str]:
        return None

    def put(self, key: str, content: str) -> None:
        return None


def commits_in_window(source: CommitSource, start: datetime, end: datetime) -> List[Commit]:
    commits: Iterable[Commit] = source.commits_between(start, end)
    return sorted(commits, key=lambda c: c.timestamp, reverse=True)
