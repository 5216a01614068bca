from __future__ import annotations
import datetime as dt
import hashlib
import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .core.models import Commit, Report, ReportType, format_timestamp
from .core.ports import (
    CommitSource,
    NullResponseCache,
    ProgressSink,
    PromptRenderer,
    ResponseCache,
    commits_in_window,
)
from .engine import StreamingEngine
from .providers.descriptor import ProviderDescriptor

_logger = logging.getLogger(__name__)

DEFAULT_MAX_COMMITS = 100

DEFAULT_TEMPLATES = {
    "weekly": (
        "You are writing a weekly engineering report.\n"
        "Period: {date_range}. {total_commits} commits by {unique_authors} author(s).\n\n"
        "Commits:\n{commit_lines}\n\n"
        "Summarize the work done this week in Markdown: highlights, fixes, and next steps."
    ),
    "monthly": (
        "You are writing a monthly engineering report.\n"
        "Period: {date_range}, spanning {weeks_count} week(s). "
        "{total_commits} commits by {unique_authors} author(s).\n\n"
        "Commits:\n{commit_lines}\n\n"
        "Summarize the month in Markdown: key achievements, themes, and risks."
    ),
}


class FormatPromptRenderer:
    """
    Minimal str.format renderer. Templates may use any top-level context key;
    `commit_lines` is pre-rendered as one `- hash date author: message` line per commit.
    """

    def __init__(self, templates: Optional[Dict[str, str]] = None):
        self.templates = dict(DEFAULT_TEMPLATES)
        if templates:
            self.templates.update(templates)

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        if template_name not in self.templates:
            raise KeyError(f"Template '{template_name}' not found")
        lines = "\n".join(
            f"- {c['hash']} {c['timestamp']} {c['author']}: {c['message']}"
            for c in context.get("commits", [])
        )
        try:
            return self.templates[template_name].format(commit_lines=lines, **context)
        except KeyError as e:
            raise ValueError(f"Template rendering error: unknown field {e}") from e


def cache_key(descriptor: ProviderDescriptor, report_type: ReportType, prompt: str) -> str:
    raw = "|".join([descriptor.kind.value, descriptor.model, report_type.value, prompt])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def group_commits_by_week(commits: List[Commit]) -> List[List[Commit]]:
    """Bucket by ISO (year, week), buckets ordered by their first commit's timestamp."""
    weeks: Dict[Tuple[int, int], List[Commit]] = defaultdict(list)
    for c in commits:
        try:
            when = dt.datetime.fromtimestamp(c.timestamp, tz=dt.timezone.utc)
        except (OverflowError, OSError, ValueError):
            when = dt.datetime.now(tz=dt.timezone.utc)
        year, week, _ = when.isocalendar()
        weeks[(year, week)].append(c)
    return sorted(weeks.values(), key=lambda bucket: bucket[0].timestamp)


class ReportService:
    """Commits in, Report out. Rendering and caching are injected collaborators."""

    def __init__(
        self,
        engine: StreamingEngine,
        renderer: Optional[PromptRenderer] = None,
        *,
        cache: Optional[ResponseCache] = None,
        max_commits: int = DEFAULT_MAX_COMMITS,
    ):
        self.engine = engine
        self.renderer = renderer or FormatPromptRenderer()
        self.cache = cache or NullResponseCache()
        self.max_commits = int(max_commits)

    def build_context(self, report_type: ReportType, commits: List[Commit]) -> Dict[str, Any]:
        timestamps = [c.timestamp for c in commits]
        context: Dict[str, Any] = {
            "commits": [
                {
                    "hash": c.short_hash,
                    "message": c.message,
                    "author": c.author,
                    "timestamp": c.date,
                }
                for c in commits
            ],
            "total_commits": len(commits),
            "date_range": f"{format_timestamp(min(timestamps))} - {format_timestamp(max(timestamps))}",
            "unique_authors": len({c.author for c in commits}),
        }
        if report_type is ReportType.MONTHLY:
            context["weeks_count"] = len(group_commits_by_week(commits))
        return context

    async def generate(
        self,
        report_type: ReportType,
        commits: List[Commit],
        descriptor: ProviderDescriptor,
        sink: Optional[ProgressSink] = None,
        *,
        template_name: Optional[str] = None,
    ) -> Report:
        if not commits:
            raise ValueError("No commits provided for report generation")

        if report_type is ReportType.MONTHLY and len(commits) > self.max_commits:
            _logger.warning(
                "Too many commits (%d); using the most recent %d", len(commits), self.max_commits
            )
            commits = commits[: self.max_commits]

        context = self.build_context(report_type, commits)
        prompt = self.renderer.render(template_name or report_type.value, context)

        key = cache_key(descriptor, report_type, prompt)
        content = self.cache.get(key)
        if content is None:
            content = await self.engine.generate(descriptor, prompt, sink)
            self.cache.put(key, content)
        else:
            _logger.info("Using cached report content")
            if sink is not None:
                sink.on_delta(content)

        return Report(
            id=str(uuid.uuid4()),
            report_type=report_type,
            generated_at=int(dt.datetime.now(tz=dt.timezone.utc).timestamp()),
            content=content,
            commits=list(commits),
        )

    async def generate_for_window(
        self,
        report_type: ReportType,
        source: CommitSource,
        start: datetime,
        end: datetime,
        descriptor: ProviderDescriptor,
        sink: Optional[ProgressSink] = None,
    ) -> Report:
        commits = commits_in_window(source, start, end)
        _logger.info("Fetched %d commits between %s and %s", len(commits), start, end)
        return await self.generate(report_type, commits, descriptor, sink)
