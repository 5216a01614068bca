from __future__ import annotations
import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ReportType(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Commit:
    hash: str
    author: str
    email: str
    timestamp: int          # unix seconds, UTC
    message: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def date(self) -> str:
        return format_timestamp(self.timestamp)


@dataclass
class Report:
    id: str
    report_type: ReportType
    generated_at: int
    content: str
    commits: List[Commit] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.report_type.value,
            "generatedAt": self.generated_at,
            "content": self.content,
            "commits": [
                {
                    "hash": c.hash,
                    "author": c.author,
                    "email": c.email,
                    "timestamp": c.timestamp,
                    "message": c.message,
                }
                for c in self.commits
            ],
        }


def format_timestamp(timestamp: int) -> str:
    try:
        return dt.datetime.fromtimestamp(int(timestamp), tz=dt.timezone.utc).strftime("%Y-%m-%d")
    except (OverflowError, OSError, ValueError):
        return "Unknown date"
