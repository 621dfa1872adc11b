"""
Core data types for the feedback digest pipeline.

This module defines the structures passed between pipeline stages:
- Record: One normalized feedback ticket
- Comment: A single ticket comment kept for prompt context
- CacheSnapshot: The persisted full record set with its fetch time
- Metrics: Locally computed counts for a run
- AnalysisResult: Parsed summarization output plus metrics
- Report: Rendered subject and bodies handed to a notification sink
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Accepts the "Z" suffix and the compact "+0000" offset Jira emits.
    Naive values are assumed to be UTC.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    elif len(text) > 5 and text[-5] in "+-" and text[-4:].isdigit() and ":" not in text[-5:]:
        text = f"{text[:-2]}:{text[-2:]}"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Comment:
    """A ticket comment.

    Attributes:
        author: Display name of the comment author
        text: Flattened plain text of the comment
    """
    author: str
    text: str

    def render(self) -> str:
        return f"{self.author}: {self.text}"


@dataclass
class Record:
    """A normalized feedback ticket.

    Attributes:
        id: Source key (e.g., "BPD-957")
        title: Ticket summary line
        body: Flattened, truncated description
        status: Workflow status name
        priority: Priority name
        category: Category field value or issue type
        issue_type: Issue type name
        assignee: Assignee display name
        reporter: Reporter display name
        tags: Labels with duplicates removed, in input order
        created_at: Creation time
        updated_at: Last update time, never earlier than created_at
        comments: Most recent comments, oldest first
        attributes: Custom fields by display name, flattened to strings
    """
    id: str
    title: str
    body: str
    status: str
    priority: str
    category: str
    created_at: datetime
    updated_at: datetime
    issue_type: str = "Unknown"
    assignee: str = "Unassigned"
    reporter: str = "Unknown"
    tags: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    attributes: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.tags = list(dict.fromkeys(self.tags))
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            body=str(data.get("body", "")),
            status=str(data.get("status", "Unknown")),
            priority=str(data.get("priority", "None")),
            category=str(data.get("category", "Uncategorized")),
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
            issue_type=str(data.get("issue_type", "Unknown")),
            assignee=str(data.get("assignee", "Unassigned")),
            reporter=str(data.get("reporter", "Unknown")),
            tags=[str(tag) for tag in data.get("tags") or []],
            comments=[
                Comment(author=str(c.get("author", "Unknown")), text=str(c.get("text", "")))
                for c in data.get("comments") or []
            ],
            attributes={str(k): str(v) for k, v in (data.get("attributes") or {}).items()},
        )


@dataclass
class CacheSnapshot:
    """Full record set persisted by the record cache.

    Attributes:
        timestamp: When the records were fetched
        records: The fetched records
    """
    timestamp: datetime
    records: list[Record]

    def is_fresh(self, now: datetime, max_age_seconds: float) -> bool:
        return (now - self.timestamp).total_seconds() < max_age_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "records": [record.to_dict() for record in self.records],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheSnapshot:
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            records=[Record.from_dict(item) for item in data["records"]],
        )


@dataclass
class TagCount:
    tag: str
    count: int


@dataclass
class Metrics:
    """Counts computed locally for a batch of records.

    Attributes:
        total: Number of records in the batch
        new: Records created after the window start
        updated: Records updated after the window start but created before it
        top_tags: Most frequent tags, most frequent first
    """
    total: int = 0
    new: int = 0
    updated: int = 0
    top_tags: list[TagCount] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Structured summarization output.

    Attributes:
        summary_text: Summary prose, or a raw-response prefix when parsing failed
        highlights: Bullet items from the summary section
        high_priority_items: Bullet items from the priority section
        recommendations: Bullet items from the recommendations section
        metrics: Locally computed counts
        raw_text: Unparsed provider response
        empty: True when there was nothing to summarize
    """
    summary_text: str
    metrics: Metrics
    highlights: list[str] = field(default_factory=list)
    high_priority_items: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    raw_text: str = ""
    empty: bool = False


@dataclass
class Report:
    subject: str
    text_body: str
    html_body: str
