"""
Report assembly for digest delivery.

Builds the subject, plain-text body and HTML body from an AnalysisResult
and the records it was computed from. HTML and text are rendered with
Jinja2 templates; inline formatting (bold markers, issue-key links) is done
here so both templates stay logic-free.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
import hashlib
from html import escape
from pathlib import Path
import re

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from ..types import AnalysisResult, Record, Report

# Pill colors for categories, picked by a stable hash of the category name.
CATEGORY_PALETTE = [
    "#e3f2fd",
    "#f3e5f5",
    "#e8f5e9",
    "#fff3e0",
    "#fce4ec",
    "#e0f7fa",
    "#f1f8e9",
    "#ede7f6",
]

_ISSUE_KEY_RE = re.compile(r"\b([A-Z]+-\d+)\b")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_BULLET_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s+")

_TEMPLATE_DIR = Path(__file__).parent / "templates"


def category_color(category: str) -> str:
    """Map a category to a palette color; the same name always gets the same color."""
    digest = hashlib.md5(category.strip().lower().encode("utf-8")).hexdigest()
    return CATEGORY_PALETTE[int(digest[:8], 16) % len(CATEGORY_PALETTE)]


def format_text(text: str, browse_url: str | None = None) -> Markup:
    """Escape ``text`` for HTML, render ``**bold**`` and link issue keys.

    Args:
        text: Plain or lightly marked-up text from the provider
        browse_url: Jira site URL; keys are only styled when None

    Returns:
        Safe HTML markup
    """
    html = _BOLD_RE.sub(r"<strong>\1</strong>", escape(text, quote=False))
    if browse_url:
        base = escape(browse_url.rstrip("/"), quote=True)
        html = _ISSUE_KEY_RE.sub(
            rf'<a class="issue-key" href="{base}/browse/\1">\1</a>',
            html,
        )
    else:
        html = _ISSUE_KEY_RE.sub(r'<span class="issue-key">\1</span>', html)
    return Markup(html)


def format_plain(text: str) -> str:
    return _BOLD_RE.sub(r"\1", text)


def summary_bullets(summary_text: str) -> list[str]:
    """Return the bullet lines of a summary with markers removed, or [] for prose."""
    lines = [line.strip() for line in summary_text.splitlines() if line.strip()]
    return [_BULLET_RE.sub("", line) for line in lines if _BULLET_RE.match(line)]


def ordered_records(records: list[Record]) -> list[Record]:
    """Deduplicate by id (latest update wins), newest first, ties by id."""
    latest: dict[str, Record] = {}
    for record in records:
        current = latest.get(record.id)
        if current is None or record.updated_at > current.updated_at:
            latest[record.id] = record
    by_id = sorted(latest.values(), key=lambda r: r.id)
    return sorted(by_id, key=lambda r: r.created_at, reverse=True)


def category_counts(records: list[Record]) -> list[tuple[str, int]]:
    counts = Counter(record.category for record in records)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0].lower()))


def build_subject(result: AnalysisResult, now: datetime) -> str:
    date = f"{now.strftime('%b')} {now.day}, {now.year}"
    return f"Product Feedback Summary - {date} ({result.metrics.total} issues)"


def assemble_report(
    result: AnalysisResult,
    records: list[Record],
    browse_url: str | None,
    now: datetime,
) -> Report:
    """Render a Report for delivery.

    Args:
        result: Parsed summarization output
        records: Records the result was computed from
        browse_url: Jira site URL used for issue links
        now: Report date

    Returns:
        Report with subject, text and HTML bodies
    """
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html.j2"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["rich"] = lambda value: format_text(value, browse_url)
    env.filters["plain"] = format_plain
    env.filters["pill_color"] = category_color

    items = ordered_records(records)
    attribute_names = list(dict.fromkeys(name for r in items for name in r.attributes))
    context = {
        "title": "Product Feedback Summary",
        "generated_at": now.strftime("%Y-%m-%d %H:%M %Z").strip(),
        "report_date": now.date().isoformat(),
        "metrics": result.metrics,
        "summary_text": result.summary_text,
        "summary_bullets": summary_bullets(result.summary_text),
        "high_priority_items": result.high_priority_items,
        "recommendations": result.recommendations,
        "categories": category_counts(items),
        "attribute_names": attribute_names,
        "records": items,
        "browse_url": browse_url.rstrip("/") if browse_url else None,
    }
    html_body = env.get_template("report.html.j2").render(**context)
    text_body = env.get_template("report.txt.j2").render(**context)
    return Report(subject=build_subject(result, now), text_body=text_body, html_body=html_body)
