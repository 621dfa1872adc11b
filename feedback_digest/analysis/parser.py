"""
Parser for free-form summarization responses.

The provider is asked for three Markdown sections, but models drift: headers
come back as bold labels, numbered lists or plain short lines, and bullets
use any of several markers. The parser is a small line-oriented state
machine that tolerates those variants and never raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re

NO_CONTENT_MESSAGE = "The summarization service returned no content."

_HEADING_RE = re.compile(r"^#{1,6}\s*(?P<label>.+?)\s*#*$")
_BOLD_LABEL_RE = re.compile(
    r"^(?:[-*•]\s+|\d+[.)]\s+)?\*\*(?P<label>[^*]+?)\*\*\s*(?P<rest>[^\n]*)$"
)
_LIST_ITEM_RE = re.compile(r"^(?P<marker>[-*•]|\d+[.)])\s+(?P<text>.+)$")
_LIST_MARKER_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s+")
_SHORT_LABEL_MAX_WORDS = 6
_BOLD_REST_MAX_CHARS = 30


class ParserState(Enum):
    SEEKING = "seeking"
    IN_SUMMARY = "in_summary"
    IN_PRIORITY = "in_priority"
    IN_RECOMMENDATIONS = "in_recommendations"


# Checked in order; the first section whose vocabulary matches wins.
_VOCABULARY: list[tuple[ParserState, tuple[str, ...]]] = [
    (ParserState.IN_PRIORITY, ("high priority", "priority", "immediate attention", "urgent")),
    (ParserState.IN_RECOMMENDATIONS, ("recommendation", "next step", "action item")),
    (ParserState.IN_SUMMARY, ("summary", "overview", "highlight", "theme")),
]

# Full titles a list-marked line may carry and still open a section, e.g.
# "2. **High Priority Items**". Other bold bullets are items, not headers.
_SECTION_TITLES = {
    "summary",
    "executive summary",
    "overview",
    "key themes",
    "highlights",
    "high priority",
    "high priority items",
    "priority items",
    "items needing immediate attention",
    "recommendations",
    "next steps",
    "action items",
}


@dataclass
class ParsedSections:
    """Sections extracted from a provider response.

    Attributes:
        summary_text: Lines of the summary section, or the fallback prefix
        highlights: List items found in the summary section
        high_priority_items: List items found in the priority section
        recommendations: List items found in the recommendations section
        headers_found: Whether any section header was recognized
    """
    summary_text: str
    highlights: list[str] = field(default_factory=list)
    high_priority_items: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    headers_found: bool = False


def classify_header(line: str, in_section: bool = False) -> ParserState | None:
    """Return the section a header line opens, or None if it is not a header.

    Inside a section, a line starting with a list marker only counts as a
    header when its label is a full section title.
    """
    label = _header_label(line)
    if label is None:
        return None
    if in_section and _LIST_MARKER_RE.match(line) and label.lower() not in _SECTION_TITLES:
        return None
    lowered = label.lower()
    for state, keywords in _VOCABULARY:
        if any(keyword in lowered for keyword in keywords):
            return state
    return None


def parse_list_item(line: str) -> str | None:
    match = _LIST_ITEM_RE.match(line.strip())
    if not match:
        return None
    return match.group("text").strip()


def parse_response(text: str | None, fallback_chars: int = 500) -> ParsedSections:
    """Split a response into summary, priority and recommendation sections.

    Args:
        text: Raw provider response
        fallback_chars: Prefix length used when no summary could be extracted

    Returns:
        ParsedSections; ``summary_text`` is never empty
    """
    raw = text or ""
    state = ParserState.SEEKING
    headers_found = False
    summary_lines: list[str] = []
    sections: dict[ParserState, list[str]] = {
        ParserState.IN_SUMMARY: [],
        ParserState.IN_PRIORITY: [],
        ParserState.IN_RECOMMENDATIONS: [],
    }
    item_indent: dict[ParserState, int] = {}

    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        header = classify_header(stripped, in_section=state is not ParserState.SEEKING)
        if header is not None:
            state = header
            headers_found = True
            inline = _inline_content(stripped)
            if inline and state is ParserState.IN_SUMMARY:
                summary_lines.append(inline)
            continue

        if state is ParserState.SEEKING:
            continue
        if stripped.startswith("#"):
            # an unrecognized heading closes the current section
            state = ParserState.SEEKING
            continue

        indent = len(line) - len(line.lstrip())
        items = sections[state]
        item = parse_list_item(stripped)

        if state is ParserState.IN_SUMMARY:
            summary_lines.append(stripped)

        if item is not None:
            first_indent = item_indent.setdefault(state, indent)
            if items and indent > first_indent:
                items[-1] = f"{items[-1]} {item}"
            else:
                items.append(item)
        elif items and state is not ParserState.IN_SUMMARY:
            items[-1] = f"{items[-1]} {stripped}"

    summary_text = "\n".join(summary_lines).strip()
    if not summary_text:
        summary_text = raw[:fallback_chars] if raw.strip() else NO_CONTENT_MESSAGE

    return ParsedSections(
        summary_text=summary_text,
        highlights=sections[ParserState.IN_SUMMARY],
        high_priority_items=sections[ParserState.IN_PRIORITY],
        recommendations=sections[ParserState.IN_RECOMMENDATIONS],
        headers_found=headers_found,
    )


def _header_label(line: str) -> str | None:
    heading = _HEADING_RE.match(line)
    if heading:
        return heading.group("label").strip("*: ")

    bold = _BOLD_LABEL_RE.match(line)
    if bold and len(bold.group("rest")) <= _BOLD_REST_MAX_CHARS:
        return bold.group("label").strip(": ")

    if _LIST_ITEM_RE.match(line) or line.endswith("."):
        return None
    label = line.rstrip(":").strip()
    if 0 < len(label.split()) <= _SHORT_LABEL_MAX_WORDS:
        return label
    return None


def _inline_content(line: str) -> str:
    """Text after a bold label on the same line, e.g. ``**Summary:** text``."""
    bold = _BOLD_LABEL_RE.match(line)
    if not bold:
        return ""
    return bold.group("rest").strip(" :")
