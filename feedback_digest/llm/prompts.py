"""Prompt loading and rendering helpers for LLM providers."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from pathlib import Path

from ..config import SummaryConfig
from ..types import Record


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: object) -> str:
    template = _load_template(name)
    return template.format(**values)


def format_record(index: int, record: Record, cfg: SummaryConfig) -> str:
    lines = [
        f"### {index}. [{record.id}] {record.title}",
        f"- **Status**: {record.status}",
        f"- **Priority**: {record.priority}",
        f"- **Category**: {record.category}",
        f"- **Type**: {record.issue_type}",
        f"- **Reporter**: {record.reporter}",
        f"- **Updated**: {record.updated_at.date().isoformat()}",
    ]
    if record.tags:
        lines.append(f"- **Labels**: {', '.join(record.tags)}")
    for name, value in record.attributes.items():
        lines.append(f"- **{name}**: {value}")
    lines.append(f"- **Description**: {record.body[: cfg.body_max_chars]}")
    if record.comments:
        lines.append("- **Recent Comments**:")
        for comment in record.comments:
            lines.append(f"  - {comment.render()[: cfg.comment_max_chars]}")
    return "\n".join(lines)


def format_records(records: list[Record], cfg: SummaryConfig) -> str:
    return "\n\n---\n\n".join(
        format_record(idx, record, cfg) for idx, record in enumerate(records, start=1)
    )


def format_history(history: list[Record], exclude_ids: set[str], cfg: SummaryConfig) -> tuple[str, int]:
    """Serialize historical records one line each, newest first.

    Returns:
        Tuple of (rendered block, number of records included)
    """
    candidates = [r for r in history if r.id not in exclude_ids]
    candidates.sort(key=lambda r: (r.created_at, r.id), reverse=True)
    kept = candidates[: cfg.history_max_records]
    lines = [
        f"- {r.id} | {r.title} | {r.category} | {r.status} | created {r.created_at.date().isoformat()}"
        for r in kept
    ]
    return "\n".join(lines), len(kept)


def build_summary_prompt(
    records: list[Record],
    cfg: SummaryConfig,
    history: list[Record] | None = None,
    last_run: datetime | None = None,
    window: str = "recent activity",
) -> str:
    history_block = ""
    if history:
        block, count = format_history(history, {r.id for r in records}, cfg)
        if count:
            since = last_run.strftime("%Y-%m-%d %H:%M %Z").strip() if last_run else "the start of this window"
            history_block = "\n" + _render_template(
                "history",
                history_count=count,
                history=block,
                last_run=since,
            ) + "\n"

    return _render_template(
        "summary",
        count=len(records),
        window=window,
        records=format_records(records, cfg),
        history_block=history_block,
        highlight_count=cfg.highlight_count,
        priority_count=cfg.priority_count,
        recommendation_count=cfg.recommendation_count,
    )


def build_question_prompt(records: list[Record], question: str, cfg: SummaryConfig) -> str:
    return _render_template(
        "question",
        count=len(records),
        records=format_records(records, cfg),
        question=question.strip(),
    )
