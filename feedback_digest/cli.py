"""
Command-line interface for the feedback digest.

Uses Typer to expose the pipeline run plus cache-backed query commands
(load, search, ask) and custom field discovery. Loads a .env file so
credentials can live outside the YAML config.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from pathlib import Path
from typing import NoReturn

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
import typer

from .analysis.summarizer import Summarizer
from .cache import RecordCache
from .config import AppConfig, load_config, validate_source_config
from .errors import DigestError
from .llm.tracing import flush, setup_langfuse
from .notify.sinks import FileSink
from .runner import build_provider, run_pipeline
from .source.jira import DEFAULT_FIELD_KEYWORDS, JiraSource
from .types import Record
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False, help="Summarize new Jira feedback with an LLM.")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", exists=True, readable=True, help="YAML config file.")
LogLevelOption = typer.Option(None, "--log-level", help="Logging level.")


def _prepare(config: Path | None, log_level: str | None) -> AppConfig:
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg = replace(cfg, logging=replace(cfg.logging, level=log_level))
    setup_logging(cfg.logging)
    setup_langfuse(cfg.langfuse)
    return cfg


def _fail(exc: DigestError) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {exc.message}")
    flush()
    raise typer.Exit(code=1)


@app.command()
def run(
    config: Path | None = ConfigOption,
    dry_run: bool = typer.Option(False, "--dry-run", help="Write the report to disk instead of sending it."),
    history: bool = typer.Option(True, "--history/--no-history", help="Include cached history for trends."),
    refresh_history: bool = typer.Option(False, "--refresh-history", help="Refetch history even if cached."),
    log_level: str | None = LogLevelOption,
):
    """Fetch new feedback, summarize it and deliver the report.

    Exits with code 1 on any configuration, fetch, analysis or delivery
    failure. The last-run marker only advances after delivery succeeded.
    """
    cfg = _prepare(config, log_level)
    cfg = replace(
        cfg,
        pipeline=replace(
            cfg.pipeline,
            include_history=cfg.pipeline.include_history and history,
            force_refresh_history=cfg.pipeline.force_refresh_history or refresh_history,
        ),
    )
    sink = FileSink(cfg.notify.output_dir) if dry_run else None

    try:
        outcome = run_pipeline(cfg, sink=sink)
    except DigestError as exc:
        _fail(exc)

    if outcome.empty:
        console.print("No new or updated feedback since the last run.")
    else:
        metrics = outcome.result.metrics
        console.print(
            f"Report delivered: {metrics.total} issues ({metrics.new} new, {metrics.updated} updated)"
        )
        if dry_run:
            console.print(f"Report written to {Path(cfg.notify.output_dir) / 'report.html'}")
    flush()


@app.command()
def load(
    config: Path | None = ConfigOption,
    refresh: bool = typer.Option(False, "--refresh", help="Ignore a fresh cache and refetch."),
    log_level: str | None = LogLevelOption,
):
    """Load all records into the local cache and print a breakdown."""
    cfg = _prepare(config, log_level)
    try:
        validate_source_config(cfg)
        source = JiraSource(cfg.source, cfg.summary)
        cache = RecordCache(cfg.cache.path, cfg.cache.freshness_minutes)
        records = cache.load(refresh, source.fetch_all)
    except DigestError as exc:
        _fail(exc)

    console.print(f"Loaded {len(records)} issues into {cfg.cache.path}")
    info = cache.info()
    if info is not None:
        console.print(f"Snapshot taken {info.timestamp:%Y-%m-%d %H:%M} ({info.age_minutes:.0f} minutes old)")
    console.print(_count_table("Category", Counter(r.category for r in records)))
    attribute_names = list(dict.fromkeys(name for r in records for name in r.attributes))
    if attribute_names:
        name = attribute_names[0]
        console.print(_count_table(name, Counter(r.attributes.get(name, "unset") for r in records)))


@app.command()
def search(
    query: str = typer.Argument(..., help="Issue key or text to search for."),
    field: str | None = typer.Option(None, "--field", "-f", help="Search only this field."),
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
):
    """Search the cached records by key, text or field."""
    cfg = _prepare(config, log_level)
    cache = RecordCache(cfg.cache.path, cfg.cache.freshness_minutes)
    try:
        if field:
            matches = cache.search_by_field(field, query)
        else:
            record = cache.find(query)
            matches = [record] if record is not None else cache.search_text(query)
    except DigestError as exc:
        _fail(exc)

    if not matches:
        console.print(f"No issues match '{query}'.")
        return
    if len(matches) == 1:
        _print_record(matches[0])
        return
    table = Table(title=f"{len(matches)} matching issues")
    for column in ("Key", "Summary", "Category", "Status"):
        table.add_column(column)
    for record in matches:
        table.add_row(record.id, record.title, record.category, record.status)
    console.print(table)


@app.command()
def fields(
    keyword: list[str] | None = typer.Option(None, "--keyword", "-k", help="Field name keyword."),
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
):
    """List custom fields to help fill in source.custom_fields."""
    cfg = _prepare(config, log_level)
    try:
        validate_source_config(cfg)
        source = JiraSource(cfg.source, cfg.summary)
        console.print(f"Connected as {source.test_connection()}")
        matches = source.list_fields(tuple(keyword) if keyword else DEFAULT_FIELD_KEYWORDS)
    except DigestError as exc:
        _fail(exc)

    if not matches:
        console.print("No matching custom fields found.")
        return
    table = Table(title="Custom fields")
    for column in ("Id", "Name", "Type"):
        table.add_column(column)
    for item in matches:
        table.add_row(str(item["id"]), item["name"], item["type"])
    console.print(table)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question about the cached feedback."),
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
):
    """Answer a question over the cached records."""
    cfg = _prepare(config, log_level)
    cache = RecordCache(cfg.cache.path, cfg.cache.freshness_minutes)
    try:
        records = cache.all_records()
        summarizer = Summarizer(cfg, build_provider(cfg, None))
        answer = summarizer.answer_question(records, question)
    except DigestError as exc:
        _fail(exc)
    console.print(answer)
    flush()


def _count_table(title: str, counts: Counter[str]) -> Table:
    table = Table(title=f"By {title}")
    table.add_column(title)
    table.add_column("Count", justify="right")
    for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0].lower())):
        table.add_row(name, str(count))
    return table


def _print_record(record: Record) -> None:
    console.print(f"[bold]{record.id}[/bold] {record.title}")
    console.print(
        f"Status: {record.status} | Priority: {record.priority} | Category: {record.category} "
        f"| Assignee: {record.assignee}"
    )
    console.print(f"Created: {record.created_at.date().isoformat()} | Updated: {record.updated_at.date().isoformat()}")
    for name, value in record.attributes.items():
        console.print(f"{name}: {value}")
    if record.tags:
        console.print(f"Labels: {', '.join(record.tags)}")
    console.print(record.body, markup=False)
    for comment in record.comments:
        console.print(f"  - {comment.render()}", markup=False)


if __name__ == "__main__":
    app()
