"""
Main pipeline orchestration for the feedback digest.

This module coordinates one run:
1. Read the last-run marker
2. Fetch records changed since then (or the lookback window)
3. Load the full record history from the cache for trend context
4. Summarize through the configured text provider
5. Assemble the report and hand it to the notification sink
6. Persist the run start time as the new marker

Any failure propagates as a DigestError and leaves the marker untouched,
so the next invocation replays the same window. Runs are not locked:
overlapping invocations race on the marker and cache files.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Callable

from .analysis.summarizer import Summarizer
from .cache import RecordCache
from .config import AppConfig, validate_config
from .errors import ConfigError, DigestError
from .llm.providers import create_provider
from .llm.providers.base import TextProvider
from .llm.tracing import record_span_error, set_span_output, start_span
from .notify.sinks import NotificationSink, create_sink
from .report.assembler import assemble_report
from .source.jira import JiraSource
from .state import RunStateTracker, describe_last_run
from .types import AnalysisResult, Record, Report
from .utils.logging import log_event

logger = logging.getLogger(__name__)


class Stage(Enum):
    IDLE = "idle"
    LOAD_STATE = "load_state"
    FETCH = "fetch"
    EMPTY = "empty"
    ANALYZE = "analyze"
    REPORT = "report"
    PERSIST_STATE = "persist_state"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunOutcome:
    """Result of a pipeline run.

    Attributes:
        stage: Last stage reached (DONE on success)
        run_started_at: Wall-clock start time, persisted as the new marker
        last_run: Marker read at the start of the run
        fetched: Number of records fetched for this run
        result: Analysis result, None for empty runs
        report: Delivered report, None for empty runs
        state_saved: Whether the marker was written
    """
    stage: Stage
    run_started_at: datetime
    last_run: datetime | None = None
    fetched: int = 0
    result: AnalysisResult | None = None
    report: Report | None = None
    state_saved: bool = False

    @property
    def empty(self) -> bool:
        return self.fetched == 0


def run_pipeline(
    cfg: AppConfig,
    source: JiraSource | None = None,
    provider: TextProvider | None = None,
    sink: NotificationSink | None = None,
    clock: Callable[[], datetime] | None = None,
    run_logger: logging.Logger | None = None,
) -> RunOutcome:
    """Run the digest pipeline once.

    Collaborators are built from ``cfg`` unless passed in.

    Args:
        cfg: Application configuration
        source: Ticket source, defaults to JiraSource
        provider: Text provider, defaults to ``create_provider``
        sink: Notification sink, defaults to ``create_sink``
        clock: Returns the current time, defaults to UTC wall clock
        run_logger: Logger for pipeline events

    Returns:
        RunOutcome describing the completed run

    Raises:
        DigestError: Configuration, fetch, analysis or delivery failed
    """
    log = run_logger or logger
    now = clock or (lambda: datetime.now(timezone.utc))
    outcome = RunOutcome(stage=Stage.IDLE, run_started_at=now())

    # Configuration problems surface before any network call.
    validate_config(cfg, require_sink=sink is None)
    source = source or JiraSource(cfg.source, cfg.summary)
    provider = provider or build_provider(cfg, log)
    sink = sink or create_sink(cfg.notify)
    tracker = RunStateTracker(cfg.state.path)

    with start_span(
        "feedback_digest.run",
        kind="chain",
        input_value={"project": cfg.source.project, "started_at": outcome.run_started_at.isoformat()},
        attributes={"provider": provider.name, "sink": sink.name},
    ) as run_span:
        try:
            _run_stages(cfg, outcome, source, provider, sink, tracker, log)
        except DigestError as exc:
            failed_at = outcome.stage
            outcome.stage = Stage.FAILED
            record_span_error(run_span, exc)
            log_event(log, "Pipeline failed", event="pipeline_failed", stage=failed_at.value, error=str(exc))
            raise
        set_span_output(
            run_span,
            {"fetched": outcome.fetched, "stage": outcome.stage.value, "state_saved": outcome.state_saved},
        )
    return outcome


def _run_stages(
    cfg: AppConfig,
    outcome: RunOutcome,
    source: JiraSource,
    provider: TextProvider,
    sink: NotificationSink,
    tracker: RunStateTracker,
    log: logging.Logger,
) -> None:
    outcome.stage = Stage.LOAD_STATE
    last_run = tracker.get_last_run()
    outcome.last_run = last_run
    log_event(
        log,
        "Pipeline start",
        event="pipeline_start",
        last_run=last_run.isoformat() if last_run else None,
        last_run_description=describe_last_run(last_run, outcome.run_started_at),
    )

    outcome.stage = Stage.FETCH
    with start_span("feedback_digest.fetch", kind="retriever", input_value={"cutoff": last_run}) as span:
        records = source.fetch_since(last_run)
        set_span_output(span, {"count": len(records)})
    outcome.fetched = len(records)

    if not records:
        outcome.stage = Stage.EMPTY
        log_event(log, "No new or updated records", event="pipeline_empty")
        if cfg.pipeline.persist_on_empty:
            _persist(outcome, tracker, log)
        outcome.stage = Stage.DONE
        return

    history = _load_history(cfg, source, log) if cfg.pipeline.include_history else None

    outcome.stage = Stage.ANALYZE
    summarizer = Summarizer(cfg, provider, log)
    result = summarizer.analyze(records, history, last_run, now=outcome.run_started_at)
    outcome.result = result

    outcome.stage = Stage.REPORT
    report = assemble_report(result, records, cfg.source.url, outcome.run_started_at)
    with start_span("feedback_digest.deliver", kind="tool", input_value={"subject": report.subject}) as span:
        sink.send(report, cfg.notify.recipient)
        set_span_output(span, {"sink": sink.name})
    outcome.report = report

    _persist(outcome, tracker, log)
    outcome.stage = Stage.DONE
    log_event(
        log,
        "Pipeline complete",
        event="pipeline_complete",
        total=result.metrics.total,
        new=result.metrics.new,
        updated=result.metrics.updated,
    )


def _load_history(cfg: AppConfig, source: JiraSource, log: logging.Logger) -> list[Record]:
    cache = RecordCache(cfg.cache.path, cfg.cache.freshness_minutes)
    with start_span("feedback_digest.history", kind="retriever") as span:
        history = cache.load(cfg.pipeline.force_refresh_history, source.fetch_all)
        set_span_output(span, {"count": len(history)})
    log_event(log, "History loaded", event="history_loaded", count=len(history))
    return history


def _persist(outcome: RunOutcome, tracker: RunStateTracker, log: logging.Logger) -> None:
    outcome.stage = Stage.PERSIST_STATE
    tracker.save_last_run(outcome.run_started_at)
    outcome.state_saved = True
    log_event(log, "Run-state saved", event="state_saved", timestamp=outcome.run_started_at.isoformat())


def build_provider(cfg: AppConfig, log: logging.Logger | None) -> TextProvider:
    try:
        return create_provider(cfg.provider, cfg.logging, llm_logger=log)
    except ValueError as exc:
        raise ConfigError([f"provider.name ({exc})"]) from exc
