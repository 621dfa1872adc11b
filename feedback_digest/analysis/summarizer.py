"""Summarizer for producing feedback digests from normalized records."""

from __future__ import annotations

from datetime import datetime, timezone
import logging

import httpx

from ..config import AppConfig
from ..errors import AnalysisError, ProviderError
from ..llm.prompts import build_question_prompt, build_summary_prompt
from ..llm.providers.base import TextProvider
from ..state import describe_last_run
from ..types import AnalysisResult, Metrics, Record
from ..utils.logging import log_event
from .metrics import compute_metrics, window_start
from .parser import parse_response

EMPTY_SUMMARY = "No new or updated feedback since the last run. Nothing to report."


class Summarizer:
    """Turn a batch of records into an AnalysisResult through one provider call."""

    def __init__(
        self,
        cfg: AppConfig,
        provider: TextProvider,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cfg = cfg
        self.provider = provider
        self.logger = logger

    def analyze(
        self,
        new_records: list[Record],
        history: list[Record] | None = None,
        last_run: datetime | None = None,
        now: datetime | None = None,
    ) -> AnalysisResult:
        """Summarize ``new_records``, using ``history`` for trend context.

        Args:
            new_records: Records fetched for this run
            history: Full record set, or None to skip trend context
            last_run: Previous successful run, or None on a first run
            now: Current time, defaults to the wall clock

        Returns:
            AnalysisResult with parsed sections and local metrics

        Raises:
            AnalysisError: The provider call failed
        """
        if not new_records:
            return empty_result()

        now = now or datetime.now(timezone.utc)
        summary_cfg = self.cfg.summary
        start = window_start(now, self.cfg.source.lookback_days)
        metrics = compute_metrics(new_records, start, summary_cfg.top_tags)

        window = f"since last run, {describe_last_run(last_run, now)}" if last_run else (
            f"last {self.cfg.source.lookback_days} days"
        )
        prompt = build_summary_prompt(
            new_records,
            summary_cfg,
            history=history,
            last_run=last_run,
            window=window,
        )
        log_event(
            self.logger,
            "Summarizing records",
            event="summarize_start",
            count=len(new_records),
            history=len(history) if history else 0,
            prompt_chars=len(prompt),
        )

        raw_text = self._generate(prompt, "summarize")
        sections = parse_response(raw_text, summary_cfg.fallback_chars)
        if not sections.headers_found:
            log_event(
                self.logger,
                "Summary response had no recognizable sections",
                event="summarize_unstructured",
                chars=len(raw_text),
            )

        log_event(
            self.logger,
            "Summary parsed",
            event="summarize_done",
            highlights=len(sections.highlights),
            priority_items=len(sections.high_priority_items),
            recommendations=len(sections.recommendations),
        )
        return AnalysisResult(
            summary_text=sections.summary_text,
            metrics=metrics,
            highlights=sections.highlights,
            high_priority_items=sections.high_priority_items,
            recommendations=sections.recommendations,
            raw_text=raw_text,
        )

    def answer_question(self, records: list[Record], question: str) -> str:
        """Answer a free-form question over ``records``."""
        if not question.strip():
            raise AnalysisError("Question must not be empty")
        prompt = build_question_prompt(records, question, self.cfg.summary)
        return self._generate(prompt, "answer")

    def _generate(self, prompt: str, operation: str) -> str:
        try:
            return self.provider.generate(
                prompt,
                operation=operation,
                max_output_tokens=self.cfg.summary.max_output_tokens,
                temperature=self.cfg.summary.temperature,
            )
        except (httpx.HTTPError, ProviderError) as exc:
            raise AnalysisError(f"Summarization failed ({self.provider.name}): {exc}") from exc


def empty_result() -> AnalysisResult:
    return AnalysisResult(summary_text=EMPTY_SUMMARY, metrics=Metrics(), empty=True)
