"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults, followed by environment variable fallbacks.
Configuration sections:
- SourceConfig: Jira connection and query settings
- ProviderConfig: Generative text provider settings
- SummaryConfig: Prompt bounds and section-count contract
- CacheConfig: Record cache location and freshness window
- StateConfig: Run-state marker location
- NotifyConfig: Notification sink settings
- PipelineConfig: Orchestrator policies
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
import logging
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class SourceConfig:
    """Configuration for the Jira ticket source.

    Attributes:
        url: Jira site URL, e.g. "https://example.atlassian.net"
        email: Account email used for basic auth
        api_token: API token used for basic auth
        project: Project key ("BPD") or numeric board id ("42")
        max_results: Page size of the single search request
        timeout_seconds: HTTP request timeout
        lookback_days: Window used when no run-state exists
        timezone: Timezone used to format JQL date literals
        category_field: Custom field id whose value becomes the record category
        custom_fields: Display name -> custom field id for extra attributes
        trust_env: Whether to respect system proxy settings
    """

    url: str | None = None
    email: str | None = None
    api_token: str | None = None
    project: str | None = None
    max_results: int = 100
    timeout_seconds: float = 30.0
    lookback_days: int = 4
    timezone: str = "UTC"
    category_field: str | None = None
    custom_fields: dict[str, str] = field(default_factory=dict)
    trust_env: bool = True


@dataclass
class ProviderConfig:
    """Configuration for pluggable generative text providers.

    Attributes:
        name: Provider name ("gemini" or "anthropic")
        model: Model identifier; empty uses the provider default
        api_key_env: Environment variable holding the API key
        base_url: Base URL for the provider API; empty uses the provider default
        api_key: Optional inline API key (overrides env var)
        timeout_seconds: Request timeout, None waits indefinitely
        trust_env: Whether to respect system proxy settings for API requests
    """

    name: str = "anthropic"
    model: str | None = None
    api_key_env: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    timeout_seconds: float | None = 120.0
    trust_env: bool = True


@dataclass
class SummaryConfig:
    """Configuration for prompt construction and the section-count contract.

    Attributes:
        body_max_chars: Maximum characters kept from a record body
        comment_window: Number of most recent comments kept per record
        comment_max_chars: Maximum characters per comment in the prompt
        highlight_count: Bullets requested in the summary section
        priority_count: Bullets requested in the priority section
        recommendation_count: Bullets requested in the recommendations section
        top_tags: Number of tags reported in metrics
        fallback_chars: Raw response prefix used when parsing finds no summary
        history_max_records: Maximum historical records sent for trend context
        max_output_tokens: Output token cap for the summarization call
        temperature: Sampling temperature for the summarization call
    """

    body_max_chars: int = 1000
    comment_window: int = 3
    comment_max_chars: int = 200
    highlight_count: int = 3
    priority_count: int = 3
    recommendation_count: int = 3
    top_tags: int = 5
    fallback_chars: int = 500
    history_max_records: int = 200
    max_output_tokens: int = 4096
    temperature: float = 0.3


@dataclass
class CacheConfig:
    """Configuration for the record snapshot cache.

    Attributes:
        path: Snapshot file location
        freshness_minutes: Maximum snapshot age before a refetch
    """

    path: str = ".record-cache.json"
    freshness_minutes: int = 60


@dataclass
class StateConfig:
    """Configuration for the last-run marker.

    Attributes:
        path: Marker file location
    """

    path: str = ".last-run"


@dataclass
class NotifyConfig:
    """Configuration for report delivery.

    Attributes:
        backend: "file" writes the report to disk, "sendgrid" emails it
        recipient: Destination address
        sender: From address for email delivery
        api_key: SendGrid API key
        output_dir: Directory used by the file backend
        timeout_seconds: HTTP request timeout for email delivery
    """

    backend: str = "file"
    recipient: str | None = None
    sender: str | None = None
    api_key: str | None = None
    output_dir: str = "out"
    timeout_seconds: float = 30.0


@dataclass
class PipelineConfig:
    """Orchestrator policies.

    Attributes:
        include_history: Load the full record set for trend context
        force_refresh_history: Ignore a fresh cache snapshot for history
        persist_on_empty: Advance the run-state when nothing new was found
    """

    include_history: bool = True
    force_refresh_history: bool = False
    persist_on_empty: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the main log file
        dir: Directory for the log file
        llm_log_detail: LLM log detail level ("response_only", "prompt_response")
        llm_log_redaction: Redaction mode for LLM logs ("none", "redact_content", "redact_urls_authors")
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "run.jsonl"
    dir: str = "logs"
    llm_log_detail: str = "response_only"
    llm_log_redaction: str = "redact_urls_authors"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        environment: Langfuse environment label (optional)
        redaction: Redaction mode for prompt/response payloads
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    environment: str | None = None
    redaction: str = "redact_urls_authors"
    max_text_chars: int = 20000


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    source: SourceConfig = field(default_factory=SourceConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    state: StateConfig = field(default_factory=StateConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)


_ENV_FALLBACKS: dict[str, dict[str, tuple[str, ...]]] = {
    "source": {
        "url": ("JIRA_URL",),
        "email": ("JIRA_EMAIL",),
        "api_token": ("JIRA_API_TOKEN",),
        "project": ("JIRA_PROJECT", "JIRA_BOARD_ID"),
    },
    "notify": {
        "recipient": ("EMAIL_TO",),
        "sender": ("EMAIL_FROM",),
        "api_key": ("SENDGRID_API_KEY",),
    },
    "langfuse": {
        "public_key": ("LANGFUSE_PUBLIC_KEY",),
        "secret_key": ("LANGFUSE_SECRET_KEY",),
        "host": ("LANGFUSE_HOST",),
    },
}

_DEFAULT_KEY_ENV = {
    "gemini": "GOOGLE_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def load_config(path: str | None, env: dict[str, str] | None = None) -> AppConfig:
    """Load configuration from a YAML file with defaults and env fallbacks."""
    raw: dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigError([f"{path}: top-level YAML value must be a mapping"])

    cfg = _merge_config(AppConfig(), raw)
    return apply_env(cfg, os.environ if env is None else env)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML sections into base AppConfig, ignoring unknown keys."""
    cfg = base
    for section in fields(AppConfig):
        values = raw.get(section.name)
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError([f"{section.name}: expected a mapping"])
        current = getattr(cfg, section.name)
        known = {f.name for f in fields(current)}
        for key in sorted(set(values) - known):
            logger.warning("Ignoring unknown config key %s.%s", section.name, key)
        updated = replace(current, **{k: v for k, v in values.items() if k in known})
        cfg = replace(cfg, **{section.name: updated})
    return cfg


def apply_env(cfg: AppConfig, env: Any) -> AppConfig:
    """Fill unset settings from environment variables."""
    for section_name, mapping in _ENV_FALLBACKS.items():
        section = getattr(cfg, section_name)
        updates = {}
        for attr, names in mapping.items():
            if getattr(section, attr):
                continue
            for name in names:
                if env.get(name):
                    updates[attr] = env[name]
                    break
        if updates:
            cfg = replace(cfg, **{section_name: replace(section, **updates)})

    if env.get("ANTHROPIC_MODEL") and not cfg.provider.model and cfg.provider.name == "anthropic":
        cfg = replace(cfg, provider=replace(cfg.provider, model=env["ANTHROPIC_MODEL"]))
    return cfg


def get_api_key(cfg: ProviderConfig, env: Any | None = None) -> str | None:
    """Get API key from inline config or environment variable."""
    env = os.environ if env is None else env
    if cfg.api_key:
        return cfg.api_key
    if cfg.api_key_env:
        return env.get(cfg.api_key_env)
    env_name = _DEFAULT_KEY_ENV.get(cfg.name.lower().strip(), "ANTHROPIC_API_KEY")
    return env.get(env_name)


def validate_config(cfg: AppConfig, env: Any | None = None, require_sink: bool = True) -> None:
    """Raise ConfigError listing every missing required setting."""
    missing = _source_problems(cfg.source)
    if not get_api_key(cfg.provider, env):
        missing.append("provider.api_key")
    if require_sink and cfg.notify.backend == "sendgrid":
        for attr in ("api_key", "sender", "recipient"):
            if not getattr(cfg.notify, attr):
                missing.append(f"notify.{attr}")
    if missing:
        raise ConfigError(missing)


def validate_source_config(cfg: AppConfig) -> None:
    """Raise ConfigError when the Jira connection settings are incomplete."""
    missing = _source_problems(cfg.source)
    if missing:
        raise ConfigError(missing)


def _source_problems(source: SourceConfig) -> list[str]:
    problems = [f"source.{attr}" for attr in ("url", "email", "api_token", "project") if not getattr(source, attr)]
    try:
        ZoneInfo(source.timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        problems.append(f"source.timezone (unknown: {source.timezone})")
    return problems
