"""
Jira Cloud ticket source.

Fetches issues through the REST v3 JQL search endpoint with basic auth and
normalizes them into Records. One request per fetch, no pagination and no
retry: any failure surfaces as SourceFetchError.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from ..config import SourceConfig, SummaryConfig
from ..errors import SourceFetchError
from ..types import Comment, Record, parse_timestamp
from ..utils.logging import log_event
from .fields import UNSET, display_text, document_text, parse_field, truncate

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description provided"

_BASE_FIELDS = [
    "summary",
    "description",
    "status",
    "assignee",
    "reporter",
    "created",
    "updated",
    "priority",
    "issuetype",
    "labels",
    "comment",
]

DEFAULT_FIELD_KEYWORDS = ("product", "area", "page", "feature", "theme")


class JiraSource:
    """Jira REST client producing normalized Records."""

    def __init__(
        self,
        cfg: SourceConfig,
        summary_cfg: SummaryConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        if not cfg.url:
            raise ValueError("Missing Jira URL")
        self.cfg = cfg
        self.summary_cfg = summary_cfg or SummaryConfig()
        self.base_url = cfg.url.rstrip("/")
        self._transport = transport

    def fetch_since(self, cutoff: datetime | None) -> list[Record]:
        """Fetch records updated at or after ``cutoff``.

        Args:
            cutoff: Last successful run, or None to use the lookback window

        Returns:
            Normalized records, most recently updated first
        """
        if cutoff is None:
            date_clause = f"updated >= -{self.cfg.lookback_days}d"
        else:
            local = cutoff.astimezone(ZoneInfo(self.cfg.timezone))
            date_clause = f'updated >= "{local.strftime("%Y-%m-%d %H:%M")}"'
        return self.normalize(self._search(self.build_jql(date_clause)))

    def fetch_all(self) -> list[Record]:
        """Fetch records without a time filter, for trend context."""
        return self.normalize(self._search(self.build_jql(None)))

    def build_jql(self, date_clause: str | None) -> str:
        project = str(self.cfg.project or "").strip()
        scope = f"board = {project}" if project.isdigit() else f"project = {project}"
        parts = [scope]
        if date_clause:
            parts.append(f"AND {date_clause}")
        parts.append("ORDER BY updated DESC")
        return " ".join(parts)

    def requested_fields(self) -> list[str]:
        extra = list(self.cfg.custom_fields.values())
        if self.cfg.category_field:
            extra.append(self.cfg.category_field)
        return _BASE_FIELDS + [f for f in dict.fromkeys(extra) if f not in _BASE_FIELDS]

    def normalize(self, raw_issues: list[dict[str, Any]]) -> list[Record]:
        """Convert raw search results into Records."""
        records = []
        for issue in raw_issues:
            try:
                records.append(self._normalize_issue(issue))
            except (KeyError, TypeError, ValueError) as exc:
                raise SourceFetchError(None, f"Malformed issue {issue.get('key', '?')}: {exc}") from exc
        return records

    def test_connection(self) -> str:
        """Return the display name of the authenticated account."""
        data = self._request("GET", "/myself")
        return str(data.get("displayName") or data.get("emailAddress") or "unknown")

    def list_fields(self, keywords: tuple[str, ...] | list[str] = DEFAULT_FIELD_KEYWORDS) -> list[dict[str, Any]]:
        """List custom fields whose names contain any of ``keywords``.

        Used to look up the field ids for ``source.custom_fields`` and
        ``source.category_field``.
        """
        data = self._request("GET", "/field")
        if not isinstance(data, list):
            raise SourceFetchError(None, "Unexpected field list payload")
        lowered = [k.lower() for k in keywords]
        matches = []
        for item in data:
            name = str(item.get("name", ""))
            if not item.get("custom", str(item.get("id", "")).startswith("customfield_")):
                continue
            if lowered and not any(k in name.lower() for k in lowered):
                continue
            matches.append(
                {
                    "id": item.get("id"),
                    "name": name,
                    "type": (item.get("schema") or {}).get("type", "unknown"),
                }
            )
        return sorted(matches, key=lambda m: m["name"].lower())

    def _search(self, jql: str) -> list[dict[str, Any]]:
        log_event(logger, "Fetching issues", event="source_fetch", jql=jql)
        payload = {
            "jql": jql,
            "maxResults": self.cfg.max_results,
            "fields": self.requested_fields(),
        }
        data = self._request("POST", "/search/jql", json=payload)
        issues = data.get("issues") or data.get("values") or []
        if not isinstance(issues, list):
            raise SourceFetchError(None, "Unexpected search payload")
        log_event(logger, "Fetched issues", event="source_fetch_done", count=len(issues))
        return issues

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}/rest/api/3{path}"
        try:
            with httpx.Client(
                timeout=self.cfg.timeout_seconds,
                trust_env=self.cfg.trust_env,
                auth=(self.cfg.email or "", self.cfg.api_token or ""),
                headers={"Accept": "application/json"},
                transport=self._transport,
            ) as client:
                resp = client.request(method, url, json=json)
        except httpx.HTTPError as exc:
            raise SourceFetchError(None, f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code >= 300:
            raise SourceFetchError(resp.status_code, _error_message(resp))
        try:
            return resp.json()
        except ValueError as exc:
            raise SourceFetchError(resp.status_code, "Response was not valid JSON") from exc

    def _normalize_issue(self, issue: dict[str, Any]) -> Record:
        fields = issue.get("fields") or {}
        created = parse_timestamp(fields["created"])
        updated_raw = fields.get("updated")
        updated = parse_timestamp(updated_raw) if updated_raw else created

        body = document_text(parse_field(fields.get("description")))
        body = truncate(body, self.summary_cfg.body_max_chars) or NO_DESCRIPTION

        issue_type = _name(fields.get("issuetype"), "name", "Unknown")
        category = issue_type if issue_type != "Unknown" else "Uncategorized"
        if self.cfg.category_field:
            value = display_text(parse_field(fields.get(self.cfg.category_field)))
            if value != UNSET:
                category = value

        return Record(
            id=str(issue["key"]),
            title=str(fields.get("summary") or "").strip(),
            body=body,
            status=_name(fields.get("status"), "name", "Unknown"),
            priority=_name(fields.get("priority"), "name", "None"),
            category=category,
            created_at=created,
            updated_at=updated,
            issue_type=issue_type,
            assignee=_name(fields.get("assignee"), "displayName", "Unassigned"),
            reporter=_name(fields.get("reporter"), "displayName", "Unknown"),
            tags=[str(label) for label in fields.get("labels") or []],
            comments=self._recent_comments(fields.get("comment")),
            attributes={
                name: display_text(parse_field(fields.get(field_id)))
                for name, field_id in self.cfg.custom_fields.items()
            },
        )

    def _recent_comments(self, raw: Any) -> list[Comment]:
        if not isinstance(raw, dict):
            return []
        comments = raw.get("comments") or []
        window = self.summary_cfg.comment_window
        recent = comments[-window:] if window > 0 else []
        return [
            Comment(
                author=_name(c.get("author"), "displayName", "Unknown"),
                text=document_text(parse_field(c.get("body"))),
            )
            for c in recent
        ]


def _name(value: Any, key: str, default: str) -> str:
    if isinstance(value, dict):
        name = value.get(key)
        if name:
            return str(name)
    return default


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(data, dict):
        messages = data.get("errorMessages") or []
        if messages:
            return "; ".join(str(m) for m in messages)
        errors = data.get("errors")
        if isinstance(errors, dict) and errors:
            return "; ".join(f"{k}: {v}" for k, v in errors.items())
        if data.get("message"):
            return str(data["message"])
    return resp.reason_phrase or "Unknown error"
