"""Anthropic provider using the Messages REST endpoint."""

from __future__ import annotations

from typing import Any

import httpx

from ...errors import ProviderError
from ..tracing import record_span_error, set_span_output, start_span
from .base import TextProvider

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(TextProvider):
    """Claude-backed text provider."""

    name = "anthropic"
    default_model = "claude-sonnet-4-5-20250929"
    default_base_url = "https://api.anthropic.com"

    def generate(
        self,
        prompt: str,
        *,
        operation: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        payload = {
            "model": self.model,
            "max_tokens": max_output_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        with start_span(
            f"anthropic.{operation}",
            kind="llm",
            input_value=prompt,
            attributes={"llm.model": self.model, "llm.provider": self.name},
        ) as span:
            try:
                data = self._post(payload)
                content = _extract_text(data)
            except (httpx.HTTPError, ProviderError) as exc:
                record_span_error(span, exc)
                self._log_llm_response(operation, "provider_error", prompt, str(exc))
                raise
            set_span_output(span, content)
            self._log_llm_response(operation, "ok", prompt, content)
            return content.strip()

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        with httpx.Client(
            timeout=self.cfg.timeout_seconds,
            trust_env=self.cfg.trust_env,
            transport=self._transport,
        ) as client:
            resp = client.post(f"{self.base_url}/v1/messages", headers=headers, json=payload)
            resp.raise_for_status()
            return self._decode(resp)


def _extract_text(data: dict[str, Any]) -> str:
    blocks = data.get("content")
    if not isinstance(blocks, list):
        blocks = []
    text = "".join(
        str(block.get("text") or "")
        for block in blocks
        if isinstance(block, dict) and block.get("type") == "text"
    )
    if not text.strip():
        raise ProviderError(
            f"Anthropic returned no text content (stop_reason={data.get('stop_reason', 'unknown')})"
        )
    return text
