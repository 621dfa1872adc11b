"""Google Gemini provider using the generateContent REST endpoint."""

from __future__ import annotations

from typing import Any

import httpx

from ...errors import ProviderError
from ..tracing import record_span_error, set_span_output, start_span
from .base import TextProvider


class GeminiProvider(TextProvider):
    """Gemini-backed text provider."""

    name = "gemini"
    default_model = "gemini-2.5-flash"
    default_base_url = "https://generativelanguage.googleapis.com"

    def generate(
        self,
        prompt: str,
        *,
        operation: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_output_tokens},
        }
        with start_span(
            f"gemini.{operation}",
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
        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        params = {"key": self.api_key}
        with httpx.Client(
            timeout=self.cfg.timeout_seconds,
            trust_env=self.cfg.trust_env,
            transport=self._transport,
        ) as client:
            resp = client.post(url, params=params, json=payload)
            resp.raise_for_status()
            return self._decode(resp)


def _extract_text(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback")
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        raise ProviderError(f"Gemini returned no candidates{f' (blocked: {reason})' if reason else ''}")
    if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
        raise ProviderError("Gemini returned malformed candidates")
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        parts = []
    text = "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
    if not text.strip():
        reason = candidates[0].get("finishReason", "unknown")
        raise ProviderError(f"Gemini returned an empty response (finishReason={reason})")
    return text
