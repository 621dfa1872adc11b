"""Abstract interface for generative text providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig
from ...errors import ProviderError
from ...utils.logging import log_event, redact_text, truncate_text


class TextProvider(ABC):
    """Provider interface: one prompt in, one text completion out.

    Implementations raise ``httpx.HTTPError`` for transport and status
    failures and ``ProviderError`` for unusable responses.
    """

    name: str = "base"
    default_model: str = ""
    default_base_url: str = ""

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        log_cfg: LoggingConfig | None = None,
        llm_logger: logging.Logger | None = None,
        transport=None,
    ):
        if not api_key:
            raise ValueError(f"Missing API key for provider {self.name}")
        self.cfg = cfg
        self.api_key = api_key
        self.model = cfg.model or self.default_model
        self.base_url = (cfg.base_url or self.default_base_url).rstrip("/")
        self.log_cfg = log_cfg or LoggingConfig()
        self.llm_logger = llm_logger
        self._transport = transport

    @abstractmethod
    def generate(
        self,
        prompt: str,
        *,
        operation: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        """Return the completion text for ``prompt``."""
        raise NotImplementedError

    def _decode(self, resp: httpx.Response) -> dict[str, Any]:
        """Parse a successful response body, rejecting anything but a JSON object."""
        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} response was not valid JSON (status {resp.status_code})") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name} response was not a JSON object")
        return data

    def _log_llm_response(self, operation: str, status: str, prompt: str, content: str) -> None:
        if self.llm_logger is None:
            return
        redaction = self.log_cfg.llm_log_redaction
        payload = {
            "event": f"llm_{operation}",
            "status": status,
            "provider": self.name,
            "model": self.model,
            "raw_response": truncate_text(redact_text(content, redaction)),
        }
        if self.log_cfg.llm_log_detail == "prompt_response":
            payload["raw_prompt"] = truncate_text(redact_text(prompt, redaction))
        log_event(self.llm_logger, "LLM response", **payload)
