"""Exception hierarchy for the feedback digest pipeline."""

from __future__ import annotations


class DigestError(Exception):
    """Base class for every failure the CLI reports and exits on."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(DigestError):
    """Required settings are missing or malformed."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__("Missing or invalid configuration: " + ", ".join(self.missing))


class SourceFetchError(DigestError):
    """The ticket source rejected a request or could not be reached."""

    def __init__(self, status_code: int | None, message: str):
        self.status_code = status_code
        prefix = f"Source request failed ({status_code})" if status_code else "Source request failed"
        super().__init__(f"{prefix}: {message}")


class CacheMissingError(DigestError):
    """No readable record snapshot exists on disk."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No cached data found at {path}. Run the load command first.")


class ProviderError(DigestError):
    """The text provider returned a blocked or malformed response."""


class AnalysisError(DigestError):
    """Summarization failed."""


class DeliveryError(DigestError):
    """The notification sink could not deliver the report."""

    def __init__(self, status_code: int | None, message: str):
        self.status_code = status_code
        prefix = f"Delivery failed ({status_code})" if status_code else "Delivery failed"
        super().__init__(f"{prefix}: {message}")
