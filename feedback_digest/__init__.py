"""Incremental Jira feedback digest with LLM summarization."""

__version__ = "0.1.0"
