"""
Typed representation of nested Jira field values.

Raw JSON values are parsed once into a small tagged union and flattened by
one function per variant:

- ``document_text`` turns a value into plain prose (descriptions, comments)
- ``display_text`` turns a value into a one-line display string (custom fields)
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import singledispatch
import re
from typing import Any, Union

_WHITESPACE_RE = re.compile(r"\s+")

UNSET = "unset"


@dataclass(frozen=True)
class Null:
    pass


@dataclass(frozen=True)
class Scalar:
    value: str | int | float | bool


@dataclass(frozen=True)
class Text:
    """A node of rich text: literal text plus child nodes."""
    text: str
    children: tuple[FieldValue, ...] = ()


@dataclass(frozen=True)
class ListValue:
    items: tuple[FieldValue, ...]


@dataclass(frozen=True)
class ObjectValue:
    """An object with a display label (``value``, ``name`` or ``displayName``)."""
    label: str | None
    children: tuple[FieldValue, ...] = ()


FieldValue = Union[Null, Scalar, Text, ListValue, ObjectValue]

_LABEL_KEYS = ("value", "name", "displayName")


def parse_field(raw: Any) -> FieldValue:
    """Parse an arbitrary JSON value into a FieldValue."""
    if raw is None:
        return Null()
    if isinstance(raw, (str, int, float, bool)):
        return Scalar(raw)
    if isinstance(raw, list):
        return ListValue(tuple(parse_field(item) for item in raw))
    if isinstance(raw, dict):
        content = raw.get("content")
        children = tuple(parse_field(item) for item in content) if isinstance(content, list) else ()
        if "text" in raw or "content" in raw or raw.get("type") == "doc":
            text = raw.get("text")
            return Text(text if isinstance(text, str) else "", children)
        for key in _LABEL_KEYS:
            label = raw.get(key)
            if isinstance(label, (str, int, float)) and not isinstance(label, bool):
                return ObjectValue(str(label), children)
        return ObjectValue(None, children)
    return Scalar(str(raw))


@singledispatch
def _document_parts(value: Any) -> list[str]:
    raise TypeError(f"Unsupported field value: {type(value).__name__}")


@_document_parts.register
def _(value: Null) -> list[str]:
    return []


@_document_parts.register
def _(value: Scalar) -> list[str]:
    return [str(value.value)]


@_document_parts.register
def _(value: Text) -> list[str]:
    parts = [value.text] if value.text else []
    for child in value.children:
        parts.extend(_document_parts(child))
    return parts


@_document_parts.register
def _(value: ListValue) -> list[str]:
    parts: list[str] = []
    for item in value.items:
        parts.extend(_document_parts(item))
    return parts


@_document_parts.register
def _(value: ObjectValue) -> list[str]:
    parts = [value.label] if value.label else []
    for child in value.children:
        parts.extend(_document_parts(child))
    return parts


def document_text(value: FieldValue) -> str:
    """Flatten a value to plain text with whitespace collapsed."""
    joined = " ".join(part for part in _document_parts(value) if part)
    return _WHITESPACE_RE.sub(" ", joined).strip()


@singledispatch
def display_text(value: Any) -> str:
    """Flatten a value to a one-line display string; empty values become "unset"."""
    raise TypeError(f"Unsupported field value: {type(value).__name__}")


@display_text.register
def _(value: Null) -> str:
    return UNSET


@display_text.register
def _(value: Scalar) -> str:
    text = str(value.value).strip()
    return text or UNSET


@display_text.register
def _(value: Text) -> str:
    return document_text(value) or UNSET


@display_text.register
def _(value: ListValue) -> str:
    labels = [display_text(item) for item in value.items]
    labels = [label for label in labels if label != UNSET]
    return ", ".join(labels) if labels else UNSET


@display_text.register
def _(value: ObjectValue) -> str:
    if value.label and value.label.strip():
        return value.label.strip()
    return UNSET


def truncate(text: str, max_chars: int) -> str:
    """Cut ``text`` to at most ``max_chars`` characters."""
    if max_chars <= 0:
        return ""
    return text[:max_chars]
