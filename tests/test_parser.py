"""Tests for the summarization response parser."""

from __future__ import annotations

import pytest

from feedback_digest.analysis.parser import (
    NO_CONTENT_MESSAGE,
    ParserState,
    classify_header,
    parse_list_item,
    parse_response,
)

WELL_FORMED = """## Summary
- Users keep asking for **dark mode** (BPD-1, BPD-4)
- Export requests grew this week
- Mobile performance complaints continue

## High Priority Items
1. BPD-7: checkout fails on Safari. Fix before the release.
2. BPD-9: data loss on import
3. BPD-12: SSO login loop

## Recommendations
* Ship a dark theme beta
* Add CSV export
* Profile the mobile dashboard
"""


def test_parse_well_formed_response():
    parsed = parse_response(WELL_FORMED)

    assert parsed.headers_found is True
    assert parsed.highlights == [
        "Users keep asking for **dark mode** (BPD-1, BPD-4)",
        "Export requests grew this week",
        "Mobile performance complaints continue",
    ]
    assert parsed.high_priority_items[0] == "BPD-7: checkout fails on Safari. Fix before the release."
    assert len(parsed.high_priority_items) == 3
    assert parsed.recommendations == [
        "Ship a dark theme beta",
        "Add CSV export",
        "Profile the mobile dashboard",
    ]
    assert parsed.summary_text.startswith("- Users keep asking")


def test_no_headers_falls_back_to_raw_prefix():
    raw = "The model ignored the format and rambled on about things. " * 20

    parsed = parse_response(raw)

    assert parsed.headers_found is False
    assert parsed.summary_text == raw[:500]
    assert parsed.highlights == []
    assert parsed.high_priority_items == []
    assert parsed.recommendations == []


@pytest.mark.parametrize("raw", ["", None, "   \n  "])
def test_empty_response_never_raises(raw):
    parsed = parse_response(raw)
    assert parsed.summary_text == NO_CONTENT_MESSAGE


def test_bold_and_plain_headers_with_extra_or_missing_bullets():
    raw = """**Overview:** a quiet week overall.
Most feedback concerned onboarding.

**Items needing immediate attention**
- BPD-3 broken invite emails
- BPD-5 trial extension requests
- BPD-6 pricing page typo
- BPD-8 slow search

Next steps:
1) Fix invites
"""
    parsed = parse_response(raw)

    assert parsed.summary_text == "a quiet week overall.\nMost feedback concerned onboarding."
    assert len(parsed.high_priority_items) == 4
    assert parsed.recommendations == ["Fix invites"]


def test_continuation_lines_and_nested_bullets_join_previous_item():
    raw = """## High Priority Items
- BPD-1 login fails
  for SSO users only
- BPD-2 export broken
    - affects CSV and XLSX
## Recommendations
- Do the thing
"""
    parsed = parse_response(raw)

    assert parsed.high_priority_items == [
        "BPD-1 login fails for SSO users only",
        "BPD-2 export broken affects CSV and XLSX",
    ]
    assert parsed.recommendations == ["Do the thing"]


def test_unknown_heading_closes_section():
    raw = """## Recommendations
- Keep this
## Appendix
- Not a recommendation
"""
    parsed = parse_response(raw)
    assert parsed.recommendations == ["Keep this"]


def test_bold_bullets_with_header_words_stay_items():
    raw = """## High Priority Items
1. **BPD-12 login failures (high priority)**
2. **BPD-13 export crash**

## Recommendations
- **Urgent fix for SSO**
- Add dark mode
"""
    parsed = parse_response(raw)

    assert parsed.high_priority_items == [
        "**BPD-12 login failures (high priority)**",
        "**BPD-13 export crash**",
    ]
    assert parsed.recommendations == ["**Urgent fix for SSO**", "Add dark mode"]


def test_numbered_section_titles_still_switch_sections():
    raw = """1. **Summary**
- Exports keep failing
2. **High Priority Items**
- BPD-2 export crash
3. **Recommendations**
- Fix exports
"""
    parsed = parse_response(raw)

    assert parsed.highlights == ["Exports keep failing"]
    assert parsed.high_priority_items == ["BPD-2 export crash"]
    assert parsed.recommendations == ["Fix exports"]


def test_classify_header_transitions():
    assert classify_header("## Summary") is ParserState.IN_SUMMARY
    assert classify_header("### Key Themes") is ParserState.IN_SUMMARY
    assert classify_header("**HIGH PRIORITY ITEMS**") is ParserState.IN_PRIORITY
    assert classify_header("Urgent:") is ParserState.IN_PRIORITY
    assert classify_header("## Action Items") is ParserState.IN_RECOMMENDATIONS
    assert classify_header("- summary of the bug") is None
    assert classify_header("This is a long prose sentence about the summary of things.") is None
    assert classify_header("- **Urgent fix for SSO**", in_section=True) is None
    assert classify_header("2. **Recommendations**", in_section=True) is ParserState.IN_RECOMMENDATIONS


def test_parse_list_item_markers():
    assert parse_list_item("- dash") == "dash"
    assert parse_list_item("* star") == "star"
    assert parse_list_item("• bullet") == "bullet"
    assert parse_list_item("12. numbered") == "numbered"
    assert parse_list_item("3) paren") == "paren"
    assert parse_list_item("plain prose") is None
