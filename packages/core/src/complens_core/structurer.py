"""Heuristic conversion of review markdown into comments and recommendations.

This is a line-oriented best-effort parser, not an NLP system. Headings set
the current section, the section picks a default severity, and list markers
decide whether a line is a finding (comment) or a remediation item
(recommendation).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING

from complens_core.models import DEFAULT_STANDARD, Comment, Recommendation, StructuredReview

if TYPE_CHECKING:
    from complens_core.models import ReviewRequest, Severity

SECTION_SEVERITY = MappingProxyType(
    {
        "Missing Requirements or Traceability Gaps": "critical",
        "Ambiguous or Weak Language": "high",
        "Risk Assessment Findings": "high",
        "Recommended Actions": "low",
    }
)

RECOMMENDATION_VERBS: tuple[str, ...] = ("add", "implement", "update")

COMMENT_DEFAULT_SEVERITY = "low"
RECOMMENDATION_DEFAULT_SEVERITY = "high"
DEFAULT_SECTION = "General"

COMMENT_ID_PREFIX = "auto-comment-"
RECOMMENDATION_ID_PREFIX = "auto-rec-"

TITLE_LIMIT = 72
TITLE_CUT = 69
ELLIPSIS = "…"

_RECOMMENDATION_SECTION = re.compile(r"recommend(ed|ations?)|action", re.IGNORECASE)
_HEADING_PREFIX = re.compile(r"^#+\s*")
_BULLET_PREFIX = re.compile(r"^[-•]\s*")
_NUMBERED = re.compile(r"^(\d+)[.)]\s+(.*)$")
_BULLET_MARKERS = ("- ", "• ")


def truncate_title(line: str) -> str:
    return f"{line[:TITLE_CUT]}{ELLIPSIS}" if len(line) > TITLE_LIMIT else line


def section_severity(section: str, default: Severity) -> Severity:
    return SECTION_SEVERITY.get(section, default)


def is_recommendation_bullet(section: str, text: str) -> bool:
    """Whether a bullet under ``section`` reads as a remediation item."""
    if _RECOMMENDATION_SECTION.search(section):
        return True
    lowered = text.lower()
    return any(lowered.startswith(f"{verb} ") for verb in RECOMMENDATION_VERBS)


class _Collector:
    """Accumulates records for one parse run with independent id counters."""

    def __init__(self, standard: str, timestamp: str):
        self.standard = standard
        self.timestamp = timestamp
        self.comments: list[Comment] = []
        self.recommendations: list[Recommendation] = []

    def comment(self, text: str, severity: Severity, section: str) -> None:
        if not text.strip():
            return
        self.comments.append(
            Comment(
                id=f"{COMMENT_ID_PREFIX}{len(self.comments) + 1}",
                severity=severity,
                section=section or DEFAULT_SECTION,
                title=truncate_title(text),
                summary=text,
                details=text,
                standard=self.standard,
                last_updated=self.timestamp,
            )
        )

    def recommendation(self, text: str, severity: Severity) -> None:
        if not text.strip():
            return
        self.recommendations.append(
            Recommendation(
                id=f"{RECOMMENDATION_ID_PREFIX}{len(self.recommendations) + 1}",
                title=truncate_title(text),
                description=text,
                severity=severity,
            )
        )

    def result(self) -> StructuredReview:
        return StructuredReview(comments=tuple(self.comments), recommendations=tuple(self.recommendations))


def parse_review_markdown(
    markdown: str,
    request: ReviewRequest | None = None,
    *,
    now: datetime | None = None,
) -> StructuredReview:
    """Extract comments and recommendations from review markdown.

    Deterministic for identical input and clock reading; ``now`` pins the
    clock. Every comment of one run carries the same timestamp.
    """
    if not markdown.strip():
        return StructuredReview()

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    standard = request.default_standard if request is not None else DEFAULT_STANDARD
    collector = _Collector(standard, timestamp)
    section = ""

    for raw_line in markdown.split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith("#"):
            section = _HEADING_PREFIX.sub("", line)
            continue

        if line.startswith(_BULLET_MARKERS):
            text = _BULLET_PREFIX.sub("", line).strip()
            if is_recommendation_bullet(section, text):
                collector.recommendation(text, section_severity(section, RECOMMENDATION_DEFAULT_SEVERITY))
            else:
                collector.comment(text, section_severity(section, COMMENT_DEFAULT_SEVERITY), section)
            continue

        numbered = _NUMBERED.match(line)
        if numbered:
            collector.recommendation(
                numbered.group(2).strip(), section_severity(section, RECOMMENDATION_DEFAULT_SEVERITY)
            )
            continue

        collector.comment(line, section_severity(section, COMMENT_DEFAULT_SEVERITY), section)

    return collector.result()
