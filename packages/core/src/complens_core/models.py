"""Review data models.

Everything here is created fresh for a single review invocation and never
mutated afterwards, hence frozen dataclasses and tuples instead of lists.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

Severity = Literal["critical", "high", "low"]
ArtifactKind = Literal["requirements", "tests", "defects", "traceability"]
ProviderName = Literal["openai", "azure", "groq", "gemini", "anthropic", "ollama"]
Mode = Literal["cloud", "local"]

ARTIFACT_KINDS: tuple[str, ...] = ("requirements", "tests", "defects", "traceability")
PROVIDERS: tuple[str, ...] = ("openai", "azure", "groq", "gemini", "anthropic", "ollama")

# The local daemon is the only provider reachable without a credential.
LOCAL_PROVIDERS = frozenset({"ollama"})

DEFAULT_STANDARD = "ISO 13485"


@dataclass(frozen=True)
class ArtifactMetadata:
    """Upload details shown to the model ahead of the artifact content."""

    file_name: str | None = None
    file_size: int | None = None
    uploaded_at: str | None = None  # ISO-8601
    artifact_kind: str | None = None
    standards: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReviewRequest:
    content: str
    artifact_kind: ArtifactKind
    standards: tuple[str, ...] = ()
    metadata: ArtifactMetadata | None = None

    @property
    def default_standard(self) -> str:
        return self.standards[0] if self.standards else DEFAULT_STANDARD


@dataclass(frozen=True)
class ProviderConfig:
    provider: ProviderName
    model: str
    api_key: str = ""
    mode: Mode = "cloud"
    base_url: str | None = None

    @property
    def requires_api_key(self) -> bool:
        return self.provider not in LOCAL_PROVIDERS

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


@dataclass(frozen=True)
class Comment:
    """A single finding extracted from the review markdown."""

    id: str
    severity: Severity
    section: str
    title: str
    summary: str
    details: str
    standard: str
    last_updated: str  # ISO-8601, identical for every comment of one parse


@dataclass(frozen=True)
class Recommendation:
    id: str
    title: str
    description: str
    severity: Severity
    related_artifacts: tuple[str, ...] = ()
    auto_draft_available: bool = False


@dataclass(frozen=True)
class StructuredReview:
    comments: tuple[Comment, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.comments or self.recommendations)


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReviewEvent:
    """Append-only fragment of narrative review text."""

    chunk: str
    type: Literal["review"] = field(default="review", init=False)


@dataclass(frozen=True)
class RevisionEvent:
    """Revised artifact text observed so far. Replaces any earlier revision."""

    text: str
    type: Literal["revision"] = field(default="revision", init=False)


@dataclass(frozen=True)
class StructuredEvent:
    comments: tuple[Comment, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    type: Literal["structured"] = field(default="structured", init=False)

    @classmethod
    def from_review(cls, structured: StructuredReview) -> StructuredEvent:
        return cls(comments=structured.comments, recommendations=structured.recommendations)


StreamEvent = Union[ReviewEvent, RevisionEvent, StructuredEvent]


@dataclass
class ReviewOutcome:
    """Everything a caller keeps after consuming one review stream."""

    review_markdown: str = ""
    revised_text: str | None = None  # None when the separator never appeared
    comments: tuple[Comment, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    elapsed_seconds: float = 0.0


@dataclass(frozen=True)
class ConnectionCheck:
    ok: bool
    message: str
