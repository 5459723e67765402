"""Prompt construction for artifact reviews."""

from __future__ import annotations

from typing import TYPE_CHECKING

from complens_core.models import DEFAULT_STANDARD

if TYPE_CHECKING:
    from complens_core.models import ArtifactMetadata, ReviewRequest

# Must match byte-for-byte what the splitter looks for in the model output.
SEPARATOR = "|||---REVISED_TEXT_SEPARATOR---|||"

PROMPT_TEMPLATE = f"""You are a senior Quality & Regulatory Specialist for medical-device software.
Analyze the following {{artifactType}} for compliance with {{standard}}.
Step 1 – Provide a markdown-formatted review covering:
• Missing Requirements or Traceability Gaps
• Ambiguous or Weak Language
• Risk Assessment Findings
• Recommended Actions
Step 2 – Output the separator:
{SEPARATOR}
Step 3 – Provide the fully revised artifact text."""

ARTIFACT_LABELS: dict[str, str] = {
    "requirements": "requirements specification",
    "tests": "test or verification artifact",
    "defects": "defect log or CAPA artifact",
    "traceability": "traceability matrix/cross-reference artifact",
}

METADATA_MARKER = "<<ARTIFACT_METADATA>>"
CONTENT_MARKER = "<<ARTIFACT_CONTENT>>"


def build_prompt(request: ReviewRequest) -> str:
    """Render the full review prompt for a request. Pure."""
    standards = ", ".join(request.standards) if request.standards else DEFAULT_STANDARD
    label = ARTIFACT_LABELS.get(request.artifact_kind, "artifact")
    instructions = PROMPT_TEMPLATE.replace("{standard}", standards).replace("{artifactType}", label)
    return f"{instructions}\n{format_metadata(request.metadata)}{request.content}\n"


def format_metadata(metadata: ArtifactMetadata | None) -> str:
    """Render the metadata block, or only the content marker when there is none."""
    if metadata is None:
        return f"{CONTENT_MARKER}\n"

    lines = [METADATA_MARKER]
    if metadata.file_name:
        lines.append(f"File Name: {metadata.file_name}")
    if metadata.file_size:
        lines.append(f"File Size: {metadata.file_size} bytes")
    if metadata.uploaded_at:
        lines.append(f"Uploaded: {metadata.uploaded_at}")
    if metadata.artifact_kind:
        lines.append(f"Artifact Type: {metadata.artifact_kind}")
    if metadata.standards:
        lines.append(f"Declared Standards: {', '.join(metadata.standards)}")
    lines.append(CONTENT_MARKER)
    return "\n".join(lines) + "\n"
