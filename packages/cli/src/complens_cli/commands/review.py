"""review command — review a compliance artifact with the configured provider."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from complens_core.config import API_KEY_ENV, build_provider_config, load_config
from complens_core.errors import ConfigurationError, ReviewError
from complens_core.models import ARTIFACT_KINDS, PROVIDERS, ArtifactMetadata, ReviewEvent, ReviewRequest
from complens_core.reviewer import collect_review, review_artifact

console = Console()

_SEVERITY_COLOR = {"critical": "red", "high": "yellow", "low": "blue"}


def resolve_provider_config(config: dict):
    """Build the ProviderConfig, turning setup problems into usage errors."""
    try:
        provider_config = build_provider_config(config)
    except ConfigurationError as e:
        raise click.UsageError(str(e))
    if provider_config.requires_api_key and not provider_config.has_api_key:
        raise click.UsageError(f"{API_KEY_ENV[provider_config.provider]} environment variable is not set.")
    return provider_config


def build_request(path: Path, kind: str, standards: tuple[str, ...]) -> ReviewRequest:
    content = path.read_text(encoding="utf-8", errors="replace")
    metadata = ArtifactMetadata(
        file_name=path.name,
        file_size=path.stat().st_size,
        uploaded_at=datetime.now(timezone.utc).isoformat(),
        artifact_kind=kind,
        standards=standards,
    )
    return ReviewRequest(content=content, artifact_kind=kind, standards=standards, metadata=metadata)


async def _echo_review(events):
    """Print review text as it streams in and pass every event through."""
    async for event in events:
        if isinstance(event, ReviewEvent):
            console.print(event.chunk, end="", markup=False, highlight=False, soft_wrap=True)
        yield event


def print_structured(outcome) -> None:
    if outcome.comments:
        table = Table(title="Findings", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Severity")
        table.add_column("Section", max_width=30)
        table.add_column("Finding")
        table.add_column("Standard")
        for c in outcome.comments:
            color = _SEVERITY_COLOR.get(c.severity, "white")
            table.add_row(
                c.id,
                f"[{color}]{c.severity.upper()}[/{color}]",
                escape(c.section),
                escape(c.title),
                escape(c.standard),
            )
        console.print(table)

    if outcome.recommendations:
        table = Table(title="Recommendations", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Severity")
        table.add_column("Action")
        for r in outcome.recommendations:
            color = _SEVERITY_COLOR.get(r.severity, "white")
            table.add_row(r.id, f"[{color}]{r.severity.upper()}[/{color}]", escape(r.title))
        console.print(table)

    if not outcome.comments and not outcome.recommendations:
        console.print("[yellow]No structured findings could be extracted from the review.[/yellow]")


@click.command("review")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--kind",
    type=click.Choice(ARTIFACT_KINDS),
    required=True,
    help="Kind of artifact being reviewed.",
)
@click.option(
    "--standard",
    "standards",
    multiple=True,
    help="Compliance standard to review against. Repeatable. Defaults to ISO 13485.",
)
@click.option("--provider", type=click.Choice(PROVIDERS), default=None, help="AI provider. Overrides config file.")
@click.option("--model", default=None, help="Model identifier. Overrides config file.")
@click.option("--base-url", default=None, help="Endpoint override (azure, groq) or Ollama host.")
@click.option(
    "--output",
    "-o",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Write the revised artifact to this file.",
)
@click.option(
    "--revision-fallback",
    is_flag=True,
    help="Also mine the revised artifact for recommendations when the review has none.",
)
@click.pass_context
def review_cmd(
    ctx,
    file: Path,
    kind: str,
    standards: tuple[str, ...],
    provider: str | None,
    model: str | None,
    base_url: str | None,
    output: str | None,
    revision_fallback: bool,
):
    """Review a compliance artifact and propose a revised version.

    Streams the narrative review to the terminal, then prints the extracted
    findings and recommendations.

    \b
    API keys are read from the environment:
      OPENAI_API_KEY, AZURE_OPENAI_API_KEY, GROQ_API_KEY,
      GEMINI_API_KEY, ANTHROPIC_API_KEY
    """
    config_path = ctx.obj.get("config_path", ".complens.yml") if ctx.obj else ".complens.yml"
    config = load_config(
        config_path,
        cli_overrides={
            "provider": provider,
            "model": model,
            "base_url": base_url,
            "output": output,
            "parse_revision_fallback": True if revision_fallback else None,
        },
    )
    provider_config = resolve_provider_config(config)
    request = build_request(file, kind, standards)

    console.print(
        f"[dim]Reviewing {file.name} ({kind}) with {provider_config.provider}/{provider_config.model}...[/dim]\n"
    )

    async def _run():
        events = review_artifact(
            request,
            provider_config,
            parse_revision_fallback=bool(config.get("parse_revision_fallback")),
        )
        return await collect_review(_echo_review(events))

    try:
        outcome = asyncio.run(_run())
    except ReviewError as e:
        raise click.ClickException(str(e))

    console.print()
    print_structured(outcome)

    if outcome.revised_text is None:
        console.print("[yellow]The response did not contain a revised artifact.[/yellow]")
    elif config.get("output"):
        Path(config["output"]).write_text(outcome.revised_text, encoding="utf-8")
        console.print(f"[green]Revised artifact written to {config['output']}[/green]")
    else:
        console.print(
            f"[dim]Revised artifact: {len(outcome.revised_text)} character(s). Use --output to save it.[/dim]"
        )

    console.print(f"[dim]Completed in {outcome.elapsed_seconds:.1f}s.[/dim]")
