"""ping command — check connectivity to the configured provider."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape

from complens_cli.commands.review import resolve_provider_config
from complens_core.config import load_config
from complens_core.models import PROVIDERS
from complens_core.reviewer import check_connection

console = Console()


@click.command("ping")
@click.option("--provider", type=click.Choice(PROVIDERS), default=None, help="AI provider. Overrides config file.")
@click.option("--model", default=None, help="Model identifier. Overrides config file.")
@click.option("--base-url", default=None, help="Endpoint override (azure, groq) or Ollama host.")
@click.pass_context
def ping_cmd(ctx, provider: str | None, model: str | None, base_url: str | None):
    """Send a minimal request to the configured provider."""
    config_path = ctx.obj.get("config_path", ".complens.yml") if ctx.obj else ".complens.yml"
    config = load_config(config_path, cli_overrides={"provider": provider, "model": model, "base_url": base_url})
    provider_config = resolve_provider_config(config)

    result = asyncio.run(check_connection(provider_config))
    if result.ok:
        console.print(f"[green]{escape(result.message)}[/green]")
        return
    console.print(f"[red]{escape(result.message)}[/red]")
    ctx.exit(1)
