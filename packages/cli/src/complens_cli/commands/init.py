"""init command — interactive setup wizard.

Writes .complens.yml so every later `complens review` only needs the file to
review. API keys never go into the file; the wizard says which environment
variable to set instead.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from complens_core.config import API_KEY_ENV, DEFAULT_OLLAMA_HOST, PROVIDER_MODELS
from complens_core.models import PROVIDERS

console = Console()

# Providers whose endpoint (or daemon host) has to come from configuration.
_REQUIRES_BASE_URL = {"azure", "ollama"}
# Providers with a default endpoint that may be overridden.
_OPTIONAL_BASE_URL = {"groq"}


@click.command("init")
@click.option(
    "--path",
    "config_path",
    default=".complens.yml",
    show_default=True,
    help="Where to write the configuration file.",
)
def init_cmd(config_path: str):
    """Set up complens for this directory."""
    console.print("\n[bold cyan]complens init[/bold cyan] — setup wizard\n")

    provider = click.prompt("AI provider", type=click.Choice(PROVIDERS), default="gemini")
    model = click.prompt("Model", default=PROVIDER_MODELS[provider][0])

    config: dict = {"provider": provider, "model": model}

    base_url = ""
    if provider == "ollama":
        base_url = click.prompt("Ollama host URL", default=DEFAULT_OLLAMA_HOST)
    elif provider in _REQUIRES_BASE_URL:
        base_url = click.prompt("Custom endpoint URL")
    elif provider in _OPTIONAL_BASE_URL:
        base_url = click.prompt("Custom endpoint URL (blank for the default)", default="", show_default=False)
    if base_url.strip():
        config["base_url"] = base_url.strip()

    _write_config(Path(config_path), config)
    console.print(f"[green]Created {config_path}[/green]")

    env_var = API_KEY_ENV.get(provider)
    if env_var:
        console.print(f"\n[yellow]Remember to export [bold]{env_var}[/bold] before running a review.[/yellow]")

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Run a review with: [bold]complens review <file> --kind requirements[/bold]")


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    # An endpoint left over from a previous provider must not leak into the new one.
    if "base_url" not in config:
        existing.pop("base_url", None)
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
