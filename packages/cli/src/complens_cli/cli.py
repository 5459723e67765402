"""CLI entry point for complens.

Commands:
  review   — review a compliance artifact and stream the result
  ping     — check that the configured provider is reachable
  init     — interactive setup wizard writing .complens.yml
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from complens_cli.commands.init import init_cmd
from complens_cli.commands.ping import ping_cmd
from complens_cli.commands.review import review_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("complens"),
    prog_name="complens",
)
@click.option(
    "--config",
    "config_path",
    default=".complens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="COMPLENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log diagnostic detail to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI-assisted review of medical-device compliance artifacts."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


main.add_command(review_cmd)
main.add_command(ping_cmd)
main.add_command(init_cmd)
