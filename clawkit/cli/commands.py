"""CLI commands for clawkit."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from clawkit import __logo__, __version__
from clawkit.config.settings import get_settings
from clawkit.logging_config import setup_logging

app = typer.Typer(
    name="clawkit",
    help=f"{__logo__} clawkit - config validation and media preprocessing",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Inspect and validate the config file", no_args_is_help=True)
media_app = typer.Typer(help="Media preprocessing diagnostics", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(media_app, name="media")

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} clawkit v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="TRACE, DEBUG, INFO, WARNING or ERROR"
    ),
):
    """clawkit - config validation and media preprocessing."""
    setup_logging(log_level or get_settings().log_level or "WARNING")


# ============================================================================
# Config
# ============================================================================


@config_app.command("validate")
def config_validate(
    path: Optional[Path] = typer.Argument(None, help="Config file (default: ~/.clawkit/config.json)"),
):
    """Validate a config file and list every problem found."""
    from clawkit.config.loader import get_config_path
    from clawkit.config.validation import validate_config_object

    config_path = path or get_config_path()
    if not config_path.is_file():
        console.print(f"[red]Error: config not found at {config_path}[/red]")
        raise typer.Exit(1)

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error: cannot read {config_path}: {e}[/red]")
        raise typer.Exit(1)

    result = validate_config_object(data)
    if result.ok:
        console.print(f"[green]✓[/green] {config_path} is valid")
        return

    table = Table(title=f"Config issues in {config_path}")
    table.add_column("Path", style="cyan")
    table.add_column("Problem", style="red")
    for issue in result.issues:
        table.add_row(issue.path or "<root>", issue.message)
    console.print(table)
    raise typer.Exit(1)


@config_app.command("show")
def config_show(
    path: Optional[Path] = typer.Argument(None, help="Config file (default: ~/.clawkit/config.json)"),
):
    """Print the effective config, defaults included."""
    from clawkit.config.loader import load_config
    from clawkit.errors import ConfigError

    try:
        config = load_config(path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        for issue in e.issues:
            console.print(f"  [dim]{issue}[/dim]")
        raise typer.Exit(1)

    console.print_json(data=config.model_dump(by_alias=True, exclude_none=True))


# ============================================================================
# Media
# ============================================================================


@media_app.command("strip")
def media_strip(
    capability: str = typer.Option("image", "--capability", "-c", help="image, audio or video"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Message text"),
    paths: Optional[list[str]] = typer.Option(None, "--path", "-p", help="Local attachment path (repeatable)"),
    urls: Optional[list[str]] = typer.Option(None, "--url", "-u", help="Attachment URL (repeatable)"),
    media_type: Optional[str] = typer.Option(None, "--type", "-t", help="Declared MIME type"),
):
    """Show how a message looks after its media is stripped from the prompt."""
    from clawkit.context import MsgContext
    from clawkit.media.apply import apply_media_understanding
    from clawkit.media.runner import CAPABILITY_LABELS

    if capability not in CAPABILITY_LABELS:
        console.print(f"[red]Error: unknown capability '{capability}'[/red]")
        raise typer.Exit(1)

    ctx: MsgContext = {}
    if body is not None:
        ctx["Body"] = body
    if paths:
        ctx["MediaPath"] = paths[0]
        ctx["MediaPaths"] = list(paths)
    if urls:
        ctx["MediaUrls"] = list(urls)
    if media_type:
        ctx["MediaType"] = media_type

    cfg = {"tools": {"media": {capability: {"enabled": False, "stripFromPrompt": True}}}}
    results = asyncio.run(
        apply_media_understanding(ctx, cfg, provider_registry={}, capabilities=(capability,))
    )

    decision = results[0].decision
    console.print(f"[bold]{capability}[/bold]: {decision.outcome}")
    console.print_json(data=dict(ctx))


if __name__ == "__main__":
    app()
