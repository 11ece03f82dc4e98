"""Command-line interface for stylesnap."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stylesnap import __version__
from stylesnap.config import Config, find_config_file
from stylesnap.container import DependencyContainer
from stylesnap.errors import ExtractionError
from stylesnap.observability import configure_logging, start_metrics_server

console = Console(stderr=True)


def load_config(config_path: Optional[Path]) -> Config:
    path = config_path or find_config_file()
    if path is not None:
        return Config.from_yaml(path)
    return Config()


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], log_level: Optional[str]) -> None:
    """stylesnap - extract style snapshots from live web pages."""
    ctx.ensure_object(dict)
    settings = load_config(config)
    if log_level:
        settings.monitoring.log_level = log_level
    configure_logging(settings.monitoring)
    ctx.obj["config_path"] = config
    ctx.obj["config"] = settings


@cli.command()
@click.argument("url")
@click.option("--width", type=click.IntRange(min=1), help="Viewport width in pixels")
@click.option("--height", type=click.IntRange(min=1), help="Viewport height in pixels")
@click.option("--username", help="Username for a login form")
@click.option("--password", envvar="STYLESNAP_PASSWORD", help="Password for a login form")
@click.option("--target-url", help="Page to open after logging in")
@click.option("--no-screenshot", is_flag=True, help="Skip the screenshot")
@click.option("--timeout-ms", type=click.IntRange(min=1), help="Overall budget in milliseconds")
@click.option("--stability-timeout-ms", type=click.IntRange(min=1), help="Stability wait budget in milliseconds")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write the snapshot here")
@click.pass_context
def extract(
    ctx: click.Context,
    url: str,
    width: Optional[int],
    height: Optional[int],
    username: Optional[str],
    password: Optional[str],
    target_url: Optional[str],
    no_screenshot: bool,
    timeout_ms: Optional[int],
    stability_timeout_ms: Optional[int],
    output: Optional[Path],
) -> None:
    """Extract a style snapshot from URL."""
    settings: Config = ctx.obj["config"]
    options: Dict[str, Any] = {"includeScreenshot": not no_screenshot}
    if width or height:
        options["viewport"] = {
            "width": width or settings.browser.viewport.width,
            "height": height or settings.browser.viewport.height,
        }
    if username or password:
        options["authentication"] = {"username": username or "", "password": password or "", "targetUrl": target_url}
    if timeout_ms:
        options["timeout"] = timeout_ms
    if stability_timeout_ms:
        options["stabilityTimeout"] = stability_timeout_ms

    async def run_extraction() -> Dict[str, Any]:
        container = DependencyContainer(ctx.obj["config_path"], config=settings)
        async with container.lifecycle():
            extractor = await container.get_extractor()
            snapshot = await extractor.extract(url, options)
            return snapshot.to_dict()

    try:
        result = asyncio.run(run_extraction())
    except ExtractionError as e:
        console.print(f"❌ {e}", style="red", markup=False)
        sys.exit(1)

    payload = json.dumps(result, indent=2)
    if output:
        output.write_text(payload, encoding="utf-8")
    else:
        click.echo(payload)

    metadata = result["metadata"]
    console.print(
        Panel.fit(
            f"[bold]{metadata['title'] or url}[/bold]\n"
            f"Elements: {metadata['elementCount']}\n"
            f"Colors: {len(result['colorPalette'])}\n"
            f"Duration: {result['duration']}ms",
            title="Snapshot",
            border_style="green",
        )
    )


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Start the extraction API."""
    from stylesnap.web.main import create_app

    settings: Config = ctx.obj["config"]
    start_metrics_server(settings.monitoring)
    console.print(f"[green]🚀 Starting extraction API at http://{host}:{port}[/green]")
    app = create_app(container=DependencyContainer(ctx.obj["config_path"], config=settings))
    uvicorn.run(app, host=host, port=port, log_level=settings.monitoring.log_level.lower())


@cli.command("validate-config")
@click.pass_context
def validate_config(ctx: click.Context) -> None:
    """Show the effective configuration."""
    settings: Config = ctx.obj["config"]
    table = Table(title="Effective Configuration")
    table.add_column("Section", style="cyan")
    table.add_column("Settings", style="magenta")
    for section, values in settings.model_dump().items():
        table.add_row(section, json.dumps(values, default=str) if isinstance(values, dict) else str(values))
    console.print(table)
    console.print("[green]✅ Configuration is valid![/green]")


@cli.command()
def version() -> None:
    """Show the installed version."""
    click.echo(f"stylesnap {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
