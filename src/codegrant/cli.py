"""
codegrant CLI: command-line interface.

Usage:
    codegrant authorize-url --config provider.yaml
    codegrant login --config provider.yaml --port 8080
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from codegrant import __version__
from codegrant.config import FlowConfig
from codegrant.errors import CallbackError, ConfigError

app = typer.Typer(
    name="codegrant",
    help="OAuth 2.0 authorization code flows from the command line",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]codegrant[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """OAuth 2.0 authorization code flows from the command line."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _load_config(config: str | None, scope: str | None) -> FlowConfig:
    overrides = {"scope": scope} if scope else {}
    try:
        return FlowConfig.load(config, **overrides)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(2) from e


@app.command("authorize-url")
def authorize_url(
    config: str = typer.Option(None, "--config", "-c", help="Path to provider config file"),
    scope: str = typer.Option(None, "--scope", "-s", help="Override the requested scope"),
    redirect_host: str = typer.Option(
        "http://localhost:8080",
        "--redirect-host",
        help="Public base URL the callback path is appended to",
    ),
) -> None:
    """Print the authorize URL for a provider."""
    from codegrant.authorize import AuthorizationURLBuilder, build_callback_url
    from codegrant.state import StateTokenGuard

    flow_config = _load_config(config, scope)
    redirect_uri = build_callback_url(redirect_host, "", flow_config.resolved_callback_path)
    url = AuthorizationURLBuilder(flow_config).build(StateTokenGuard().generate(), redirect_uri)
    console.print(url, soft_wrap=True, highlight=False)


@app.command()
def login(
    config: str = typer.Option(None, "--config", "-c", help="Path to provider config file"),
    scope: str = typer.Option(None, "--scope", "-s", help="Override the requested scope"),
    port: int = typer.Option(8080, "--port", "-p", help="Local callback port"),
    timeout: float = typer.Option(300, "--timeout", help="Seconds to wait for the browser"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Print the URL instead of opening it"),
) -> None:
    """Run the full authorization code flow through a local callback."""
    from codegrant.local import authorize_interactive

    flow_config = _load_config(config, scope)

    console.print(Panel.fit(
        f"[bold blue]codegrant[/bold blue] login: {flow_config.name}",
        subtitle=f"v{__version__}",
    ))

    def _show_url(url: str) -> None:
        console.print("Open this URL to authorize:")
        console.print(url, soft_wrap=True, highlight=False)

    try:
        credential = asyncio.run(authorize_interactive(
            flow_config,
            port=port,
            timeout=timeout,
            open_browser=not no_browser,
            on_url=_show_url,
        ))
    except CallbackError as e:
        console.print(f"[red]Authorization failed ({e.kind.value}):[/red] {escape(e.message)}")
        raise typer.Exit(1) from e
    except TimeoutError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    table = Table(title="Credential")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in credential.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)
