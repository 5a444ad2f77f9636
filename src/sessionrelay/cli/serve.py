"""CLI command: sessionrelay serve — run the relay and its control surface."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
import uvicorn
from rich.console import Console

from sessionrelay.config import RelayConfig
from sessionrelay.errors import ClientFactoryError

console = Console(stderr=True)


@click.command()
@click.option("--host", default=None, help="Interface to bind (default: 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port to listen on (default: 3001).")
@click.option(
    "--client",
    "client_factory",
    default=None,
    help="Session client factory as 'package.module:factory'.",
)
@click.option(
    "--replies",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML file with auto-reply rules.",
)
@click.pass_context
def serve(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    client_factory: str | None,
    replies: Path | None,
) -> None:
    """Start the session relay and its HTTP control surface."""
    config = RelayConfig.load()
    config.verbose = bool(ctx.obj.get("verbose"))
    if host is not None:
        config.web_host = host
    if port is not None:
        config.web_port = port
    if client_factory is not None:
        config.client_factory = client_factory
    if replies is not None:
        config.autoreply_path = replies

    from sessionrelay.session.manager import LifecycleManager
    from sessionrelay.web.app import create_app

    try:
        manager = LifecycleManager(config)
    except ClientFactoryError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    console.print(
        f"[bold]sessionrelay[/bold] starting on "
        f"[cyan]http://{config.web_host}:{config.web_port}[/cyan]"
    )
    console.print(f"  Session client: [dim]{config.client_factory}[/dim]")
    if config.backend_url:
        console.print(f"  Backend: [dim]{config.backend_url}[/dim]")
    else:
        console.print("  [yellow]No backend URL configured — notifications disabled[/yellow]")

    async def _run() -> None:
        app = create_app(config, manager)
        server_config = uvicorn.Config(
            app,
            host=config.web_host,
            port=config.web_port,
            log_level="debug" if config.verbose else "info",
        )
        srv = uvicorn.Server(server_config)
        await srv.serve()

    asyncio.run(_run())
