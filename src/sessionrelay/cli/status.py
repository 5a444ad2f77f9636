"""CLI command: sessionrelay status — query a running relay."""

from __future__ import annotations

import click
import httpx
from rich.console import Console
from rich.table import Table

from sessionrelay.config import RelayConfig

console = Console()


@click.command()
@click.option("--url", default=None, help="Base URL of the relay (default: from config).")
@click.option("--token", default=None, help="API token (default: SESSIONRELAY_API_TOKEN).")
@click.option("--reconnect", is_flag=True, help="Force a reconnect after printing status.")
def status(url: str | None, token: str | None, reconnect: bool) -> None:
    """Show session state, reconnect attempts and memory of a running relay."""
    config = RelayConfig.load()
    base_url = (url or f"http://{config.web_host}:{config.web_port}").rstrip("/")
    headers = {"Authorization": f"Bearer {token or config.api_token}"}

    try:
        with httpx.Client(base_url=base_url, headers=headers, timeout=10.0) as client:
            response = client.get("/api/status")
            response.raise_for_status()
            data = response.json()
            if reconnect:
                client.post("/api/reconnect").raise_for_status()
    except httpx.HTTPStatusError as e:
        console.print(f"[red]Relay returned HTTP {e.response.status_code}[/red]")
        raise SystemExit(1)
    except httpx.HTTPError as e:
        console.print(f"[red]Cannot reach relay at {base_url}:[/red] {e}")
        raise SystemExit(1)

    console.print(_render(data))
    if reconnect:
        console.print("[yellow]Reconnect requested[/yellow]")


def _render(data: dict) -> Table:
    table = Table(title="sessionrelay", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    state = data.get("state", "?")
    color = "green" if data.get("connected") else "yellow"
    table.add_row("State", f"[{color}]{state}[/{color}]")

    info = data.get("client_info")
    if info:
        table.add_row("Account", f"{info['display_name']} ({info['account_id']})")

    reconnect = data.get("reconnect", {})
    attempts = f"{reconnect.get('attempts', 0)}/{reconnect.get('max_attempts', 0)}"
    if reconnect.get("exhausted"):
        attempts += " [red](exhausted)[/red]"
    table.add_row("Reconnect attempts", attempts)

    table.add_row("Messages received", str(data.get("message_count", 0)))

    queue = data.get("queue", {})
    table.add_row(
        "Queue",
        f"{queue.get('pending', 0)}/{queue.get('capacity', 0)} pending, "
        f"{queue.get('dropped', 0)} dropped",
    )

    memory = data.get("memory")
    if memory:
        table.add_row("Memory (RSS)", f"{memory['rss_mb']} MB")

    table.add_row("Uptime", f"{data.get('uptime', 0):.0f}s")
    return table
