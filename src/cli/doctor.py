"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.discovery import ResourceDiscoverer
from adapters.http_client import build_async_client
from core.config import AppSettings, write_user_env_vars
from core.domain.errors import WebSubError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.head(url)
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc)


async def _check_discovery(settings: AppSettings) -> tuple[bool, str]:
    assert settings.discovery_url
    try:
        result = await ResourceDiscoverer(settings).discover(
            settings.discovery_url,
            settings.accept or None,
            settings.accept_language or None,
        )
    except WebSubError as exc:
        return False, f"{exc.__class__.__name__}: {exc}"
    return True, f"hub={result.hubs[0]} topic={result.topic}"


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="WebSub Subscriber Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Target
    if settings.hub_url and settings.topic_url:
        table.add_row("Target", "OK", f"static hub={settings.hub_url} topic={settings.topic_url}")
    elif settings.discovery_url:
        ok, detail = asyncio.run(_check_discovery(settings))
        table.add_row("Discovery", "OK" if ok else "FAIL", detail)
    else:
        table.add_row("Target", "OPTIONAL", "No hub/topic or discovery URL -> no startup subscription")

    # Secret
    if settings.secret and settings.secret.strip():
        table.add_row("Secret", "OK", "Notifications must carry a valid X-Hub-Signature")
    else:
        table.add_row("Secret", "WARN", "No secret -> notifications accepted without signature checks")

    table.add_row("Callback", "OK", settings.resolve_callback_url())

    # Connectivity (best-effort)
    if settings.hub_url:
        ok_http, detail_http = asyncio.run(_check_http(settings.hub_url, settings))
        table.add_row("Hub connectivity", "OK" if ok_http else "FAIL", detail_http)

    _console.print(table)


@app.command(name="configure")
def configure() -> None:
    """Interactive setup (stores config in the user config .env)."""

    discovery_url = typer.prompt("Discovery URL (empty to use a static hub/topic)", default="", show_default=False).strip()
    hub_url = ""
    topic_url = ""
    if not discovery_url:
        hub_url = typer.prompt("Hub URL").strip()
        topic_url = typer.prompt("Topic URL").strip()
    callback_url = typer.prompt("Public callback URL").strip()
    secret = typer.prompt("Secret (empty for none)", default="", show_default=False, hide_input=True).strip()

    if not discovery_url and not (hub_url and topic_url):
        raise typer.BadParameter("either a discovery URL or both hub and topic URLs are required")
    if not callback_url:
        raise typer.BadParameter("callback URL is required")

    env_path = write_user_env_vars(
        {
            # "" borra la clave: la opción no elegida no debe sobrevivir.
            "WEBSUB_DISCOVERY_URL": discovery_url,
            "WEBSUB_HUB_URL": hub_url,
            "WEBSUB_TOPIC_URL": topic_url,
            "WEBSUB_CALLBACK_URL": callback_url,
            "WEBSUB_SECRET": secret,
        }
    )

    _console.print(f"[green]Saved subscriber config to:[/green] {env_path}")
