"""CLI principal (Typer).

Comandos:
- `discover URL`: discovery de hub/topic por cabeceras `Link`.
- `subscribe` / `unsubscribe`: petición directa al hub.
- `sign`: calcula `X-Hub-Signature` para un fichero (pruebas manuales).
- `serve`: levanta el callback (uvicorn) y suscribe al arrancar.
- `doctor`: diagnósticos y configuración interactiva.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from adapters.discovery import ResourceDiscoverer
from adapters.subscription_client import SubscriptionClient
from cli import doctor
from cli.ui_components import build_discovery_table, build_subscription_panel, print_banner
from core.config import AppSettings
from core.domain.errors import WebSubError, describe_chain
from core.domain.models import SubscriberConfig, SubscriptionMode, SubscriptionRequest, TopicReference
from core.services.subscription_orchestrator import SubscriptionOrchestrator
from core.signature import SIGNATURE_HEADER, SUPPORTED_METHODS, sign as sign_payload

app = typer.Typer(no_args_is_help=True, help="WebSub subscriber: discovery, subscription and callback server.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def _configure_logging(settings: AppSettings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(exc: WebSubError) -> None:
    _console.print(f"[red]{exc.__class__.__name__}:[/red] {describe_chain(exc)}")
    if exc.retryable:
        _console.print("[yellow]The failure looks transient; retrying may help.[/yellow]")
    raise typer.Exit(code=1)


@app.callback()
def main(
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print the banner."),
) -> None:
    settings = AppSettings()
    _configure_logging(settings)
    if not quiet:
        print_banner(_console)


@app.command()
def discover(
    resource_url: str = typer.Argument(..., help="Topic resource URL to discover the hub from."),
    accept: list[str] = typer.Option([], "--accept", help="Accepted media type (repeatable)."),
    accept_language: list[str] = typer.Option([], "--accept-language", help="Accepted language (repeatable)."),
) -> None:
    """Discover hub and topic URLs from the resource's Link headers."""

    settings = AppSettings()
    try:
        result = asyncio.run(
            ResourceDiscoverer(settings).discover(resource_url, accept or settings.accept, accept_language or settings.accept_language)
        )
    except WebSubError as exc:
        _fail(exc)
        return
    _console.print(build_discovery_table(result))


def _send(mode: SubscriptionMode, hub: Optional[str], topic: Optional[str], callback: Optional[str], lease_seconds: Optional[int], secret: Optional[str]) -> None:
    settings = AppSettings()
    config = SubscriberConfig.from_settings(settings)
    callback = callback or config.callback_url

    try:
        if hub and topic:
            target: TopicReference | None = TopicReference(hub_url=hub, topic_url=topic)
        else:
            target = asyncio.run(SubscriptionOrchestrator(settings).resolve_target(config))
        if target is None:
            raise typer.BadParameter("provide --hub and --topic or configure WEBSUB_HUB_URL/WEBSUB_TOPIC_URL/WEBSUB_DISCOVERY_URL")

        request = SubscriptionRequest(
            mode=mode,
            hub=target.hub_url,
            topic=target.topic_url,
            callback=callback,
            lease_seconds=lease_seconds or config.lease_seconds,
            secret=secret or config.secret or None,
        )
        client = SubscriptionClient(settings)
        if mode is SubscriptionMode.SUBSCRIBE:
            response = asyncio.run(client.subscribe(request))
        else:
            response = asyncio.run(client.unsubscribe(request))
    except WebSubError as exc:
        _fail(exc)
        return
    _console.print(build_subscription_panel(response))


@app.command()
def subscribe(
    hub: Optional[str] = typer.Option(None, "--hub", help="Hub URL (defaults to config/discovery)."),
    topic: Optional[str] = typer.Option(None, "--topic", help="Topic URL (defaults to config/discovery)."),
    callback: Optional[str] = typer.Option(None, "--callback", help="Public callback URL."),
    lease_seconds: Optional[int] = typer.Option(None, "--lease-seconds", min=1),
    secret: Optional[str] = typer.Option(None, "--secret", help="Shared secret for X-Hub-Signature."),
) -> None:
    """Send a subscribe request to the hub."""

    _send(SubscriptionMode.SUBSCRIBE, hub, topic, callback, lease_seconds, secret)


@app.command()
def unsubscribe(
    hub: Optional[str] = typer.Option(None, "--hub", help="Hub URL (defaults to config/discovery)."),
    topic: Optional[str] = typer.Option(None, "--topic", help="Topic URL (defaults to config/discovery)."),
    callback: Optional[str] = typer.Option(None, "--callback", help="Public callback URL."),
) -> None:
    """Send an unsubscribe request to the hub."""

    _send(SubscriptionMode.UNSUBSCRIBE, hub, topic, callback, None, None)


@app.command()
def sign(
    payload_path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    secret: str = typer.Option(..., "--secret", prompt=True, hide_input=True),
    method: str = typer.Option("sha256", "--method", help="sha1, sha256, sha384 or sha512."),
    base64: bool = typer.Option(False, "--base64", help="Encode the signature as base64 instead of hex."),
) -> None:
    """Print the X-Hub-Signature header for a payload file."""

    if method.lower() not in SUPPORTED_METHODS:
        raise typer.BadParameter(f"unsupported method {method!r}")
    value = sign_payload(method, secret, payload_path.read_bytes(), encoding="base64" if base64 else "hex")
    _console.print(f"{SIGNATURE_HEADER}: {value}", soft_wrap=True)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port", min=1, max=65535),
    no_subscribe: bool = typer.Option(False, "--no-subscribe", help="Only serve the callback."),
) -> None:
    """Serve the callback endpoint and subscribe on startup."""

    import uvicorn

    from adapters.callback_app import create_app

    overrides: dict[str, object] = {}
    if host:
        overrides["host"] = host
    if port:
        overrides["port"] = port
    settings = AppSettings(**overrides)

    app_instance = create_app(settings, subscribe_on_startup=not no_subscribe)
    _console.print(f"[green]Callback:[/green] {settings.resolve_callback_url()}")
    uvicorn.run(app_instance, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def run() -> None:
    app()


if __name__ == "__main__":
    run()
