"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import DiscoveryResult, SubscriptionResponse


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida.

    Por qué aquí:
    - Evita dependencias circulares (main <-> doctor).
    - Permite desactivar banner en modos no interactivos (JSON/pipelines).
    """

    title = Text("WebSub Subscriber", style="bold cyan")
    subtitle = Text("Discovery • Suscripción • Verificación HMAC", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_discovery_table(result: DiscoveryResult) -> Table:
    """Tabla con el topic y los hubs descubiertos (el primero es el que se usa)."""

    table = Table(title="Discovery")
    table.add_column("Rel", style="cyan", no_wrap=True)
    table.add_column("URL", style="magenta")
    table.add_column("Used", style="green")
    table.add_row("self", result.topic, "yes")
    for index, hub in enumerate(result.hubs):
        table.add_row("hub", hub, "yes" if index == 0 else "")
    return table


def build_subscription_panel(response: SubscriptionResponse) -> Panel:
    """Panel con el acuse del hub."""

    status = "pending verification" if response.pending else "acknowledged"
    style = "yellow" if response.pending else "green"

    body = Text()
    body.append(f"Mode: {response.mode.value}\n")
    body.append(f"Hub: {response.hub}\n")
    body.append(f"Topic: {response.topic}\n")
    body.append(f"HTTP {response.status_code} ", style="bold")
    body.append(status, style=style)
    for key, value in response.body.items():
        body.append(f"\n{key} = {value}", style="dim")

    return Panel(body, title=Text("Hub response", style=f"bold {style}"), border_style=style)
