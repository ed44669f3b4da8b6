"""Discovery de hub/topic a partir de cabeceras `Link` (RFC 5988).

Flujo:
- GET al recurso del publicador con `Accept` / `Accept-Language` opcionales.
- 406 => `ContentNegotiationError` (aunque haya cabeceras `Link`).
- Sin `Link` => `HeaderMissingError`.
- Cada valor `Link` puede traer varios enlaces separados por comas; cada
  enlace se parte por `;` en URL + parámetros.
- `rel` con `hub` se acumula en orden; `rel` con `self` fija el topic y un
  segundo `self` es `DuplicateTopicError`.

Nota:
- Solo se usa el primer hub (`DiscoveryResult.primary()`). Quien necesite
  fallback entre hubs debe volver a descubrir.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import httpx

from adapters.http_client import build_async_client, describe_transport_error, is_retryable
from core.config import AppSettings
from core.domain.errors import (
    ContentNegotiationError,
    DiscoveryIncompleteError,
    DuplicateTopicError,
    HeaderMissingError,
    ResourceDiscoveryFailedError,
)
from core.domain.models import DiscoveryResult

logger = logging.getLogger(__name__)


def _rel_values(params: Sequence[str]) -> list[str]:
    rels: list[str] = []
    for param in params:
        if "=" not in param:
            continue
        name, value = param.split("=", 1)
        if name.strip().lower() != "rel":
            continue
        rels.extend(value.strip().strip('"').strip("'").lower().split())
    return rels


def parse_link_headers(values: Iterable[str]) -> DiscoveryResult:
    """Extrae hubs (en orden) y el topic de uno o varios valores `Link`."""

    hubs: list[str] = []
    topic: str | None = None

    for header_value in values:
        for link in header_value.split(","):
            parts = link.split(";")
            url = parts[0].strip().strip("<>").strip()
            if not url:
                continue
            rels = _rel_values(parts[1:])
            if "hub" in rels:
                hubs.append(url)
            if "self" in rels:
                if topic is not None:
                    raise DuplicateTopicError(
                        f"Link header contains more than one rel=\"self\" URL: {topic}, {url}"
                    )
                topic = url

    if not hubs or topic is None:
        raise DiscoveryIncompleteError(
            f"Hub and/or topic URL could not be identified (hubs={len(hubs)}, topic={topic!r})"
        )
    return DiscoveryResult(topic=topic, hubs=tuple(hubs))


class ResourceDiscoverer:
    """Descubre hub y topic de un recurso.

    No guarda estado entre llamadas: cada `discover` abre su propio cliente.
    """

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._transport = transport

    async def discover(
        self,
        resource_url: str,
        accept: Sequence[str] | None = None,
        accept_language: Sequence[str] | None = None,
        *,
        timeout: float | None = None,
    ) -> DiscoveryResult:
        headers: dict[str, str] = {}
        if accept:
            headers["Accept"] = ", ".join(accept)
        if accept_language:
            headers["Accept-Language"] = ", ".join(accept_language)

        logger.debug("Discovering hub/topic from %s", resource_url)
        try:
            async with build_async_client(
                self._settings,
                extra_headers=headers,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(resource_url)
        except httpx.HTTPError as exc:
            raise ResourceDiscoveryFailedError(
                f"Error occurred with WebSub discovery for resource URL [{resource_url}]: "
                f"{describe_transport_error(exc)}",
                retryable=is_retryable(exc),
            ) from exc

        if response.status_code == 406:
            raise ContentNegotiationError(
                "Content negotiation failed: the resource accepted none of "
                f"Accept={headers.get('Accept')!r}, Accept-Language={headers.get('Accept-Language')!r}"
            )

        links = response.headers.get_list("link")
        if not links:
            raise HeaderMissingError(f"Link header unavailable in discovery response from {resource_url}")

        result = parse_link_headers(links)
        if len(result.hubs) > 1:
            logger.info(
                "Discovered %d hubs for %s; using the first (%s)",
                len(result.hubs),
                result.topic,
                result.hubs[0],
            )
        return result
