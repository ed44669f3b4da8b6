"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts, headers y User-Agent para discovery y para el hub.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from core.config import AppSettings


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    Por qué un builder:
    - Centraliza timeouts/headers para que discovery y suscripción se comporten igual.
    - `timeout` permite al llamador acotar una operación concreta.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {"User-Agent": settings.user_agent}
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def describe_transport_error(exc: httpx.HTTPError) -> str:
    """Mensaje corto para errores de red/timeout (sin volcar cabeceras)."""

    try:
        request = exc.request
    except RuntimeError:
        # httpx lanza RuntimeError si el error no tiene request asociada.
        request = None
    target = f" ({request.method} {request.url})" if request is not None else ""
    detail = str(exc) or exc.__class__.__name__
    return f"{detail}{target}"


def is_retryable(exc: httpx.HTTPError) -> bool:
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))
