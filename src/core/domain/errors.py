"""Errores del dominio WebSub.

Por qué una jerarquía propia:
- Los adaptadores (httpx, FastAPI) traducen sus excepciones a estos tipos,
  así el Core y la CLI no dependen de librerías de I/O.
- `retryable` indica si tiene sentido reintentar (timeouts, red). El Core
  nunca reintenta; la política de reintentos es del host.
"""

from __future__ import annotations


class WebSubError(Exception):
    """Base de todos los errores del suscriptor."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class DiscoveryError(WebSubError):
    """Fallo al descubrir hub/topic de un recurso."""


class ContentNegotiationError(DiscoveryError):
    """El recurso respondió 406 (Accept / Accept-Language no satisfechos)."""


class HeaderMissingError(DiscoveryError):
    """La respuesta de discovery no trae cabecera `Link`."""


class DuplicateTopicError(DiscoveryError):
    """Aparece más de un `rel="self"` en las cabeceras `Link`."""


class DiscoveryIncompleteError(DiscoveryError):
    """Falta al menos un hub o el topic (`rel="self"`)."""


class SubscriptionRequestFailedError(WebSubError):
    """El hub rechazó la petición o no se pudo contactar."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message, retryable=retryable)
        self.status_code = status_code


class SubscriptionInitiationError(WebSubError):
    """Fallo agregado de la suscripción de arranque (lo que ve el host)."""


class ResourceDiscoveryFailedError(SubscriptionInitiationError, DiscoveryError):
    """Discovery no pudo completarse; aborta el intento de suscripción."""


class VerificationFailedError(WebSubError):
    """Firma de contenido inválida.

    Solo se usa dentro del handler de callback: nunca llega al hub, se
    convierte en un código HTTP de rechazo.
    """


def describe_chain(exc: BaseException) -> str:
    """Cadena de causas legible: `A: msg <- B: msg <- ...`."""

    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(f"{current.__class__.__name__}: {current}")
        current = current.__cause__ or current.__context__
    return " <- ".join(parts)
