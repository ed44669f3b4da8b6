"""Modelos del dominio WebSub (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta en el borde (URLs no vacías, lease positivo) sin
  acoplar el Core a httpx ni a FastAPI.
- Todos los valores son de vida corta (una petición) y, donde tiene sentido,
  inmutables (`frozen=True`).

Nota:
- Estos modelos describen *qué* viaja por el protocolo, no *cómo* se envía.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping
from urllib.parse import urlencode

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict


class SubscriptionMode(str, Enum):
    """Modos que el suscriptor envía al hub."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class CallbackMode(str, Enum):
    """Valores de `hub.mode` que el hub puede enviar al callback."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    DENIED = "denied"


class TopicReference(BaseModel):
    """Par (hub, topic): resultado de discovery o configuración estática."""

    model_config = ConfigDict(frozen=True)

    hub_url: str = Field(..., min_length=1, description="URL del hub.")
    topic_url: str = Field(..., min_length=1, description="URL canónica del topic.")


class DiscoveryResult(BaseModel):
    """Links encontrados en el recurso del publicador.

    `hubs` conserva el orden de aparición en las cabeceras `Link`.
    """

    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., min_length=1)
    hubs: tuple[str, ...] = Field(..., min_length=1)

    def primary(self) -> TopicReference:
        # Solo se usa el primer hub; el resto se descarta.
        return TopicReference(hub_url=self.hubs[0], topic_url=self.topic)


class SubscriptionRequest(BaseModel):
    """Petición de (des)suscripción a un hub. No se persiste."""

    model_config = ConfigDict(frozen=True)

    mode: SubscriptionMode
    hub: str = Field(..., min_length=1)
    topic: str = Field(..., min_length=1)
    callback: str = Field(..., min_length=1)
    lease_seconds: int | None = Field(default=None, gt=0)
    secret: str | None = Field(default=None, repr=False)

    def to_form(self) -> dict[str, str]:
        """Campos `hub.*` en el orden en que se serializan."""

        form = {
            "hub.mode": self.mode.value,
            "hub.topic": self.topic,
            "hub.callback": self.callback,
        }
        if self.lease_seconds is not None:
            form["hub.lease_seconds"] = str(self.lease_seconds)
        if self.secret:
            form["hub.secret"] = self.secret
        return form


class SubscriptionResponse(BaseModel):
    """Respuesta síncrona del hub a una (des)suscripción.

    `pending=True` significa "aceptado, verificación pendiente": el hub
    llamará más tarde al callback con `hub.challenge`.
    """

    hub: str
    topic: str
    mode: SubscriptionMode
    status_code: int
    pending: bool = False
    body: dict[str, str] = Field(default_factory=dict)


class IncomingCallbackRequest(BaseModel):
    """Vista normalizada de una petición entrante al callback."""

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    mode: str | None = None
    topic: str | None = None
    challenge: str | None = None
    lease_seconds: int | None = None
    reason: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, str] = Field(default_factory=dict)
    raw_body: bytes = b""

    @field_validator("headers", mode="before")
    @classmethod
    def _lower_header_names(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {str(k).lower(): v for k, v in value.items()}
        return value

    @classmethod
    def from_http(
        cls,
        *,
        method: str,
        query: Mapping[str, str],
        headers: Mapping[str, str],
        body: bytes = b"",
    ) -> "IncomingCallbackRequest":
        """Construye la vista desde query string + cabeceras + cuerpo crudo."""

        lease_raw = query.get("hub.lease_seconds")
        lease: int | None = None
        if lease_raw is not None and lease_raw.strip().isdigit():
            lease = int(lease_raw.strip())

        return cls(
            method=method.upper(),
            mode=query.get("hub.mode"),
            topic=query.get("hub.topic"),
            challenge=query.get("hub.challenge"),
            lease_seconds=lease,
            reason=query.get("hub.reason"),
            headers=dict(headers),
            query=dict(query),
            raw_body=body,
        )

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def content_type(self) -> str | None:
        value = self.header("content-type")
        if not value:
            return None
        return value.split(";", 1)[0].strip().lower()


class VerificationOutcome(BaseModel):
    """Resultado de comprobar la firma de una notificación."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    method: str | None = None


class ContentDistributionMessage(BaseModel):
    """Notificación de contenido ya verificada y decodificada.

    `content` depende del Content-Type: dict/list para JSON, dict para
    formularios, str para texto/XML y bytes para el resto.
    """

    topic: str | None = None
    content_type: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    content: Any = None


class Acknowledgement(BaseModel):
    """Acuse estructurado devuelto por el código de usuario."""

    body: dict[str, str] | None = None
    headers: dict[str, str | list[str]] = Field(default_factory=dict)


class SubscriptionDeleted(BaseModel):
    """Pide al hub que borre la suscripción (respuesta 410 Gone)."""

    reason: str | None = None
    headers: dict[str, str | list[str]] = Field(default_factory=dict)


class CallbackResponse(BaseModel):
    """Respuesta HTTP que el host debe devolver al hub."""

    status_code: int
    body: bytes = b""
    headers: list[tuple[str, str]] = Field(default_factory=list)

    @classmethod
    def plain(cls, status_code: int, text: str = "") -> "CallbackResponse":
        headers = [("Content-Type", "text/plain")] if text else []
        return cls(status_code=status_code, body=text.encode("utf-8"), headers=headers)

    @classmethod
    def form(
        cls,
        status_code: int,
        body: Mapping[str, str] | None = None,
        extra_headers: Mapping[str, str | list[str]] | None = None,
    ) -> "CallbackResponse":
        """Cuerpo `key=value&...` + cabeceras adicionales (simples o múltiples)."""

        headers: list[tuple[str, str]] = []
        payload = b""
        if body:
            payload = urlencode(dict(body)).encode("utf-8")
            headers.append(("Content-Type", "application/x-www-form-urlencoded"))
        for name, value in (extra_headers or {}).items():
            if isinstance(value, list):
                headers.extend((name, v) for v in value)
            else:
                headers.append((name, value))
        return cls(status_code=status_code, body=payload, headers=headers)

    def header_values(self, name: str) -> list[str]:
        return [v for k, v in self.headers if k.lower() == name.lower()]


class SubscriberConfig(BaseModel):
    """Configuración explícita de una suscripción (se pasa al registrar).

    Exactamente una de `target` (hub+topic estáticos) o `discovery_url`
    debería estar presente; si no hay ninguna, la suscripción de arranque
    es un no-op.
    """

    model_config = ConfigDict(frozen=True)

    target: TopicReference | None = None
    discovery_url: str | None = None
    accept: tuple[str, ...] = ()
    accept_language: tuple[str, ...] = ()
    callback_url: str | None = None
    secret: str | None = Field(default=None, repr=False)
    lease_seconds: int | None = Field(default=None, gt=0)
    unsubscribe_on_shutdown: bool = False

    @model_validator(mode="after")
    def _check_target(self) -> "SubscriberConfig":
        if self.target is not None and self.discovery_url:
            raise ValueError("configure either a static hub/topic or a discovery URL, not both")
        return self

    @property
    def expected_topic(self) -> str | None:
        return self.target.topic_url if self.target else None

    @classmethod
    def from_settings(cls, settings: Any) -> "SubscriberConfig":
        """Convierte `AppSettings` (env vars) en la configuración explícita."""

        target = None
        if settings.hub_url and settings.topic_url:
            target = TopicReference(hub_url=settings.hub_url, topic_url=settings.topic_url)
        return cls(
            target=target,
            discovery_url=None if target else (settings.discovery_url or None),
            accept=tuple(settings.accept),
            accept_language=tuple(settings.accept_language),
            callback_url=settings.resolve_callback_url(),
            secret=settings.secret,
            lease_seconds=settings.lease_seconds,
            unsubscribe_on_shutdown=settings.unsubscribe_on_shutdown,
        )
