"""Cliente de suscripción (subscriber -> hub).

Responsabilidad:
- Serializar `hub.mode`, `hub.topic`, `hub.callback`, `hub.lease_seconds?`
  y `hub.secret?` como formulario y enviarlo por POST al hub.
- Interpretar el acuse síncrono del hub.

Semántica de la respuesta:
- 202 y 404 (o los estados en `pending_statuses`) => pendiente: el hub
  verificará la intención más tarde llamando al callback.
- Resto de 2xx => acuse inmediato. Si el cuerpo es un formulario con
  `hub.topic` distinto del pedido, se rechaza.
- Cualquier otro estado, error de red o timeout => `SubscriptionRequestFailedError`.

No comparte estado mutable entre llamadas: es seguro usar una misma
instancia para varios topics en paralelo.
"""

from __future__ import annotations

import logging
from typing import Iterable
from urllib.parse import parse_qsl

import httpx

from adapters.http_client import build_async_client, describe_transport_error, is_retryable
from core.config import AppSettings
from core.domain.errors import SubscriptionRequestFailedError
from core.domain.models import SubscriptionMode, SubscriptionRequest, SubscriptionResponse

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Estados con los que el hub indica "verificación asíncrona pendiente".
PENDING_STATUSES = (202, 404)


def _parse_form_body(response: httpx.Response) -> dict[str, str]:
    content_type = response.headers.get("content-type", "")
    if not content_type.lower().startswith(FORM_CONTENT_TYPE):
        return {}
    return dict(parse_qsl(response.text, keep_blank_values=True))


class SubscriptionClient:
    """Envía peticiones de (des)suscripción a un hub."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        pending_statuses: Iterable[int] = PENDING_STATUSES,
    ) -> None:
        self._settings = settings or AppSettings()
        self._transport = transport
        self._pending_statuses = frozenset(pending_statuses)

    async def subscribe(self, request: SubscriptionRequest, *, timeout: float | None = None) -> SubscriptionResponse:
        if request.mode is not SubscriptionMode.SUBSCRIBE:
            request = request.model_copy(update={"mode": SubscriptionMode.SUBSCRIBE})
        return await self._send(request, timeout=timeout)

    async def unsubscribe(self, request: SubscriptionRequest, *, timeout: float | None = None) -> SubscriptionResponse:
        if request.mode is not SubscriptionMode.UNSUBSCRIBE:
            request = request.model_copy(update={"mode": SubscriptionMode.UNSUBSCRIBE})
        return await self._send(request, timeout=timeout)

    async def _send(self, request: SubscriptionRequest, *, timeout: float | None) -> SubscriptionResponse:
        mode = request.mode.value
        logger.info("Sending %s request for topic %s to hub %s", mode, request.topic, request.hub)

        try:
            async with build_async_client(
                self._settings,
                extra_headers={"Content-Type": FORM_CONTENT_TYPE},
                timeout=timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(request.hub, data=request.to_form())
        except httpx.HTTPError as exc:
            raise SubscriptionRequestFailedError(
                f"Error occurred while sending {mode} request to hub [{request.hub}] "
                f"for topic [{request.topic}]: {describe_transport_error(exc)}",
                retryable=is_retryable(exc),
            ) from exc

        status = response.status_code
        if status in self._pending_statuses:
            logger.info("Hub %s accepted %s for %s; intent verification pending", request.hub, mode, request.topic)
            return SubscriptionResponse(
                hub=request.hub,
                topic=request.topic,
                mode=request.mode,
                status_code=status,
                pending=True,
            )

        if not 200 <= status < 300:
            raise SubscriptionRequestFailedError(
                f"Error in request: Mode[{mode}] at Hub[{request.hub}] - "
                f"HTTP {status}: {response.text.strip()[:500]}",
                status_code=status,
                retryable=status >= 500,
            )

        body = _parse_form_body(response)
        acked_topic = body.get("hub.topic")
        if acked_topic and acked_topic != request.topic:
            raise SubscriptionRequestFailedError(
                f"Hub [{request.hub}] acknowledged topic [{acked_topic}] instead of [{request.topic}]",
                status_code=status,
            )

        logger.info("Hub %s acknowledged %s for %s (HTTP %s)", request.hub, mode, request.topic, status)
        return SubscriptionResponse(
            hub=request.hub,
            topic=request.topic,
            mode=request.mode,
            status_code=status,
            pending=False,
            body=body,
        )
