"""Handler del endpoint de callback del suscriptor.

Máquina de estados por petición:
RECEIVED -> CLASSIFIED -> (VERIFYING_INTENT | VERIFYING_CONTENT) -> RESPONDED.

- Con `hub.mode` en la query: verificación de intención (`subscribe`,
  `unsubscribe`) o denegación (`denied`).
- POST con cuerpo y sin `hub.mode`: notificación de contenido. Un POST vacío
  es inválido (400).
- Cualquier otra cosa se rechaza (400 para GET, 405 para otros métodos).

El handler no guarda estado entre peticiones; la configuración es de solo
lectura y puede compartirse entre workers/tareas.
"""

from __future__ import annotations

import inspect
import json
import logging
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl

from adapters.discovery import parse_link_headers
from core.domain.errors import DiscoveryError, VerificationFailedError
from core.domain.models import (
    Acknowledgement,
    CallbackMode,
    CallbackResponse,
    ContentDistributionMessage,
    IncomingCallbackRequest,
    SubscriberConfig,
    SubscriptionDeleted,
    VerificationOutcome,
)
from core.interfaces.subscriber import SubscriberService
from core.signature import SIGNATURE_HEADER, verify_header

logger = logging.getLogger(__name__)


class CallbackState(str, Enum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    VERIFYING_INTENT = "verifying_intent"
    VERIFYING_CONTENT = "verifying_content"
    RESPONDED = "responded"


class RequestKind(str, Enum):
    INTENT_VERIFICATION = "intent_verification"
    SUBSCRIPTION_DENIED = "subscription_denied"
    CONTENT_DISTRIBUTION = "content_distribution"
    INVALID = "invalid"


def classify(request: IncomingCallbackRequest) -> RequestKind:
    """Decide qué tipo de petición del hub es."""

    if request.mode is not None:
        mode = request.mode.strip().lower()
        if mode in (CallbackMode.SUBSCRIBE.value, CallbackMode.UNSUBSCRIBE.value):
            return RequestKind.INTENT_VERIFICATION
        if mode == CallbackMode.DENIED.value:
            return RequestKind.SUBSCRIPTION_DENIED
        return RequestKind.INVALID
    if request.method == "POST" and request.raw_body:
        return RequestKind.CONTENT_DISTRIBUTION
    return RequestKind.INVALID


def _charset(request: IncomingCallbackRequest) -> str:
    value = request.header("content-type") or ""
    for param in value.split(";")[1:]:
        name, _, charset = param.partition("=")
        if name.strip().lower() == "charset" and charset.strip():
            return charset.strip().strip('"')
    return "utf-8"


def decode_content(request: IncomingCallbackRequest) -> Any:
    """Decodifica el cuerpo según Content-Type.

    - JSON (`application/json`, `*+json`) => dict/list
    - formulario => dict
    - texto / XML => str
    - resto => bytes sin tocar

    Lanza `ValueError` si el cuerpo no corresponde al tipo declarado.
    """

    content_type = request.content_type or ""
    body = request.raw_body
    if content_type == "application/json" or content_type.endswith("+json"):
        return json.loads(body.decode(_charset(request)))
    if content_type == "application/x-www-form-urlencoded":
        return dict(parse_qsl(body.decode(_charset(request)), keep_blank_values=True))
    if content_type.startswith("text/") or content_type.endswith("xml"):
        return body.decode(_charset(request))
    return body


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class CallbackRequestHandler:
    """Interpreta las peticiones del hub y construye la respuesta HTTP.

    Uso (host):

        handler = CallbackRequestHandler(service, config)
        response = await handler.handle(IncomingCallbackRequest.from_http(...))
    """

    def __init__(self, service: SubscriberService, config: SubscriberConfig | None = None) -> None:
        self._service = service
        self._config = config or SubscriberConfig()
        if not (self._config.secret or "").strip():
            logger.warning("No secret configured: content notifications are accepted without signature checks")

    @property
    def config(self) -> SubscriberConfig:
        return self._config

    async def handle(self, request: IncomingCallbackRequest) -> CallbackResponse:
        self._trace(request, CallbackState.RECEIVED)
        kind = classify(request)
        self._trace(request, CallbackState.CLASSIFIED, kind=kind.value)

        if kind is RequestKind.INTENT_VERIFICATION:
            self._trace(request, CallbackState.VERIFYING_INTENT)
            response = await self._verify_intent(request)
        elif kind is RequestKind.SUBSCRIPTION_DENIED:
            response = await self._subscription_denied(request)
        elif kind is RequestKind.CONTENT_DISTRIBUTION:
            self._trace(request, CallbackState.VERIFYING_CONTENT)
            response = await self._distribute_content(request)
        elif request.method in ("GET", "POST"):
            response = CallbackResponse.plain(400, "Invalid callback request")
        else:
            response = CallbackResponse(status_code=405, headers=[("Allow", "GET, POST")])

        self._trace(request, CallbackState.RESPONDED, status=response.status_code)
        return response

    def verify_content(self, request: IncomingCallbackRequest) -> VerificationOutcome:
        """Comprueba `X-Hub-Signature`; lanza `VerificationFailedError` si no cuadra."""

        outcome = verify_header(self._config.secret, request.raw_body, request.header(SIGNATURE_HEADER))
        if not outcome.accepted:
            raise VerificationFailedError(f"Content signature verification failed (method={outcome.method!r})")
        return outcome

    async def _verify_intent(self, request: IncomingCallbackRequest) -> CallbackResponse:
        mode = (request.mode or "").strip().lower()
        if not request.topic or request.challenge is None:
            logger.warning("Intent verification for mode=%s without hub.topic/hub.challenge", mode)
            return CallbackResponse.plain(400, "Missing hub.topic or hub.challenge")

        expected = self._config.expected_topic
        if expected and request.topic != expected:
            logger.warning("Refusing %s verification for unknown topic %s", mode, request.topic)
            return CallbackResponse(status_code=404)

        try:
            if mode == CallbackMode.SUBSCRIBE.value:
                accepted = await _maybe_await(self._service.on_subscription_verification(request))
            else:
                accepted = await _maybe_await(self._service.on_unsubscription_verification(request))
        except Exception:
            logger.exception("Subscriber service failed during %s verification", mode)
            return CallbackResponse(status_code=500)

        if not accepted:
            logger.info("Subscriber refused %s verification for %s", mode, request.topic)
            return CallbackResponse(status_code=404)

        logger.info("Confirmed %s for topic %s (lease=%s)", mode, request.topic, request.lease_seconds)
        return CallbackResponse.plain(200, request.challenge)

    async def _subscription_denied(self, request: IncomingCallbackRequest) -> CallbackResponse:
        logger.warning("Hub denied subscription to %s: %s", request.topic, request.reason or "no reason given")
        try:
            await _maybe_await(self._service.on_subscription_denied(request))
        except Exception:
            logger.exception("Subscriber service failed handling subscription denial")
            return CallbackResponse(status_code=500)
        return CallbackResponse.form(200)

    async def _distribute_content(self, request: IncomingCallbackRequest) -> CallbackResponse:
        try:
            outcome = self.verify_content(request)
        except VerificationFailedError as exc:
            logger.warning("Rejected content notification: %s", exc)
            return CallbackResponse(status_code=404)

        try:
            content = decode_content(request)
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("Malformed %s notification body: %s", request.content_type, exc)
            return CallbackResponse.plain(400, "Malformed notification body")

        message = ContentDistributionMessage(
            topic=self._notification_topic(request),
            content_type=request.content_type,
            headers=request.headers,
            content=content,
        )
        logger.debug("Accepted notification for %s (signature method=%s)", message.topic, outcome.method)

        try:
            result = await _maybe_await(self._service.on_event_notification(message))
        except Exception:
            logger.exception("Subscriber service failed handling content notification")
            return CallbackResponse(status_code=500)

        return self._notification_response(result)

    def _notification_topic(self, request: IncomingCallbackRequest) -> str | None:
        link = request.header("link")
        if link:
            try:
                return parse_link_headers([link]).topic
            except DiscoveryError as exc:
                logger.debug("Notification Link header without topic: %s", exc)
        return self._config.expected_topic

    @staticmethod
    def _notification_response(result: Any) -> CallbackResponse:
        if isinstance(result, SubscriptionDeleted):
            body = {"reason": result.reason} if result.reason else None
            return CallbackResponse.form(410, body, result.headers)
        if isinstance(result, Acknowledgement):
            return CallbackResponse.form(202, result.body, result.headers)
        return CallbackResponse.form(202)

    @staticmethod
    def _trace(request: IncomingCallbackRequest, state: CallbackState, **extra: Any) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("callback %s %s mode=%s %s", request.method, state.value, request.mode, extra or "")
