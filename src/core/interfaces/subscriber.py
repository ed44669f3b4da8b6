"""Contrato del servicio de usuario que recibe los eventos del hub.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- El handler de callback solo conoce esta interfaz; la lógica de negocio
  vive en el código del usuario y es intercambiable y testeable.

Todos los métodos pueden ser síncronos o `async`: el handler espera el
resultado si es awaitable.
"""

from __future__ import annotations

from typing import Awaitable, Protocol, Union, runtime_checkable

from core.domain.models import (
    Acknowledgement,
    ContentDistributionMessage,
    IncomingCallbackRequest,
    SubscriptionDeleted,
)

NotificationResult = Union[Acknowledgement, SubscriptionDeleted, None]


@runtime_checkable
class SubscriberService(Protocol):
    """Contrato mínimo de un suscriptor WebSub.

    Reglas de diseño:
    - `on_subscription_verification` / `on_unsubscription_verification`
      devuelven `True` para aceptar (se hace eco del challenge) o `False`
      para rechazar (404).
    - `on_event_notification` solo se llama con contenido ya verificado.
    """

    def on_subscription_verification(self, request: IncomingCallbackRequest) -> bool | Awaitable[bool]:
        ...

    def on_unsubscription_verification(self, request: IncomingCallbackRequest) -> bool | Awaitable[bool]:
        ...

    def on_subscription_denied(self, request: IncomingCallbackRequest) -> None | Awaitable[None]:
        ...

    def on_event_notification(
        self, message: ContentDistributionMessage
    ) -> NotificationResult | Awaitable[NotificationResult]:
        ...


class AcceptAllSubscriber:
    """Implementación por defecto: acepta toda verificación y acusa recibo.

    Útil para `serve` desde la CLI y como base para servicios propios.
    """

    def on_subscription_verification(self, request: IncomingCallbackRequest) -> bool:
        return True

    def on_unsubscription_verification(self, request: IncomingCallbackRequest) -> bool:
        return True

    def on_subscription_denied(self, request: IncomingCallbackRequest) -> None:
        return None

    def on_event_notification(self, message: ContentDistributionMessage) -> NotificationResult:
        return Acknowledgement()
