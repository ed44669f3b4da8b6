"""Orquestación de la suscripción al arrancar y parar el servicio.

Por qué un servicio aparte:
- Encadena discovery (opcional) y el POST al hub sin que el servidor de
  callback conozca httpx ni los detalles del protocolo saliente.
- Todos los fallos llegan al host como `SubscriptionInitiationError`.

Nota:
- Si el fallo aborta el arranque lo decide el host
  (`fail_on_subscription_error`).
"""

from __future__ import annotations

import asyncio
import logging

from adapters.discovery import ResourceDiscoverer
from adapters.subscription_client import SubscriptionClient
from core.config import AppSettings
from core.domain.errors import (
    DiscoveryError,
    ResourceDiscoveryFailedError,
    SubscriptionInitiationError,
    WebSubError,
    describe_chain,
)
from core.domain.models import (
    SubscriberConfig,
    SubscriptionMode,
    SubscriptionRequest,
    SubscriptionResponse,
    TopicReference,
)

logger = logging.getLogger(__name__)


class SubscriptionOrchestrator:
    """Coordina discovery y el intercambio con el hub para un suscriptor."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        discoverer: ResourceDiscoverer | None = None,
        client: SubscriptionClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._discoverer = discoverer or ResourceDiscoverer(self._settings)
        self._client = client or SubscriptionClient(self._settings)

    async def resolve_target(self, config: SubscriberConfig) -> TopicReference | None:
        """(hub, topic) estático si existe; si no, el primer hub descubierto."""

        if config.target is not None:
            return config.target
        if not config.discovery_url:
            return None

        try:
            result = await self._discoverer.discover(
                config.discovery_url,
                config.accept or None,
                config.accept_language or None,
            )
        except ResourceDiscoveryFailedError:
            raise
        except DiscoveryError as exc:
            raise ResourceDiscoveryFailedError(
                f"Subscription initiation failed due to: {exc}",
                retryable=exc.retryable,
            ) from exc
        return result.primary()

    async def initiate(
        self,
        config: SubscriberConfig,
        callback_url: str | None = None,
        *,
        timeout: float | None = None,
    ) -> SubscriptionResponse | None:
        """Suscribe el callback al topic configurado.

        Devuelve `None` si no hay target estático ni URL de discovery: la
        suscripción de arranque es opcional.
        """

        if config.target is None and not config.discovery_url:
            logger.info("No hub/topic or discovery URL configured; skipping subscription")
            return None

        callback = callback_url or config.callback_url
        if not callback:
            raise SubscriptionInitiationError("Subscription initiation failed: no callback URL available")

        try:
            return await asyncio.wait_for(
                self._run(SubscriptionMode.SUBSCRIBE, config, callback),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise SubscriptionInitiationError(
                f"Subscription initiation timed out after {timeout}s",
                retryable=True,
            ) from exc

    async def terminate(
        self,
        config: SubscriberConfig,
        callback_url: str | None = None,
        *,
        timeout: float | None = None,
    ) -> SubscriptionResponse | None:
        """Desuscripción best-effort al parar; los fallos se registran, no se propagan."""

        if not config.unsubscribe_on_shutdown:
            return None
        callback = callback_url or config.callback_url
        if not callback or (config.target is None and not config.discovery_url):
            return None

        try:
            return await asyncio.wait_for(
                self._run(SubscriptionMode.UNSUBSCRIBE, config, callback),
                timeout=timeout,
            )
        except (WebSubError, asyncio.TimeoutError) as exc:
            logger.warning("Unsubscribe on shutdown failed: %s", describe_chain(exc))
            return None

    async def _run(
        self,
        mode: SubscriptionMode,
        config: SubscriberConfig,
        callback: str,
    ) -> SubscriptionResponse:
        target = await self.resolve_target(config)
        assert target is not None

        request = SubscriptionRequest(
            mode=mode,
            hub=target.hub_url,
            topic=target.topic_url,
            callback=callback,
            lease_seconds=config.lease_seconds,
            secret=config.secret or None,
        )
        try:
            if mode is SubscriptionMode.SUBSCRIBE:
                return await self._client.subscribe(request)
            return await self._client.unsubscribe(request)
        except WebSubError as exc:
            raise SubscriptionInitiationError(
                f"Subscription initiation failed due to: {exc}",
                retryable=exc.retryable,
            ) from exc
