"""Servidor HTTP del callback (FastAPI).

Por qué un adaptador fino:
- El Core solo expone `CallbackRequestHandler.handle(IncomingCallbackRequest)`.
- Aquí se traduce `Request` de Starlette a la vista normalizada y
  `CallbackResponse` a `Response`, y se engancha la suscripción inicial al
  ciclo de vida de la app (lifespan).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response

from core.config import AppSettings
from core.domain.errors import SubscriptionInitiationError, describe_chain
from core.domain.models import CallbackResponse, IncomingCallbackRequest, SubscriberConfig
from core.interfaces.subscriber import AcceptAllSubscriber, SubscriberService
from core.services.callback_handler import CallbackRequestHandler
from core.services.subscription_orchestrator import SubscriptionOrchestrator

logger = logging.getLogger(__name__)


def to_starlette_response(result: CallbackResponse) -> Response:
    response = Response(content=result.body, status_code=result.status_code)
    for name, value in result.headers:
        if name.lower() == "content-type":
            response.headers["content-type"] = value
        else:
            response.headers.append(name, value)
    return response


def create_app(
    settings: AppSettings | None = None,
    service: SubscriberService | None = None,
    config: SubscriberConfig | None = None,
    *,
    orchestrator: SubscriptionOrchestrator | None = None,
    subscribe_on_startup: bool = True,
) -> FastAPI:
    """Crea la app con la ruta de callback y la suscripción de arranque."""

    settings = settings or AppSettings()
    config = config or SubscriberConfig.from_settings(settings)
    handler = CallbackRequestHandler(service or AcceptAllSubscriber(), config)
    orchestrator = orchestrator or SubscriptionOrchestrator(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.subscription = None
        if subscribe_on_startup:
            try:
                app.state.subscription = await orchestrator.initiate(
                    config, timeout=settings.http_timeout_seconds * 3
                )
            except SubscriptionInitiationError as exc:
                logger.error("Startup subscription failed: %s", describe_chain(exc))
                if settings.fail_on_subscription_error:
                    raise
        yield
        if subscribe_on_startup:
            await orchestrator.terminate(config, timeout=settings.http_timeout_seconds)

    app = FastAPI(title="WebSub subscriber", lifespan=lifespan)
    app.state.handler = handler

    @app.api_route(settings.callback_path, methods=["GET", "POST"])
    async def websub_callback(request: Request) -> Response:
        incoming = IncomingCallbackRequest.from_http(
            method=request.method,
            query=dict(request.query_params),
            headers=dict(request.headers),
            body=await request.body(),
        )
        result = await handler.handle(incoming)
        return to_starlette_response(result)

    return app
