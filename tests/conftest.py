from __future__ import annotations

from typing import Callable

import pytest

from core.config import AppSettings
from core.domain.models import Acknowledgement, ContentDistributionMessage, IncomingCallbackRequest


@pytest.fixture()
def settings() -> AppSettings:
    # _env_file=None: ignora .env del proyecto y del usuario.
    return AppSettings(_env_file=None, http_timeout_seconds=2.0, user_agent="pytest")


class RecordingSubscriber:
    """Servicio de usuario que registra las llamadas recibidas."""

    def __init__(self, *, accept: bool = True, result: object = None) -> None:
        self.accept = accept
        self.result = result if result is not None else Acknowledgement()
        self.verifications: list[IncomingCallbackRequest] = []
        self.denials: list[IncomingCallbackRequest] = []
        self.notifications: list[ContentDistributionMessage] = []

    def on_subscription_verification(self, request: IncomingCallbackRequest) -> bool:
        self.verifications.append(request)
        return self.accept

    async def on_unsubscription_verification(self, request: IncomingCallbackRequest) -> bool:
        self.verifications.append(request)
        return self.accept

    def on_subscription_denied(self, request: IncomingCallbackRequest) -> None:
        self.denials.append(request)

    async def on_event_notification(self, message: ContentDistributionMessage) -> object:
        self.notifications.append(message)
        return self.result


@pytest.fixture()
def subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture()
def make_subscriber() -> Callable[..., RecordingSubscriber]:
    return RecordingSubscriber
