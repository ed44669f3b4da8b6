from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import AppSettings, write_user_env_vars
from core.domain.models import SubscriberConfig, SubscriptionMode, SubscriptionRequest, TopicReference


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("WEBSUB_DISCOVERY_URL", "https://example.com/feed")
    monkeypatch.setenv("WEBSUB_ACCEPT", "application/atom+xml, application/rss+xml")
    monkeypatch.setenv("WEBSUB_ACCEPT_LANGUAGE", "en")
    monkeypatch.setenv("WEBSUB_CALLBACK_PATH", "hooks/websub")
    monkeypatch.setenv("WEBSUB_LOG_LEVEL", "debug")

    settings = AppSettings(_env_file=None)

    assert settings.accept == ["application/atom+xml", "application/rss+xml"]
    assert settings.accept_language == ["en"]
    assert settings.callback_path == "/hooks/websub"
    assert settings.log_level == "DEBUG"
    assert settings.resolve_callback_url() == "http://127.0.0.1:8080/hooks/websub"


def test_subscriber_config_from_settings_prefers_static_target():
    settings = AppSettings(
        _env_file=None,
        hub_url="https://hub.example/",
        topic_url="https://example.com/topic",
        discovery_url="https://example.com/feed",
        callback_url="https://me.example/cb",
        secret="s3cret",
        lease_seconds=3600,
    )

    config = SubscriberConfig.from_settings(settings)

    assert config.target == TopicReference(hub_url="https://hub.example/", topic_url="https://example.com/topic")
    assert config.discovery_url is None
    assert config.callback_url == "https://me.example/cb"
    assert config.expected_topic == "https://example.com/topic"
    assert "s3cret" not in repr(config)


def test_subscriber_config_rejects_both_targets():
    with pytest.raises(ValidationError):
        SubscriberConfig(
            target=TopicReference(hub_url="https://hub.example/", topic_url="https://example.com/topic"),
            discovery_url="https://example.com/feed",
        )


def test_topic_reference_requires_non_empty_urls():
    with pytest.raises(ValidationError):
        TopicReference(hub_url="", topic_url="https://example.com/topic")


def test_subscription_request_form_order():
    request = SubscriptionRequest(
        mode=SubscriptionMode.SUBSCRIBE,
        hub="https://hub.example/",
        topic="https://example.com/topic",
        callback="https://me.example/cb",
        lease_seconds=60,
    )

    assert list(request.to_form()) == ["hub.mode", "hub.topic", "hub.callback", "hub.lease_seconds"]


def test_write_user_env_vars_merges(tmp_path):
    env_path = tmp_path / "config" / ".env"
    write_user_env_vars({"WEBSUB_HUB_URL": "https://hub.example/", "WEBSUB_SECRET": None}, env_path)
    write_user_env_vars({"WEBSUB_TOPIC_URL": "https://example.com/topic"}, env_path)

    lines = env_path.read_text(encoding="utf-8").splitlines()

    assert lines[0].startswith("#")
    assert "WEBSUB_HUB_URL=https://hub.example/" in lines
    assert "WEBSUB_TOPIC_URL=https://example.com/topic" in lines
    assert not any(line.startswith("WEBSUB_SECRET") for line in lines)


def test_empty_string_removes_key_and_switches_target(tmp_path):
    env_path = tmp_path / ".env"
    write_user_env_vars(
        {"WEBSUB_HUB_URL": "https://hub.example/", "WEBSUB_TOPIC_URL": "https://example.com/topic"},
        env_path,
    )
    write_user_env_vars(
        {"WEBSUB_DISCOVERY_URL": "https://example.com/feed", "WEBSUB_HUB_URL": "", "WEBSUB_TOPIC_URL": ""},
        env_path,
    )

    text = env_path.read_text(encoding="utf-8")
    assert "WEBSUB_HUB_URL" not in text
    assert "WEBSUB_TOPIC_URL" not in text

    config = SubscriberConfig.from_settings(AppSettings(_env_file=env_path))
    assert config.target is None
    assert config.discovery_url == "https://example.com/feed"


def test_empty_env_values_are_unset(monkeypatch):
    monkeypatch.setenv("WEBSUB_HUB_URL", "")
    monkeypatch.setenv("WEBSUB_SECRET", "  ")

    settings = AppSettings(_env_file=None)

    assert settings.hub_url is None
    assert settings.secret is None
