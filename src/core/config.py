"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP cliente/servidor) lean config de forma consistente.
- Es de solo lectura tras el arranque: se comparte entre peticiones sin locks.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

APP_DIR_NAME = "websub-subscriber"


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / APP_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".config" / APP_DIR_NAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str | None], env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario.

    `None` deja la variable como esté; `""` la elimina del fichero.
    """

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    for key, value in values.items():
        if value is None:
            continue
        if value == "":
            existing.pop(key, None)
        else:
            existing[key] = value

    lines = ["# websub-subscriber user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central del suscriptor.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI, servidor de callback y cliente.
    """

    model_config = SettingsConfigDict(
        env_prefix="WEBSUB_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout por request saliente (discovery / hub), en segundos.",
    )
    user_agent: str = Field(
        default="websub-subscriber/0.1",
        min_length=1,
        description="User-Agent para discovery y peticiones al hub.",
    )

    # Target de la suscripción: hub+topic estáticos o una URL de discovery.
    hub_url: str | None = Field(default=None, description="Hub estático.")
    topic_url: str | None = Field(default=None, description="Topic estático.")
    discovery_url: str | None = Field(
        default=None,
        description="Recurso del publicador del que se descubren hub y topic.",
    )
    accept: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Media types para `Accept` en discovery (separados por comas).",
    )
    accept_language: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Idiomas para `Accept-Language` en discovery (separados por comas).",
    )

    callback_url: str | None = Field(
        default=None,
        description="URL pública del callback que se registra en el hub.",
    )
    callback_path: str = Field(
        default="/websub/callback",
        min_length=1,
        description="Ruta local donde el servidor expone el callback.",
    )
    secret: str | None = Field(
        default=None,
        description="Secreto compartido con el hub para firmar notificaciones.",
    )
    lease_seconds: int | None = Field(
        default=None,
        gt=0,
        description="Duración solicitada de la suscripción (hub.lease_seconds).",
    )
    unsubscribe_on_shutdown: bool = Field(
        default=False,
        description="Enviar `unsubscribe` al hub al parar el servidor.",
    )
    fail_on_subscription_error: bool = Field(
        default=True,
        description="Abortar el arranque si falla la suscripción inicial.",
    )

    host: str = Field(default="127.0.0.1", description="Interfaz del servidor de callback.")
    port: int = Field(default=8080, ge=1, le=65535, description="Puerto del servidor de callback.")
    log_level: str = Field(default="INFO", description="Nivel de logging (DEBUG, INFO, ...).")

    @field_validator("hub_url", "topic_url", "discovery_url", "callback_url", "secret", mode="before")
    @classmethod
    def _empty_as_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("accept", "accept_language", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("callback_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()

    def resolve_callback_url(self) -> str:
        """URL pública del callback; por defecto `http://host:port/path`."""

        if self.callback_url:
            return self.callback_url
        return f"http://{self.host}:{self.port}{self.callback_path}"
